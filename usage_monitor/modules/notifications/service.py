from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from usage_monitor.core.usage.mapping import FIVE_HOUR, SEVEN_DAY
from usage_monitor.core.usage.models import UsageLimit, UsageThreshold
from usage_monitor.core.utils.time import to_utc, utcnow
from usage_monitor.modules.notifications.delivery import NotificationDeliveryPort
from usage_monitor.modules.notifications.renderer import render_threshold_notification
from usage_monitor.modules.storage.repository import BlobStorePort

logger = logging.getLogger(__name__)

NOTIFICATION_STATE_KEY = "notification_state"
MONITORED_LIMIT_IDS: frozenset[str] = frozenset({FIVE_HOUR, SEVEN_DAY})


@dataclass(slots=True)
class NotificationRecord:
    resets_at: datetime | None = None
    acknowledged: set[UsageThreshold] = field(default_factory=set)


class _NotificationRecordPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    resets_at: datetime | None = None
    acknowledged: list[UsageThreshold] = []


_RECORDS_ADAPTER = TypeAdapter(dict[str, _NotificationRecordPayload])


def decode_records(raw: bytes) -> dict[str, NotificationRecord]:
    payload = _RECORDS_ADAPTER.validate_json(raw)
    return {
        limit_id: NotificationRecord(
            resets_at=to_utc(entry.resets_at) if entry.resets_at is not None else None,
            acknowledged=set(entry.acknowledged),
        )
        for limit_id, entry in payload.items()
    }


def encode_records(records: dict[str, NotificationRecord]) -> bytes:
    payload = {
        limit_id: _NotificationRecordPayload(
            resets_at=record.resets_at,
            acknowledged=sorted(record.acknowledged, key=lambda threshold: threshold.value),
        )
        for limit_id, record in records.items()
    }
    return _RECORDS_ADAPTER.dump_json(payload)


class ThresholdNotifier:
    """Fires each threshold at most once per bucket per quota period.

    A bucket's record is reset when its reset time changes, when the stored
    reset time has already passed, or when utilization drops below the lowest
    threshold acknowledged so far. Delivery is best effort: a failed delivery
    still acknowledges the threshold so it is not retried.
    """

    def __init__(
        self,
        delivery: NotificationDeliveryPort,
        store: BlobStorePort,
        *,
        records: dict[str, NotificationRecord] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._delivery = delivery
        self._store = store
        self._records: dict[str, NotificationRecord] = dict(records or {})
        self._clock = clock

    @classmethod
    async def create(
        cls,
        delivery: NotificationDeliveryPort,
        store: BlobStorePort,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> ThresholdNotifier:
        return cls(delivery, store, records=await _load_records(store), clock=clock)

    @property
    def records(self) -> dict[str, NotificationRecord]:
        return {
            limit_id: NotificationRecord(resets_at=record.resets_at, acknowledged=set(record.acknowledged))
            for limit_id, record in self._records.items()
        }

    async def request_permission(self) -> bool:
        try:
            granted = await self._delivery.request_permission()
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to request notification permission error=%s", exc)
            return False
        logger.info("Notification permission %s", "granted" if granted else "denied")
        return granted

    async def evaluate(self, limits: Iterable[UsageLimit]) -> None:
        changed = False
        for limit in limits:
            if limit.id not in MONITORED_LIMIT_IDS:
                continue
            if await self._evaluate_limit(limit):
                changed = True
        if changed:
            await self._persist()

    async def reset_all(self) -> None:
        self._records.clear()
        await self._persist()

    async def _evaluate_limit(self, limit: UsageLimit) -> bool:
        now = self._clock()
        changed = False
        record = self._records.get(limit.id)
        if record is None or self._should_reset(record, limit, now):
            record = NotificationRecord(resets_at=limit.resets_at)
            self._records[limit.id] = record
            changed = True

        for threshold in UsageThreshold.ascending():
            if limit.utilization < threshold.value or threshold in record.acknowledged:
                continue
            logger.info("Threshold crossed limit=%s threshold=%s", limit.id, threshold.value)
            await self._deliver(limit, threshold, now)
            record.acknowledged.add(threshold)
            changed = True
        return changed

    @staticmethod
    def _should_reset(record: NotificationRecord, limit: UsageLimit, now: datetime) -> bool:
        if record.resets_at != limit.resets_at:
            return True
        if record.resets_at is not None and now > record.resets_at:
            return True
        if record.acknowledged:
            lowest = min(record.acknowledged, key=lambda threshold: threshold.value)
            if limit.utilization < lowest.value:
                return True
        return False

    async def _deliver(self, limit: UsageLimit, threshold: UsageThreshold, now: datetime) -> None:
        message = render_threshold_notification(limit, threshold, now=now)
        try:
            delivered = await self._delivery.send(message)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Notification delivery raised limit=%s error=%s", limit.id, exc)
            return
        if not delivered:
            logger.warning("Notification delivery failed limit=%s threshold=%s", limit.id, threshold.value)

    async def _persist(self) -> None:
        try:
            await self._store.save(NOTIFICATION_STATE_KEY, encode_records(self._records))
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to persist notification state error=%s", exc)


async def _load_records(store: BlobStorePort) -> dict[str, NotificationRecord]:
    try:
        raw = await store.load(NOTIFICATION_STATE_KEY)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Failed to load notification state error=%s", exc)
        return {}
    if raw is None:
        return {}
    try:
        return decode_records(raw)
    except ValidationError:
        logger.warning("Discarding unreadable notification state")
        return {}
