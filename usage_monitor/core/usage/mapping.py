from __future__ import annotations

from dataclasses import dataclass

from usage_monitor.core.usage.models import UsageBucket, UsageLimit, UsageResponse
from usage_monitor.core.utils.time import parse_iso8601

FIVE_HOUR = "five_hour"
SEVEN_DAY = "seven_day"
SEVEN_DAY_SONNET = "seven_day_sonnet"
SEVEN_DAY_OPUS = "seven_day_opus"


@dataclass(frozen=True, slots=True)
class _LimitDescriptor:
    id: str
    title: str
    model_specific: bool


_LIMIT_DESCRIPTORS: tuple[_LimitDescriptor, ...] = (
    _LimitDescriptor(FIVE_HOUR, "Current session", model_specific=False),
    _LimitDescriptor(SEVEN_DAY, "All models", model_specific=False),
    _LimitDescriptor(SEVEN_DAY_SONNET, "Sonnet only", model_specific=True),
    _LimitDescriptor(SEVEN_DAY_OPUS, "Opus only", model_specific=True),
)


def map_response_to_limits(response: UsageResponse) -> list[UsageLimit]:
    limits: list[UsageLimit] = []
    for descriptor in _LIMIT_DESCRIPTORS:
        bucket: UsageBucket | None = getattr(response, descriptor.id)
        if bucket is None:
            continue
        if descriptor.model_specific and not _has_activity(bucket):
            continue
        limits.append(
            UsageLimit(
                id=descriptor.id,
                title=descriptor.title,
                utilization=bucket.utilization / 100.0,
                resets_at=parse_iso8601(bucket.resets_at),
            )
        )
    return limits


def _has_activity(bucket: UsageBucket) -> bool:
    return bucket.utilization > 0 or bucket.resets_at is not None
