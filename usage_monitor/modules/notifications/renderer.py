from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from usage_monitor.core.usage.models import UsageLimit, UsageThreshold
from usage_monitor.core.utils.time import format_reset_interval

_TITLES = {
    UsageThreshold.WARNING: "Usage Warning",
    UsageThreshold.CRITICAL: "Usage Critical",
}


@dataclass(frozen=True, slots=True)
class NotificationMessage:
    identifier: str
    title: str
    body: str
    severity: UsageThreshold
    limit_id: str


def format_utilization(utilization: float) -> str:
    return f"{utilization * 100:.0f}%"


def render_threshold_notification(
    limit: UsageLimit,
    threshold: UsageThreshold,
    *,
    now: datetime | None = None,
) -> NotificationMessage:
    body = f"Claude {limit.title}: {format_utilization(limit.utilization)} of tokens used"
    if limit.resets_at is not None:
        body += f"\nResets in {format_reset_interval(limit.resets_at, now)}"
    return NotificationMessage(
        identifier=f"{limit.id}-{threshold.value}",
        title=_TITLES[threshold],
        body=body,
        severity=threshold,
        limit_id=limit.id,
    )
