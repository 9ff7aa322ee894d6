from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso8601(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp with or without fractional seconds.

    A trailing ``Z`` is accepted as UTC. Naive values are assumed to be UTC.
    Returns ``None`` for empty or unparseable input.
    """
    if not value:
        return None
    raw = value.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    return to_utc(parsed)


def format_reset_interval(resets_at: datetime, now: datetime | None = None) -> str:
    current = to_utc(now) if now is not None else utcnow()
    remaining = to_utc(resets_at) - current
    if remaining <= timedelta(0):
        return "0m"
    total_minutes = int(remaining.total_seconds() // 60)
    days, rest = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(rest, 60)
    parts: list[str] = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes or not parts:
        parts.append(f"{minutes}m")
    return " ".join(parts)
