from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from usage_monitor.core.usage.errors import UsageApiError
from usage_monitor.core.usage.models import TokenSource, UsageLimit
from usage_monitor.modules.usage.service import ServiceState


class DashboardModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UsageLimitPayload(DashboardModel):
    id: str
    title: str
    utilization: float
    resets_at: datetime | None = None

    @classmethod
    def from_limit(cls, limit: UsageLimit) -> UsageLimitPayload:
        return cls(id=limit.id, title=limit.title, utilization=limit.utilization, resets_at=limit.resets_at)


class UsageErrorPayload(DashboardModel):
    code: str
    message: str
    reason: str | None = None
    suggestion: str | None = None

    @classmethod
    def from_error(cls, error: UsageApiError) -> UsageErrorPayload:
        return cls(
            code=error.code,
            message=error.message,
            reason=error.failure_reason,
            suggestion=error.recovery_suggestion,
        )


class ServiceStatePayload(DashboardModel):
    usage_limits: list[UsageLimitPayload]
    last_updated: datetime | None = None
    error: UsageErrorPayload | None = None
    active_source: TokenSource | None = None
    has_valid_credential: bool
    preferred_source: TokenSource

    @classmethod
    def from_state(cls, state: ServiceState) -> ServiceStatePayload:
        return cls(
            usage_limits=[UsageLimitPayload.from_limit(limit) for limit in state.usage_limits],
            last_updated=state.last_updated,
            error=UsageErrorPayload.from_error(state.error) if state.error is not None else None,
            active_source=state.active_source,
            has_valid_credential=state.has_valid_credential,
            preferred_source=state.preferred_source,
        )
