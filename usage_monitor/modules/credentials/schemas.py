from __future__ import annotations

from typing import Annotated

from pydantic import StringConstraints

from usage_monitor.core.usage.models import TokenSource
from usage_monitor.modules.usage.schemas import DashboardModel


class CredentialSourceRequest(DashboardModel):
    source: TokenSource


class CredentialTokenRequest(DashboardModel):
    token: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class CredentialValidationResponse(DashboardModel):
    valid: bool


class CredentialSourceStatus(DashboardModel):
    source: TokenSource
    available: bool
    reason: str | None = None


class CredentialStatusResponse(DashboardModel):
    preferred_source: TokenSource
    sources: list[CredentialSourceStatus]
