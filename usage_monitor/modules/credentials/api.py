from __future__ import annotations

from fastapi import APIRouter, Depends

from usage_monitor.core.usage.models import TokenSource
from usage_monitor.dependencies import MonitorContext, get_monitor_context
from usage_monitor.modules.credentials.errors import CredentialAccessError
from usage_monitor.modules.credentials.schemas import (
    CredentialSourceRequest,
    CredentialSourceStatus,
    CredentialStatusResponse,
    CredentialTokenRequest,
    CredentialValidationResponse,
)
from usage_monitor.modules.usage.schemas import ServiceStatePayload

router = APIRouter(prefix="/api/credentials", tags=["credentials"])


@router.get("/status", response_model=CredentialStatusResponse)
async def credential_status(
    context: MonitorContext = Depends(get_monitor_context),
) -> CredentialStatusResponse:
    sources = [await _source_status(context, source) for source in TokenSource]
    return CredentialStatusResponse(
        preferred_source=context.cache.state.preferred_source,
        sources=sources,
    )


@router.put("/source", response_model=ServiceStatePayload)
async def set_preferred_source(
    payload: CredentialSourceRequest,
    context: MonitorContext = Depends(get_monitor_context),
) -> ServiceStatePayload:
    await context.cache.set_preferred_source(payload.source)
    return ServiceStatePayload.from_state(context.cache.state)


@router.post("/validate", response_model=CredentialValidationResponse)
async def validate_credential(
    payload: CredentialTokenRequest,
    context: MonitorContext = Depends(get_monitor_context),
) -> CredentialValidationResponse:
    valid = await context.cache.validate_credential(payload.token)
    return CredentialValidationResponse(valid=valid)


@router.put("/manual", response_model=ServiceStatePayload)
async def save_manual_credential(
    payload: CredentialTokenRequest,
    context: MonitorContext = Depends(get_monitor_context),
) -> ServiceStatePayload:
    await context.cache.save_credential(payload.token)
    return ServiceStatePayload.from_state(context.cache.state)


@router.delete("/manual", response_model=ServiceStatePayload)
async def clear_manual_credential(
    context: MonitorContext = Depends(get_monitor_context),
) -> ServiceStatePayload:
    await context.cache.clear_credential()
    return ServiceStatePayload.from_state(context.cache.state)


async def _source_status(context: MonitorContext, source: TokenSource) -> CredentialSourceStatus:
    if await context.cache.is_credential_available(source):
        return CredentialSourceStatus(source=source, available=True)
    try:
        await context.resolver.read(source)
    except CredentialAccessError as exc:
        return CredentialSourceStatus(source=source, available=False, reason=exc.message)
    return CredentialSourceStatus(source=source, available=True)
