from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from usage_monitor.core.utils.sse import format_sse_event
from usage_monitor.dependencies import MonitorContext, get_monitor_context
from usage_monitor.modules.usage.schemas import ServiceStatePayload
from usage_monitor.modules.usage.service import UsageStateCache

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/usage", tags=["usage"])


@router.get("", response_model=ServiceStatePayload)
async def get_usage(
    context: MonitorContext = Depends(get_monitor_context),
) -> ServiceStatePayload:
    await context.cache.refresh_if_stale(context.settings.stale_after_seconds)
    return ServiceStatePayload.from_state(context.cache.state)


@router.post("/refresh", response_model=ServiceStatePayload)
async def refresh_usage(
    context: MonitorContext = Depends(get_monitor_context),
) -> ServiceStatePayload:
    await context.cache.refresh()
    return ServiceStatePayload.from_state(context.cache.state)


@router.get("/stream")
async def stream_usage(
    context: MonitorContext = Depends(get_monitor_context),
) -> StreamingResponse:
    return StreamingResponse(
        _state_events(context.cache),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


async def _state_events(cache: UsageStateCache) -> AsyncIterator[str]:
    subscription = cache.subscribe()
    logger.debug("State stream opened subscribers=%s", cache.subscriber_count)
    try:
        async for state in subscription:
            payload = ServiceStatePayload.from_state(state).model_dump(mode="json", by_alias=True)
            yield format_sse_event(payload, event="state")
    finally:
        subscription.close()
