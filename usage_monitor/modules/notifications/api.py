from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from usage_monitor.dependencies import MonitorContext, get_monitor_context

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.delete("/state", status_code=204)
async def reset_notification_state(
    context: MonitorContext = Depends(get_monitor_context),
) -> Response:
    await context.cache.reset_notifications()
    return Response(status_code=204)
