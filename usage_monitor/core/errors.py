from __future__ import annotations

from usage_monitor.core.types import JsonObject


def dashboard_error(code: str, message: str) -> JsonObject:
    return {"error": {"code": code, "message": message}}
