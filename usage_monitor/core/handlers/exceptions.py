from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exception_handlers import (
    http_exception_handler,
    request_validation_exception_handler,
)
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from usage_monitor.core.errors import dashboard_error
from usage_monitor.modules.credentials.errors import CredentialAccessError, CredentialDuplicateError

logger = logging.getLogger(__name__)

API_PREFIX = "/api/"


def _is_api_request(request: Request) -> bool:
    return request.url.path.startswith(API_PREFIX)


def _invalid_field(exc: RequestValidationError) -> str | None:
    errors = exc.errors()
    if not errors:
        return None
    loc = errors[0].get("loc", ())
    if not isinstance(loc, (list, tuple)):
        return None
    field = ".".join(str(part) for part in loc if part != "body")
    return field or None


def _http_message(detail: object) -> str:
    if isinstance(detail, str) and detail.strip():
        return detail.strip()
    if isinstance(detail, dict):
        message = detail.get("message")
        if isinstance(message, str) and message.strip():
            return message.strip()
    return "Request failed"


def add_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> Response:
        if not _is_api_request(request):
            return await request_validation_exception_handler(request, exc)
        content = dashboard_error("validation_error", "Invalid request payload")
        field = _invalid_field(exc)
        if field:
            content["error"]["field"] = field
        return JSONResponse(status_code=422, content=content)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(
        request: Request,
        exc: StarletteHTTPException,
    ) -> Response:
        if not _is_api_request(request):
            return await http_exception_handler(request, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content=dashboard_error(f"http_{exc.status_code}", _http_message(exc.detail)),
            headers=exc.headers,
        )

    @app.exception_handler(CredentialAccessError)
    async def credential_error_handler(
        request: Request,
        exc: CredentialAccessError,
    ) -> Response:
        status_code = 409 if isinstance(exc, CredentialDuplicateError) else 500
        if status_code >= 500:
            logger.error("Credential store failure path=%s code=%s", request.url.path, exc.code)
        return JSONResponse(status_code=status_code, content=dashboard_error(exc.code, exc.message))
