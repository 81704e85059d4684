"""Normalized error envelope for the Terminus API.

Every API error follows:
    {"error": {"type": "<CODE>", "message": "<human readable>", "request_id": "<id>"}}

Stable error types:
    AUTH_ERROR, AUTH_FORBIDDEN, CONFIG_ERROR, NOT_FOUND,
    VALIDATION_ERROR, RENDER_ERROR, INTERNAL_ERROR
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from starlette.responses import JSONResponse

from terminus.core.render import RenderError
from terminus.core.secrets import redact_text

logger = logging.getLogger("terminus.api")

AVAILABLE_ENDPOINTS: List[str] = [
    "GET / - Dashboard (requires auth)",
    "GET /debug - Debug queries (requires auth)",
    "GET /debug/advanced - Advanced debugging (requires auth)",
    "GET /api/data - JSON data (requires auth)",
    "GET /health - Health check (no auth)",
]

_STATUS_TO_TYPE: Dict[int, str] = {
    400: "VALIDATION_ERROR",
    401: "AUTH_ERROR",
    403: "AUTH_FORBIDDEN",
    404: "NOT_FOUND",
    405: "NOT_FOUND",
    422: "VALIDATION_ERROR",
}


class ApiConfigError(Exception):
    """Server-side configuration missing for a protected route (500)."""


def make_error_envelope(
    error_type: str, message: str, request_id: Optional[str] = None
) -> Dict[str, Any]:
    """Build the standard error envelope dict."""
    return {
        "error": {
            "type": error_type,
            "message": message,
            "request_id": request_id,
        }
    }


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Convert HTTPException to the normalized error envelope."""
    request_id = getattr(request.state, "request_id", None)
    error_type = _STATUS_TO_TYPE.get(exc.status_code, "INTERNAL_ERROR")

    if exc.status_code in (404, 405):
        content = make_error_envelope(
            "NOT_FOUND",
            f"Endpoint {request.method} {request.url.path} not found",
            request_id,
        )
        content["availableEndpoints"] = AVAILABLE_ENDPOINTS
        return JSONResponse(status_code=404, content=content)

    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content=make_error_envelope(error_type, redact_text(message), request_id),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Convert Pydantic validation errors to the normalized envelope."""
    request_id = getattr(request.state, "request_id", None)
    parts = []
    for err in exc.errors():
        loc = " -> ".join(str(l) for l in err.get("loc", []))
        msg = err.get("msg", "")
        parts.append(f"{loc}: {msg}" if loc else msg)
    message = "; ".join(parts) or str(exc)

    return JSONResponse(
        status_code=422,
        content=make_error_envelope("VALIDATION_ERROR", redact_text(message), request_id),
    )


async def config_exception_handler(request: Request, exc: ApiConfigError) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    logger.error("config_error request_id=%s message=%s", request_id or "?", exc)
    return JSONResponse(
        status_code=500,
        content=make_error_envelope("CONFIG_ERROR", str(exc), request_id),
    )


async def render_exception_handler(request: Request, exc: RenderError) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None)
    logger.error("render_error request_id=%s message=%s", request_id or "?", exc)
    return JSONResponse(
        status_code=500,
        content=make_error_envelope("RENDER_ERROR", redact_text(str(exc)), request_id),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions: 500 with envelope."""
    request_id = getattr(request.state, "request_id", None)
    logger.exception("unhandled_error request_id=%s", request_id or "?", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=make_error_envelope(
            "INTERNAL_ERROR", "An unexpected error occurred", request_id
        ),
    )
