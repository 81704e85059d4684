"""Bearer-token authentication middleware for the Terminus API.

A single shared secret (TERMINUS_AUTH_TOKEN) protects the dashboard, data
and debug routes. /health and unknown paths (which answer 404) are open.
The outcomes are:

  - no ``Authorization: Bearer <token>`` header  -> 401 AUTH_ERROR
  - secret not configured on the server           -> 500 CONFIG_ERROR
  - token differs from the secret                 -> 403 AUTH_FORBIDDEN
"""

from __future__ import annotations

import hmac
import logging
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from terminus.core.api.errors import make_error_envelope

logger = logging.getLogger("terminus.api")

# Paths that require the bearer secret.
PROTECTED_PATHS = frozenset({"/", "/api/data", "/debug", "/debug/advanced"})


def extract_bearer_token(header: Optional[str]) -> Optional[str]:
    """Token from ``Bearer <token>``; None if absent, malformed or empty."""
    if not header:
        return None
    scheme, _, token = header.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


def _reject(status: int, error_type: str, message: str, request_id: Optional[str]) -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content=make_error_envelope(error_type, message, request_id),
    )


class BearerAuthMiddleware(BaseHTTPMiddleware):
    """Enforce the shared bearer secret on the protected paths."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path not in PROTECTED_PATHS:
            return await call_next(request)

        request_id = getattr(request.state, "request_id", None)
        provided = extract_bearer_token(request.headers.get("authorization"))
        if provided is None:
            logger.warning(
                "auth_rejected request_id=%s path=%s reason=missing_token",
                request_id or "?",
                request.url.path,
            )
            return _reject(
                401,
                "AUTH_ERROR",
                "Access token required. Provide a Bearer token in the Authorization header.",
                request_id,
            )

        expected = request.app.state.settings.auth_token
        if not expected:
            logger.error(
                "auth_rejected request_id=%s path=%s reason=auth_token_not_configured",
                request_id or "?",
                request.url.path,
            )
            return _reject(
                500,
                "CONFIG_ERROR",
                "Authentication token not configured on server.",
                request_id,
            )

        # Constant-time comparison.
        if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
            logger.warning(
                "auth_rejected request_id=%s path=%s reason=invalid_token",
                request_id or "?",
                request.url.path,
            )
            return _reject(
                403,
                "AUTH_FORBIDDEN",
                "The provided authentication token is invalid.",
                request_id,
            )

        return await call_next(request)
