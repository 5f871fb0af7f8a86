"""Access-token authentication middleware.

Resolves the caller's user id and stores it on ``request.state.user_id``;
``labtrack.api.deps.get_current_user`` loads the User from it.

Supports two token carriers:
  1. Authorization: Bearer <token>  (standard REST endpoints)
  2. ?token=<token> query param     (SSE/EventSource — browsers can't set headers)

When AUTH_SECRET is empty, authentication is disabled (development mode) and
the caller is identified by the ``X-User-Id`` header (``?userId=`` on the
stream path).

Exempt paths: /health, /docs, /openapi.json, /redoc, /, and the internal
emit endpoint, which checks its own X-Internal-Key header.
"""

from __future__ import annotations

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from labtrack.config import settings
from labtrack.errors import AuthenticationError
from labtrack.security.tokens import verify_access_token

logger = logging.getLogger(__name__)

# Paths that don't require authentication
_EXEMPT_PATHS = frozenset({
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
    "/",
    "/api/v1/realtime/emit",
})

# Paths that accept query-param token (EventSource can't set headers)
_QUERY_PARAM_AUTH_PATHS = frozenset({"/api/v1/realtime/stream"})


def _unauthorized(message: str) -> JSONResponse:
    return JSONResponse(status_code=401, content=AuthenticationError(message).to_dict())


class AccessTokenAuthMiddleware(BaseHTTPMiddleware):
    """Validates the signed access token from the Authorization header or query param."""

    async def dispatch(self, request: Request, call_next):
        request.state.user_id = None

        if request.url.path in _EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        secret = settings.auth_secret

        # Dev mode: no secret configured → trust the X-User-Id header
        if not secret:
            request.state.user_id = self._dev_user_id(request)
            return await call_next(request)

        token = self._extract_token(request)
        if token is None:
            return _unauthorized("Missing authentication. Use Authorization: Bearer <token> or ?token=<token>")

        user_id = verify_access_token(token=token, secret=secret)
        if user_id is None:
            logger.warning(
                "Invalid access token from %s on %s",
                request.client.host if request.client else "unknown",
                request.url.path,
            )
            return _unauthorized("Invalid or expired access token.")

        request.state.user_id = user_id
        return await call_next(request)

    @staticmethod
    def _extract_token(request: Request) -> str | None:
        # 1. Standard Bearer header
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            return auth_header[7:]

        # 2. Query param for SSE paths only
        if request.url.path in _QUERY_PARAM_AUTH_PATHS:
            return request.query_params.get("token")

        return None

    @staticmethod
    def _dev_user_id(request: Request) -> str | None:
        user_id = request.headers.get("X-User-Id")
        if user_id is None and request.url.path in _QUERY_PARAM_AUTH_PATHS:
            user_id = request.query_params.get("userId")
        return user_id or None
