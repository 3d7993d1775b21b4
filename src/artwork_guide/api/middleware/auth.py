"""
Authentication Middleware.

Resolves the bearer token on every API request to a user id.
"""

from typing import Set

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from artwork_guide.domain.exceptions import AuthenticationError
from artwork_guide.services.request_gate import RequestGate


class AuthMiddleware(BaseHTTPMiddleware):
    """
    Authentication middleware backed by the request gate.

    Headers:
        Authorization: Bearer <access token issued by the identity provider>

    Sets request.state.user_id, or answers 401 before any other
    processing (in particular before the rate limit gate).
    """

    # Paths served without authentication (health checks, docs, etc.)
    EXCLUDED_PATHS: Set[str] = {
        "/health",
        "/docs",
        "/redoc",
        "/openapi.json",
        "/favicon.ico",
    }

    def __init__(self, app, gate: RequestGate):
        super().__init__(app)
        self.gate = gate

    async def dispatch(self, request: Request, call_next):
        # CORS preflight and public paths pass straight through
        if request.method == "OPTIONS" or request.url.path in self.EXCLUDED_PATHS:
            return await call_next(request)

        try:
            request.state.user_id = await self.gate.authenticate(
                request.headers.get("Authorization")
            )
        except AuthenticationError as e:
            return JSONResponse(status_code=401, content={"error": e.message})

        return await call_next(request)
