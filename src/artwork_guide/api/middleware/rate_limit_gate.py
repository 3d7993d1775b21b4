"""
Rate Limit Gate Middleware.

Charges each request to a throttled endpoint against that endpoint's
policy and attaches the rate limit headers to the response.
"""

from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from artwork_guide.domain.exceptions import RateLimitExceededError
from artwork_guide.domain.policies import ThrottledEndpoint
from artwork_guide.domain.rate_limit_headers import to_headers
from artwork_guide.services.request_gate import RequestGate


def rate_limited_response(error: RateLimitExceededError) -> JSONResponse:
    """429 response for a denied request."""
    return JSONResponse(
        status_code=429,
        content={"error": error.message, "retryAfter": error.retry_after_seconds},
        headers=error.headers,
    )


class RateLimitGateMiddleware(BaseHTTPMiddleware):
    """
    Middleware enforcing per-user sliding window limits on AI endpoints.

    Must run after AuthMiddleware: it relies on request.state.user_id and
    never sees unauthenticated requests.
    """

    # (method, path) -> policy name
    THROTTLED_ROUTES: dict[tuple[str, str], ThrottledEndpoint] = {
        ("POST", "/chat"): ThrottledEndpoint.CHAT,
        ("POST", "/analyze-artwork"): ThrottledEndpoint.ANALYSIS,
    }

    def __init__(self, app, gate: RequestGate):
        super().__init__(app)
        self.gate = gate

    def _match(self, request: Request) -> Optional[ThrottledEndpoint]:
        return self.THROTTLED_ROUTES.get((request.method, request.url.path.rstrip("/") or "/"))

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        endpoint = self._match(request)
        user_id = getattr(request.state, "user_id", None)
        if endpoint is None or not user_id:
            return await call_next(request)

        try:
            result = await self.gate.admit(user_id, endpoint)
        except RateLimitExceededError as e:
            return rate_limited_response(e)

        response = await call_next(request)
        response.headers.update(to_headers(result))
        return response
