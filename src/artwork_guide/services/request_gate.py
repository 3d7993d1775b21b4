"""
Request gate for throttled endpoints.

Orders the checks every throttled request goes through: the caller is
authenticated first, then charged against the endpoint's policy. Only an
admitted request reaches the completion service and persistence.
"""

import logging
import time
from typing import Callable, Optional

from artwork_guide.domain.exceptions import AuthenticationError, RateLimitExceededError
from artwork_guide.domain.models import RateLimitResult
from artwork_guide.domain.policies import RateLimitPolicyRegistry, ThrottledEndpoint
from artwork_guide.domain.rate_limit_headers import retry_after_seconds, to_headers
from artwork_guide.interfaces.identity import IdentityResolverPort
from artwork_guide.interfaces.rate_limiter import RateLimiterPort

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer "

DENIAL_MESSAGES: dict[ThrottledEndpoint, str] = {
    ThrottledEndpoint.CHAT: "Rate limit exceeded. Please wait before sending more messages.",
    ThrottledEndpoint.ANALYSIS: "Rate limit exceeded. Please wait before analyzing more artworks.",
}


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def parse_bearer_token(authorization: Optional[str]) -> str:
    """
    Extract the token from an Authorization header value.

    Raises:
        AuthenticationError: If the header is missing or not a bearer credential
    """
    if not authorization:
        raise AuthenticationError("Missing authorization header")

    if not authorization.lower().startswith(BEARER_PREFIX):
        raise AuthenticationError()

    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise AuthenticationError()
    return token


class RequestGate:
    """Authentication and rate limiting shared by the chat and analysis endpoints."""

    def __init__(
        self,
        identity_resolver: IdentityResolverPort,
        rate_limiter: RateLimiterPort,
        policy_registry: RateLimitPolicyRegistry,
        clock: Callable[[], int] = _epoch_ms,
    ):
        self.identity_resolver = identity_resolver
        self.rate_limiter = rate_limiter
        self.policy_registry = policy_registry
        self._clock = clock

    async def authenticate(self, authorization: Optional[str]) -> str:
        """
        Resolve the caller's user id from the Authorization header.

        Never touches the rate limiter.

        Raises:
            AuthenticationError: If no valid identity can be resolved
        """
        token = parse_bearer_token(authorization)
        return await self.identity_resolver.verify(token)

    async def admit(self, user_id: str, endpoint: ThrottledEndpoint) -> RateLimitResult:
        """
        Charge one request against the endpoint's policy.

        Returns:
            The limiter result for an admitted (or failed-open) request

        Raises:
            RateLimitExceededError: If the request is denied; carries the
                retry delay and the response headers to send
        """
        policy = self.policy_registry.get_policy(endpoint)
        result = await self.rate_limiter.check_rate_limit(user_id, policy)

        if result.success:
            return result

        now = self._clock()
        raise RateLimitExceededError(
            message=DENIAL_MESSAGES[endpoint],
            retry_after_seconds=retry_after_seconds(result, now),
            remaining=result.remaining,
            reset=result.reset,
            headers=to_headers(result, now),
        )
