"""
Rate Limiter Port (Interface).

Defines the abstract contract for rate limiting operations.
"""

from abc import ABC, abstractmethod

from artwork_guide.domain.models import RateLimitResult
from artwork_guide.domain.policies import RateLimitPolicy


class RateLimiterPort(ABC):
    """
    Port (interface) for rate limiting operations.

    Implementations of this port track request counts per identifier
    and enforce sliding window policies.
    """

    @abstractmethod
    async def check_rate_limit(
        self,
        identifier: str,
        policy: RateLimitPolicy,
    ) -> RateLimitResult:
        """
        Record a request and decide whether it is admitted.

        The request is counted before the decision is made, so a denied
        request still occupies a slot in the window.

        Args:
            identifier: The throttled subject (the authenticated user id)
            policy: The quota to enforce

        Returns:
            RateLimitResult for this request

        Note:
            Implementations fail open: if the counter store is unavailable
            the request is admitted with remaining=policy.max_requests.
        """
        pass

    @abstractmethod
    async def get_remaining_requests(
        self,
        identifier: str,
        policy: RateLimitPolicy,
    ) -> int:
        """
        Get remaining quota for an identifier without recording a request.

        Args:
            identifier: The throttled subject
            policy: The quota to measure against

        Returns:
            Requests left in the current window
        """
        pass

    @abstractmethod
    async def reset(self, identifier: str) -> None:
        """
        Reset the rate limit counter for an identifier.

        Primarily used for testing and administrative purposes.
        """
        pass
