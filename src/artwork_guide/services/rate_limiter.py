"""
Sliding window rate limiter.

Implements the RateLimiterPort on top of any CounterStorePort.
"""

import logging
import time
import uuid
from typing import Callable

from artwork_guide.domain.exceptions import LimiterInfrastructureError
from artwork_guide.domain.models import RateLimitResult
from artwork_guide.domain.policies import RateLimitPolicy
from artwork_guide.interfaces.counter_store import CounterStorePort
from artwork_guide.interfaces.rate_limiter import RateLimiterPort

logger = logging.getLogger(__name__)


def _epoch_ms() -> int:
    return int(time.time() * 1000)


class SlidingWindowRateLimiter(RateLimiterPort):
    """
    Per-identifier sliding window limiter.

    Every check inserts an entry scored at the current time and then counts
    the entries inside the window, so denied requests are charged too and a
    caller hammering the endpoint gets no free retries. No counters are kept
    in process; all state lives in the counter store.

    If the store fails the limiter fails open: the request is admitted with
    the full quota reported as remaining.
    """

    KEY_PREFIX = "rate_limit:"

    def __init__(
        self,
        store: CounterStorePort,
        clock: Callable[[], int] = _epoch_ms,
    ):
        """
        Args:
            store: Backend holding the window entries
            clock: Returns the current time in epoch milliseconds
        """
        self._store = store
        self._clock = clock

    def _get_key(self, identifier: str) -> str:
        """Generate the counter key for an identifier."""
        return f"{self.KEY_PREFIX}{identifier}"

    async def check_rate_limit(
        self,
        identifier: str,
        policy: RateLimitPolicy,
    ) -> RateLimitResult:
        if not identifier:
            raise ValueError("identifier must be a non-empty string")

        key = self._get_key(identifier)
        now = self._clock()
        window_start = now - policy.window_ms
        reset = now + policy.window_ms
        # Unique even when several requests land in the same millisecond
        member = f"{now}_{uuid.uuid4().hex}"

        try:
            current_count = await self._store.admit(
                key,
                window_start=window_start,
                now=now,
                member=member,
                ttl_seconds=policy.ttl_seconds,
            )
        except LimiterInfrastructureError as e:
            logger.warning(
                "Rate limiter unavailable, failing open for %s: %s", identifier, e.message
            )
            return RateLimitResult.failed_open(remaining=policy.max_requests, reset=reset)

        if current_count > policy.max_requests:
            logger.info(
                "Rate limit exceeded for %s (%d requests in %d ms window, limit %d)",
                identifier,
                current_count,
                policy.window_ms,
                policy.max_requests,
            )
            return RateLimitResult.denied(reset=reset)

        return RateLimitResult.admitted(
            remaining=max(0, policy.max_requests - current_count),
            reset=reset,
        )

    async def get_remaining_requests(
        self,
        identifier: str,
        policy: RateLimitPolicy,
    ) -> int:
        if not identifier:
            raise ValueError("identifier must be a non-empty string")

        now = self._clock()
        try:
            current_count = await self._store.count(
                self._get_key(identifier), window_start=now - policy.window_ms
            )
        except LimiterInfrastructureError as e:
            logger.warning(
                "Rate limiter unavailable, reporting full quota for %s: %s",
                identifier,
                e.message,
            )
            return policy.max_requests

        return max(0, policy.max_requests - current_count)

    async def reset(self, identifier: str) -> None:
        """Reset rate limit counter for an identifier."""
        await self._store.delete(self._get_key(identifier))

    async def close(self) -> None:
        """Release the counter store's connections, if it holds any."""
        if hasattr(self._store, "close"):
            await self._store.close()
