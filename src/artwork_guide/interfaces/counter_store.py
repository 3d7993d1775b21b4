"""
Counter Store Port (Interface).

Narrow contract over the external store holding sliding window entries.
"""

from abc import ABC, abstractmethod


class CounterStorePort(ABC):
    """
    Port (interface) for the sliding window counter store.

    Each key holds timestamped entries. Adapters raise
    LimiterInfrastructureError when the store is unreachable or errors.
    """

    @abstractmethod
    async def admit(
        self,
        key: str,
        window_start: int,
        now: int,
        member: str,
        ttl_seconds: int,
    ) -> int:
        """
        Atomically evict, insert, count and refresh expiry.

        Removes entries scored below window_start, adds member scored at now,
        sets the key to expire after ttl_seconds and returns the number of
        entries left, including the one just added. All steps run as a
        single transaction.
        """
        pass

    @abstractmethod
    async def count(self, key: str, window_start: int) -> int:
        """Count entries scored at or after window_start without mutating the key."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Drop every entry under key."""
        pass
