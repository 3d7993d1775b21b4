"""
Redis Adapter for the sliding window counter store.

Implements the CounterStorePort using Redis sorted sets.
"""

import asyncio
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from artwork_guide.domain.exceptions import LimiterInfrastructureError
from artwork_guide.interfaces.counter_store import CounterStorePort

# ValueError: redis.from_url rejects a malformed URL when the client is first built
_STORE_ERRORS = (RedisError, OSError, asyncio.TimeoutError, ValueError)


class RedisCounterStoreAdapter(CounterStorePort):
    """
    Counter store implementation using Redis sorted sets.

    Each entry is a sorted set member scored with its timestamp in
    milliseconds. Admission runs as a MULTI/EXEC pipeline so concurrent
    requests for the same key cannot interleave.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        timeout_seconds: float = 2.0,
        client: Optional[redis.Redis] = None,
    ):
        """
        Initialize the Redis counter store adapter.

        Args:
            redis_url: Redis connection URL
            timeout_seconds: Socket timeout; a slow store counts as a failed one
            client: Preconfigured client, mainly for tests
        """
        self._redis_url = redis_url
        self._timeout_seconds = timeout_seconds
        self._redis: Optional[redis.Redis] = client

    async def _get_client(self) -> redis.Redis:
        """Get or create Redis client connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=self._timeout_seconds,
                socket_connect_timeout=self._timeout_seconds,
            )
        return self._redis

    async def admit(
        self,
        key: str,
        window_start: int,
        now: int,
        member: str,
        ttl_seconds: int,
    ) -> int:
        try:
            client = await self._get_client()
            async with client.pipeline(transaction=True) as pipe:
                # Drop entries older than the window; "(" makes the bound exclusive
                pipe.zremrangebyscore(key, "-inf", f"({window_start}")
                pipe.zadd(key, {member: now})
                pipe.zcard(key)
                pipe.expire(key, ttl_seconds)
                results = await pipe.execute()
        except _STORE_ERRORS as e:
            raise LimiterInfrastructureError(f"Redis admit failed: {e}", key=key) from e

        return int(results[2])

    async def count(self, key: str, window_start: int) -> int:
        try:
            client = await self._get_client()
            current_count = await client.zcount(key, window_start, "+inf")
        except _STORE_ERRORS as e:
            raise LimiterInfrastructureError(f"Redis count failed: {e}", key=key) from e

        return int(current_count)

    async def delete(self, key: str) -> None:
        try:
            client = await self._get_client()
            await client.delete(key)
        except _STORE_ERRORS as e:
            raise LimiterInfrastructureError(f"Redis delete failed: {e}", key=key) from e

    async def close(self) -> None:
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None
