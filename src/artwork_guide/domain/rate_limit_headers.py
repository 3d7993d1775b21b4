"""
Rate limit response headers.

Translates a RateLimitResult into the headers clients use to drive
backoff, and picks those headers back out of a response.
"""

import math
import time
from typing import Mapping, Optional

from artwork_guide.domain.models import RateLimitResult

REMAINING_HEADER = "X-RateLimit-Remaining"
RESET_HEADER = "X-RateLimit-Reset"
RETRY_AFTER_HEADER = "Retry-After"

RATE_LIMIT_HEADERS = (REMAINING_HEADER, RESET_HEADER, RETRY_AFTER_HEADER)


def _now_ms() -> int:
    return int(time.time() * 1000)


def retry_after_seconds(result: RateLimitResult, now_ms: Optional[int] = None) -> int:
    """Seconds until the result's reset time, rounded up and never negative."""
    if now_ms is None:
        now_ms = _now_ms()
    return max(0, math.ceil((result.reset - now_ms) / 1000))


def to_headers(result: RateLimitResult, now_ms: Optional[int] = None) -> dict[str, str]:
    """
    Build rate limit response headers for a limiter decision.

    Args:
        result: The limiter decision
        now_ms: Current epoch milliseconds (defaults to the wall clock)

    Returns:
        Mapping with X-RateLimit-Remaining, X-RateLimit-Reset (epoch seconds)
        and Retry-After ("0" for admitted requests)
    """
    return {
        REMAINING_HEADER: str(result.remaining),
        RESET_HEADER: str(math.ceil(result.reset / 1000)),
        RETRY_AFTER_HEADER: "0" if result.success else str(retry_after_seconds(result, now_ms)),
    }


def extract_rate_limit_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """
    Collect the rate limit headers present on a response.

    Absent headers are left out rather than defaulted. Lookup goes through
    the mapping's own get(), so case-insensitive header containers work.
    """
    found = {}
    for name in RATE_LIMIT_HEADERS:
        value = headers.get(name)
        if value:
            found[name] = value
    return found
