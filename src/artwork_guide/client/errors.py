"""
Client-side errors for the Artwork Guide API.

A throttled request surfaces as RateLimitError so callers can show a wait
time instead of a generic failure.
"""

import math
from typing import Optional

import httpx

from artwork_guide.domain.rate_limit_headers import extract_rate_limit_headers

DEFAULT_RATE_LIMIT_MESSAGE = "Rate limit exceeded"
# Matches the default 5 minute window; used only when the server omits retryAfter
DEFAULT_RETRY_AFTER_SECONDS = 300


class ArtworkGuideClientError(Exception):
    """Base exception for errors raised by the API client."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotAuthenticatedError(ArtworkGuideClientError):
    """Raised when no access token is available or the server rejects it."""


class ConversationServiceError(ArtworkGuideClientError):
    """Raised when a request fails for any reason other than throttling."""


class RateLimitError(ArtworkGuideClientError):
    """
    Raised when the server answers 429.

    Attributes:
        retry_after_seconds: Delay the server asked for
        headers: Rate limit headers present on the response
    """

    def __init__(
        self,
        message: str,
        retry_after_seconds: int,
        headers: Optional[dict[str, str]] = None,
    ):
        super().__init__(message, status_code=429)
        self.retry_after_seconds = retry_after_seconds
        self.headers = headers or {}

    @property
    def wait_minutes(self) -> int:
        """Retry delay rounded up to whole minutes, as shown to users."""
        return math.ceil(self.retry_after_seconds / 60)


def _json_body(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def rate_limit_error_from_response(response: httpx.Response) -> RateLimitError:
    """Build a RateLimitError from a 429 response."""
    body = _json_body(response)
    retry_after = body.get("retryAfter")
    return RateLimitError(
        message=body.get("error") or DEFAULT_RATE_LIMIT_MESSAGE,
        retry_after_seconds=(
            DEFAULT_RETRY_AFTER_SECONDS if retry_after is None else int(retry_after)
        ),
        headers=extract_rate_limit_headers(response.headers),
    )


def error_from_response(response: httpx.Response, fallback: str) -> ArtworkGuideClientError:
    """
    Translate a failed response into the matching client error.

    Args:
        response: A response with a 4xx or 5xx status
        fallback: Message used when the body carries no error text
    """
    if response.status_code == 429:
        return rate_limit_error_from_response(response)

    message = _json_body(response).get("error") or fallback
    if response.status_code == 401:
        return NotAuthenticatedError(message, status_code=401)
    return ConversationServiceError(message, status_code=response.status_code)
