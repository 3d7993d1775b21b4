"""
Domain exceptions for the Artwork Guide API.

Custom exceptions for domain-specific error handling.
"""

from typing import Optional


class DomainException(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class AuthenticationError(DomainException):
    """Raised when the caller's credentials are missing or rejected."""

    def __init__(self, message: str = "Invalid authentication"):
        super().__init__(message)


class RateLimitExceededError(DomainException):
    """Raised when a user exceeds the request quota of an endpoint."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after_seconds: int = 0,
        remaining: int = 0,
        reset: int = 0,
        headers: Optional[dict[str, str]] = None,
    ):
        super().__init__(
            message,
            details={
                "retry_after_seconds": retry_after_seconds,
                "remaining": remaining,
                "reset": reset,
            },
        )
        self.retry_after_seconds = retry_after_seconds
        self.remaining = remaining
        self.reset = reset
        self.headers = headers or {}


class LimiterInfrastructureError(DomainException):
    """
    Raised by counter store adapters when the store cannot be reached
    or answers with an error.

    Never reaches the caller: the rate limiter converts it into a
    fail-open admission.
    """

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message, details={"key": key} if key else {})
        self.key = key


class DownstreamServiceError(DomainException):
    """Raised when a collaborator fails after the request was admitted."""

    def __init__(
        self,
        message: str,
        status_code: int = 502,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.status_code = status_code


class PersistenceError(DownstreamServiceError):
    """Raised when the conversation store fails."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message, status_code=500, details=details)


class ConversationNotFoundError(DomainException):
    """Raised when a conversation does not exist or belongs to another user."""

    def __init__(self, conversation_id: str):
        super().__init__(
            "Conversation not found",
            details={"conversation_id": conversation_id},
        )
        self.conversation_id = conversation_id


class ConfigurationError(DomainException):
    """Raised when there's an error in configuration."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(
            message,
            details={"config_key": config_key} if config_key else {},
        )
        self.config_key = config_key
