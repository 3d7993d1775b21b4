"""
Domain models for the Artwork Guide API.

Contains the core entities, value objects, and enums used throughout the application.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


# ===========================================
# ENUMS
# ===========================================


class RateLimitOutcome(str, Enum):
    """How a rate limit check was decided."""

    ADMITTED = "admitted"
    DENIED = "denied"
    # The counter store failed and the request was let through.
    FAILED_OPEN = "failed_open"


class MessageRole(str, Enum):
    """Author of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"


# ===========================================
# RATE LIMITING
# ===========================================


class RateLimitResult(BaseModel):
    """
    Result of a rate limit check.

    Attributes:
        success: Whether the request may proceed
        remaining: Requests left in the current window (never negative)
        reset: Epoch milliseconds after which the window is fully renewed
        error: Reason for a denial
        outcome: Tag telling admissions, denials and fail-open apart
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    remaining: int = Field(..., ge=0)
    reset: int
    error: Optional[str] = None
    outcome: RateLimitOutcome

    @classmethod
    def admitted(cls, remaining: int, reset: int) -> "RateLimitResult":
        return cls(
            success=True,
            remaining=remaining,
            reset=reset,
            outcome=RateLimitOutcome.ADMITTED,
        )

    @classmethod
    def denied(
        cls, reset: int, error: str = "Rate limit exceeded"
    ) -> "RateLimitResult":
        return cls(
            success=False,
            remaining=0,
            reset=reset,
            error=error,
            outcome=RateLimitOutcome.DENIED,
        )

    @classmethod
    def failed_open(cls, remaining: int, reset: int) -> "RateLimitResult":
        return cls(
            success=True,
            remaining=remaining,
            reset=reset,
            outcome=RateLimitOutcome.FAILED_OPEN,
        )


# ===========================================
# CONVERSATIONS
# ===========================================


class Message(BaseModel):
    """A stored conversation message."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(default_factory=uuid4)
    conversation_id: UUID
    role: MessageRole
    content: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


class Conversation(BaseModel):
    """A user's conversation about an artwork."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str
    title: str
    artwork_image_url: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    messages: Optional[list[Message]] = None


# ===========================================
# COMPLETIONS
# ===========================================


class CompletionMessage(BaseModel):
    """
    A message sent to the completion service.

    Content is either plain text or a list of content parts
    (text and image_url parts for artwork analysis).
    """

    role: str
    content: Union[str, list[dict[str, Any]]]


class CompletionResult(BaseModel):
    """Text produced by the completion service with its usage report."""

    text: Optional[str] = None
    usage: Optional[dict[str, Any]] = None
