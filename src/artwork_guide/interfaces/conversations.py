"""Conversation Repository Port (Interface)."""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from artwork_guide.domain.models import Conversation, Message, MessageRole


class ConversationRepositoryPort(ABC):
    """
    Port (interface) for conversation persistence.

    Implementations raise PersistenceError when the store fails.
    """

    @abstractmethod
    async def create_conversation(
        self,
        user_id: str,
        title: str,
        artwork_image_url: Optional[str] = None,
    ) -> Conversation:
        """Create an empty conversation owned by user_id."""
        pass

    @abstractmethod
    async def get_conversation(
        self,
        conversation_id: UUID,
        user_id: str,
    ) -> Optional[Conversation]:
        """Get a conversation if it exists and belongs to user_id."""
        pass

    @abstractmethod
    async def list_conversations(self, user_id: str) -> list[Conversation]:
        """Get a user's conversations with their messages, most recently updated first."""
        pass

    @abstractmethod
    async def append_message(
        self,
        conversation_id: UUID,
        role: MessageRole,
        content: str,
    ) -> Message:
        """Add a message to a conversation."""
        pass

    @abstractmethod
    async def list_messages(self, conversation_id: UUID) -> list[Message]:
        """Get a conversation's messages, oldest first."""
        pass
