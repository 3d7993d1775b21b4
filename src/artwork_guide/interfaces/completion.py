"""Completion Service Port (Interface)."""

from abc import ABC, abstractmethod
from typing import Optional

from artwork_guide.domain.models import CompletionMessage, CompletionResult


class CompletionServicePort(ABC):
    """Port (interface) for the AI model answering chats and analysing artworks."""

    @abstractmethod
    async def complete(
        self,
        messages: list[CompletionMessage],
        max_tokens: int = 500,
        temperature: Optional[float] = None,
    ) -> CompletionResult:
        """
        Send a conversation to the model and return its reply.

        Raises:
            DownstreamServiceError: If the service fails or times out
        """
        pass
