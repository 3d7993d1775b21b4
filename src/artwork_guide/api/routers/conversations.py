"""Conversations Router - read access to a user's conversation history."""

from uuid import UUID

from fastapi import APIRouter, Depends

from artwork_guide.api.dependencies import current_conversation_repository, current_user_id
from artwork_guide.domain.exceptions import ConversationNotFoundError
from artwork_guide.interfaces.conversations import ConversationRepositoryPort


router = APIRouter(prefix="/conversations", tags=["Conversations"])


@router.get("")
async def list_conversations(
    user_id: str = Depends(current_user_id),
    repository: ConversationRepositoryPort = Depends(current_conversation_repository),
):
    """
    Get all conversations of the caller with their messages.

    Most recently updated conversations come first.
    """
    conversations = await repository.list_conversations(user_id)
    return {"conversations": [c.model_dump(mode="json") for c in conversations]}


@router.get("/{conversation_id}")
async def get_conversation(
    conversation_id: UUID,
    user_id: str = Depends(current_user_id),
    repository: ConversationRepositoryPort = Depends(current_conversation_repository),
):
    """Get one of the caller's conversations with its messages, oldest first."""
    conversation = await repository.get_conversation(conversation_id, user_id)
    if conversation is None:
        raise ConversationNotFoundError(str(conversation_id))

    messages = await repository.list_messages(conversation_id)
    return {
        "conversation": conversation.model_dump(mode="json", exclude={"messages"}),
        "messages": [m.model_dump(mode="json") for m in messages],
    }
