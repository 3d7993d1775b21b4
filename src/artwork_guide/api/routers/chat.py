"""Chat Router - conversations about an artwork with the AI guide."""

from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from artwork_guide.api.dependencies import (
    current_completion_service,
    current_conversation_repository,
    current_user_id,
)
from artwork_guide.domain.exceptions import ConversationNotFoundError
from artwork_guide.domain.models import CompletionMessage, MessageRole
from artwork_guide.interfaces.completion import CompletionServicePort
from artwork_guide.interfaces.conversations import ConversationRepositoryPort


router = APIRouter(tags=["Chat"])

DEFAULT_TITLE = "New Conversation"
NO_RESPONSE = "No response available"


# ===========================================
# REQUEST/RESPONSE MODELS
# ===========================================


class ChatRequest(BaseModel):
    """Request model for sending a chat message."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1, description="The user's message")
    conversation_id: Optional[UUID] = Field(default=None, alias="conversationId")
    create_new: bool = Field(default=False, alias="createNew")
    title: Optional[str] = Field(default=None, description="Title for a new conversation")
    artwork_image_url: Optional[str] = Field(default=None, alias="artworkImageUrl")


class ChatResponse(BaseModel):
    """Response model for a chat turn."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., description="The assistant's reply")
    conversation_id: UUID = Field(..., alias="conversationId")
    usage: Optional[dict[str, Any]] = None


# ===========================================
# ENDPOINTS
# ===========================================


@router.post(
    "/chat",
    response_model=ChatResponse,
    response_model_by_alias=True,
    summary="Send a chat message",
    description=(
        "Appends the message to a conversation and returns the AI reply.\n\n"
        "**Rate limited** per user; see the `X-RateLimit-*` response headers."
    ),
)
async def chat(
    request: ChatRequest,
    user_id: str = Depends(current_user_id),
    repository: ConversationRepositoryPort = Depends(current_conversation_repository),
    completion_service: CompletionServicePort = Depends(current_completion_service),
) -> ChatResponse:
    if request.create_new or request.conversation_id is None:
        conversation = await repository.create_conversation(
            user_id=user_id,
            title=request.title or DEFAULT_TITLE,
            artwork_image_url=request.artwork_image_url,
        )
        conversation_id = conversation.id
    else:
        conversation_id = request.conversation_id
        if await repository.get_conversation(conversation_id, user_id) is None:
            raise ConversationNotFoundError(str(conversation_id))

    history = await repository.list_messages(conversation_id)

    # The user message is stored before the model is asked
    await repository.append_message(conversation_id, MessageRole.USER, request.message)

    messages = [CompletionMessage(role=m.role.value, content=m.content) for m in history]
    messages.append(CompletionMessage(role=MessageRole.USER.value, content=request.message))

    result = await completion_service.complete(messages, max_tokens=500, temperature=0.7)
    reply = result.text or NO_RESPONSE

    await repository.append_message(conversation_id, MessageRole.ASSISTANT, reply)

    return ChatResponse(message=reply, conversation_id=conversation_id, usage=result.usage)
