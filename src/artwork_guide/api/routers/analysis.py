"""Analysis Router - AI analysis of photographed artworks."""

import logging
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from artwork_guide.api.dependencies import (
    current_completion_service,
    current_conversation_repository,
    current_user_id,
)
from artwork_guide.domain.exceptions import PersistenceError
from artwork_guide.domain.models import CompletionMessage, MessageRole
from artwork_guide.interfaces.completion import CompletionServicePort
from artwork_guide.interfaces.conversations import ConversationRepositoryPort

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Analysis"])

DEFAULT_PROMPT = (
    "Analyze this artwork. Describe what you see, the artistic style, possible "
    "time period, and any notable features or techniques used."
)
ANALYSIS_TITLE = "Artwork Analysis"
NO_ANALYSIS = "No analysis available"


class AnalysisRequest(BaseModel):
    """Request model for artwork analysis."""

    model_config = ConfigDict(populate_by_name=True)

    image: str = Field(..., min_length=1, description="Base64 encoded JPEG")
    prompt: Optional[str] = Field(default=None, description="Instruction for the model")
    create_conversation: bool = Field(default=False, alias="createConversation")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")


class AnalysisResponse(BaseModel):
    """Response model for artwork analysis."""

    model_config = ConfigDict(populate_by_name=True)

    analysis: str
    conversation_id: Optional[UUID] = Field(default=None, alias="conversationId")
    usage: Optional[dict[str, Any]] = None


def build_analysis_message(image: str, prompt: Optional[str]) -> CompletionMessage:
    """A single user message carrying the prompt and the inline image."""
    return CompletionMessage(
        role=MessageRole.USER.value,
        content=[
            {"type": "text", "text": prompt or DEFAULT_PROMPT},
            {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{image}"}},
        ],
    )


@router.post(
    "/analyze-artwork",
    response_model=AnalysisResponse,
    response_model_by_alias=True,
    summary="Analyze an artwork photo",
    description=(
        "Sends the photo to the AI model and returns its analysis. Optionally "
        "starts a conversation seeded with the analysis.\n\n"
        "**Rate limited** per user; see the `X-RateLimit-*` response headers."
    ),
)
async def analyze_artwork(
    request: AnalysisRequest,
    user_id: str = Depends(current_user_id),
    repository: ConversationRepositoryPort = Depends(current_conversation_repository),
    completion_service: CompletionServicePort = Depends(current_completion_service),
) -> AnalysisResponse:
    result = await completion_service.complete(
        [build_analysis_message(request.image, request.prompt)],
        max_tokens=500,
    )
    analysis = result.text or NO_ANALYSIS

    conversation_id = None
    if request.create_conversation:
        # The analysis is returned even if it cannot be stored
        try:
            conversation = await repository.create_conversation(
                user_id=user_id,
                title=ANALYSIS_TITLE,
                artwork_image_url=request.image_url,
            )
            await repository.append_message(conversation.id, MessageRole.ASSISTANT, analysis)
            conversation_id = conversation.id
        except PersistenceError as e:
            logger.error("Could not store analysis conversation for %s: %s", user_id, e.message)

    return AnalysisResponse(analysis=analysis, conversation_id=conversation_id, usage=result.usage)
