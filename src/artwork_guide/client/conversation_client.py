"""
Async client for the Artwork Guide API.

Used by app frontends and scripts to analyse artworks and chat about them.
"""

import inspect
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from artwork_guide.client.errors import NotAuthenticatedError, error_from_response

TokenProvider = Callable[[], Union[Optional[str], Awaitable[Optional[str]]]]

DEFAULT_ANALYSIS_PROMPT = (
    "Analyze this artwork. Describe what you see, the artistic style, possible time "
    "period, and any notable features or techniques used. Be detailed and educational."
)


class ConversationClient:
    """
    Thin wrapper over the HTTP API.

    Every call raises RateLimitError when throttled, NotAuthenticatedError
    when no token is available or it is rejected, and
    ConversationServiceError for any other failure.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider,
        timeout_seconds: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: API root, e.g. http://127.0.0.1:8000
            token_provider: Returns the current access token (sync or async)
            timeout_seconds: Per-request timeout
            transport: Custom httpx transport, mainly for tests
        """
        self._base_url = base_url.rstrip("/")
        self._token_provider = token_provider
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def _auth_headers(self) -> dict[str, str]:
        token = self._token_provider()
        if inspect.isawaitable(token):
            token = await token
        if not token:
            raise NotAuthenticatedError("User not authenticated")
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        path: str,
        fallback_error: str,
        json: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        headers = await self._auth_headers()
        async with httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout_seconds,
            transport=self._transport,
        ) as client:
            response = await client.request(method, path, json=json, headers=headers)

        if response.is_error:
            raise error_from_response(response, fallback_error)
        return response.json()

    async def send_message(
        self,
        message: str,
        conversation_id: Optional[str] = None,
        create_new: bool = False,
        title: Optional[str] = None,
        artwork_image_url: Optional[str] = None,
    ) -> dict[str, Any]:
        """Send a chat message; returns {message, conversationId, usage}."""
        return await self._request(
            "POST",
            "/chat",
            "Failed to send message",
            json={
                "message": message,
                "conversationId": conversation_id,
                "createNew": create_new,
                "title": title,
                "artworkImageUrl": artwork_image_url,
            },
        )

    async def analyze_artwork(
        self,
        image_base64: str,
        prompt: Optional[str] = None,
        create_conversation: bool = True,
        image_url: Optional[str] = None,
    ) -> dict[str, Any]:
        """Analyse an artwork photo; returns {analysis, conversationId}."""
        data = await self._request(
            "POST",
            "/analyze-artwork",
            "Failed to analyze artwork",
            json={
                "image": image_base64,
                "prompt": prompt or DEFAULT_ANALYSIS_PROMPT,
                "createConversation": create_conversation,
                "imageUrl": image_url,
            },
        )
        return {"analysis": data.get("analysis"), "conversationId": data.get("conversationId")}

    async def get_conversations(self) -> list[dict[str, Any]]:
        data = await self._request("GET", "/conversations", "Failed to fetch conversations")
        return data.get("conversations") or []

    async def get_conversation(self, conversation_id: str) -> dict[str, Any]:
        data = await self._request(
            "GET", f"/conversations/{conversation_id}", "Failed to fetch conversation"
        )
        return {"conversation": data.get("conversation"), "messages": data.get("messages") or []}

    async def get_rate_limits(self) -> dict[str, Any]:
        return await self._request("GET", "/rate-limits", "Failed to fetch rate limits")

    async def create_conversation(
        self, title: str, artwork_image_url: Optional[str] = None
    ) -> str:
        """Start a conversation with an opening message; returns its id."""
        response = await self.send_message(
            "Start conversation",
            create_new=True,
            title=title,
            artwork_image_url=artwork_image_url,
        )
        return response["conversationId"]
