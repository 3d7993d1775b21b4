"""
OpenAI Adapter for chat completions.

Implements the CompletionServicePort against an OpenAI-compatible
/chat/completions endpoint.
"""

import logging
from typing import Any, Optional

import httpx

from artwork_guide.domain.exceptions import DownstreamServiceError
from artwork_guide.domain.models import CompletionMessage, CompletionResult
from artwork_guide.interfaces.completion import CompletionServicePort

logger = logging.getLogger(__name__)


class OpenAICompletionAdapter(CompletionServicePort):
    """Completion service backed by the OpenAI chat completions API."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o",
        timeout_seconds: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self._url = "{}/chat/completions".format(base_url.rstrip("/"))
        self._model = model
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    async def complete(
        self,
        messages: list[CompletionMessage],
        max_tokens: int = 500,
        temperature: Optional[float] = None,
    ) -> CompletionResult:
        if not self._api_key:
            raise DownstreamServiceError("OpenAI API key not configured", status_code=500)

        payload: dict[str, Any] = {
            "model": self._model,
            "messages": [m.model_dump() for m in messages],
            "max_tokens": max_tokens,
        }
        if temperature is not None:
            payload["temperature"] = temperature

        headers = {
            "Authorization": "Bearer {}".format(self._api_key),
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout_seconds, transport=self._transport
            ) as client:
                resp = await client.post(self._url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error("Completion request failed: %s", e)
            raise DownstreamServiceError("Failed to reach the AI service") from e

        if resp.is_error:
            detail = _error_message(resp)
            logger.error("Completion service returned %d: %s", resp.status_code, detail)
            raise DownstreamServiceError(
                "Failed to get AI response",
                details={"status": resp.status_code, "message": detail},
            )

        try:
            data = resp.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            logger.error("Completion service returned an unreadable body: %.200s", resp.text)
            raise DownstreamServiceError(
                "Failed to get AI response",
                details={"status": resp.status_code, "message": "Malformed response body"},
            )

        choice = (data.get("choices") or [{}])[0]
        return CompletionResult(
            text=(choice.get("message") or {}).get("content"),
            usage=data.get("usage"),
        )


def _error_message(resp: httpx.Response) -> Optional[str]:
    """Pull the provider's error message out of a failed response."""
    try:
        body = resp.json()
    except ValueError:
        return resp.text or None
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("message")
    return error
