"""
Anthropic Messages API adapter.

Talks to ``/v1/messages`` directly over httpx. System turns are lifted out of
the message list into the top-level ``system`` field, and streaming responses
are parsed with the incremental SSE buffer.
"""

import logging
from typing import AsyncIterator, Optional

import httpx

from ..errors import ProviderError, ProviderServiceError
from ..models import ProviderSettings, ProviderType
from .base import (
    ChatMessage,
    ChatOptions,
    Choice,
    Completion,
    LLMProvider,
    Usage,
    classify_status,
    validate_options,
)
from .sse import SSEBuffer, decode_event

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 1024


class AnthropicProvider(LLMProvider):
    """Adapter for the Anthropic Messages API."""

    provider_type = ProviderType.ANTHROPIC

    def __init__(
        self,
        settings: ProviderSettings,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(settings)
        self._client = client or httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=settings.timeout,
            headers={
                "x-api-key": settings.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "content-type": "application/json",
            },
        )

    def _build_body(self, options: ChatOptions, stream: bool) -> dict:
        system_parts = [m.content for m in options.messages if m.role == "system"]
        body: dict = {
            "model": options.model,
            "messages": [
                {"role": m.role, "content": m.content}
                for m in options.messages
                if m.role != "system"
            ],
            "max_tokens": options.max_tokens or DEFAULT_MAX_TOKENS,
            "stream": stream,
        }
        if system_parts:
            body["system"] = "\n\n".join(system_parts)
        if options.temperature is not None:
            body["temperature"] = options.temperature
        if options.top_p is not None:
            body["top_p"] = options.top_p
        if options.user_id:
            body["metadata"] = {"user_id": options.user_id}
        return body

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        error = data.get("error") if isinstance(data, dict) else None
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        return response.text or response.reason_phrase

    def _classify(self, error: Exception) -> ProviderError:
        if isinstance(error, httpx.HTTPStatusError):
            message = self._error_message(error.response)
            logger.error(f"Anthropic API error {error.response.status_code}: {message}")
            return classify_status("Anthropic", error.response.status_code, message)
        logger.error(f"Anthropic request failed: {error}")
        return ProviderServiceError("Anthropic", f"Anthropic request failed: {error}")

    async def chat(self, options: ChatOptions) -> Completion:
        validate_options(options)
        try:
            response = await self._client.post(
                "/v1/messages", json=self._build_body(options, stream=False)
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise self._classify(e) from e

        data = response.json()
        text = "".join(
            block.get("text", "")
            for block in data.get("content", [])
            if block.get("type") == "text"
        )

        usage = None
        raw_usage = data.get("usage")
        if raw_usage:
            prompt_tokens = raw_usage.get("input_tokens", 0)
            completion_tokens = raw_usage.get("output_tokens", 0)
            usage = Usage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            )

        return Completion(
            id=data.get("id", ""),
            model=data.get("model", options.model),
            choices=[
                Choice(
                    message=ChatMessage(role="assistant", content=text),
                    finish_reason=data.get("stop_reason") or "stop",
                )
            ],
            usage=usage,
        )

    async def stream_chat(self, options: ChatOptions) -> AsyncIterator[str]:
        validate_options(options)
        buffer = SSEBuffer()
        try:
            async with self._client.stream(
                "POST", "/v1/messages", json=self._build_body(options, stream=True)
            ) as response:
                if response.is_error:
                    await response.aread()
                    response.raise_for_status()

                async for chunk in response.aiter_bytes():
                    for payload in buffer.feed(chunk):
                        event = decode_event(payload)
                        if event is None:
                            continue
                        if event.get("type") == "message_stop":
                            return
                        text = self._delta_text(event)
                        if text:
                            yield text
                    if buffer.done:
                        return

                for payload in buffer.flush():
                    event = decode_event(payload)
                    text = self._delta_text(event) if event else None
                    if text:
                        yield text
        except httpx.HTTPError as e:
            raise self._classify(e) from e

    @staticmethod
    def _delta_text(event: dict) -> Optional[str]:
        if event.get("type") != "content_block_delta":
            return None
        delta = event.get("delta") or {}
        return delta.get("text")

    async def close(self) -> None:
        await self._client.aclose()
