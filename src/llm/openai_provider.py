"""
OpenAI chat completions adapter.

Uses the official async SDK; SDK exceptions are classified into the
gateway's provider error kinds by HTTP status.
"""

import logging
from typing import AsyncIterator

import openai
from openai import AsyncOpenAI

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

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """Adapter for OpenAI and OpenAI-compatible endpoints."""

    provider_type = ProviderType.OPENAI

    def __init__(self, settings: ProviderSettings, client: AsyncOpenAI | None = None):
        super().__init__(settings)
        self._client = client or AsyncOpenAI(
            api_key=settings.api_key,
            base_url=settings.base_url,
            timeout=settings.timeout,
        )

    def _create_kwargs(self, options: ChatOptions, stream: bool) -> dict:
        create_kwargs: dict = {
            "model": options.model,
            "messages": options.messages_as_dicts(),
            "stream": stream,
        }
        # Only include sampling parameters the caller actually set
        if options.temperature is not None:
            create_kwargs["temperature"] = options.temperature
        if options.max_tokens is not None:
            create_kwargs["max_tokens"] = options.max_tokens
        if options.top_p is not None:
            create_kwargs["top_p"] = options.top_p
        if options.user_id:
            create_kwargs["user"] = options.user_id
        return create_kwargs

    def _classify(self, error: openai.APIError) -> ProviderError:
        logger.error(f"OpenAI API error: {error}")
        if isinstance(error, openai.APIStatusError):
            return classify_status("OpenAI", error.status_code, error.message)
        return ProviderServiceError("OpenAI", f"OpenAI request failed: {error}")

    async def chat(self, options: ChatOptions) -> Completion:
        validate_options(options)
        try:
            response = await self._client.chat.completions.create(
                **self._create_kwargs(options, stream=False)
            )
        except openai.APIError as e:
            raise self._classify(e) from e

        usage = None
        if response.usage:
            usage = Usage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )

        return Completion(
            id=response.id,
            model=response.model,
            choices=[
                Choice(
                    message=ChatMessage(
                        role="assistant", content=choice.message.content or ""
                    ),
                    finish_reason=choice.finish_reason or "stop",
                    index=choice.index,
                )
                for choice in response.choices
            ],
            usage=usage,
        )

    async def stream_chat(self, options: ChatOptions) -> AsyncIterator[str]:
        validate_options(options)
        try:
            stream = await self._client.chat.completions.create(
                **self._create_kwargs(options, stream=True)
            )
        except openai.APIError as e:
            raise self._classify(e) from e

        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        except openai.APIError as e:
            raise self._classify(e) from e
        finally:
            await stream.close()

    async def close(self) -> None:
        await self._client.close()
