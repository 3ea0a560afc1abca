"""
Provider registry with response caching and per-identity usage tracking.
"""

import logging
import math
import time
from datetime import date, datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Optional

from ..errors import ProviderNotConfigured, StoreUnavailable
from ..models import AppConfig, ProviderType
from ..response_cache import ResponseCache, fingerprint, is_cacheable
from ..store import USAGE_FIELDS, KeyValueStore
from .anthropic_provider import AnthropicProvider
from .base import ChatOptions, Completion, LLMProvider, Usage
from .openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)

PROVIDER_CLASSES: dict[ProviderType, type[LLMProvider]] = {
    ProviderType.OPENAI: OpenAIProvider,
    ProviderType.ANTHROPIC: AnthropicProvider,
}

# Rough characters-per-token ratio for streams that report no usage
CHARS_PER_TOKEN = 4


def build_providers(app_config: AppConfig) -> dict[ProviderType, LLMProvider]:
    """Instantiate every provider that has an API key configured."""
    providers: dict[ProviderType, LLMProvider] = {}
    for provider_type, settings in app_config.providers.items():
        if not settings.is_configured:
            logger.info(f"Provider {provider_type.value} has no API key, skipping")
            continue
        providers[provider_type] = PROVIDER_CLASSES[provider_type](settings)
        logger.info(f"Registered LLM provider: {provider_type.value}")
    return providers


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class LLMService:
    """
    Dispatches chat requests to the configured providers.

    Deterministic requests are served from and written to the response
    cache; usage is recorded per identity, provider and UTC day.
    """

    def __init__(
        self,
        providers: dict[ProviderType, LLMProvider],
        store: KeyValueStore,
        cache: Optional[ResponseCache] = None,
        today: Callable[[], date] = _utc_today,
    ):
        self._providers = providers
        self._store = store
        self.cache = cache or ResponseCache(store)
        self._today = today

    def available_providers(self) -> list[ProviderType]:
        return list(self._providers.keys())

    def get_provider(self, provider: ProviderType | str) -> LLMProvider:
        """
        Look up a configured provider.

        Raises:
            ProviderNotConfigured: If the provider is unknown or has no API key
        """
        try:
            provider_type = ProviderType(provider)
        except ValueError:
            raise ProviderNotConfigured(
                str(provider), f"LLM provider '{provider}' is not configured"
            ) from None

        llm_provider = self._providers.get(provider_type)
        if llm_provider is None:
            raise ProviderNotConfigured(
                provider_type.value,
                f"LLM provider '{provider_type.value}' is not configured",
            )
        return llm_provider

    async def chat(self, provider: ProviderType | str, options: ChatOptions) -> Completion:
        llm_provider = self.get_provider(provider)

        cacheable = is_cacheable(options)
        fp = fingerprint(llm_provider.name, options) if cacheable else None
        if fp:
            cached = await self.cache.get(fp)
            if cached is not None:
                return Completion.from_dict(cached)

        start = time.perf_counter()
        completion = await llm_provider.chat(options)
        duration_ms = (time.perf_counter() - start) * 1000

        logger.info(
            f"LLM request completed: provider={llm_provider.name} model={options.model} "
            f"user={options.user_id} duration={duration_ms:.0f}ms usage={completion.usage}"
        )

        if fp:
            await self.cache.put(fp, completion.to_dict())

        if options.user_id and completion.usage:
            await self.track_usage(options.user_id, llm_provider.name, completion.usage)

        return completion

    async def stream_chat(
        self, provider: ProviderType | str, options: ChatOptions
    ) -> AsyncIterator[str]:
        """Stream response fragments. Streams are never cached."""
        llm_provider = self.get_provider(provider)
        start = time.perf_counter()
        char_count = 0

        stream = llm_provider.stream_chat(options)
        try:
            async for chunk in stream:
                char_count += len(chunk)
                yield chunk
        finally:
            await stream.aclose()
            approximate_tokens = math.ceil(char_count / CHARS_PER_TOKEN)
            duration_ms = (time.perf_counter() - start) * 1000
            logger.info(
                f"LLM stream completed: provider={llm_provider.name} model={options.model} "
                f"user={options.user_id} duration={duration_ms:.0f}ms "
                f"approximate_tokens={approximate_tokens}"
            )
            if options.user_id:
                await self.track_usage(
                    options.user_id,
                    llm_provider.name,
                    Usage(completion_tokens=approximate_tokens, total_tokens=approximate_tokens),
                )

    async def track_usage(self, identity: str, provider: str, usage: Usage) -> None:
        """Add usage to today's counters. Failures are logged, never raised."""
        try:
            await self._store.track_usage(
                identity,
                provider,
                self._today().isoformat(),
                {
                    "prompt_tokens": usage.prompt_tokens,
                    "completion_tokens": usage.completion_tokens,
                    "total_tokens": usage.total_tokens,
                },
            )
        except StoreUnavailable as e:
            logger.error(f"Failed to track usage for {identity}: {e}")

    async def get_usage(
        self,
        identity: str,
        provider: Optional[ProviderType | str] = None,
        days: int = 30,
    ) -> dict[str, dict[str, int]]:
        """
        Sum usage over the last ``days`` UTC days.

        Returns:
            Mapping of provider name to summed prompt/completion/total tokens
        """
        if provider is not None:
            provider_names = [ProviderType(provider).value]
        else:
            provider_names = [p.value for p in self._providers]

        today = self._today()
        usage: dict[str, dict[str, int]] = {}
        for name in provider_names:
            totals = {field_name: 0 for field_name in USAGE_FIELDS}
            for offset in range(days):
                day = (today - timedelta(days=offset)).isoformat()
                day_usage = await self._store.get_usage(identity, name, day)
                for field_name in USAGE_FIELDS:
                    totals[field_name] += day_usage.get(field_name, 0)
            usage[name] = totals
        return usage

    async def close(self) -> None:
        for llm_provider in self._providers.values():
            await llm_provider.close()
