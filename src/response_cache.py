"""
Fingerprint-keyed cache for deterministic LLM completions.

Only requests that are not streamed and ask for temperature exactly 0 are
eligible; everything else bypasses the cache on both read and write.
"""

import hashlib
import json
import logging
from typing import Any, Optional

from .errors import StoreUnavailable
from .llm.base import ChatOptions
from .store import KeyValueStore

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "llm"
DEFAULT_TTL = 300


def fingerprint(provider: str, options: ChatOptions) -> str:
    """
    Hash the normalized request into a stable cache key.

    The caller's identity is not part of the fingerprint; message order is.
    """
    canonical = {
        "provider": provider,
        "model": options.model,
        "messages": options.messages_as_dicts(),
        "temperature": options.temperature if options.temperature is not None else 0,
        "maxTokens": options.max_tokens,
        "topP": options.top_p,
    }
    encoded = json.dumps(canonical, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def is_cacheable(options: ChatOptions) -> bool:
    return not options.stream and options.temperature == 0


class ResponseCache:
    """Read-through/write-after cache over the store's ``cache:`` namespace."""

    def __init__(self, store: KeyValueStore, default_ttl: int = DEFAULT_TTL):
        self._store = store
        self.default_ttl = default_ttl
        self.hits = 0
        self.misses = 0

    @staticmethod
    def _key(fp: str) -> str:
        return f"{CACHE_NAMESPACE}:{fp}"

    async def get(self, fp: str) -> Optional[Any]:
        """Return the cached payload, or None on a miss or store failure."""
        try:
            payload = await self._store.get_cache(self._key(fp))
        except StoreUnavailable as e:
            logger.error(f"Cache backend unavailable, treating as miss: {e}")
            self.misses += 1
            return None

        if payload is None:
            self.misses += 1
            logger.debug(f"Cache miss: {fp[:12]}")
            return None

        self.hits += 1
        logger.info(f"Cache hit: {fp[:12]}")
        return payload

    async def put(self, fp: str, payload: Any, ttl: Optional[int] = None) -> None:
        """Store a payload; a store failure skips the write."""
        try:
            await self._store.set_cache(self._key(fp), payload, ttl or self.default_ttl)
        except StoreUnavailable as e:
            logger.error(f"Cache backend unavailable, skipping write: {e}")

    def stats(self) -> dict[str, int]:
        return {"hits": self.hits, "misses": self.misses}
