"""
Shared key-value store backed by Redis.

All cross-request state lives here, partitioned into key namespaces:

- ``token:``  credential -> identity mapping
- ``cache:``  fingerprinted completions and cached tool listings
- ``rate:``   fixed-window request counters
- ``usage:``  token usage per identity, provider and day

Every method converts Redis failures into StoreUnavailable so callers can
decide whether to fail open or closed.
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional, Protocol, runtime_checkable

import redis.asyncio as redis
from redis.exceptions import RedisError

from .errors import StoreUnavailable
from .models import RedisConfig

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "token:"
CACHE_PREFIX = "cache:"
RATE_PREFIX = "rate:"
USAGE_PREFIX = "usage:"

USAGE_RETENTION_SECONDS = 86400 * 30
USAGE_FIELDS = ("prompt_tokens", "completion_tokens", "total_tokens")


@runtime_checkable
class KeyValueStore(Protocol):
    """Operations the gateway needs from the shared store.

    Any type that implements these methods satisfies the protocol; tests
    substitute an in-memory implementation.
    """

    async def ping(self) -> bool: ...

    async def get_token(self, token: str) -> Optional[str]: ...

    async def set_token(self, token: str, identity: str, ttl: int) -> None: ...

    async def delete_token(self, token: str) -> None: ...

    async def get_cache(self, key: str) -> Optional[Any]: ...

    async def set_cache(self, key: str, data: Any, ttl: int) -> None: ...

    async def increment_window(self, key: str, window_ms: int) -> tuple[int, int]: ...

    async def decrement_window(self, key: str) -> None: ...

    async def track_usage(
        self, identity: str, provider: str, day: str, usage: dict[str, int]
    ) -> None: ...

    async def get_usage(self, identity: str, provider: str, day: str) -> dict[str, int]: ...


class RedisStore:
    """Redis implementation of KeyValueStore.

    Satisfies the KeyValueStore protocol through structural typing.
    """

    def __init__(self, client: redis.Redis):
        self._client = client

    @classmethod
    def from_config(cls, redis_config: RedisConfig) -> "RedisStore":
        """Create a store from the redis section of the app config."""
        client = redis.from_url(
            redis_config.url,
            password=redis_config.password or None,
            socket_timeout=redis_config.socket_timeout,
            socket_connect_timeout=redis_config.socket_timeout,
            decode_responses=True,
        )
        return cls(client)

    @property
    def client(self) -> redis.Redis:
        """Get the Redis client."""
        return self._client

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[None]:
        try:
            yield
        except RedisError as e:
            logger.error(f"Redis {operation} failed: {e}")
            raise StoreUnavailable(f"Shared store unavailable during {operation}") from e

    async def ping(self) -> bool:
        """Check if Redis is accessible."""
        try:
            return bool(await self._client.ping())
        except RedisError:
            return False

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Redis client disconnected")

    # Token namespace

    async def get_token(self, token: str) -> Optional[str]:
        async with self._guard("token lookup"):
            return await self._client.get(f"{TOKEN_PREFIX}{token}")

    async def set_token(self, token: str, identity: str, ttl: int) -> None:
        async with self._guard("token write"):
            await self._client.set(f"{TOKEN_PREFIX}{token}", identity, ex=ttl)

    async def delete_token(self, token: str) -> None:
        async with self._guard("token delete"):
            await self._client.delete(f"{TOKEN_PREFIX}{token}")

    # Cache namespace

    async def get_cache(self, key: str) -> Optional[Any]:
        async with self._guard("cache read"):
            data = await self._client.get(f"{CACHE_PREFIX}{key}")
        return json.loads(data) if data else None

    async def set_cache(self, key: str, data: Any, ttl: int) -> None:
        payload = json.dumps(data)
        async with self._guard("cache write"):
            await self._client.set(f"{CACHE_PREFIX}{key}", payload, ex=ttl)

    async def delete_cache(self, key: str) -> None:
        async with self._guard("cache delete"):
            await self._client.delete(f"{CACHE_PREFIX}{key}")

    # Rate namespace

    async def increment_window(self, key: str, window_ms: int) -> tuple[int, int]:
        """Count one request in the current fixed window.

        Creating the counter with its expiry, incrementing it and reading the
        remaining lifetime happen in one MULTI/EXEC transaction, so a counter
        never exists without an expiry and later requests do not extend the
        window.

        Returns:
            Tuple of (count in window, milliseconds until the window resets)
        """
        rate_key = f"{RATE_PREFIX}{key}"
        async with self._guard("rate increment"):
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.set(rate_key, 0, px=window_ms, nx=True)
                pipe.incr(rate_key)
                pipe.pttl(rate_key)
                _, count, ttl_ms = await pipe.execute()
        if ttl_ms is None or ttl_ms < 0:
            ttl_ms = window_ms
        return int(count), int(ttl_ms)

    async def decrement_window(self, key: str) -> None:
        """Undo one counted request. The counter is dropped if it lost its expiry."""
        rate_key = f"{RATE_PREFIX}{key}"
        async with self._guard("rate decrement"):
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.decr(rate_key)
                pipe.pttl(rate_key)
                count, ttl_ms = await pipe.execute()
            if ttl_ms == -1 or int(count) < 0:
                await self._client.delete(rate_key)

    async def get_window(self, key: str) -> int:
        async with self._guard("rate read"):
            count = await self._client.get(f"{RATE_PREFIX}{key}")
        return int(count) if count else 0

    # Usage namespace

    async def track_usage(
        self, identity: str, provider: str, day: str, usage: dict[str, int]
    ) -> None:
        usage_key = f"{USAGE_PREFIX}{identity}:{provider}:{day}"
        async with self._guard("usage write"):
            async with self._client.pipeline(transaction=True) as pipe:
                for field_name in USAGE_FIELDS:
                    pipe.hincrby(usage_key, field_name, int(usage.get(field_name, 0)))
                pipe.expire(usage_key, USAGE_RETENTION_SECONDS)
                await pipe.execute()

    async def get_usage(self, identity: str, provider: str, day: str) -> dict[str, int]:
        usage_key = f"{USAGE_PREFIX}{identity}:{provider}:{day}"
        async with self._guard("usage read"):
            raw = await self._client.hgetall(usage_key)
        return {field_name: int(raw.get(field_name, 0)) for field_name in USAGE_FIELDS}
