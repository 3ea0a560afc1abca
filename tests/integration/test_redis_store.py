"""
Integration tests against a live Redis server.

Skipped unless REDIS_URL points at a reachable server:

    REDIS_URL=redis://localhost:6379/15 pytest -m integration
"""

import os
import uuid

import pytest
import redis.asyncio as redis

from src.rate_limit import RateLimiter
from src.store import RedisStore

REDIS_URL = os.environ.get("REDIS_URL")

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not REDIS_URL, reason="REDIS_URL not set"),
]


async def _store() -> RedisStore:
    store = RedisStore(redis.from_url(REDIS_URL, decode_responses=True))
    if not await store.ping():
        await store.close()
        pytest.skip(f"Redis at {REDIS_URL} is not reachable")
    return store


@pytest.mark.asyncio
async def test_window_counts_and_expires():
    store = await _store()
    key = f"it:{uuid.uuid4().hex}"
    try:
        limiter = RateLimiter(store)
        for _ in range(3):
            await limiter.check(key, 60000, 3)
        rejected = await limiter.check(key, 60000, 3)

        assert rejected.allowed is False
        assert 0 < rejected.retry_after <= 60
        assert await store.client.pttl(f"rate:{key}") > 0
    finally:
        await store.client.delete(f"rate:{key}")
        await store.close()


@pytest.mark.asyncio
async def test_cache_roundtrip_with_ttl():
    store = await _store()
    key = f"it:{uuid.uuid4().hex}"
    try:
        await store.set_cache(key, {"answer": 4}, 30)
        assert await store.get_cache(key) == {"answer": 4}
        assert 0 < await store.client.ttl(f"cache:{key}") <= 30
    finally:
        await store.delete_cache(key)
        await store.close()
