"""
Fixed-window rate limiting over the shared store.

The limiter counts requests per key in discrete, non-overlapping windows.
It fails open: when the store is unreachable the request is allowed.
"""

import logging
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from .errors import StoreUnavailable
from .models import RateLimitConfig
from .store import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of counting one request against a window."""

    allowed: bool
    limit: int
    remaining: int
    reset_at: float  # epoch seconds
    retry_after: int  # seconds until the window resets

    @property
    def reset_at_iso(self) -> str:
        return datetime.fromtimestamp(self.reset_at, tz=timezone.utc).isoformat()

    def headers(self) -> dict[str, str]:
        """Rate limit response headers."""
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": self.reset_at_iso,
        }


@dataclass(frozen=True)
class RateLimitProfile:
    """A named set of limiter parameters."""

    name: str
    window_ms: int
    max_requests: int
    endpoint: Optional[str] = None
    skip_successful_requests: bool = False
    skip_failed_requests: bool = False

    def scoped_key(self, base_key: str) -> str:
        """Append the endpoint suffix, if any, so per-route limits are independent."""
        return f"{base_key}:{self.endpoint}" if self.endpoint else base_key

    def should_skip(self, status_code: int) -> bool:
        if self.skip_successful_requests and status_code < 400:
            return True
        return self.skip_failed_requests and status_code >= 400


def strict_profile() -> RateLimitProfile:
    return RateLimitProfile(name="strict", window_ms=60000, max_requests=10)


def standard_profile(rate_config: RateLimitConfig) -> RateLimitProfile:
    return RateLimitProfile(
        name="standard",
        window_ms=rate_config.window_ms,
        max_requests=rate_config.max_requests,
    )


def lenient_profile() -> RateLimitProfile:
    return RateLimitProfile(name="lenient", window_ms=60000, max_requests=200)


def endpoint_profile(endpoint: str, max_requests: int = 100) -> RateLimitProfile:
    return RateLimitProfile(
        name=f"endpoint:{endpoint}",
        window_ms=60000,
        max_requests=max_requests,
        endpoint=endpoint,
    )


def derive_key(
    identity: Optional[str],
    forwarded_for: Optional[str] = None,
    client_host: Optional[str] = None,
) -> str:
    """
    Derive the limiter key for a caller.

    Uses the authenticated identity when present, otherwise the first
    address in X-Forwarded-For, then the socket peer address.
    """
    if identity:
        return f"user:{identity}"

    ip = None
    if forwarded_for:
        ip = forwarded_for.split(",")[0].strip() or None
    return f"ip:{ip or client_host or 'unknown'}"


class RateLimiter:
    """Fixed-window request counter backed by the shared store."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    async def check(self, key: str, window_ms: int, max_requests: int) -> RateLimitDecision:
        """
        Count one request for ``key`` and decide whether it is allowed.

        Args:
            key: Limiter key (already scoped to an endpoint if needed)
            window_ms: Window length in milliseconds
            max_requests: Maximum requests allowed per window

        Returns:
            RateLimitDecision; always allowed when the store is unavailable.
        """
        now = time.time()
        try:
            count, ttl_ms = await self._store.increment_window(key, window_ms)
        except StoreUnavailable as e:
            logger.error(f"Rate limit backend unavailable, allowing request: {e}")
            return RateLimitDecision(
                allowed=True,
                limit=max_requests,
                remaining=max_requests,
                reset_at=now + window_ms / 1000,
                retry_after=0,
            )

        allowed = count <= max_requests
        if not allowed:
            logger.warning(f"Rate limit exceeded for key: {key}")

        return RateLimitDecision(
            allowed=allowed,
            limit=max_requests,
            remaining=max(0, max_requests - count),
            reset_at=now + ttl_ms / 1000,
            retry_after=math.ceil(ttl_ms / 1000),
        )

    async def release(self, key: str) -> None:
        """
        Best-effort decrement for skip-on-success/failure profiles.

        Races with expiry and concurrent increments, so the count is not
        exact. Never raises.
        """
        try:
            await self._store.decrement_window(key)
        except StoreUnavailable as e:
            logger.error(f"Failed to decrement rate limit counter for {key}: {e}")
