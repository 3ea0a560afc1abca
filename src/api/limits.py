"""
Rate limit dependencies.

Each dependency counts the request against one profile, records the
decision on ``request.state`` for the response-header middleware, and
rejects the request with RateLimitExceeded when the window is exhausted.
Authenticate first so the limiter keys on identity rather than address.
"""

import logging
from typing import Callable

from fastapi import Request, Response

from ..errors import RateLimitExceeded
from ..rate_limit import (
    RateLimitDecision,
    RateLimitProfile,
    derive_key,
    endpoint_profile,
    lenient_profile,
    standard_profile,
    strict_profile,
)
from .dependencies import Services, get_services

logger = logging.getLogger(__name__)

ProfileFactory = Callable[[Services], RateLimitProfile]


def rate_limit(profile_factory: ProfileFactory) -> Callable:
    """Build a dependency that gates a route with the given profile."""

    async def dependency(request: Request) -> RateLimitDecision:
        services = get_services(request)
        profile = profile_factory(services)
        client_host = request.client.host if request.client else None
        base_key = derive_key(
            getattr(request.state, "identity", None),
            request.headers.get("x-forwarded-for"),
            client_host,
        )
        key = profile.scoped_key(base_key)

        decision = await services.rate_limiter.check(
            key, profile.window_ms, profile.max_requests
        )
        request.state.rate_limit = decision
        request.state.rate_limit_key = key
        request.state.rate_limit_profile = profile

        if not decision.allowed:
            raise RateLimitExceeded(
                "Rate limit exceeded. Please try again later.",
                retry_after=decision.retry_after,
            )
        return decision

    return dependency


strict_limit = rate_limit(lambda services: strict_profile())
standard_limit = rate_limit(lambda services: standard_profile(services.config.rate_limit))
lenient_limit = rate_limit(lambda services: lenient_profile())


def endpoint_limit(endpoint: str, max_requests: int = 100) -> Callable:
    return rate_limit(lambda services: endpoint_profile(endpoint, max_requests))


async def finalize_rate_limit(request: Request, response: Response) -> None:
    """
    Apply rate limit headers and undo the count for skipped status classes.

    Called by the HTTP middleware once the response status is known.
    """
    decision = getattr(request.state, "rate_limit", None)
    if decision is None:
        return
    for name, value in decision.headers().items():
        response.headers[name] = value

    profile = getattr(request.state, "rate_limit_profile", None)
    if profile is not None and profile.should_skip(response.status_code):
        await get_services(request).rate_limiter.release(request.state.rate_limit_key)
