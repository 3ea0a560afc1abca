"""
Service container and request dependencies.

Long-lived clients are built once per process and stored on
``app.state.services``; routes reach them through FastAPI dependencies so
tests can install fakes without patching module globals.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from ..errors import AuthenticationMissing, InvalidCredential
from ..llm.service import LLMService, build_providers
from ..models import AppConfig
from ..orchestration import Orchestrator
from ..rate_limit import RateLimiter
from ..response_cache import ResponseCache
from ..store import KeyValueStore, RedisStore
from ..tools import Credential, ToolClient
from ..tracing import TracingClient

logger = logging.getLogger(__name__)

API_KEY_PATTERN = re.compile(r"^tlx_[a-f0-9]{32}$")


@dataclass
class Services:
    """Process-wide collaborators shared by every request."""

    config: AppConfig
    store: KeyValueStore
    rate_limiter: RateLimiter
    llm_service: LLMService
    tool_client: ToolClient
    orchestrator: Orchestrator
    tracing_client: TracingClient

    @classmethod
    def from_config(cls, app_config: AppConfig) -> "Services":
        store = RedisStore.from_config(app_config.redis)
        tracing_client = TracingClient.from_config(app_config.langfuse)
        llm_service = LLMService(
            build_providers(app_config),
            store,
            cache=ResponseCache(store, default_ttl=app_config.cache.llm_ttl),
        )
        tool_client = ToolClient(
            app_config.tool_server.url,
            timeout=app_config.tool_server.timeout,
            store=store,
            tools_ttl=app_config.cache.tools_ttl,
        )
        orchestrator = Orchestrator(
            llm_service,
            tool_client,
            app_config.orchestrator,
            tracing_client=tracing_client,
        )
        return cls(
            config=app_config,
            store=store,
            rate_limiter=RateLimiter(store),
            llm_service=llm_service,
            tool_client=tool_client,
            orchestrator=orchestrator,
            tracing_client=tracing_client,
        )

    async def close(self) -> None:
        await self.llm_service.close()
        await self.tool_client.close()
        self.tracing_client.shutdown()
        if isinstance(self.store, RedisStore):
            await self.store.close()


def get_services(request: Request) -> Services:
    return request.app.state.services


async def authenticate(request: Request) -> str:
    """
    Resolve the ``X-API-Key`` header to a caller identity.

    Raises:
        AuthenticationMissing: No key supplied
        InvalidCredential: Malformed, unknown or expired key
    """
    api_key = request.headers.get("x-api-key")
    if not api_key:
        raise AuthenticationMissing("API key is required")
    if not API_KEY_PATTERN.match(api_key):
        raise InvalidCredential("Invalid API key format")

    identity = await get_services(request).store.get_token(api_key)
    if not identity:
        raise InvalidCredential("Invalid or expired API key")

    request.state.identity = identity
    request.state.api_key = api_key
    return identity


def tool_credential(request: Request, session_id: Optional[str] = None) -> Credential:
    """
    Collect the caller's tool-server credential from the request.

    ``session_id`` is the ``ttid`` body field, when the route has a body;
    the ``X-TTID`` header is used otherwise.
    """
    bearer = None
    authorization = request.headers.get("authorization", "")
    if authorization.lower().startswith("bearer "):
        bearer = authorization[7:].strip() or None
    bearer = bearer or request.headers.get("x-client-token") or None

    return Credential(
        bearer=bearer,
        session_id=session_id or request.headers.get("x-ttid") or None,
        cookie=request.headers.get("x-tool-cookie") or None,
    )


def request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or "req-unknown"
