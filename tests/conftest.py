"""
Pytest configuration and fixtures for gateway tests.

Redis is replaced by an in-memory FakeStore driven by a controllable
clock; LLM backends are replaced by FakeProvider; the tool server is an
httpx.MockTransport.
"""

import json
from typing import Any, Callable, Optional

import httpx
import pytest

from src.errors import StoreUnavailable
from src.llm.base import (
    ChatMessage,
    ChatOptions,
    Choice,
    Completion,
    LLMProvider,
    Usage,
    validate_options,
)
from src.llm.service import LLMService
from src.models import AppConfig, ProviderSettings, ProviderType
from src.orchestration import Orchestrator
from src.rate_limit import RateLimiter
from src.response_cache import ResponseCache
from src.tools import ToolClient
from src.tracing import TracingClient

TOOL_SERVER_URL = "http://tools.test"
TEST_API_KEY = "tlx_" + "ab" * 16


class FakeClock:
    """Wall clock in seconds that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStore:
    """In-memory KeyValueStore with TTL expiry on a fake clock."""

    def __init__(self, clock: Optional[FakeClock] = None):
        self.clock = clock or FakeClock()
        self.available = True
        self.tokens: dict[str, str] = {}
        self.cache: dict[str, tuple[str, float]] = {}
        self.windows: dict[str, list[float]] = {}
        self.usage: dict[str, dict[str, int]] = {}
        self.cache_writes: list[tuple[str, int]] = []

    def _check(self) -> None:
        if not self.available:
            raise StoreUnavailable("Shared store unavailable")

    def _now_ms(self) -> float:
        return self.clock() * 1000

    async def ping(self) -> bool:
        return self.available

    async def get_token(self, token: str) -> Optional[str]:
        self._check()
        return self.tokens.get(token)

    async def set_token(self, token: str, identity: str, ttl: int) -> None:
        self._check()
        self.tokens[token] = identity

    async def delete_token(self, token: str) -> None:
        self._check()
        self.tokens.pop(token, None)

    async def get_cache(self, key: str) -> Optional[Any]:
        self._check()
        entry = self.cache.get(key)
        if entry is None:
            return None
        payload, expires_at = entry
        if expires_at <= self.clock():
            del self.cache[key]
            return None
        return json.loads(payload)

    async def set_cache(self, key: str, data: Any, ttl: int) -> None:
        self._check()
        self.cache[key] = (json.dumps(data), self.clock() + ttl)
        self.cache_writes.append((key, ttl))

    async def increment_window(self, key: str, window_ms: int) -> tuple[int, int]:
        self._check()
        now_ms = self._now_ms()
        entry = self.windows.get(key)
        if entry is None or entry[1] <= now_ms:
            entry = [0, now_ms + window_ms]
            self.windows[key] = entry
        entry[0] += 1
        return int(entry[0]), int(entry[1] - now_ms)

    async def decrement_window(self, key: str) -> None:
        self._check()
        entry = self.windows.get(key)
        if entry is not None and entry[1] > self._now_ms():
            entry[0] -= 1

    def window_count(self, key: str) -> int:
        entry = self.windows.get(key)
        if entry is None or entry[1] <= self._now_ms():
            return 0
        return int(entry[0])

    async def track_usage(
        self, identity: str, provider: str, day: str, usage: dict[str, int]
    ) -> None:
        self._check()
        bucket = self.usage.setdefault(f"{identity}:{provider}:{day}", {})
        for field_name, value in usage.items():
            bucket[field_name] = bucket.get(field_name, 0) + value

    async def get_usage(self, identity: str, provider: str, day: str) -> dict[str, int]:
        self._check()
        return dict(self.usage.get(f"{identity}:{provider}:{day}", {}))


class FakeProvider(LLMProvider):
    """Scripted LLM backend that records every request."""

    def __init__(
        self,
        responses: Optional[list[str]] = None,
        stream_chunks: Optional[list[str]] = None,
        error: Optional[Exception] = None,
        provider_type: ProviderType = ProviderType.OPENAI,
    ):
        super().__init__(
            ProviderSettings(type=provider_type, api_key="test-key", base_url="http://llm.test")
        )
        self.provider_type = provider_type
        self.responses = list(responses or [])
        self.stream_chunks = stream_chunks if stream_chunks is not None else ["Hello", " world"]
        self.error = error
        self.calls: list[ChatOptions] = []
        self.stream_calls: list[ChatOptions] = []
        self.closed = False

    async def chat(self, options: ChatOptions) -> Completion:
        validate_options(options)
        self.calls.append(options)
        if self.error:
            raise self.error
        content = self.responses.pop(0) if self.responses else "default answer"
        return Completion(
            id=f"cmpl-{len(self.calls)}",
            model=options.model,
            choices=[Choice(message=ChatMessage(role="assistant", content=content))],
            usage=Usage(prompt_tokens=10, completion_tokens=5, total_tokens=15),
        )

    async def stream_chat(self, options: ChatOptions):
        validate_options(options)
        self.stream_calls.append(options)
        if self.error:
            raise self.error
        for chunk in self.stream_chunks:
            yield chunk

    async def close(self) -> None:
        self.closed = True


def json_handler(routes: dict[tuple[str, str], Callable[[httpx.Request], httpx.Response]]):
    """Build a MockTransport handler dispatching on (method, path)."""

    def handler(request: httpx.Request) -> httpx.Response:
        route = routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"message": "not found"})
        return route(request)

    return handler


def make_tool_client(handler, store=None) -> ToolClient:
    return ToolClient(
        TOOL_SERVER_URL,
        store=store,
        http_client=httpx.AsyncClient(
            base_url=TOOL_SERVER_URL, transport=httpx.MockTransport(handler)
        ),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> FakeStore:
    return FakeStore(clock)


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def llm_service(provider, store) -> LLMService:
    return LLMService({ProviderType.OPENAI: provider}, store, cache=ResponseCache(store))


@pytest.fixture
def tool_calls_log() -> list[dict]:
    return []


@pytest.fixture
def weather_tool_server(tool_calls_log):
    """Tool server advertising get_weather and answering calls to it."""

    def list_tools(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={
                "tools": [
                    {
                        "name": "get_weather",
                        "description": "Current weather for a city",
                        "inputSchema": {
                            "type": "object",
                            "properties": {"city": {"type": "string"}},
                        },
                    }
                ]
            },
        )

    def call_tool(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        tool_calls_log.append({"body": body, "headers": dict(request.headers)})
        if body["toolName"] == "get_weather":
            return httpx.Response(200, json={"city": body["arguments"].get("city"), "temp_c": 21})
        return httpx.Response(400, json={"message": f"unknown tool {body['toolName']}"})

    def health(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "ok"})

    return json_handler(
        {
            ("GET", "/tools"): list_tools,
            ("POST", "/tools/call"): call_tool,
            ("GET", "/health"): health,
        }
    )


@pytest.fixture
def tool_client(weather_tool_server, store) -> ToolClient:
    return make_tool_client(weather_tool_server, store)


@pytest.fixture
def orchestrator(llm_service, tool_client) -> Orchestrator:
    return Orchestrator(llm_service, tool_client)


@pytest.fixture
def app_config() -> AppConfig:
    return AppConfig()


@pytest.fixture
def services(app_config, store, llm_service, tool_client, orchestrator):
    from src.api.dependencies import Services

    return Services(
        config=app_config,
        store=store,
        rate_limiter=RateLimiter(store),
        llm_service=llm_service,
        tool_client=tool_client,
        orchestrator=orchestrator,
        tracing_client=TracingClient.disabled(),
    )


@pytest.fixture
def api_client(services, store):
    """TestClient over an app wired to fakes, with one valid API key."""
    from fastapi.testclient import TestClient

    from src.api.main import create_app

    store.tokens[TEST_API_KEY] = "key-123"
    return TestClient(create_app(services=services), raise_server_exceptions=False)


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"X-API-Key": TEST_API_KEY}
