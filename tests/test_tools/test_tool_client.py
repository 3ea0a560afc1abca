"""
Tests for the tool server client.

Tests cover:
- Credential forwarding priority
- Tool listing and its cache
- Tool call success and failure shapes
- Health checks
"""

import json
import logging

import httpx
import pytest

from conftest import TOOL_SERVER_URL, json_handler, make_tool_client
from src.errors import ToolListUnavailable
from src.tools import (
    TOOLS_CACHE_KEY,
    Credential,
    ToolDescriptor,
    ToolResult,
    extract_error_detail,
)


class TestCredential:
    """Tests for credential header priority."""

    def test_bearer_wins(self):
        credential = Credential(bearer="tok", session_id="sess", cookie="a=b")
        assert credential.headers() == {"Authorization": "Bearer tok"}

    def test_session_id_as_cookie(self):
        credential = Credential(session_id="sess", cookie="a=b")
        assert credential.headers() == {"Cookie": "TTID=sess"}

    def test_raw_cookie(self):
        assert Credential(cookie="a=b; c=d").headers() == {"Cookie": "a=b; c=d"}

    def test_empty(self):
        credential = Credential()
        assert not credential
        assert credential.headers() == {}


class TestDescriptors:
    """Tests for ToolDescriptor and ToolResult."""

    def test_descriptor_accepts_both_schema_spellings(self):
        camel = ToolDescriptor.from_dict({"name": "a", "inputSchema": {"type": "object"}})
        snake = ToolDescriptor.from_dict({"name": "a", "input_schema": {"type": "object"}})
        assert camel.input_schema == snake.input_schema == {"type": "object"}
        assert camel.to_dict()["inputSchema"] == {"type": "object"}

    def test_failed_result_data(self):
        result = ToolResult(tool_name="x", error="timed out")
        assert not result.ok
        assert result.to_data() == {"error": "timed out"}


class TestExtractErrorDetail:
    """Tests for error detail extraction order."""

    def test_validation_errors_first(self):
        response = httpx.Response(
            422, json={"errors": [{"field": "city"}], "message": "ignored"}
        )
        assert extract_error_detail(response).startswith("Validation Errors: [")

    def test_message(self):
        response = httpx.Response(400, json={"message": "bad city", "error": "ignored"})
        assert extract_error_detail(response) == "bad city"

    def test_error(self):
        assert extract_error_detail(httpx.Response(500, json={"error": "boom"})) == "boom"

    def test_plain_text_body(self):
        assert extract_error_detail(httpx.Response(502, text="Bad Gateway")) == "Bad Gateway"


class TestListTools:
    """Tests for ToolClient.list_tools."""

    @pytest.mark.asyncio
    async def test_fetches_and_caches(self, tool_client, store):
        tools = await tool_client.list_tools(Credential(bearer="tok"))

        assert [t.name for t in tools] == ["get_weather"]
        assert store.cache_writes == [(TOOLS_CACHE_KEY, 3600)]

    @pytest.mark.asyncio
    async def test_second_listing_served_from_cache(self, store):
        requests = []

        def list_tools(request):
            requests.append(request)
            return httpx.Response(200, json={"tools": [{"name": "echo"}]})

        client = make_tool_client(json_handler({("GET", "/tools"): list_tools}), store)
        await client.list_tools()
        tools = await client.list_tools()

        assert len(requests) == 1
        assert tools[0].name == "echo"

    @pytest.mark.asyncio
    async def test_forwards_credential(self):
        seen = {}

        def list_tools(request):
            seen.update(request.headers)
            return httpx.Response(200, json={"tools": []})

        client = make_tool_client(json_handler({("GET", "/tools"): list_tools}))
        await client.list_tools(Credential(session_id="sess-1"))
        assert seen["cookie"] == "TTID=sess-1"

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        def list_tools(request):
            return httpx.Response(401, json={"message": "session expired"})

        client = make_tool_client(json_handler({("GET", "/tools"): list_tools}))
        with pytest.raises(ToolListUnavailable, match="session expired"):
            await client.list_tools()

    @pytest.mark.asyncio
    async def test_unreachable_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ToolListUnavailable):
            await make_tool_client(handler).list_tools()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "listing",
        [
            [{"name": "x"}],
            {"tools": ["get_weather"]},
            {"tools": {"name": "x"}},
            "tools",
        ],
    )
    async def test_malformed_listing_raises(self, listing, store):
        def list_tools(request):
            return httpx.Response(200, json=listing)

        client = make_tool_client(json_handler({("GET", "/tools"): list_tools}), store)
        with pytest.raises(ToolListUnavailable, match="malformed"):
            await client.list_tools()
        assert store.cache == {}

    @pytest.mark.asyncio
    async def test_store_outage_still_lists(self, tool_client, store):
        store.available = False
        tools = await tool_client.list_tools()
        assert [t.name for t in tools] == ["get_weather"]


class TestCallTool:
    """Tests for ToolClient.call_tool."""

    @pytest.mark.asyncio
    async def test_success(self, tool_client, tool_calls_log):
        result = await tool_client.call_tool(
            "get_weather", {"city": "Seoul"}, Credential(bearer="tok")
        )

        assert result.ok
        assert result.payload == {"city": "Seoul", "temp_c": 21}
        assert result.status_code == 200
        assert tool_calls_log[0]["body"] == {
            "toolName": "get_weather",
            "arguments": {"city": "Seoul"},
        }
        assert tool_calls_log[0]["headers"]["authorization"] == "Bearer tok"

    @pytest.mark.asyncio
    async def test_missing_arguments_sent_as_empty_object(self, tool_client, tool_calls_log):
        result = await tool_client.call_tool("get_weather")

        assert result.ok
        assert tool_calls_log[0]["body"]["arguments"] == {}

    @pytest.mark.asyncio
    async def test_error_status_returns_failed_result(self, tool_client):
        result = await tool_client.call_tool("launch_rocket", {})

        assert not result.ok
        assert result.status_code == 400
        assert result.error == "Failed to call tool 'launch_rocket': unknown tool launch_rocket"

    @pytest.mark.asyncio
    async def test_error_status_is_logged(self, tool_client, caplog):
        with caplog.at_level(logging.ERROR, logger="src.tools.client"):
            await tool_client.call_tool("launch_rocket", {})

        assert (
            "Tool call launch_rocket failed with status 400: unknown tool launch_rocket"
            in caplog.messages
        )

    @pytest.mark.asyncio
    async def test_timeout_returns_failed_result(self):
        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        result = await make_tool_client(handler).call_tool("slow", {})

        assert not result.ok
        assert "timed out" in result.error
        assert result.status_code is None

    @pytest.mark.asyncio
    async def test_non_json_body_kept_as_text(self):
        def call_tool(request):
            return httpx.Response(200, text="plain result")

        client = make_tool_client(json_handler({("POST", "/tools/call"): call_tool}))
        result = await client.call_tool("echo", {})
        assert result.payload == "plain result"

    @pytest.mark.asyncio
    async def test_calls_are_never_cached(self, tool_client, tool_calls_log, store):
        await tool_client.call_tool("get_weather", {"city": "Seoul"})
        await tool_client.call_tool("get_weather", {"city": "Seoul"})
        assert len(tool_calls_log) == 2
        assert store.cache_writes == []


class TestHealthCheck:
    """Tests for ToolClient.health_check."""

    @pytest.mark.asyncio
    async def test_healthy(self, tool_client):
        assert await tool_client.health_check() is True

    @pytest.mark.asyncio
    async def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert await make_tool_client(handler).health_check() is False

    @pytest.mark.asyncio
    async def test_unhealthy_status(self):
        def health(request):
            return httpx.Response(503, text=json.dumps({"status": "down"}))

        client = make_tool_client(json_handler({("GET", "/health"): health}))
        assert await client.health_check() is False

    def test_base_url(self):
        assert make_tool_client(json_handler({})).base_url == TOOL_SERVER_URL
