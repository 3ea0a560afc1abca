"""
Tool Server Client

HTTP client for the external tool server: tool discovery, single tool
invocation and health checks, with the caller's credential forwarded on
every request.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from ..errors import StoreUnavailable, ToolListUnavailable
from ..store import KeyValueStore

logger = logging.getLogger(__name__)

TOOLS_CACHE_KEY = "mcp:tools"
DEFAULT_TOOLS_TTL = 3600


@dataclass(frozen=True)
class Credential:
    """
    Caller credential forwarded to the tool server.

    At most one form is sent, in priority order: bearer token, session id,
    raw cookie string.
    """

    bearer: Optional[str] = None
    session_id: Optional[str] = None
    cookie: Optional[str] = None

    def __bool__(self) -> bool:
        return bool(self.bearer or self.session_id or self.cookie)

    def headers(self) -> dict[str, str]:
        if self.bearer:
            return {"Authorization": f"Bearer {self.bearer}"}
        if self.session_id:
            return {"Cookie": f"TTID={self.session_id}"}
        if self.cookie:
            return {"Cookie": self.cookie}
        return {}


@dataclass
class ToolDescriptor:
    """A tool advertised by the tool server."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolDescriptor":
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            input_schema=data.get("inputSchema") or data.get("input_schema") or {},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }


@dataclass
class ToolResult:
    """Outcome of one tool call: a payload on success, an error message otherwise."""

    tool_name: str
    payload: Any = None
    error: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_data(self) -> Any:
        """Value recorded in the collected data for this tool."""
        if self.ok:
            return self.payload
        return {"error": self.error}


def extract_error_detail(response: httpx.Response) -> str:
    """Pull the most specific error description out of a tool server response."""
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase

    if isinstance(data, str):
        return data
    if isinstance(data, dict):
        if data.get("errors"):
            return f"Validation Errors: {json.dumps(data['errors'], indent=2)}"
        if data.get("message"):
            return str(data["message"])
        if data.get("error"):
            return str(data["error"])
    return json.dumps(data, indent=2)


class ToolClient:
    """Async client for the tool server."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        store: Optional[KeyValueStore] = None,
        tools_ttl: int = DEFAULT_TOOLS_TTL,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url
        self._store = store
        self._tools_ttl = tools_ttl
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )

    async def _cached_tools(self) -> Optional[list[dict]]:
        if self._store is None:
            return None
        try:
            return await self._store.get_cache(TOOLS_CACHE_KEY)
        except StoreUnavailable as e:
            logger.warning(f"Tool listing cache unavailable: {e}")
            return None

    async def _cache_tools(self, tools: list[dict]) -> None:
        if self._store is None:
            return
        try:
            await self._store.set_cache(TOOLS_CACHE_KEY, tools, self._tools_ttl)
        except StoreUnavailable as e:
            logger.warning(f"Failed to cache tool listing: {e}")

    async def list_tools(self, credential: Optional[Credential] = None) -> list[ToolDescriptor]:
        """
        List the tools the tool server advertises.

        The listing is cached under one global key, so the first caller's
        view is served to everyone until the entry expires.

        Raises:
            ToolListUnavailable: If the listing cannot be fetched
        """
        cached = await self._cached_tools()
        if cached:
            logger.info("Tool listing cache hit")
            return [ToolDescriptor.from_dict(t) for t in cached]

        headers = credential.headers() if credential else {}
        try:
            response = await self._client.get("/tools", headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            detail = extract_error_detail(e.response)
            logger.error(f"Tool listing failed ({e.response.status_code}): {detail}")
            raise ToolListUnavailable(f"Failed to list tools: {detail}") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Tool listing failed: {e}")
            raise ToolListUnavailable(f"Failed to list tools: {e}") from e

        raw_tools = data.get("tools", []) if isinstance(data, dict) else None
        if not isinstance(raw_tools, list) or not all(isinstance(t, dict) for t in raw_tools):
            logger.error(f"Tool listing has unexpected shape: {str(data)[:200]}")
            raise ToolListUnavailable("Failed to list tools: malformed tool listing")

        tools = [ToolDescriptor.from_dict(t) for t in raw_tools if t.get("name")]
        await self._cache_tools([t.to_dict() for t in tools])
        logger.info(f"Fetched {len(tools)} tools from tool server")
        return tools

    async def call_tool(
        self,
        name: str,
        arguments: Optional[dict[str, Any]] = None,
        credential: Optional[Credential] = None,
    ) -> ToolResult:
        """
        Invoke one tool. Never cached, never raises.

        Returns:
            ToolResult with the response body, or the failure description
        """
        payload = {"toolName": name, "arguments": arguments or {}}
        headers = credential.headers() if credential else {}
        credential_state = "present" if credential else "absent"
        logger.info(f"Tool call request: tool={name} credential={credential_state}")

        try:
            response = await self._client.post("/tools/call", json=payload, headers=headers)
        except httpx.TimeoutException as e:
            logger.error(f"Tool call {name} timed out: {e}")
            return ToolResult(tool_name=name, error=f"Failed to call tool '{name}': timed out")
        except httpx.HTTPError as e:
            logger.error(f"Tool call {name} failed: {e}")
            return ToolResult(tool_name=name, error=f"Failed to call tool '{name}': {e}")

        if response.is_error:
            detail = extract_error_detail(response)
            logger.error(f"Tool call {name} failed with status {response.status_code}: {detail}")
            return ToolResult(
                tool_name=name,
                error=f"Failed to call tool '{name}': {detail}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError:
            body = response.text

        logger.info(f"Tool call success: tool={name} status={response.status_code}")
        return ToolResult(tool_name=name, payload=body, status_code=response.status_code)

    async def health_check(self, credential: Optional[Credential] = None) -> bool:
        headers = credential.headers() if credential else {}
        try:
            response = await self._client.get("/health", headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"Tool server health check failed: {e}")
            return False
        return response.status_code == 200

    async def close(self) -> None:
        await self._client.aclose()
