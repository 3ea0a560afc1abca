"""
Tool server passthrough endpoints.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ...errors import ToolExecutionFailed
from ..dependencies import authenticate, get_services, tool_credential
from ..limits import endpoint_limit, standard_limit
from ..schemas import ToolCallRequestBody, ToolServerHealthResponse, ToolsResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mcp")


@router.get(
    "/tools",
    response_model=ToolsResponse,
    summary="List tool server tools",
    dependencies=[Depends(authenticate), Depends(standard_limit)],
)
async def list_tools(request: Request) -> ToolsResponse:
    tools = await get_services(request).tool_client.list_tools(tool_credential(request))
    return ToolsResponse(tools=[t.to_dict() for t in tools])


@router.post(
    "/tools/call",
    summary="Call a single tool",
    dependencies=[Depends(authenticate), Depends(endpoint_limit("tools_call"))],
)
async def call_tool(body: ToolCallRequestBody, request: Request):
    result = await get_services(request).tool_client.call_tool(
        body.name, body.arguments, tool_credential(request)
    )
    if not result.ok:
        raise ToolExecutionFailed(body.name, result.error, status_code=result.status_code)
    return result.payload


@router.get(
    "/health",
    response_model=ToolServerHealthResponse,
    summary="Tool server health",
)
async def tool_server_health(request: Request):
    healthy = await get_services(request).tool_client.health_check(tool_credential(request))
    body = ToolServerHealthResponse(status="healthy" if healthy else "unhealthy")
    return JSONResponse(status_code=200 if healthy else 503, content=body.model_dump())
