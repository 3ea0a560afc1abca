"""
Orchestrated prompt endpoints.

/api/process runs the full tool-augmented pipeline (JSON or SSE),
/api/prompt makes a single LLM call without tools, and
/api/available-tools lists the tools visible to the caller's credential.
"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, Request

from ...errors import ToolListUnavailable
from ...orchestration import ProcessRequest
from ..dependencies import authenticate, get_services, request_id, tool_credential
from ..limits import lenient_limit, standard_limit
from ..schemas import (
    AvailableToolsResponse,
    ProcessRequestBody,
    ProcessResponseBody,
    PromptRequestBody,
    PromptResponseBody,
    UsageInfo,
)
from ..streaming import sse_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.post(
    "/process",
    response_model=ProcessResponseBody,
    summary="Process a prompt with tools",
    description=(
        "Discover tools for the caller's credential, let the model choose tool calls, "
        "execute them, and compose the final answer. Set stream=true for server-sent events."
    ),
    dependencies=[Depends(authenticate), Depends(standard_limit)],
)
async def process_prompt(
    body: ProcessRequestBody,
    request: Request,
    identity: str = Depends(authenticate),
):
    services = get_services(request)
    credential = tool_credential(request, body.ttid)
    process_request = ProcessRequest(
        prompt=body.prompt,
        model=body.model,
        temperature=body.temperature,
        max_tokens=body.max_tokens,
        credential=credential,
        stream=body.stream,
        user_id=identity,
        request_id=request_id(request),
    )

    credential_state = "present" if credential else "absent"
    logger.info(
        f"[{process_request.request_id}] Processing integrated request: user={identity} "
        f"credential={credential_state} stream={body.stream}"
    )

    if body.stream:
        return sse_response(request, services.orchestrator.process_stream(process_request))

    result = await services.orchestrator.process(process_request)
    return ProcessResponseBody(
        answer=result.answer,
        tools_used=result.tools_used,
        collected_data=result.collected_data,
        llm_response=result.completion.to_dict() if result.completion else None,
        timestamp=result.timestamp,
    )


@router.post(
    "/prompt",
    response_model=PromptResponseBody,
    summary="Answer a prompt without tools",
    dependencies=[Depends(authenticate), Depends(standard_limit)],
)
async def simple_prompt(
    body: PromptRequestBody,
    request: Request,
    identity: str = Depends(authenticate),
) -> PromptResponseBody:
    services = get_services(request)
    result = await services.orchestrator.process(
        ProcessRequest(
            prompt=body.prompt,
            model=body.model,
            user_id=identity,
            request_id=request_id(request),
        )
    )
    usage = None
    if result.completion and result.completion.usage:
        usage = UsageInfo(**asdict(result.completion.usage))
    return PromptResponseBody(response=result.answer, usage=usage, timestamp=result.timestamp)


@router.get(
    "/available-tools",
    response_model=AvailableToolsResponse,
    response_model_exclude_none=True,
    summary="List tools available to the caller's credential",
    dependencies=[Depends(authenticate), Depends(lenient_limit)],
)
async def available_tools(request: Request) -> AvailableToolsResponse:
    credential = tool_credential(request)
    if not credential:
        return AvailableToolsResponse(
            tools=[], message="No client token provided. Tools unavailable."
        )

    try:
        tools = await get_services(request).tool_client.list_tools(credential)
    except ToolListUnavailable as e:
        logger.error(f"Failed to list tools: {e}")
        return AvailableToolsResponse(
            tools=[], error="Failed to fetch tools", authenticated=False
        )
    return AvailableToolsResponse(tools=[t.to_dict() for t in tools], authenticated=True)
