"""
Direct LLM access endpoints.

/api/llm/chat forwards a normalized chat request to one provider. Requests
with temperature 0 and stream=false are served from the response cache.
"""

import logging
from typing import AsyncIterator, Optional

from fastapi import APIRouter, Depends, Query, Request

from ...errors import GatewayError
from ...llm.base import ChatMessage, ChatOptions
from ...llm.service import LLMService
from ...models import ProviderType
from ...orchestration import DONE_FRAME, sse_frame
from ..dependencies import authenticate, get_services
from ..limits import lenient_limit, standard_limit
from ..schemas import (
    LLMChatRequestBody,
    ProviderInfo,
    ProvidersResponse,
    UsageInfo,
    UsageResponse,
)
from ..streaming import sse_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/llm")

PROVIDER_MODELS: dict[ProviderType, list[str]] = {
    ProviderType.OPENAI: [
        "gpt-4-turbo-preview",
        "gpt-4",
        "gpt-3.5-turbo",
        "gpt-3.5-turbo-16k",
    ],
    ProviderType.ANTHROPIC: [
        "claude-3-opus-20240229",
        "claude-3-sonnet-20240229",
        "claude-3-haiku-20240307",
    ],
}


async def _chat_frames(
    llm_service: LLMService, provider: ProviderType, options: ChatOptions
) -> AsyncIterator[str]:
    stream = llm_service.stream_chat(provider, options)
    try:
        async for chunk in stream:
            yield sse_frame({"content": chunk})
    except GatewayError as e:
        logger.error(f"LLM stream failed: {e}")
        yield sse_frame({"error": e.message})
    except Exception as e:
        # Headers are already sent, so the failure is reported in-band
        logger.exception(f"Unexpected LLM stream error: {e}")
        yield sse_frame({"error": str(e)})
    finally:
        await stream.aclose()
    yield DONE_FRAME


@router.post(
    "/chat",
    summary="Chat completion",
    description="Send a chat request to a configured provider, optionally streamed.",
    dependencies=[Depends(authenticate), Depends(standard_limit)],
)
async def chat(
    body: LLMChatRequestBody,
    request: Request,
    identity: str = Depends(authenticate),
):
    llm_service = get_services(request).llm_service
    options = ChatOptions(
        model=body.model,
        messages=[ChatMessage(role=m.role, content=m.content) for m in body.messages],
        temperature=body.temperature,
        max_tokens=body.max_tokens,
        top_p=body.top_p,
        stream=body.stream,
        user_id=identity,
    )

    if body.stream:
        # Resolve the provider up front so an unknown one is a 400, not a stream error
        llm_service.get_provider(body.provider)
        return sse_response(request, _chat_frames(llm_service, body.provider, options))

    completion = await llm_service.chat(body.provider, options)
    return completion.to_dict()


@router.get(
    "/providers",
    response_model=ProvidersResponse,
    summary="List configured providers",
    dependencies=[Depends(authenticate), Depends(lenient_limit)],
)
async def list_providers(request: Request) -> ProvidersResponse:
    providers = get_services(request).llm_service.available_providers()
    return ProvidersResponse(
        providers=[
            ProviderInfo(name=p.value, available=True, models=PROVIDER_MODELS.get(p, []))
            for p in providers
        ]
    )


@router.get(
    "/usage",
    response_model=UsageResponse,
    summary="Token usage for the caller",
    dependencies=[Depends(authenticate), Depends(lenient_limit)],
)
async def usage(
    request: Request,
    provider: Optional[ProviderType] = Query(default=None),
    days: int = Query(default=30, ge=1, le=365),
    identity: str = Depends(authenticate),
) -> UsageResponse:
    totals = await get_services(request).llm_service.get_usage(identity, provider, days)
    return UsageResponse(usage={name: UsageInfo(**values) for name, values in totals.items()})
