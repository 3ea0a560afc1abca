"""
Tool-augmented request orchestration.

One request runs through a fixed sequence of stages:

    CollectTools -> DecideTools -> ExecuteTools -> ComposeFinal -> Deliver

Tool discovery is skipped without a credential, the decision call is
skipped when no tools are available, and tool failures are recorded
in-band so one failing tool never aborts the request.
"""

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional

from ..errors import GatewayError, ToolListUnavailable
from ..llm.base import ChatOptions, Completion
from ..llm.service import LLMService
from ..models import OrchestratorConfig
from ..tools.client import Credential, ToolClient, ToolDescriptor, ToolResult
from ..tracing import TracingClient, TracingContext
from .prompts import build_decision_messages, build_final_messages
from .tool_calls import ToolCall, parse_tool_calls

logger = logging.getLogger(__name__)

DONE_FRAME = "data: [DONE]\n\n"


def sse_frame(event: dict[str, Any]) -> str:
    """Encode one streaming event as a server-sent-event frame."""
    return f"data: {json.dumps(event, default=str)}\n\n"


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ProcessRequest:
    """An orchestration request. Read-only once constructed."""

    prompt: str
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    credential: Optional[Credential] = None
    stream: bool = False
    user_id: Optional[str] = None
    request_id: str = field(default_factory=lambda: f"req-{uuid.uuid4().hex[:8]}")


@dataclass
class ProcessResult:
    """Outcome of a non-streaming orchestration."""

    answer: str
    tools_used: list[str] = field(default_factory=list)
    collected_data: Optional[dict[str, Any]] = None
    timestamp: str = field(default_factory=_utc_timestamp)
    completion: Optional[Completion] = None


@dataclass
class _ToolPhase:
    tools_used: list[str] = field(default_factory=list)
    collected_data: Optional[dict[str, Any]] = None


class Orchestrator:
    """
    Composes tool discovery, tool decision, tool execution and the final
    answer for one request.

    All collaborators are injected, so tests substitute fakes for the LLM
    service and the tool client.
    """

    def __init__(
        self,
        llm_service: LLMService,
        tool_client: ToolClient,
        orchestrator_config: Optional[OrchestratorConfig] = None,
        tracing_client: Optional[TracingClient] = None,
    ):
        self.llm_service = llm_service
        self.tool_client = tool_client
        self.config = orchestrator_config or OrchestratorConfig()
        self.tracing_client = tracing_client

    # Stage helpers

    async def collect_tools(
        self, request: ProcessRequest, tracing: Optional[TracingContext] = None
    ) -> list[ToolDescriptor]:
        """List tools for the caller. Degrades to no tools on any failure."""
        if not request.credential:
            return []

        try:
            if tracing:
                with tracing.span("tool_discovery") as span:
                    tools = await self.tool_client.list_tools(request.credential)
                    span.set_output({"tool_count": len(tools)})
            else:
                tools = await self.tool_client.list_tools(request.credential)
        except ToolListUnavailable as e:
            logger.warning(
                f"[{request.request_id}] Failed to fetch tools, continuing without tools: {e}"
            )
            return []

        logger.info(f"[{request.request_id}] Found {len(tools)} tools available")
        return tools

    async def decide_tools(
        self,
        request: ProcessRequest,
        tools: list[ToolDescriptor],
        tracing: Optional[TracingContext] = None,
    ) -> list[ToolCall]:
        """Ask the decision model which tools to call. No call is made without tools."""
        if not tools:
            return []

        options = ChatOptions(
            model=self.config.decision_model,
            messages=build_decision_messages(request.prompt, tools),
            temperature=self.config.decision_temperature,
            max_tokens=self.config.decision_max_tokens,
            user_id=request.user_id,
        )
        if tracing:
            with tracing.generation(
                "tool_decision",
                model=options.model,
                input=options.messages_as_dicts(),
                model_parameters={
                    "temperature": options.temperature,
                    "max_tokens": options.max_tokens,
                },
            ) as generation:
                decision = await self.llm_service.chat(self.config.provider, options)
                generation.set_output(decision.content)
                if decision.usage:
                    generation.set_usage(
                        decision.usage.prompt_tokens,
                        decision.usage.completion_tokens,
                        decision.usage.total_tokens,
                    )
        else:
            decision = await self.llm_service.chat(self.config.provider, options)

        calls = parse_tool_calls(decision.content)
        logger.info(
            f"[{request.request_id}] Tool decision requested {len(calls)} calls: "
            f"{[c.name for c in calls]}"
        )
        return calls

    async def _run_tool(
        self,
        call: ToolCall,
        credential: Optional[Credential],
        semaphore: asyncio.Semaphore,
        tracing: Optional[TracingContext],
    ) -> ToolResult:
        async with semaphore:
            logger.info(f"Calling tool: {call.name} {call.arguments}")
            if tracing:
                with tracing.span(
                    f"tool:{call.name}", input=call.arguments
                ) as span:
                    result = await self.tool_client.call_tool(
                        call.name, call.arguments, credential
                    )
                    if not result.ok:
                        span.set_status("error")
                    span.set_output({"ok": result.ok, "error": result.error})
                    return result
            return await self.tool_client.call_tool(call.name, call.arguments, credential)

    async def execute_tools(
        self,
        calls: list[ToolCall],
        credential: Optional[Credential],
        tracing: Optional[TracingContext] = None,
    ) -> list[ToolResult]:
        """
        Execute tool calls with at most ``tool_concurrency`` in flight.

        Results are returned in issuance order. A call that raises is
        converted to an error result; siblings keep running.
        """
        if not calls:
            return []

        semaphore = asyncio.Semaphore(max(1, self.config.tool_concurrency))
        outcomes = await asyncio.gather(
            *(self._run_tool(call, credential, semaphore, tracing) for call in calls),
            return_exceptions=True,
        )

        results: list[ToolResult] = []
        for call, outcome in zip(calls, outcomes):
            if isinstance(outcome, ToolResult):
                results.append(outcome)
            elif isinstance(outcome, Exception):
                logger.error(f"Tool call failed for {call.name}: {outcome}")
                results.append(ToolResult(tool_name=call.name, error=str(outcome)))
            else:
                raise outcome
        return results

    async def _tool_phase(
        self, request: ProcessRequest, tracing: Optional[TracingContext]
    ) -> _ToolPhase:
        tools = await self.collect_tools(request, tracing)
        calls = await self.decide_tools(request, tools, tracing)
        if not calls:
            return _ToolPhase()

        results = await self.execute_tools(calls, request.credential, tracing)
        collected: dict[str, Any] = {}
        tools_used: list[str] = []
        for result in results:
            # A repeated tool name keeps the latest result
            collected[result.tool_name] = result.to_data()
            if result.ok:
                tools_used.append(result.tool_name)
        return _ToolPhase(tools_used=tools_used, collected_data=collected)

    def final_options(
        self, request: ProcessRequest, collected_data: Optional[dict[str, Any]], stream: bool
    ) -> ChatOptions:
        return ChatOptions(
            model=request.model or self.config.final_model,
            messages=build_final_messages(request.prompt, collected_data),
            temperature=(
                request.temperature
                if request.temperature is not None
                else self.config.final_temperature
            ),
            max_tokens=request.max_tokens or self.config.final_max_tokens,
            stream=stream,
            user_id=request.user_id,
        )

    def _tracing_for(self, request: ProcessRequest) -> TracingContext:
        tracing = TracingContext(
            client=self.tracing_client,
            request_id=request.request_id,
            user_id=request.user_id,
        )
        tracing.start_trace(
            name="process_request",
            input={"prompt": request.prompt},
            metadata={"stream": request.stream},
        )
        return tracing

    # Delivery

    async def process(self, request: ProcessRequest) -> ProcessResult:
        """
        Run the full pipeline and return the composed answer.

        Raises:
            GatewayError: If the decision or final LLM call fails
        """
        start = time.perf_counter()
        credential_state = "present" if request.credential else "absent"
        logger.info(
            f"[{request.request_id}] Processing request: credential={credential_state} "
            f"prompt_length={len(request.prompt)}"
        )
        tracing = self._tracing_for(request)

        try:
            phase = await self._tool_phase(request, tracing)
            options = self.final_options(request, phase.collected_data, stream=False)
            with tracing.generation(
                "final_answer",
                model=options.model,
                input=options.messages_as_dicts(),
                model_parameters={
                    "temperature": options.temperature,
                    "max_tokens": options.max_tokens,
                },
            ) as generation:
                completion = await self.llm_service.chat(self.config.provider, options)
                generation.set_output(completion.content)
        except Exception as e:
            logger.error(f"[{request.request_id}] Orchestrator processing error: {e}")
            tracing.end_trace(output=str(e), status="error")
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"[{request.request_id}] Request processed in {duration_ms:.0f}ms, "
            f"tools used: {phase.tools_used}"
        )
        tracing.end_trace(output=completion.content)

        return ProcessResult(
            answer=completion.content,
            tools_used=phase.tools_used,
            collected_data=phase.collected_data,
            completion=completion,
        )

    async def process_stream(self, request: ProcessRequest) -> AsyncIterator[str]:
        """
        Run the pipeline and yield server-sent-event frames.

        Tool work finishes before the first frame. Failures are reported as
        an ``error`` event; the stream always ends with ``[DONE]``.
        """
        logger.info(f"[{request.request_id}] Processing streaming request")
        tracing = self._tracing_for(request)
        status = "success"

        try:
            phase = await self._tool_phase(request, tracing)
            if phase.tools_used:
                yield sse_frame({"type": "tools_used", "tools": phase.tools_used})
            if phase.collected_data:
                yield sse_frame({"type": "mcp_data", "data": phase.collected_data})

            options = self.final_options(request, phase.collected_data, stream=True)
            stream = self.llm_service.stream_chat(self.config.provider, options)
            try:
                async for chunk in stream:
                    yield sse_frame({"type": "llm_chunk", "content": chunk})
            finally:
                await stream.aclose()
        except GatewayError as e:
            status = "error"
            logger.error(f"[{request.request_id}] Stream processing error: {e}")
            yield sse_frame({"type": "error", "error": e.message})
        except Exception as e:
            # Headers are already sent, so unexpected failures become an event too
            status = "error"
            logger.exception(f"[{request.request_id}] Unexpected stream processing error")
            yield sse_frame({"type": "error", "error": str(e)})
        finally:
            tracing.end_trace(status=status)

        yield DONE_FRAME
