"""
Request-scoped tracing context.

A TracingContext owns one root span per gateway request. Child spans and
generations are linked to it explicitly through a Langfuse TraceContext
(trace id + parent span id) rather than relying on ambient OpenTelemetry
state, which does not survive task switches reliably.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Literal, Optional

from langfuse.types import TraceContext

from .client import TracingClient

logger = logging.getLogger(__name__)

ObservationType = Literal["span", "generation"]


@dataclass
class Observation:
    """One span or generation. All methods are no-ops when tracing is disabled."""

    client: Optional[TracingClient]
    name: str
    as_type: ObservationType = "span"
    input: Optional[Any] = None
    metadata: Optional[dict] = None
    model: Optional[str] = None
    model_parameters: Optional[dict] = None
    trace_context: Optional[TraceContext] = None
    _context_manager: Any = field(default=None, repr=False)
    _handle: Any = field(default=None, repr=False)
    _start_time: float = field(default=0.0, repr=False)
    _output: Optional[Any] = field(default=None, repr=False)
    _usage: Optional[dict] = field(default=None, repr=False)
    _status: str = field(default="success", repr=False)

    @property
    def enabled(self) -> bool:
        return bool(self.client and self.client.enabled and self.client.client)

    def start(self) -> None:
        if not self.enabled:
            return
        kwargs: dict[str, Any] = {
            "trace_context": self.trace_context,
            "as_type": self.as_type,
            "name": self.name,
            "input": self.input,
            "metadata": self.metadata,
        }
        if self.as_type == "generation":
            kwargs["model"] = self.model
            kwargs["model_parameters"] = self.model_parameters
        try:
            self._start_time = time.time()
            self._context_manager = self.client.client.start_as_current_observation(**kwargs)
            self._handle = self._context_manager.__enter__()
        except Exception as e:
            logger.warning(f"Failed to start {self.as_type} '{self.name}': {e}")
            self._handle = None

    def end(self) -> None:
        if not self._handle:
            return
        try:
            update_kwargs: dict[str, Any] = {
                "metadata": {
                    "status": self._status,
                    "duration_ms": round((time.time() - self._start_time) * 1000, 2),
                }
            }
            if self._output is not None:
                update_kwargs["output"] = self._output
            if self._usage:
                update_kwargs["usage_details"] = self._usage
            self._handle.update(**update_kwargs)
            self._context_manager.__exit__(None, None, None)
        except Exception as e:
            logger.warning(f"Failed to end {self.as_type} '{self.name}': {e}")

    def set_output(self, output: Any) -> None:
        self._output = output

    def set_status(self, status: str) -> None:
        self._status = status

    def set_usage(self, prompt_tokens: int, completion_tokens: int, total_tokens: int) -> None:
        self._usage = {
            "input": prompt_tokens,
            "output": completion_tokens,
            "total": total_tokens,
        }

    def child_context(self) -> Optional[TraceContext]:
        """TraceContext that makes this observation the parent of new children."""
        span_id = getattr(self._handle, "id", None)
        if not self.trace_context or not span_id:
            return self.trace_context
        return TraceContext(trace_id=self.trace_context["trace_id"], parent_span_id=span_id)

    @contextmanager
    def span(self, name: str, input: Optional[Any] = None, metadata: Optional[dict] = None) -> Iterator["Observation"]:
        child = Observation(
            client=self.client,
            name=name,
            input=input,
            metadata=metadata,
            trace_context=self.child_context(),
        )
        with _observe(child):
            yield child


@contextmanager
def _observe(observation: Observation) -> Iterator[Observation]:
    observation.start()
    try:
        yield observation
    except BaseException:
        observation.set_status("error")
        raise
    finally:
        observation.end()


@dataclass
class TracingContext:
    """
    Tracing state for a single gateway request.

    Args:
        client: Tracing client; None or disabled means nothing is recorded
        request_id: Correlation id also used in log prefixes
        user_id: Authenticated identity, attached to the trace
    """

    client: Optional[TracingClient]
    request_id: str
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    _root: Optional[Observation] = field(default=None, repr=False)
    _trace_context: Optional[TraceContext] = field(default=None, repr=False)

    @property
    def enabled(self) -> bool:
        return bool(self.client and self.client.enabled)

    def start_trace(
        self,
        name: str = "gateway_request",
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
    ) -> None:
        if not self.enabled:
            return

        self._root = Observation(
            client=self.client,
            name=name,
            input=input,
            metadata={"request_id": self.request_id, **(metadata or {})},
        )
        self._root.start()
        handle = self._root._handle
        if handle is None:
            self._root = None
            return

        trace_id = getattr(handle, "trace_id", None)
        span_id = getattr(handle, "id", None)
        if trace_id and span_id:
            self._trace_context = TraceContext(trace_id=trace_id, parent_span_id=span_id)
        try:
            handle.update_trace(user_id=self.user_id, session_id=self.session_id)
        except Exception as e:
            logger.warning(f"[{self.request_id}] Failed to set trace attributes: {e}")

    def end_trace(self, output: Optional[Any] = None, status: str = "success") -> None:
        if not self._root:
            return
        self._root.set_output(output)
        self._root.set_status(status)
        self._root.end()
        self._root = None

    @contextmanager
    def span(
        self,
        name: str,
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
    ) -> Iterator[Observation]:
        observation = Observation(
            client=self.client,
            name=name,
            input=input,
            metadata=metadata,
            trace_context=self._trace_context,
        )
        with _observe(observation):
            yield observation

    @contextmanager
    def generation(
        self,
        name: str,
        model: str,
        input: Optional[Any] = None,
        model_parameters: Optional[dict] = None,
        metadata: Optional[dict] = None,
    ) -> Iterator[Observation]:
        """Observation for one LLM call."""
        observation = Observation(
            client=self.client,
            name=name,
            as_type="generation",
            input=input,
            metadata=metadata,
            model=model,
            model_parameters=model_parameters,
            trace_context=self._trace_context,
        )
        with _observe(observation):
            yield observation
