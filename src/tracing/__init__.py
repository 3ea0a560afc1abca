"""
Langfuse tracing integration for the gateway.

Provides observability for LLM calls, tool executions, and request lifecycle.
"""

from .client import TracingClient
from .context import Observation, TracingContext

__all__ = [
    "Observation",
    "TracingClient",
    "TracingContext",
]
