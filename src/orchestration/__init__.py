"""
Tool-augmented orchestration.

Discovers tools, lets the model choose tool calls through a textual block
protocol, executes them, and composes the final answer.
"""

from .orchestrator import (
    DONE_FRAME,
    Orchestrator,
    ProcessRequest,
    ProcessResult,
    sse_frame,
)
from .prompts import build_decision_messages, build_final_messages
from .tool_calls import ToolCall, parse_tool_calls, scan_tool_blocks

__all__ = [
    "DONE_FRAME",
    "Orchestrator",
    "ProcessRequest",
    "ProcessResult",
    "ToolCall",
    "build_decision_messages",
    "build_final_messages",
    "parse_tool_calls",
    "scan_tool_blocks",
    "sse_frame",
]
