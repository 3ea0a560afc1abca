"""
Tool-call protocol embedded in model text.

The decision model requests tools with blocks of the form::

    [TOOL_CALL: get_weather]
    {"city": "Seoul"}
    [/TOOL_CALL]

Scanning and decoding are separate steps: the scanner finds candidate
blocks, then each block's argument text is decoded on its own so one
malformed block never affects the others.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterator

logger = logging.getLogger(__name__)

# Block bodies never extend past the next opener
TOOL_BLOCK_PATTERN = re.compile(
    r"\[TOOL_CALL:\s*(\w+)\]((?:(?!\[TOOL_CALL:)[\s\S])*?)\[/TOOL_CALL\]"
)


@dataclass
class ToolCall:
    """A tool invocation requested by the model."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


def scan_tool_blocks(text: str) -> Iterator[tuple[str, str]]:
    """Yield (tool name, raw argument text) for every candidate block, in order."""
    for match in TOOL_BLOCK_PATTERN.finditer(text or ""):
        yield match.group(1), match.group(2).strip()


def parse_tool_calls(text: str) -> list[ToolCall]:
    """
    Extract well-formed tool calls from model output.

    A block is accepted only when its arguments decode to a JSON object.
    Anything else is dropped with a warning.
    """
    calls: list[ToolCall] = []
    for name, raw_arguments in scan_tool_blocks(text):
        try:
            arguments = json.loads(raw_arguments)
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse tool call '{name}': {e}")
            continue
        if not isinstance(arguments, dict):
            logger.warning(f"Tool call '{name}' arguments are not an object, skipping")
            continue
        calls.append(ToolCall(name=name, arguments=arguments))
    return calls
