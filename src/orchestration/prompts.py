"""
Prompt construction for the two orchestration LLM calls.
"""

import json
from typing import Any, Optional, Sequence

from ..llm.base import ChatMessage
from ..tools.client import ToolDescriptor

PLAIN_SYSTEM_PROMPT = (
    "You are a helpful assistant. Answer the user's question to the best of your ability."
)

FINAL_SYSTEM_PROMPT = (
    "You are a helpful assistant. Use the provided data to answer the user's "
    "question comprehensively."
)

FOLLOW_UP_PROMPT = (
    "Based on this data, please provide a comprehensive answer to my original question."
)

TOOL_CALL_INSTRUCTIONS = """When the user asks a question that would benefit from using these tools, respond with tool calls in the following format:
[TOOL_CALL: tool_name]
{
  "argument1": "value1",
  "argument2": "value2"
}
[/TOOL_CALL]

You can call multiple tools if needed. Only call tools when they would help answer the user's question.
If the question doesn't require tools, just answer directly."""


def format_tool_description(tool: ToolDescriptor) -> str:
    properties = tool.input_schema.get("properties", {}) if tool.input_schema else {}
    return f"- {tool.name}: {tool.description}\n  Parameters: {json.dumps(properties)}"


def build_decision_system_prompt(tools: Sequence[ToolDescriptor]) -> str:
    """System prompt for the tool-decision call, listing every available tool."""
    if not tools:
        return PLAIN_SYSTEM_PROMPT

    tool_descriptions = "\n".join(format_tool_description(t) for t in tools)
    return (
        "You are an AI assistant with access to the following tools:\n\n"
        f"{tool_descriptions}\n\n"
        f"{TOOL_CALL_INSTRUCTIONS}"
    )


def build_decision_messages(prompt: str, tools: Sequence[ToolDescriptor]) -> list[ChatMessage]:
    return [
        ChatMessage(role="system", content=build_decision_system_prompt(tools)),
        ChatMessage(role="user", content=prompt),
    ]


def build_final_messages(
    prompt: str, collected_data: Optional[dict[str, Any]] = None
) -> list[ChatMessage]:
    """
    Messages for the final answer.

    The collected tool data is only included when at least one tool
    produced an entry.
    """
    messages = [
        ChatMessage(role="system", content=FINAL_SYSTEM_PROMPT),
        ChatMessage(role="user", content=prompt),
    ]
    if collected_data:
        messages.append(
            ChatMessage(
                role="assistant",
                content=(
                    "I've retrieved the following data:\n"
                    f"{json.dumps(collected_data, indent=2, default=str)}"
                ),
            )
        )
        messages.append(ChatMessage(role="user", content=FOLLOW_UP_PROMPT))
    return messages
