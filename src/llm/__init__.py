"""
LLM provider adapters.

The provider registry lives in ``src.llm.service``; it is not re-exported
here because it depends on the response cache, which depends on these types.
"""

from .anthropic_provider import AnthropicProvider
from .base import (
    ChatMessage,
    ChatOptions,
    Choice,
    Completion,
    LLMProvider,
    Usage,
    classify_status,
    validate_options,
)
from .openai_provider import OpenAIProvider
from .sse import SSEBuffer, decode_event

__all__ = [
    "AnthropicProvider",
    "ChatMessage",
    "ChatOptions",
    "Choice",
    "Completion",
    "LLMProvider",
    "OpenAIProvider",
    "SSEBuffer",
    "Usage",
    "classify_status",
    "decode_event",
    "validate_options",
]
