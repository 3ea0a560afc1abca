"""
Tool server access.
"""

from .client import (
    TOOLS_CACHE_KEY,
    Credential,
    ToolClient,
    ToolDescriptor,
    ToolResult,
    extract_error_detail,
)

__all__ = [
    "TOOLS_CACHE_KEY",
    "Credential",
    "ToolClient",
    "ToolDescriptor",
    "ToolResult",
    "extract_error_detail",
]
