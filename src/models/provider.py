"""
Data models for LLM provider configuration.

Each supported backend is a member of the closed ProviderType enum and
carries its own connection settings.
"""

from dataclasses import dataclass
from enum import Enum


class ProviderType(Enum):
    """Supported LLM backends."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"


DEFAULT_BASE_URLS = {
    ProviderType.OPENAI: "https://api.openai.com/v1",
    ProviderType.ANTHROPIC: "https://api.anthropic.com",
}


@dataclass
class ProviderSettings:
    """Connection details for one LLM backend."""

    type: ProviderType
    api_key: str
    base_url: str
    timeout: float = 120.0  # Request timeout in seconds

    @property
    def is_configured(self) -> bool:
        """A provider is only registered when it has an API key."""
        return bool(self.api_key)
