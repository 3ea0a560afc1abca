"""
Normalized LLM request/response types and the provider interface.

Every backend adapter translates between these shapes and its vendor's wire
format, and classifies vendor failures into ProviderError subclasses.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from typing import Any, AsyncIterator, Literal, Optional

from ..errors import (
    ProviderAuthFailed,
    ProviderBadRequest,
    ProviderError,
    ProviderRateLimited,
    ProviderServiceError,
    ValidationFailed,
)
from ..models import ProviderSettings, ProviderType

logger = logging.getLogger(__name__)

Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class ChatMessage:
    """One turn in the LLM dialogue."""

    role: Role
    content: str


@dataclass
class ChatOptions:
    """A normalized chat request."""

    model: str
    messages: list[ChatMessage]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    stream: bool = False
    user_id: Optional[str] = None

    def messages_as_dicts(self) -> list[dict]:
        return [{"role": m.role, "content": m.content} for m in self.messages]


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class Choice:
    message: ChatMessage
    finish_reason: str = "stop"
    index: int = 0


@dataclass
class Completion:
    """A normalized chat completion."""

    id: str
    model: str
    choices: list[Choice] = field(default_factory=list)
    usage: Optional[Usage] = None

    @property
    def content(self) -> str:
        """Text of the first choice, or an empty string."""
        if not self.choices:
            return ""
        return self.choices[0].message.content or ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Completion":
        usage = data.get("usage")
        return cls(
            id=data.get("id", ""),
            model=data.get("model", ""),
            choices=[
                Choice(
                    message=ChatMessage(**choice["message"]),
                    finish_reason=choice.get("finish_reason", "stop"),
                    index=choice.get("index", 0),
                )
                for choice in data.get("choices", [])
            ],
            usage=Usage(**usage) if usage else None,
        )


def validate_options(options: ChatOptions) -> None:
    """
    Check the preconditions shared by every provider.

    Raises:
        ValidationFailed: With one entry per violated rule
    """
    errors: list[str] = []
    if not options.model:
        errors.append("Model is required")
    if not options.messages:
        errors.append("Messages are required")
    if options.temperature is not None and not 0 <= options.temperature <= 2:
        errors.append("Temperature must be between 0 and 2")
    if options.top_p is not None and not 0 <= options.top_p <= 1:
        errors.append("Top P must be between 0 and 1")
    if errors:
        raise ValidationFailed(f"Validation failed: {', '.join(errors)}", errors)


def classify_status(provider: str, status: int, message: str) -> ProviderError:
    """Map a vendor HTTP status to a ProviderError kind."""
    if status in (401, 403):
        return ProviderAuthFailed(provider, f"{provider} authentication failed: Invalid API key")
    if status == 429:
        return ProviderRateLimited(provider, f"{provider} rate limit exceeded")
    if status in (400, 404, 422):
        return ProviderBadRequest(provider, f"{provider} bad request: {message}")
    if status >= 500:
        return ProviderServiceError(provider, f"{provider} service error: {message}")
    return ProviderServiceError(provider, f"{provider} request failed ({status}): {message}")


class LLMProvider(ABC):
    """Uniform interface over one LLM backend."""

    provider_type: ProviderType

    def __init__(self, settings: ProviderSettings):
        self.settings = settings

    @property
    def name(self) -> str:
        return self.provider_type.value

    @abstractmethod
    async def chat(self, options: ChatOptions) -> Completion:
        """Return a complete response for ``options``."""

    @abstractmethod
    def stream_chat(self, options: ChatOptions) -> AsyncIterator[str]:
        """Yield text fragments of the response as they arrive."""

    async def close(self) -> None:
        """Release the underlying HTTP client."""
