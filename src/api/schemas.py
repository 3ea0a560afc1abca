"""
Pydantic schemas for the gateway API.

Request and response bodies use camelCase field names on the wire; the
Python attributes are snake_case with aliases.
"""

from datetime import datetime, timezone
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models import ProviderType


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class CamelModel(BaseModel):
    """Base model accepting both alias and field names."""

    model_config = ConfigDict(populate_by_name=True)


# Orchestration


class ProcessRequestBody(CamelModel):
    """Request body for /api/process."""

    prompt: str = Field(..., min_length=1, description="Natural-language prompt")
    model: Optional[str] = Field(default=None, description="Model for the final answer")
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=1, le=4096, alias="maxTokens")
    stream: bool = Field(default=False, description="Stream the answer as server-sent events")
    ttid: Optional[str] = Field(default=None, description="Tool-server session identifier")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "prompt": "What's the weather in Seoul?",
                "temperature": 0.7,
                "maxTokens": 500,
            }
        },
    )


class UsageInfo(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ProcessResponseBody(CamelModel):
    """Response body for a non-streaming /api/process call."""

    answer: str
    tools_used: list[str] = Field(default_factory=list, alias="toolsUsed")
    collected_data: Optional[dict[str, Any]] = Field(default=None, alias="collectedData")
    llm_response: Optional[dict[str, Any]] = Field(default=None, alias="llmResponse")
    timestamp: str


class PromptRequestBody(CamelModel):
    """Request body for /api/prompt (single call, no tools)."""

    prompt: str = Field(..., min_length=1)
    model: Optional[str] = None


class PromptResponseBody(BaseModel):
    response: str
    usage: Optional[UsageInfo] = None
    timestamp: str


class AvailableToolsResponse(BaseModel):
    tools: list[dict[str, Any]] = Field(default_factory=list)
    authenticated: Optional[bool] = None
    message: Optional[str] = None
    error: Optional[str] = None


# Direct LLM access


class MessageIn(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class LLMChatRequestBody(CamelModel):
    """Request body for /api/llm/chat."""

    provider: ProviderType = Field(default=ProviderType.OPENAI)
    model: str = Field(..., min_length=1)
    messages: list[MessageIn] = Field(..., min_length=1)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    max_tokens: Optional[int] = Field(default=None, ge=1, le=4096, alias="maxTokens")
    top_p: Optional[float] = Field(default=None, ge=0.0, le=1.0, alias="topP")
    stream: bool = False


class ProviderInfo(BaseModel):
    name: str
    available: bool = True
    models: list[str] = Field(default_factory=list)


class ProvidersResponse(BaseModel):
    providers: list[ProviderInfo]


class UsageResponse(BaseModel):
    usage: dict[str, UsageInfo]


# Tool server passthrough


class ToolCallRequestBody(BaseModel):
    name: str = Field(..., min_length=1)
    arguments: dict[str, Any] = Field(default_factory=dict)


class ToolsResponse(BaseModel):
    tools: list[dict[str, Any]]


class ToolServerHealthResponse(BaseModel):
    status: Literal["healthy", "unhealthy"]
    timestamp: str = Field(default_factory=utc_now_iso)


# API keys


class ApiKeyResponse(CamelModel):
    api_key: str = Field(..., alias="apiKey")
    key_id: str = Field(..., alias="keyId")
    expires_in: int = Field(..., alias="expiresIn")
    message: str = "API key created successfully. Keep it secure!"


class ApiKeyValidateBody(CamelModel):
    api_key: Optional[str] = Field(default=None, alias="apiKey")


class ApiKeyValidateResponse(CamelModel):
    valid: bool
    key_id: Optional[str] = Field(default=None, alias="keyId")


class ApiKeyInfoResponse(CamelModel):
    key_id: str = Field(..., alias="keyId")
    api_key: str = Field(..., alias="apiKey")


class MessageResponse(BaseModel):
    message: str


# Health


class HealthResponse(BaseModel):
    """Response body for /health endpoint."""

    status: Literal["healthy", "unhealthy"]
    version: str
    environment: str
    redis: Literal["connected", "disconnected"]
    uptime: float
    timestamp: str = Field(default_factory=utc_now_iso)
