"""
Data models for the gateway configuration.
"""

from .provider import (
    DEFAULT_BASE_URLS,
    ProviderSettings,
    ProviderType,
)
from .config import (
    ServerConfig,
    RedisConfig,
    RateLimitConfig,
    CacheConfig,
    ToolServerConfig,
    OrchestratorConfig,
    AuthConfig,
    LoggingConfig,
    LangfuseConfig,
    AppConfig,
)

__all__ = [
    # Provider models
    "DEFAULT_BASE_URLS",
    "ProviderSettings",
    "ProviderType",
    # Config models
    "ServerConfig",
    "RedisConfig",
    "RateLimitConfig",
    "CacheConfig",
    "ToolServerConfig",
    "OrchestratorConfig",
    "AuthConfig",
    "LoggingConfig",
    "LangfuseConfig",
    "AppConfig",
]
