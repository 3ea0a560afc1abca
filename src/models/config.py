"""
Configuration models for the gateway.

Defines dataclasses for the unified YAML configuration file.
"""

from dataclasses import dataclass, field

from .provider import ProviderSettings, ProviderType


@dataclass
class ServerConfig:
    """Configuration for the FastAPI server."""
    host: str = "0.0.0.0"
    port: int = 1111
    workers: int = 1
    reload: bool = False
    environment: str = "development"
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000"])

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@dataclass
class RedisConfig:
    """Connection settings for the shared key-value store."""
    url: str = "redis://localhost:6379/0"
    password: str = ""
    socket_timeout: float = 5.0


@dataclass
class RateLimitConfig:
    """Parameters for the standard rate limiter profile."""
    window_ms: int = 60000
    max_requests: int = 100


@dataclass
class CacheConfig:
    """TTLs for cached completions and tool listings."""
    llm_ttl: int = 300
    tools_ttl: int = 3600


@dataclass
class ToolServerConfig:
    """Configuration for the external tool server."""
    url: str = "http://localhost:9999"
    timeout: float = 30.0


@dataclass
class OrchestratorConfig:
    """Models and sampling parameters for the two orchestration LLM calls."""
    provider: ProviderType = ProviderType.OPENAI
    decision_model: str = "gpt-4"
    decision_temperature: float = 0.1
    decision_max_tokens: int = 500
    final_model: str = "gpt-4"
    final_temperature: float = 0.7
    final_max_tokens: int = 1000
    tool_concurrency: int = 1


@dataclass
class AuthConfig:
    """API key issuance settings."""
    api_key_ttl: int = 86400 * 365


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"


@dataclass
class LangfuseConfig:
    """Configuration for Langfuse observability.

    Tracing auto-enables when both public_key and secret_key are provided.
    """
    public_key: str = ""
    secret_key: str = ""
    host: str = "https://cloud.langfuse.com"
    debug: bool = False

    @property
    def is_configured(self) -> bool:
        """Check if Langfuse is configured (both keys present)."""
        return bool(self.public_key and self.secret_key)


@dataclass
class AppConfig:
    """
    Unified application configuration container.

    Holds all configuration sections loaded from config/config.yaml.
    """
    version: str = "1.0"
    server: ServerConfig = field(default_factory=ServerConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    providers: dict[ProviderType, ProviderSettings] = field(default_factory=dict)
    tool_server: ToolServerConfig = field(default_factory=ToolServerConfig)
    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)

    @property
    def log_level(self) -> str:
        return self.logging.level
