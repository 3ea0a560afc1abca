"""
Configuration loader for the gateway.

Loads configuration from a YAML file with support for
environment variable interpolation.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from .models import (
    DEFAULT_BASE_URLS,
    AppConfig,
    AuthConfig,
    CacheConfig,
    LangfuseConfig,
    LoggingConfig,
    OrchestratorConfig,
    ProviderSettings,
    ProviderType,
    RateLimitConfig,
    RedisConfig,
    ServerConfig,
    ToolServerConfig,
)

logger = logging.getLogger(__name__)

load_dotenv()

# Default config path relative to project root
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.yaml"

# Regex for environment variable interpolation: ${VAR} or ${VAR:-default}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")

# Singleton cache for app config
_app_config: Optional[AppConfig] = None


def resolve_env_vars(value: str) -> str:
    """
    Resolve environment variable references in a string.

    Supports ${VAR} and ${VAR:-default} syntax.

    Args:
        value: String potentially containing env var references

    Returns:
        String with env vars resolved
    """

    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.environ.get(var_name, default_value)

    return ENV_VAR_PATTERN.sub(replace_match, value)


def _substitute_env_vars_recursive(data: Any) -> Any:
    """Recursively substitute environment variables in a data structure."""
    if isinstance(data, dict):
        return {k: _substitute_env_vars_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_substitute_env_vars_recursive(item) for item in data]
    elif isinstance(data, str):
        return resolve_env_vars(data)
    return data


def _as_bool(value: Any, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return value.lower() == "true"
    return bool(value)


def _parse_server_config(data: dict) -> ServerConfig:
    """Parse server configuration from dict."""
    origins = data.get("cors_origins", ["http://localhost:3000"])
    if isinstance(origins, str):
        origins = [origin.strip() for origin in origins.split(",") if origin.strip()]

    return ServerConfig(
        host=data.get("host", "0.0.0.0"),
        port=int(data.get("port", 1111)),
        workers=int(data.get("workers", 1)),
        reload=_as_bool(data.get("reload"), False),
        environment=data.get("environment") or "development",
        cors_origins=origins,
    )


def _parse_redis_config(data: dict) -> RedisConfig:
    """Parse Redis configuration from dict."""
    return RedisConfig(
        url=data.get("url", "redis://localhost:6379/0"),
        password=data.get("password", "") or "",
        socket_timeout=float(data.get("socket_timeout", 5.0)),
    )


def _parse_rate_limit_config(data: dict) -> RateLimitConfig:
    """Parse standard rate limit profile from dict."""
    return RateLimitConfig(
        window_ms=int(data.get("window_ms", 60000)),
        max_requests=int(data.get("max_requests", 100)),
    )


def _parse_cache_config(data: dict) -> CacheConfig:
    """Parse cache TTLs from dict."""
    return CacheConfig(
        llm_ttl=int(data.get("llm_ttl", 300)),
        tools_ttl=int(data.get("tools_ttl", 3600)),
    )


def _parse_providers(data: dict) -> dict[ProviderType, ProviderSettings]:
    """Parse the providers section, keyed by provider type."""
    providers: dict[ProviderType, ProviderSettings] = {}
    for name, provider_data in data.items():
        try:
            provider_type = ProviderType(name)
        except ValueError:
            raise ValueError(f"Unknown provider type: {name}")

        provider_data = provider_data or {}
        providers[provider_type] = ProviderSettings(
            type=provider_type,
            api_key=provider_data.get("api_key", "") or "",
            base_url=provider_data.get("base_url") or DEFAULT_BASE_URLS[provider_type],
            timeout=float(provider_data.get("timeout", 120)),
        )
    return providers


def _parse_tool_server_config(data: dict) -> ToolServerConfig:
    """Parse tool server configuration from dict."""
    return ToolServerConfig(
        url=data.get("url", "http://localhost:9999"),
        timeout=float(data.get("timeout", 30)),
    )


def _parse_orchestrator_config(data: dict) -> OrchestratorConfig:
    """Parse orchestrator configuration from dict."""
    provider_name = data.get("provider", ProviderType.OPENAI.value)
    try:
        provider = ProviderType(provider_name)
    except ValueError:
        raise ValueError(f"Unknown orchestrator provider: {provider_name}")

    return OrchestratorConfig(
        provider=provider,
        decision_model=data.get("decision_model", "gpt-4"),
        decision_temperature=float(data.get("decision_temperature", 0.1)),
        decision_max_tokens=int(data.get("decision_max_tokens", 500)),
        final_model=data.get("final_model", "gpt-4"),
        final_temperature=float(data.get("final_temperature", 0.7)),
        final_max_tokens=int(data.get("final_max_tokens", 1000)),
        tool_concurrency=max(1, int(data.get("tool_concurrency", 1))),
    )


def _parse_auth_config(data: dict) -> AuthConfig:
    return AuthConfig(api_key_ttl=int(data.get("api_key_ttl", 86400 * 365)))


def _parse_logging_config(data: dict) -> LoggingConfig:
    """Parse logging configuration from dict."""
    return LoggingConfig(level=data.get("level") or "INFO")


def _parse_langfuse_config(data: dict) -> LangfuseConfig:
    """Parse Langfuse configuration from dict."""
    return LangfuseConfig(
        public_key=data.get("public_key", "") or "",
        secret_key=data.get("secret_key", "") or "",
        host=data.get("host") or "https://cloud.langfuse.com",
        debug=_as_bool(data.get("debug"), False),
    )


def parse_app_config(raw_config: dict) -> AppConfig:
    """
    Build an AppConfig from an already-loaded mapping.

    Environment variables are substituted before parsing.
    """
    raw_config = _substitute_env_vars_recursive(raw_config)

    return AppConfig(
        version=str(raw_config.get("version", "1.0")),
        server=_parse_server_config(raw_config.get("server") or {}),
        redis=_parse_redis_config(raw_config.get("redis") or {}),
        rate_limit=_parse_rate_limit_config(raw_config.get("rate_limit") or {}),
        cache=_parse_cache_config(raw_config.get("cache") or {}),
        providers=_parse_providers(raw_config.get("providers") or {}),
        tool_server=_parse_tool_server_config(raw_config.get("tool_server") or {}),
        orchestrator=_parse_orchestrator_config(raw_config.get("orchestrator") or {}),
        auth=_parse_auth_config(raw_config.get("auth") or {}),
        logging=_parse_logging_config(raw_config.get("logging") or {}),
        langfuse=_parse_langfuse_config(raw_config.get("langfuse") or {}),
    )


def load_app_config(path: Optional[str] = None, reload: bool = False) -> AppConfig:
    """
    Load unified application configuration from a YAML file.

    Uses a singleton pattern - subsequent calls return the cached config
    unless reload=True is specified.

    Args:
        path: Path to the YAML configuration file. If None, uses
              CONFIG_PATH env var or the default path (config/config.yaml).
        reload: If True, force reload from disk instead of using cache.

    Returns:
        AppConfig with all configuration loaded

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config is invalid
    """
    global _app_config

    if _app_config is not None and not reload:
        return _app_config

    if path is None:
        path = os.environ.get("CONFIG_PATH", str(DEFAULT_CONFIG_PATH))

    config_path = Path(path)

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found at {config_path}. "
            f"Create one from config/config.yaml or set CONFIG_PATH env var."
        )

    logger.info(f"Loading configuration from {config_path}")

    with open(config_path, "r") as f:
        raw_config = yaml.safe_load(f)

    if raw_config is None:
        raise ValueError(f"Configuration file {config_path} is empty")

    app_config = parse_app_config(raw_config)

    configured = [p.value for p, s in app_config.providers.items() if s.is_configured]
    if not configured:
        logger.warning("Config validation warning: no LLM provider has an API key")
    if app_config.orchestrator.provider not in app_config.providers:
        logger.warning(
            f"Config validation warning: orchestrator provider "
            f"'{app_config.orchestrator.provider.value}' has no settings"
        )

    _app_config = app_config

    logger.debug(f"Configuration loaded: version={app_config.version}, providers={configured}")

    return app_config


def reset_config_cache() -> None:
    """Reset the configuration cache, forcing a reload on next access."""
    global _app_config
    _app_config = None
    logger.debug("Configuration cache reset")
