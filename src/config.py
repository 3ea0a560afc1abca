"""
Configuration access for the gateway.

All settings come from config/config.yaml (see config_loader), with
environment variable interpolation for secrets and deployment overrides.
"""

from .config_loader import load_app_config
from .models import AppConfig


def get_config() -> AppConfig:
    """Get the application configuration."""
    return load_app_config()


# Global config instance
config = get_config()
