"""
FastAPI server module for the gateway.
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
