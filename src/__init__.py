"""
LLM Tool Gateway

This package provides:
- Provider adapters for OpenAI and Anthropic with response caching
- A client for an external tool server
- Tool-augmented orchestration of prompts
- Redis-backed fixed-window rate limiting
- A FastAPI HTTP surface
"""

__version__ = "0.1.0"
