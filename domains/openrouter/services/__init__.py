"""OpenRouter domain services."""

from .client import OpenRouterClient, parse_api_error

__all__ = ["OpenRouterClient", "parse_api_error"]
