"""OpenRouter API failure taxonomy.

- TransportError: no HTTP response (DNS, connection refused, timeout)
- APIError: non-200 HTTP status, carries the status code
- DecodeError: success status but the body is not the expected shape

All three are reported by the fetch cycle and never fatal.
"""

from typing import Optional


class OpenRouterError(Exception):
    """Base class for classified OpenRouter failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class TransportError(OpenRouterError):
    """The request never produced an HTTP response."""


class APIError(OpenRouterError):
    """The API answered with a non-200 status."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class DecodeError(OpenRouterError):
    """A success response could not be decoded."""

    def __init__(self, message: str, context: Optional[str] = None):
        super().__init__(message)
        self.context = context
