"""OpenRouter metering API client.

Four read-only resources, all authenticated with the account's bearer key:

    /v1/credits   account balance
    /v1/key       usage for the key making the call (fallback only)
    /v1/keys      usage for every key on the account
    /v1/activity  per-day, per-model activity log

Every call writes api_call_* diagnostic events. The key itself is never
logged: only the URL, status and byte counts, plus a redacted body sample
when the API returns an error status.
"""

import json
import logging
from typing import Any, Optional

import httpx

from config import HTTP_TIMEOUT
from logger import log_event
from utils.log_sanitizer import sanitize_for_log, sanitize_log
from ..config import (
    BASE_URL,
    CREDITS_PATH,
    KEY_PATH,
    KEYS_PATH,
    ACTIVITY_PATH,
    PAYLOAD_SAMPLE_LENGTH,
)
from ..errors import APIError, DecodeError, TransportError
from ..types import (
    AccountBalance,
    ActivityRecord,
    KeyUsageRecord,
    order_key_usages,
    unwrap_data,
)


def parse_api_error(content: bytes, status_code: int) -> APIError:
    """Build an APIError from a non-200 response body.

    Prefers the ``{"error": {"message": ...}}`` envelope, then the raw body,
    then a generic status message.
    """
    text = content.decode("utf-8", errors="replace") if content else ""

    try:
        payload = json.loads(text) if text else None
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return APIError(f"[{status_code}] {error['message']}", status_code)

    if text.strip():
        return APIError(f"[{status_code}] {text}", status_code)

    return APIError(f"OpenRouter request failed with status {status_code}", status_code)


class OpenRouterClient:
    """Async client for the OpenRouter metering resources.

    Stateless apart from connection settings: the API key is passed per call
    so a credential change takes effect on the next request.
    """

    def __init__(
        self,
        base_url: str = BASE_URL,
        timeout: float = HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """Initialize the client.

        Args:
            base_url: API root, e.g. "https://openrouter.ai/api"
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def fetch_credits(self, api_key: str) -> AccountBalance:
        """Get the account's total credits and usage."""
        payload = await self._get_json(CREDITS_PATH, api_key, context="credits")
        return AccountBalance.from_dict(unwrap_data(payload, "credits"), "credits")

    async def fetch_key(self, api_key: str) -> KeyUsageRecord:
        """Get usage for the calling key only."""
        payload = await self._get_json(KEY_PATH, api_key, context="key")
        return KeyUsageRecord.from_dict(unwrap_data(payload, "key"), "key")

    async def fetch_keys(self, api_key: str) -> list[KeyUsageRecord]:
        """Get usage for all enabled keys, most recently active first."""
        payload = await self._get_json(KEYS_PATH, api_key, context="keys")
        data = unwrap_data(payload, "keys")
        if not isinstance(data, list):
            raise DecodeError("Expected a list of keys in keys response", "keys")
        return order_key_usages(KeyUsageRecord.from_dict(item, "keys") for item in data)

    async def fetch_activity(self, api_key: str) -> list[ActivityRecord]:
        """Get the activity log for the API's lookback window."""
        payload = await self._get_json(ACTIVITY_PATH, api_key, context="activity")
        data = unwrap_data(payload, "activity")
        if not isinstance(data, list):
            raise DecodeError("Expected a list of records in activity response", "activity")
        return [ActivityRecord.from_dict(item, "activity") for item in data]

    async def _get_json(self, path: str, api_key: str, context: str) -> Any:
        """GET a resource and return its decoded JSON body.

        Raises:
            TransportError: No HTTP response was received
            APIError: The status was not 200
            DecodeError: The body was not valid JSON
        """
        url = f"{self.base_url}{path}"
        log_event("api_call_start", context=context, method="GET", url=url)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(
                    url,
                    headers={"Authorization": f"Bearer {api_key}"}
                )
        except httpx.HTTPError as e:
            reason = sanitize_log(str(e), secret=api_key) or type(e).__name__
            log_event(
                "api_call_failed",
                level=logging.WARNING,
                context=context,
                error=type(e).__name__,
                url=url
            )
            raise TransportError(f"Could not reach OpenRouter: {reason}") from e

        content = response.content
        log_event(
            "api_call_response",
            context=context,
            status=response.status_code,
            bytes=len(content),
            url=url
        )

        if response.status_code >= 400:
            sample = sanitize_for_log(content, max_length=PAYLOAD_SAMPLE_LENGTH, secret=api_key)
            log_event(
                "api_call_error_payload",
                level=logging.WARNING,
                context=context,
                payload=sample
            )

        if response.status_code != 200:
            raise parse_api_error(content, response.status_code)

        try:
            return json.loads(content)
        except ValueError as e:
            raise DecodeError(f"Invalid JSON in {context} response: {e}", context) from e
