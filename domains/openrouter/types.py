"""Type definitions for OpenRouter metering data.

Decoding is tolerant: optional fields missing from a payload fall back to
the defaults declared on each dataclass. A present field with the wrong type
is a DecodeError.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional

from dateutil.parser import isoparse

from .errors import DecodeError

# Sort position for keys that have never been used
NEVER = datetime.min.replace(tzinfo=timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an API timestamp into an aware datetime.

    Accepts ISO-8601 with an offset, "YYYY-MM-DD HH:MM:SS" and "YYYY-MM-DD".
    Values without an offset are treated as UTC.

    Returns:
        The parsed datetime, or None when the value can't be parsed
    """
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = isoparse(value.strip())
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# =============================================================================
# FIELD DECODERS
# =============================================================================


def _optional_float(data: dict, key: str, context: str) -> Optional[float]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool):
        raise DecodeError(f"Field '{key}' is not a number", context)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise DecodeError(f"Field '{key}' is not a number", context)


def _float(data: dict, key: str, context: str, default: float = 0.0) -> float:
    value = _optional_float(data, key, context)
    return default if value is None else value


def _int(data: dict, key: str, context: str, default: int = 0) -> int:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        raise DecodeError(f"Field '{key}' is not an integer", context)
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    raise DecodeError(f"Field '{key}' is not an integer", context)


def _optional_str(data: dict, key: str, context: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise DecodeError(f"Field '{key}' is not a string", context)
    return value


def _bool(data: dict, key: str, context: str, default: bool = False) -> bool:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise DecodeError(f"Field '{key}' is not a boolean", context)
    return value


def _require_object(value: Any, context: str) -> dict:
    if not isinstance(value, dict):
        raise DecodeError(f"Expected a JSON object in {context} response", context)
    return value


def unwrap_data(payload: Any, context: str) -> Any:
    """Return the ``data`` member of an API response envelope."""
    envelope = _require_object(payload, context)
    if "data" not in envelope:
        raise DecodeError(f"Missing 'data' in {context} response", context)
    return envelope["data"]


# =============================================================================
# RESOURCES
# =============================================================================


@dataclass(frozen=True)
class AccountBalance:
    """Account-level credit totals."""
    total_credits: float
    total_usage: float

    @property
    def remaining(self) -> float:
        return self.total_credits - self.total_usage

    @classmethod
    def from_dict(cls, data: Any, context: str = "credits") -> "AccountBalance":
        data = _require_object(data, context)
        for key in ("total_credits", "total_usage"):
            if data.get(key) is None:
                raise DecodeError(f"Missing '{key}' in {context} response", context)
        return cls(
            total_credits=_float(data, "total_credits", context),
            total_usage=_float(data, "total_usage", context),
        )


@dataclass(frozen=True)
class KeyUsageRecord:
    """Usage and limits for one API key."""
    id: str  # stable key hash
    name: Optional[str] = None
    label: Optional[str] = None
    disabled: bool = False
    limit: Optional[float] = None
    limit_reset: Optional[str] = None
    limit_remaining: Optional[float] = None
    usage: float = 0.0  # all-time
    usage_daily: float = 0.0
    usage_weekly: float = 0.0
    usage_monthly: float = 0.0
    created_at: Optional[str] = None
    last_used_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        if self.label:
            return self.label
        return self.id[:10]

    @property
    def usage_total(self) -> float:
        return self.usage

    @property
    def last_activity(self) -> Optional[datetime]:
        """Last used, else updated, else created. None means never."""
        for value in (self.last_used_at, self.updated_at, self.created_at):
            parsed = parse_timestamp(value)
            if parsed is not None:
                return parsed
        return None

    @classmethod
    def from_dict(cls, data: Any, context: str = "key") -> "KeyUsageRecord":
        data = _require_object(data, context)
        label = _optional_str(data, "label", context)
        key_id = _optional_str(data, "hash", context)
        if key_id is None:
            key_id = f"fallback_{label or 'unknown'}"

        return cls(
            id=key_id,
            name=_optional_str(data, "name", context),
            label=label,
            disabled=_bool(data, "disabled", context),
            limit=_optional_float(data, "limit", context),
            limit_reset=_optional_str(data, "limit_reset", context),
            limit_remaining=_optional_float(data, "limit_remaining", context),
            usage=_float(data, "usage", context),
            usage_daily=_float(data, "usage_daily", context),
            usage_weekly=_float(data, "usage_weekly", context),
            usage_monthly=_float(data, "usage_monthly", context),
            created_at=_optional_str(data, "created_at", context),
            last_used_at=_optional_str(data, "last_used_at", context),
            updated_at=_optional_str(data, "updated_at", context),
        )


def order_key_usages(records: Iterable[KeyUsageRecord]) -> list[KeyUsageRecord]:
    """Drop disabled keys and sort most-recently-active first."""
    enabled = [r for r in records if not r.disabled]
    return sorted(enabled, key=lambda r: r.last_activity or NEVER, reverse=True)


@dataclass(frozen=True)
class ActivityRecord:
    """One row of the activity log (per day and model)."""
    date: str = ""
    timestamp: Optional[datetime] = None
    model: str = "unknown"
    spend: float = 0.0
    request_count: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    reasoning_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens + self.reasoning_tokens

    @classmethod
    def from_dict(cls, data: Any, context: str = "activity") -> "ActivityRecord":
        data = _require_object(data, context)
        date = _optional_str(data, "date", context) or ""
        model = (
            _optional_str(data, "model", context)
            or _optional_str(data, "model_permaslug", context)
            or "unknown"
        )
        return cls(
            date=date,
            timestamp=parse_timestamp(date),
            model=model,
            spend=_float(data, "usage", context),
            request_count=_int(data, "requests", context),
            prompt_tokens=_int(data, "prompt_tokens", context),
            completion_tokens=_int(data, "completion_tokens", context),
            reasoning_tokens=_int(data, "reasoning_tokens", context),
        )


# =============================================================================
# PUBLISHED STATE
# =============================================================================


@dataclass(frozen=True)
class FetchSnapshot:
    """Immutable copy of the latest published fetch results."""
    balance: Optional[AccountBalance] = None
    keys: tuple[KeyUsageRecord, ...] = ()
    activity: tuple[ActivityRecord, ...] = ()
    is_loading: bool = False
    is_refreshing: bool = False
    error_message: Optional[str] = None
    is_testing_connection: bool = False
    connection_test_ok: Optional[bool] = None
    connection_test_message: Optional[str] = None
    updated_at: Optional[datetime] = None

    @property
    def remaining(self) -> Optional[float]:
        return self.balance.remaining if self.balance else None


class AlertKind(str, Enum):
    """Alert classes, each with its own dedup namespace and toggle."""
    LOW_BALANCE = "low_balance"
    KEY_SPIKE = "key_spike"


@dataclass(frozen=True)
class AlertEvent:
    """An alert decided by the anomaly detector."""
    kind: AlertKind
    title: str
    body: str
    identifier: str  # stable id incorporating the day (and key for spikes)
    day: str
    entity_id: Optional[str] = None


@dataclass(frozen=True)
class ConnectionTestResult:
    """Outcome of a manual connection test."""
    ok: bool
    message: str
