"""OpenRouter credit monitor domain.

Polls OpenRouter's metering API for account balance, per-key usage and the
activity log, publishes snapshots, and raises low-balance and key-spike
alerts at most once per day.
"""

from .errors import OpenRouterError, TransportError, APIError, DecodeError
from .manager import CreditManager
from .monitor import CreditMonitor
from .scheduler import PollingScheduler, PollState
from .services import OpenRouterClient
from .settings import MonitorSettings, SettingsStore
from .types import (
    AccountBalance,
    ActivityRecord,
    AlertEvent,
    AlertKind,
    ConnectionTestResult,
    FetchSnapshot,
    KeyUsageRecord,
)

__all__ = [
    "OpenRouterError",
    "TransportError",
    "APIError",
    "DecodeError",
    "CreditManager",
    "CreditMonitor",
    "PollingScheduler",
    "PollState",
    "OpenRouterClient",
    "MonitorSettings",
    "SettingsStore",
    "AccountBalance",
    "ActivityRecord",
    "AlertEvent",
    "AlertKind",
    "ConnectionTestResult",
    "FetchSnapshot",
    "KeyUsageRecord",
]
