"""
Monitor settings - the configuration surface consumed by the monitor.

Preferences persist to SETTINGS_PATH as JSON. The API key comes from the
environment (OPENROUTER_API_KEY) and is never written to the settings file.
"""

import json
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any

import config
from logger import logger
from .config import DEFAULT_REFRESH_INTERVAL, DEFAULT_WARNING_THRESHOLD

# Fields written to the settings file
PERSISTED_FIELDS = (
    "enabled",
    "refresh_interval",
    "warning_threshold",
    "low_balance_alerts",
    "key_spike_alerts",
)


def normalize_interval(value: Any) -> float:
    """Polling interval in seconds; non-positive values fall back to the default."""
    try:
        interval = float(value)
    except (TypeError, ValueError):
        return float(DEFAULT_REFRESH_INTERVAL)
    return interval if interval > 0 else float(DEFAULT_REFRESH_INTERVAL)


def normalize_threshold(value: Any) -> float:
    """Warning threshold; non-positive values fall back to the default."""
    try:
        threshold = float(value)
    except (TypeError, ValueError):
        return DEFAULT_WARNING_THRESHOLD
    return threshold if threshold > 0 else DEFAULT_WARNING_THRESHOLD


@dataclass
class MonitorSettings:
    """Current monitor configuration."""
    api_key: str = ""
    enabled: bool = True
    refresh_interval: float = float(DEFAULT_REFRESH_INTERVAL)
    warning_threshold: float = DEFAULT_WARNING_THRESHOLD
    low_balance_alerts: bool = True
    key_spike_alerts: bool = True

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key)

    @property
    def should_poll(self) -> bool:
        return self.enabled and self.has_credential

    def to_dict(self) -> dict:
        """Persistable fields (never includes the API key)."""
        data = asdict(self)
        return {name: data[name] for name in PERSISTED_FIELDS}


class SettingsStore:
    """Loads and saves MonitorSettings."""

    def __init__(self, path: Path = config.SETTINGS_PATH):
        self.path = path

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Settings file unreadable, using defaults: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def load(self) -> MonitorSettings:
        """Environment defaults overlaid with saved preferences."""
        saved = self._read()

        def _flag(name: str, default: bool) -> bool:
            value = saved.get(name, default)
            return value if isinstance(value, bool) else default

        return MonitorSettings(
            api_key=(config.OPENROUTER_API_KEY or "").strip(),
            enabled=_flag("enabled", config.CREDIT_MONITOR_ENABLED),
            refresh_interval=normalize_interval(
                saved.get("refresh_interval", config.CREDIT_MONITOR_REFRESH_INTERVAL)
            ),
            warning_threshold=normalize_threshold(
                saved.get("warning_threshold", config.CREDIT_MONITOR_WARNING_THRESHOLD)
            ),
            low_balance_alerts=_flag("low_balance_alerts", True),
            key_spike_alerts=_flag("key_spike_alerts", True),
        )

    def save(self, settings: MonitorSettings) -> None:
        """Save preferences to disk."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(settings.to_dict(), indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to save settings: {e}")
