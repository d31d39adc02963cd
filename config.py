"""Global configuration for the OpenRouter credit monitor."""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() not in ("0", "false", "no", "off")


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


# OpenRouter
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY", "")
OPENROUTER_BASE_URL = os.getenv("OPENROUTER_BASE_URL", "https://openrouter.ai/api")

# Monitoring defaults (overridden by saved preferences)
CREDIT_MONITOR_ENABLED = _env_bool("CREDIT_MONITOR_ENABLED", True)
CREDIT_MONITOR_REFRESH_INTERVAL = _env_float("CREDIT_MONITOR_REFRESH_INTERVAL", 300)
CREDIT_MONITOR_WARNING_THRESHOLD = _env_float("CREDIT_MONITOR_WARNING_THRESHOLD", 10)

# HTTP
HTTP_TIMEOUT = _env_float("CREDIT_MONITOR_HTTP_TIMEOUT", 30)

# Alerts - chat webhook, falls back to log-only alerts when unset
ALERTS_WEBHOOK_URL = os.getenv("ALERTS_WEBHOOK_URL")

# Storage
DATA_DIR = Path(os.getenv("LOCALAPPDATA", ".")) / "openrouter-credit-monitor"
SETTINGS_PATH = DATA_DIR / "settings.json"
ALERT_STATE_PATH = DATA_DIR / "alert-state.json"

# Logging
LOG_DIR = DATA_DIR / "logs"
LOG_DIR.mkdir(parents=True, exist_ok=True)
