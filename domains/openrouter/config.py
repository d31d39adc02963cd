"""OpenRouter credit monitor domain configuration."""

from config import OPENROUTER_BASE_URL

# API resources (appended to OPENROUTER_BASE_URL)
BASE_URL = OPENROUTER_BASE_URL.rstrip("/")
CREDITS_PATH = "/v1/credits"
KEY_PATH = "/v1/key"
KEYS_PATH = "/v1/keys"
ACTIVITY_PATH = "/v1/activity"

# Activity responses are cached to bound the request rate
ACTIVITY_CACHE_TTL_SECONDS = 60

# Polling
DEFAULT_REFRESH_INTERVAL = 300  # 5 minutes
POLL_JOB_ID = "openrouter_credit_poll"
IMMEDIATE_JOB_ID = "openrouter_credit_poll_now"

# Alerts
DEFAULT_WARNING_THRESHOLD = 10.0
SPIKE_MULTIPLIER = 2.0  # daily usage must reach baseline x this
MINIMUM_SPIKE_DAILY_USAGE = 1.0  # ignore negligible daily usage
DAYS_PER_WEEK = 7

# Diagnostics
PAYLOAD_SAMPLE_LENGTH = 300

# Insights
HIGH_UTILIZATION_RATIO = 0.85
CONCENTRATION_TOP_N = 5
OTHERS_LABEL = "Others"
