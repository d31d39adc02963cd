"""Log sanitizer - keeps credentials out of diagnostic records.

API payload samples are written to the log when a call fails, so anything
that looks like a key or bearer token is redacted before it gets there.
"""

import re
from typing import Optional, Union

# Patterns to detect and redact sensitive data
SENSITIVE_PATTERNS = [
    # Bearer / Basic authorization values
    (r'(Bearer|Basic)\s+[A-Za-z0-9\-_\.=]+', r'\1 [REDACTED]'),

    # OpenRouter keys (sk-or-v1-...)
    (r'sk-or-[A-Za-z0-9\-_]{8,}', '[API_KEY]'),

    # API keys, tokens, secrets in key=value or "key": "value" format
    (r'(password|secret|token|api_key|apikey|authorization|credential)(["\']?\s*[:=]\s*["\']?)[^\s,}"\']{8,}',
     r'\1\2[REDACTED]'),

    # JWT tokens (three base64 segments separated by dots)
    (r'eyJ[A-Za-z0-9\-_]+\.eyJ[A-Za-z0-9\-_]+\.[A-Za-z0-9\-_]+', '[JWT_TOKEN]'),
]

# Compiled patterns for efficiency
_COMPILED_PATTERNS = [(re.compile(p, re.IGNORECASE), r) for p, r in SENSITIVE_PATTERNS]


def sanitize_log(text: str, secret: Optional[str] = None) -> str:
    """Remove sensitive data from text for safe logging.

    Args:
        text: The text to sanitize
        secret: A known secret (e.g. the configured API key) to strip verbatim

    Returns:
        Sanitized text with sensitive data replaced by placeholders
    """
    if not text:
        return text

    result = text
    if secret:
        result = result.replace(secret, "[REDACTED]")

    for pattern, replacement in _COMPILED_PATTERNS:
        result = pattern.sub(replacement, result)

    return result


def sanitize_for_log(
    value: Union[str, bytes, None],
    max_length: int = 300,
    secret: Optional[str] = None
) -> str:
    """Sanitize, flatten and truncate a payload sample for logging.

    Args:
        value: The value to sanitize (string or bytes)
        max_length: Maximum number of characters kept from the value
        secret: A known secret to strip verbatim

    Returns:
        Single-line sanitized sample safe for logging
    """
    if value is None:
        return "<None>"

    if isinstance(value, bytes):
        text = value.decode("utf-8", errors="replace")
    else:
        text = str(value)

    # Sanitize before truncating so a secret cut at the boundary can't leak
    sanitized = sanitize_log(text, secret=secret)
    return sanitized[:max_length].replace("\r", " ").replace("\n", " ")
