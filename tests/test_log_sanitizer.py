"""Tests for log sanitization."""

from utils.log_sanitizer import sanitize_for_log, sanitize_log


def test_redacts_bearer_token():
    result = sanitize_log("Authorization: Bearer abc.def-123")

    assert "abc.def-123" not in result
    assert "Bearer [REDACTED]" in result


def test_redacts_openrouter_key():
    result = sanitize_log("invalid key sk-or-v1-0123456789abcdef")

    assert result == "invalid key [API_KEY]"


def test_redacts_key_value_secrets():
    result = sanitize_log('{"api_key": "supersecretvalue"}')

    assert "supersecretvalue" not in result


def test_redacts_known_secret_verbatim():
    result = sanitize_log("echo: my-custom-credential", secret="my-custom-credential")

    assert result == "echo: [REDACTED]"


def test_leaves_normal_text_alone():
    assert sanitize_log("Rate limit exceeded") == "Rate limit exceeded"
    assert sanitize_log("") == ""


def test_sample_is_truncated_and_flattened():
    sample = sanitize_for_log(b"line one\nline two\r\n" + b"x" * 500, max_length=40)

    assert len(sample) == 40
    assert "\n" not in sample
    assert "\r" not in sample


def test_secret_at_truncation_boundary_never_leaks():
    secret = "sk-or-v1-" + "a" * 40
    sample = sanitize_for_log(("x" * 280 + secret).encode(), max_length=300, secret=secret)

    assert "aaaaaaaa" not in sample


def test_none_sample():
    assert sanitize_for_log(None) == "<None>"
