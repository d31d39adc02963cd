"""Pytest configuration and fixtures."""

import json
import logging
import os
import tempfile

# Keep settings, alert state and log files out of the working tree
os.environ["LOCALAPPDATA"] = tempfile.mkdtemp(prefix="credit-monitor-tests-")

import httpx
import pytest

from logger import LOGGER_NAME
from domains.openrouter.alert_ledger import AlertLedger
from domains.openrouter.activity_cache import ActivityCache
from domains.openrouter.anomaly import AnomalyDetector
from domains.openrouter.manager import CreditManager
from domains.openrouter.notifier import AlertSink
from domains.openrouter.services.client import OpenRouterClient
from domains.openrouter.settings import MonitorSettings

TEST_BASE_URL = "https://openrouter.test/api"
TEST_API_KEY = "sk-or-v1-0123456789abcdef0123456789abcdef"


CREDITS_PAYLOAD = {"data": {"total_credits": 100.0, "total_usage": 30.0}}

KEY_PAYLOAD = {
    "data": {
        "hash": "hash-single",
        "label": "sk-or-v1-abc...xyz",
        "limit": 50.0,
        "limit_remaining": 40.0,
        "usage": 10.0,
        "usage_daily": 1.5,
        "usage_weekly": 7.0,
        "usage_monthly": 10.0,
    }
}

KEYS_PAYLOAD = {
    "data": [
        {
            "hash": "hash-old",
            "name": "Old key",
            "usage_daily": 0.5,
            "usage_weekly": 7.0,
            "last_used_at": "2026-10-01T08:00:00Z",
        },
        {
            "hash": "hash-new",
            "name": "New key",
            "limit": 20.0,
            "limit_remaining": 5.0,
            "usage_daily": 2.0,
            "usage_weekly": 14.0,
            "last_used_at": "2026-10-17T21:30:00Z",
        },
        {
            "hash": "hash-disabled",
            "name": "Disabled key",
            "disabled": True,
            "last_used_at": "2026-10-18T09:00:00Z",
        },
    ]
}

ACTIVITY_PAYLOAD = {
    "data": [
        {
            "date": "2026-10-17",
            "model": "openai/gpt-4o",
            "usage": 1.25,
            "requests": 10,
            "prompt_tokens": 1000,
            "completion_tokens": 500,
            "reasoning_tokens": 0,
        },
        {
            "date": "2026-10-16",
            "model_permaslug": "anthropic/claude-3.5-sonnet",
            "usage": 0.75,
            "requests": 4,
            "prompt_tokens": 400,
            "completion_tokens": 200,
            "reasoning_tokens": 100,
        },
    ]
}


class FakeOpenRouter:
    """Canned OpenRouter responses behind an httpx.MockTransport.

    Routes are keyed by resource path ("/v1/credits"). Unrouted paths
    answer 404. Every request is recorded.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def respond(self, path, status=200, json_body=None, content=None):
        if content is None:
            content = json.dumps(json_body).encode() if json_body is not None else b""
        self.routes[path] = (status, content)

    def fail(self, path, error=httpx.ConnectError):
        self.routes[path] = error

    def calls(self, path):
        return sum(1 for r in self.requests if r.url.path.endswith(path))

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path[len("/api"):]
        route = self.routes.get(path)

        if route is None:
            return httpx.Response(404, json={"error": {"message": "Not Found"}})
        if isinstance(route, type) and issubclass(route, httpx.HTTPError):
            raise route("connection refused", request=request)

        status, content = route
        return httpx.Response(status, content=content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


class RecordingSink(AlertSink):
    """Alert sink that keeps what it was sent."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    async def send(self, alert):
        if self.fail:
            raise RuntimeError("webhook unavailable")
        self.sent.append(alert)


@pytest.fixture
def fake_api():
    """OpenRouter stub answering every resource successfully."""
    api = FakeOpenRouter()
    api.respond("/v1/credits", json_body=CREDITS_PAYLOAD)
    api.respond("/v1/key", json_body=KEY_PAYLOAD)
    api.respond("/v1/keys", json_body=KEYS_PAYLOAD)
    api.respond("/v1/activity", json_body=ACTIVITY_PAYLOAD)
    return api


@pytest.fixture
def client(fake_api):
    return OpenRouterClient(base_url=TEST_BASE_URL, transport=fake_api.transport)


@pytest.fixture
def settings():
    return MonitorSettings(api_key=TEST_API_KEY, enabled=True)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def ledger():
    """In-memory alert ledger."""
    return AlertLedger()


@pytest.fixture
def detector(ledger, sink, settings):
    return AnomalyDetector(ledger, sink, settings)


@pytest.fixture
def manager(client, detector, settings):
    return CreditManager(client, ActivityCache(client), detector, settings)


@pytest.fixture
def logged_events(caplog):
    """Names of the diagnostic events logged during the test, in order."""
    caplog.set_level(logging.INFO, logger=LOGGER_NAME)

    def _events():
        return [
            record.event_name
            for record in caplog.records
            if hasattr(record, "event_name")
        ]

    return _events
