"""Alert sinks - where detected anomalies are delivered.

The monitor only decides whether and what to alert. Delivery is one of:
- LogAlertSink: writes the alert to the log (default)
- WebhookAlertSink: posts to a chat webhook (ALERTS_WEBHOOK_URL)
"""

from abc import ABC, abstractmethod
from typing import Optional

import httpx

from config import ALERTS_WEBHOOK_URL, HTTP_TIMEOUT
from logger import logger
from .types import AlertEvent, AlertKind


class AlertSink(ABC):
    """Base class for alert delivery."""

    @abstractmethod
    async def send(self, alert: AlertEvent) -> None:
        """Deliver one alert. Raise on failure."""
        pass


class LogAlertSink(AlertSink):
    """Writes alerts to the monitor log."""

    async def send(self, alert: AlertEvent) -> None:
        logger.warning(f"ALERT [{alert.identifier}] {alert.title}: {alert.body}")


class WebhookAlertSink(AlertSink):
    """Posts alerts to a chat webhook."""

    def __init__(
        self,
        url: str,
        username: str = "OpenRouter Credit Monitor",
        timeout: float = HTTP_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.url = url
        self.username = username
        self.timeout = timeout
        self._transport = transport

    def build_payload(self, alert: AlertEvent) -> dict:
        """Format an alert as a webhook message."""
        emoji = "⚠️" if alert.kind == AlertKind.LOW_BALANCE else "📈"
        return {
            "content": f"{emoji} **{alert.title}**\n{alert.body}",
            "username": self.username,
        }

    async def send(self, alert: AlertEvent) -> None:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.url, json=self.build_payload(alert))
            response.raise_for_status()


def default_alert_sink() -> AlertSink:
    """Webhook sink when a webhook is configured, otherwise log-only."""
    if ALERTS_WEBHOOK_URL:
        return WebhookAlertSink(ALERTS_WEBHOOK_URL)
    logger.info("No alerts webhook configured, alerts will be logged only")
    return LogAlertSink()
