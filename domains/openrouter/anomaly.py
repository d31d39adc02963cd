"""Anomaly detection over fetched credit and key usage data.

Two independent rules, each with its own toggle:
- Low balance: remaining credit at or below the warning threshold
- Key spike: a key's daily usage at least SPIKE_MULTIPLIER times its
  weekly average, ignoring keys with no weekly history and negligible
  daily usage

Each rule fires at most once per local calendar day per entity. The rule
functions are pure; AnomalyDetector adds the ledger and delivery.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional

from logger import log_event
from .alert_ledger import AlertLedger
from .config import DAYS_PER_WEEK, MINIMUM_SPIKE_DAILY_USAGE, SPIKE_MULTIPLIER
from .notifier import AlertSink
from .settings import MonitorSettings
from .types import AlertEvent, AlertKind, KeyUsageRecord

# Ledger entity for the account-wide balance alert
LOW_BALANCE_ENTITY = "account"


def day_key(now: Optional[datetime] = None) -> str:
    """Local calendar date as YYYY-MM-DD."""
    if now is None:
        now = datetime.now()
    elif now.tzinfo is not None:
        now = now.astimezone()
    return now.strftime("%Y-%m-%d")


def spike_baseline(record: KeyUsageRecord) -> float:
    """Average daily usage over the last week."""
    return max(0.0, record.usage_weekly / DAYS_PER_WEEK)


def is_usage_spike(record: KeyUsageRecord) -> bool:
    baseline = spike_baseline(record)
    if baseline == 0:
        return False  # no history
    if record.usage_daily < MINIMUM_SPIKE_DAILY_USAGE:
        return False
    return record.usage_daily >= baseline * SPIKE_MULTIPLIER


def low_balance_alert(remaining: float, threshold: float, day: str) -> Optional[AlertEvent]:
    """Build the low-balance alert if remaining credit is at or below threshold."""
    if remaining > threshold:
        return None
    return AlertEvent(
        kind=AlertKind.LOW_BALANCE,
        title="Low credit balance",
        body=f"Remaining credit is ${remaining:.2f}, below threshold ${threshold:.2f}.",
        identifier=f"low-credit-{day}",
        day=day,
        entity_id=LOW_BALANCE_ENTITY,
    )


def key_spike_alert(record: KeyUsageRecord, day: str) -> Optional[AlertEvent]:
    """Build the spike alert for a key if its daily usage is a spike."""
    if not is_usage_spike(record):
        return None
    baseline = spike_baseline(record)
    return AlertEvent(
        kind=AlertKind.KEY_SPIKE,
        title="Key usage spike detected",
        body=(
            f"{record.display_name}: daily ${record.usage_daily:.2f} "
            f"vs baseline ${baseline:.2f}."
        ),
        identifier=f"key-usage-anomaly-{record.id}-{day}",
        day=day,
        entity_id=record.id,
    )


class AnomalyDetector:
    """Evaluates the alert rules and delivers deduplicated alerts."""

    def __init__(self, ledger: AlertLedger, sink: AlertSink, settings: MonitorSettings):
        self._ledger = ledger
        self._sink = sink
        self._settings = settings

    async def check_low_balance(
        self,
        remaining: float,
        now: Optional[datetime] = None
    ) -> Optional[AlertEvent]:
        """Fire the low-balance alert if due.

        Returns:
            The alert that fired, or None
        """
        if not self._settings.low_balance_alerts:
            return None

        day = day_key(now)
        threshold = self._settings.warning_threshold
        alert = low_balance_alert(remaining, threshold, day)
        if alert is None:
            return None

        if not self._ledger.claim(AlertKind.LOW_BALANCE, LOW_BALANCE_ENTITY, day):
            return None

        log_event("low_credit_detected", remaining=remaining, threshold=threshold)
        await self._deliver(alert, type="low_credit", remaining=remaining)
        return alert

    async def check_key_spikes(
        self,
        keys: Iterable[KeyUsageRecord],
        now: Optional[datetime] = None
    ) -> list[AlertEvent]:
        """Fire a spike alert for each key that spiked and wasn't alerted today."""
        if not self._settings.key_spike_alerts:
            return []

        day = day_key(now)
        fired = []

        for record in keys:
            alert = key_spike_alert(record, day)
            if alert is None:
                continue

            if not self._ledger.claim(AlertKind.KEY_SPIKE, record.id, day):
                continue

            await self._deliver(alert, type="key_usage_anomaly", key=record.display_name)
            log_event(
                "key_usage_anomaly_detected",
                key=record.display_name,
                daily=record.usage_daily,
                baseline=spike_baseline(record)
            )
            fired.append(alert)

        return fired

    async def _deliver(self, alert: AlertEvent, **details) -> None:
        """Send an alert; delivery failures are logged, never raised."""
        try:
            await self._sink.send(alert)
        except Exception as e:
            log_event(
                "notification_send_failed",
                level=logging.WARNING,
                identifier=alert.identifier,
                error=str(e) or type(e).__name__
            )
            return
        log_event("notification_sent", **details)
