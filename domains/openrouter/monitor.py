"""Credit monitor - wires settings, scheduler and fetch orchestration.

Setting changes go through CreditMonitor so the poller, the fetch cycle and
the alert rules all see the same MonitorSettings object, and every change
is persisted.
"""

from pathlib import Path
from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

import config
from logger import logger
from .activity_cache import ActivityCache
from .alert_ledger import AlertLedger
from .anomaly import AnomalyDetector
from .manager import CreditManager, Subscriber
from .notifier import AlertSink, default_alert_sink
from .scheduler import PollingScheduler
from .services.client import OpenRouterClient
from .settings import MonitorSettings, SettingsStore, normalize_interval, normalize_threshold
from .types import ConnectionTestResult, FetchSnapshot


class CreditMonitor:
    """Top-level monitor object.

    Usage:
        scheduler = AsyncIOScheduler()
        monitor = CreditMonitor(scheduler)
        scheduler.start()
        monitor.start()
    """

    def __init__(
        self,
        scheduler: AsyncIOScheduler,
        store: Optional[SettingsStore] = None,
        client: Optional[OpenRouterClient] = None,
        sink: Optional[AlertSink] = None,
        ledger_path: Optional[Path] = config.ALERT_STATE_PATH
    ):
        self.store = store or SettingsStore()
        self.settings: MonitorSettings = self.store.load()

        self.client = client or OpenRouterClient()
        self.activity_cache = ActivityCache(self.client)
        self.ledger = AlertLedger(ledger_path)
        self.detector = AnomalyDetector(self.ledger, sink or default_alert_sink(), self.settings)
        self.manager = CreditManager(self.client, self.activity_cache, self.detector, self.settings)

        self.poller = PollingScheduler(
            scheduler,
            self.manager.fetch_cycle,
            interval_seconds=self.settings.refresh_interval,
            has_credential=self.settings.has_credential
        )

    # --- Lifecycle ---

    def start(self) -> None:
        """Begin polling if monitoring is enabled."""
        if self.settings.enabled:
            self.poller.enable()
        else:
            logger.info("Credit monitoring is disabled")

    def stop(self) -> None:
        self.poller.shutdown()

    # --- State ---

    @property
    def snapshot(self) -> FetchSnapshot:
        return self.manager.snapshot

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        return self.manager.subscribe(callback)

    async def refresh(self) -> FetchSnapshot:
        return await self.manager.refresh()

    async def test_connection(self) -> ConnectionTestResult:
        return await self.manager.test_connection()

    # --- Setting changes ---

    def set_api_key(self, api_key: Optional[str]) -> None:
        """Replace the credential (in memory only)."""
        self.settings.api_key = (api_key or "").strip()
        self.poller.set_credential(self.settings.has_credential)

    def set_enabled(self, enabled: bool) -> None:
        self.settings.enabled = enabled
        self._save()
        if enabled:
            self.poller.enable()
        else:
            self.poller.disable()

    def set_refresh_interval(self, interval_seconds: float) -> None:
        self.settings.refresh_interval = normalize_interval(interval_seconds)
        self._save()
        self.poller.set_interval(self.settings.refresh_interval)

    def set_warning_threshold(self, threshold: float) -> None:
        self.settings.warning_threshold = normalize_threshold(threshold)
        self._save()

    def set_low_balance_alerts(self, enabled: bool) -> None:
        self.settings.low_balance_alerts = enabled
        self._save()

    def set_key_spike_alerts(self, enabled: bool) -> None:
        self.settings.key_spike_alerts = enabled
        self._save()

    def _save(self) -> None:
        self.store.save(self.settings)
