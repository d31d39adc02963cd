"""Fetch orchestration for the credit monitor.

One fetch cycle runs three independent steps:
1. Balance (/v1/credits), then the low-balance rule
2. Key usage (/v1/keys, falling back to /v1/key), then the spike rule
3. Activity (/v1/activity through the activity cache)

A failure in one step never stops the next one. Only the balance error is
surfaced as error_message; key usage and activity degrade to empty.

CreditManager is the only writer of the FetchSnapshot. Every write replaces
the snapshot under a lock and notifies subscribers in publication order.
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable

from logger import log_event, logger
from .activity_cache import ActivityCache
from .anomaly import AnomalyDetector
from .errors import OpenRouterError
from .services.client import OpenRouterClient
from .settings import MonitorSettings
from .types import ConnectionTestResult, FetchSnapshot, KeyUsageRecord

Subscriber = Callable[[FetchSnapshot], None]


class CreditManager:
    """Runs fetch cycles and publishes snapshots."""

    def __init__(
        self,
        client: OpenRouterClient,
        activity_cache: ActivityCache,
        detector: AnomalyDetector,
        settings: MonitorSettings
    ):
        self._client = client
        self._activity_cache = activity_cache
        self._detector = detector
        self._settings = settings

        self._snapshot = FetchSnapshot()
        self._subscribers: list[Subscriber] = []
        self._lock = threading.RLock()

        log_event(
            "manager_initialized",
            enabled=settings.enabled,
            has_api_key=settings.has_credential
        )

    # --- Published state ---

    @property
    def snapshot(self) -> FetchSnapshot:
        with self._lock:
            return self._snapshot

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register for snapshot updates.

        Returns:
            A function that removes the subscription
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, **changes) -> FetchSnapshot:
        with self._lock:
            snapshot = replace(self._snapshot, updated_at=datetime.now(timezone.utc), **changes)
            self._snapshot = snapshot
            for callback in list(self._subscribers):
                try:
                    callback(snapshot)
                except Exception as e:
                    logger.exception(f"Snapshot subscriber failed: {e}")
        return snapshot

    # --- Derived values ---

    @property
    def enabled_key_count(self) -> int:
        return len(self.snapshot.keys)

    @property
    def last_used_key_name(self) -> str:
        keys = self.snapshot.keys
        return keys[0].display_name if keys else "-"

    @property
    def is_near_warning_point(self) -> bool:
        """Most recent key's remaining limit, else account credit, at or below threshold."""
        snapshot = self.snapshot
        threshold = self._settings.warning_threshold

        if snapshot.keys and snapshot.keys[0].limit_remaining is not None:
            return snapshot.keys[0].limit_remaining <= threshold

        if snapshot.remaining is not None:
            return snapshot.remaining <= threshold

        return False

    # --- Fetch cycle ---

    async def refresh(self) -> FetchSnapshot:
        """Manual refresh (shows the loading indicator)."""
        return await self.fetch_cycle(show_loading=True)

    async def fetch_cycle(self, show_loading: bool = False) -> FetchSnapshot:
        """Run one fetch cycle and return the resulting snapshot.

        Args:
            show_loading: True for manual refreshes, False for timer ticks
        """
        settings = self._settings
        if not settings.should_poll:
            self._publish(
                is_loading=False,
                is_refreshing=False,
                error_message=None,
                balance=None,
                keys=(),
                activity=()
            )
            log_event(
                "fetch_skipped",
                enabled=settings.enabled,
                has_api_key=settings.has_credential
            )
            return self.snapshot

        api_key = settings.api_key
        log_event("fetch_started", manual=show_loading)
        self._publish(is_loading=show_loading, is_refreshing=True, error_message=None)

        try:
            await self._refresh_balance(api_key)
            await self._refresh_keys(api_key)
            await self._refresh_activity(api_key)
        finally:
            self._publish(is_loading=False, is_refreshing=False)
            log_event("fetch_finished")

        return self.snapshot

    async def _refresh_balance(self, api_key: str) -> None:
        try:
            balance = await self._client.fetch_credits(api_key)
        except OpenRouterError as e:
            self._publish(error_message=e.message)
            log_event("fetch_credits_failed", level=logging.WARNING, error=e.message)
            return

        self._publish(balance=balance)
        await self._detector.check_low_balance(balance.remaining)
        log_event("fetch_credits_success", remaining=balance.remaining)

    async def _refresh_keys(self, api_key: str) -> None:
        try:
            keys = await self._client.fetch_keys(api_key)
        except OpenRouterError as e:
            logger.info(f"All-keys fetch failed, falling back to single key: {e.message}")
            await self._refresh_single_key(api_key)
            return

        self._publish(keys=tuple(keys))
        await self._detector.check_key_spikes(keys)
        log_event("fetch_keys_success", count=len(keys))

    async def _refresh_single_key(self, api_key: str) -> None:
        try:
            key = await self._client.fetch_key(api_key)
        except OpenRouterError as e:
            self._publish(keys=())
            log_event("fetch_keys_failed", level=logging.WARNING, error=e.message)
            return

        keys: list[KeyUsageRecord] = [key]
        self._publish(keys=tuple(keys))
        await self._detector.check_key_spikes(keys)
        log_event("fetch_keys_fallback_success")

    async def _refresh_activity(self, api_key: str) -> None:
        try:
            records = await self._activity_cache.get_activity(api_key)
        except OpenRouterError as e:
            self._publish(activity=())
            log_event("fetch_activity_failed", level=logging.WARNING, error=e.message)
            return

        self._publish(activity=tuple(records))
        models = sorted({r.model for r in records})
        log_event(
            "fetch_activity_success",
            count=len(records),
            parseable_dates=sum(1 for r in records if r.timestamp is not None),
            models=",".join(models[:6])
        )

    # --- Connection test ---

    async def test_connection(self) -> ConnectionTestResult:
        """Check the credential against the balance resource.

        Doesn't touch the activity cache, the alert ledger or key usage.
        """
        api_key = self._settings.api_key
        if not api_key:
            result = ConnectionTestResult(ok=False, message="API key is empty")
            self._publish(connection_test_ok=False, connection_test_message=result.message)
            return result

        self._publish(
            is_testing_connection=True,
            connection_test_ok=None,
            connection_test_message=None
        )

        try:
            await self._client.fetch_credits(api_key)
        except OpenRouterError as e:
            result = ConnectionTestResult(ok=False, message=e.message)
            self._publish(
                is_testing_connection=False,
                connection_test_ok=False,
                connection_test_message=e.message,
                error_message=e.message
            )
            log_event("test_connection_failed", level=logging.WARNING, error=e.message)
            return result

        result = ConnectionTestResult(ok=True, message="Connection successful")
        self._publish(
            is_testing_connection=False,
            connection_test_ok=True,
            connection_test_message=result.message
        )
        log_event("test_connection_success")
        return result
