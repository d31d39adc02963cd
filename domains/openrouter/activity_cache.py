"""Single-slot cache in front of the activity resource.

The activity log is the heaviest resource and changes slowly, so a fetch
result is reused for ACTIVITY_CACHE_TTL_SECONDS. A failed fetch keeps the
previous entry: stale data is only ever replaced, never evicted.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from logger import log_event
from .config import ACTIVITY_CACHE_TTL_SECONDS
from .services.client import OpenRouterClient
from .types import ActivityRecord


@dataclass(frozen=True)
class ActivityCacheEntry:
    """Records from one activity fetch and when they were fetched."""
    records: tuple[ActivityRecord, ...]
    fetched_at: float


class ActivityCache:
    """Time-bounded activity cache (at most one entry)."""

    def __init__(
        self,
        client: OpenRouterClient,
        ttl_seconds: float = ACTIVITY_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.time
    ):
        self._client = client
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entry: Optional[ActivityCacheEntry] = None
        self._lock = threading.Lock()

    @property
    def entry(self) -> Optional[ActivityCacheEntry]:
        with self._lock:
            return self._entry

    def _fresh_entry(self, now: float) -> Optional[ActivityCacheEntry]:
        with self._lock:
            entry = self._entry
        if entry is None or not entry.records:
            return None
        if now - entry.fetched_at >= self.ttl_seconds:
            return None
        return entry

    async def get_activity(self, api_key: str, now: Optional[float] = None) -> list[ActivityRecord]:
        """Return cached records if fresh, otherwise fetch and replace.

        Args:
            api_key: Credential for a live fetch
            now: Current time in seconds (defaults to the cache clock)

        Raises:
            OpenRouterError: The live fetch failed (cache left untouched)
        """
        if now is None:
            now = self._clock()

        entry = self._fresh_entry(now)
        if entry is not None:
            log_event(
                "fetch_activity_cache_hit",
                age_seconds=int(now - entry.fetched_at),
                count=len(entry.records)
            )
            return list(entry.records)

        records = await self._client.fetch_activity(api_key)

        with self._lock:
            self._entry = ActivityCacheEntry(records=tuple(records), fetched_at=now)

        return list(records)
