"""
Alert dedup ledger - survives restarts.
Stores, per alert kind, the last day an alert fired for each entity:

    {"low_balance": {"account": "2026-10-18"},
     "key_spike": {"<key hash>": "2026-10-17"}}
"""

import json
import threading
from pathlib import Path
from typing import Optional

from logger import logger
from .types import AlertKind


def _default_state() -> dict[str, dict[str, str]]:
    return {kind.value: {} for kind in AlertKind}


class AlertLedger:
    """Once-per-day alert ledger with a serialized check-and-record."""

    def __init__(self, path: Optional[Path] = None):
        """Initialize the ledger.

        Args:
            path: JSON file to persist to; None keeps the ledger in memory
        """
        self._path = path
        self._lock = threading.Lock()
        self._state = self._load()

    def _load(self) -> dict[str, dict[str, str]]:
        """Load state from disk."""
        state = _default_state()
        if self._path is None or not self._path.exists():
            return state
        try:
            stored = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Alert ledger unreadable, starting empty: {e}")
            return state

        if isinstance(stored, dict):
            for kind, entries in stored.items():
                if kind in state and isinstance(entries, dict):
                    state[kind] = {str(k): str(v) for k, v in entries.items()}
        return state

    def _save(self) -> None:
        """Save state to disk (caller holds the lock)."""
        if self._path is None:
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(self._state, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to save alert ledger: {e}")

    def last_fired(self, kind: AlertKind, entity_key: str) -> Optional[str]:
        """Get the last day an alert fired for an entity."""
        with self._lock:
            return self._state[kind.value].get(entity_key)

    def claim(self, kind: AlertKind, entity_key: str, day: str) -> bool:
        """Record an alert for today unless one was already recorded.

        Returns:
            True if the caller should fire the alert
        """
        with self._lock:
            entries = self._state[kind.value]
            if entries.get(entity_key) == day:
                return False
            entries[entity_key] = day
            self._save()
            return True

    def reset(self) -> None:
        """Forget every recorded alert (for testing)."""
        with self._lock:
            self._state = _default_state()
            self._save()
