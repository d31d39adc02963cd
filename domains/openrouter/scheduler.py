"""Polling scheduler for the credit monitor.

States:
- IDLE: no poll job registered
- ACTIVE: exactly one APScheduler interval job (POLL_JOB_ID)

The scheduler is ACTIVE if and only if monitoring is enabled and a
credential is present.

Transitions:
- enable() with credential: IDLE → ACTIVE, plus one immediate fetch
- disable(): ACTIVE → IDLE (cycles already running still finish)
- set_interval(x) while ACTIVE: replace the job, no immediate fetch
- set_credential(k): re-derive the state; replace the job if still ACTIVE

Each tick spawns the fetch cycle as its own task so a slow cycle never
delays the next tick.
"""

import asyncio
import threading
from enum import Enum
from typing import Awaitable, Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from logger import log_event, logger
from .config import POLL_JOB_ID, IMMEDIATE_JOB_ID
from .settings import normalize_interval


class PollState(Enum):
    """Polling scheduler states."""
    IDLE = "idle"
    ACTIVE = "active"


class PollingScheduler:
    """Owns the single repeating poll job.

    Usage:
        poller = PollingScheduler(scheduler, manager.fetch_cycle, interval_seconds=300)
        poller.set_credential(True)
        poller.enable()
    """

    def __init__(
        self,
        scheduler: AsyncIOScheduler,
        on_tick: Callable[[], Awaitable],
        interval_seconds: float = 300,
        enabled: bool = False,
        has_credential: bool = False
    ):
        """Initialize the poller in IDLE.

        Args:
            scheduler: APScheduler instance (started by the caller)
            on_tick: Coroutine function running one silent fetch cycle
            interval_seconds: Poll interval
            enabled: Initial enabled flag
            has_credential: Whether a credential is configured
        """
        self._scheduler = scheduler
        self._on_tick = on_tick
        self.interval_seconds = normalize_interval(interval_seconds)
        self.enabled = enabled
        self.has_credential = has_credential

        self._state = PollState.IDLE
        self._job_id: Optional[str] = None  # cancel token for the active job
        self._tasks: set[asyncio.Task] = set()
        self._lock = threading.RLock()

        # Stats for monitoring
        self._timers_created = 0
        self._timers_cancelled = 0

    @property
    def state(self) -> PollState:
        with self._lock:
            return self._state

    @property
    def is_active(self) -> bool:
        return self.state == PollState.ACTIVE

    def _should_be_active(self) -> bool:
        return self.enabled and self.has_credential

    # --- Timer management (caller holds the lock) ---

    def _create_timer(self) -> None:
        job = self._scheduler.add_job(
            self._tick,
            'interval',
            seconds=self.interval_seconds,
            id=POLL_JOB_ID,
            replace_existing=True
        )
        self._job_id = job.id
        self._timers_created += 1
        self._state = PollState.ACTIVE

    def _cancel_timer(self) -> None:
        if self._job_id is not None:
            try:
                self._scheduler.remove_job(self._job_id)
            except JobLookupError:
                logger.debug(f"Poll job {self._job_id} already gone")
            self._timers_cancelled += 1
            self._job_id = None
        self._state = PollState.IDLE

    def _cancel_immediate(self) -> None:
        try:
            self._scheduler.remove_job(IMMEDIATE_JOB_ID)
        except JobLookupError:
            pass

    def _schedule_immediate(self) -> None:
        # No trigger: APScheduler runs the job once, as soon as possible
        self._scheduler.add_job(
            self._tick,
            id=IMMEDIATE_JOB_ID,
            replace_existing=True
        )

    def _sync(self, reschedule: bool = False) -> bool:
        """Bring the timer in line with enabled/credential.

        Returns:
            True if the poller moved from IDLE to ACTIVE
        """
        should_run = self._should_be_active()

        if not should_run:
            if self._state == PollState.ACTIVE:
                self._cancel_timer()
                self._cancel_immediate()
            return False

        if self._state == PollState.IDLE:
            self._create_timer()
            return True

        if reschedule:
            self._cancel_timer()
            self._create_timer()
        return False

    # --- Public transitions ---

    def enable(self) -> None:
        """Start polling (no-op if already enabled and active)."""
        with self._lock:
            if self.enabled and self._state == PollState.ACTIVE:
                return
            self.enabled = True
            started = self._sync()
            if started:
                log_event("monitoring_start", interval=self.interval_seconds)
                self._schedule_immediate()

    def disable(self) -> None:
        """Stop polling (no-op if already disabled)."""
        with self._lock:
            if not self.enabled and self._state == PollState.IDLE:
                return
            self.enabled = False
            self._sync()
            log_event("monitoring_stop")

    def set_interval(self, interval_seconds: float) -> None:
        """Change the poll interval, replacing the job if active."""
        with self._lock:
            self.interval_seconds = normalize_interval(interval_seconds)
            self._sync(reschedule=True)

    def set_credential(self, has_credential: bool) -> None:
        """Record a credential change, replacing the job if still active."""
        with self._lock:
            self.has_credential = has_credential
            self._sync(reschedule=True)

    def shutdown(self) -> None:
        """Cancel the timer without changing the enabled flag."""
        with self._lock:
            if self._state == PollState.ACTIVE:
                self._cancel_timer()
                self._cancel_immediate()

    def get_stats(self) -> dict:
        """Get scheduler statistics."""
        with self._lock:
            return {
                "state": self._state.value,
                "enabled": self.enabled,
                "has_credential": self.has_credential,
                "interval_seconds": self.interval_seconds,
                "timers_created": self._timers_created,
                "timers_cancelled": self._timers_cancelled,
                "cycles_in_flight": len(self._tasks),
            }

    # --- Tick ---

    async def _tick(self) -> None:
        """Spawn one fetch cycle without waiting for it."""
        task = asyncio.create_task(self._run_cycle())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_cycle(self) -> None:
        try:
            await self._on_tick()
        except Exception as e:
            logger.exception(f"Scheduled fetch cycle failed: {e}")
