"""Backend health monitoring and restart detection.

The backend keeps conversational and document state in memory, so a process
restart wipes it. The client cannot observe that directly; instead it infers
a restart from the persisted health status flipping ``offline`` -> ``online``.
This is a heuristic: a transient network blip looks exactly like a restart.

Polling uses APScheduler's ``AsyncIOScheduler`` with an interval job per
``PollingHandle``. The scheduler is created lazily on the running event loop
and torn down by ``HealthMonitor.close()``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Union
from uuid import uuid4

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from session_client.api.client import BackendClient
from session_client.config import Settings, get_settings
from session_client.exceptions import BackendError
from session_client.models.sessions import HealthCheckResult, ServerStatus
from session_client.storage.client_store import (
    LAST_SERVER_CHECK_KEY,
    SERVER_STATUS_KEY,
    ClientSessionStore,
)

logger = logging.getLogger(__name__)

ResultHandler = Callable[[HealthCheckResult], Union[Awaitable[Any], Any]]


class PollingHandle:
    """Cancellation handle for one periodic health-check job."""

    def __init__(self, monitor: "HealthMonitor", job_id: str, interval_seconds: float) -> None:
        self._monitor = monitor
        self.job_id = job_id
        self.interval_seconds = interval_seconds
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop scheduling further checks. A second call is a no-op."""
        if self._cancelled:
            logger.warning("Polling job %s already cancelled", self.job_id)
            return
        self._cancelled = True
        self._monitor._remove_job(self.job_id)
        logger.info("Stopped health polling (job_id: %s)", self.job_id)


class HealthMonitor:
    """Tracks the backend's online/offline status in the durable store.

    ``check()`` is the only writer of the status value.
    """

    def __init__(
        self,
        store: ClientSessionStore,
        backend: BackendClient,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._backend = backend
        self.settings = settings or get_settings()
        self._scheduler: Optional[AsyncIOScheduler] = None
        # Bumped by reset(); checks that straddle a reset are discarded.
        self._generation = 0

    # ------------------------------------------------------------------
    # Persisted state
    # ------------------------------------------------------------------

    def status(self) -> ServerStatus:
        raw = self._store.get(SERVER_STATUS_KEY)
        if raw is None:
            return ServerStatus.UNKNOWN
        try:
            return ServerStatus(raw)
        except ValueError:
            logger.warning("Ignoring unrecognised server status %r", raw)
            return ServerStatus.UNKNOWN

    def last_checked_at(self) -> Optional[datetime]:
        raw = self._store.get(LAST_SERVER_CHECK_KEY)
        if raw is None:
            return None
        try:
            return datetime.fromtimestamp(int(raw) / 1000, tz=timezone.utc)
        except (ValueError, OverflowError, OSError):
            return None

    def reset(self) -> None:
        """Forget the recorded status; in-flight checks become stale."""
        self._generation += 1
        self._store.remove(SERVER_STATUS_KEY)
        self._store.remove(LAST_SERVER_CHECK_KEY)

    # ------------------------------------------------------------------
    # Checking
    # ------------------------------------------------------------------

    async def check(self) -> HealthCheckResult:
        """Run one health request and record the outcome.

        The previous status is read after the request resolves, so a check
        that overlaps another one compares against whatever that one wrote.
        """
        generation = self._generation
        checked_at = datetime.now(timezone.utc)
        self._store.set(LAST_SERVER_CHECK_KEY, str(int(checked_at.timestamp() * 1000)))

        try:
            await self._backend.check_health()
        except BackendError as exc:
            logger.warning("Server health check failed: %s", exc)
            new_status = ServerStatus.OFFLINE
        except Exception as exc:
            logger.warning("Server health check error: %s", exc)
            new_status = ServerStatus.OFFLINE
        else:
            new_status = ServerStatus.ONLINE

        previous = self.status()
        if generation != self._generation:
            logger.info("Discarding health check that started before a status reset")
            return HealthCheckResult(
                status=new_status,
                previous_status=previous,
                checked_at=checked_at,
                stale=True,
            )

        self._store.set(SERVER_STATUS_KEY, new_status.value)
        restart_detected = (
            previous is ServerStatus.OFFLINE and new_status is ServerStatus.ONLINE
        )
        if restart_detected:
            logger.info("Server came back online - assuming it restarted")
        return HealthCheckResult(
            status=new_status,
            previous_status=previous,
            checked_at=checked_at,
            restart_detected=restart_detected,
        )

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def start_polling(
        self,
        interval_seconds: float | None = None,
        on_result: ResultHandler | None = None,
    ) -> PollingHandle:
        """Schedule ``check()`` every ``interval_seconds``.

        Must be called with a running event loop. The caller owns the
        returned handle and must cancel it when it is done.
        """
        interval = interval_seconds or self.settings.poll_interval_seconds
        scheduler = self._ensure_scheduler()
        handle = PollingHandle(self, job_id=f"health-poll-{uuid4().hex[:8]}", interval_seconds=interval)
        scheduler.add_job(
            func=self._poll_tick,
            trigger=IntervalTrigger(seconds=interval),
            args=[handle, on_result],
            id=handle.job_id,
            name="Backend health poll",
            max_instances=1,
            coalesce=True,
        )
        logger.info("Polling server health every %.1fs (job_id: %s)", interval, handle.job_id)
        return handle

    async def _poll_tick(self, handle: PollingHandle, on_result: ResultHandler | None) -> None:
        result = await self.check()
        if handle.cancelled:
            logger.debug("Polling job %s cancelled mid-check, ignoring result", handle.job_id)
            return
        if on_result is None:
            return
        try:
            outcome = on_result(result)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as exc:
            logger.warning("Periodic server check handler failed: %s", exc)

    def _ensure_scheduler(self) -> AsyncIOScheduler:
        if self._scheduler is None or not self._scheduler.running:
            self._scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())
            self._scheduler.start()
        return self._scheduler

    def _remove_job(self, job_id: str) -> None:
        if self._scheduler is None:
            return
        try:
            self._scheduler.remove_job(job_id)
        except JobLookupError:
            logger.debug("Polling job %s already gone", job_id)

    def close(self) -> None:
        """Shut down the scheduler; any check still running is cancelled."""
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Health scheduler shut down")
        self._scheduler = None
