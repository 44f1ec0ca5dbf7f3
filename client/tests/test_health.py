"""Tests for backend health monitoring and restart detection."""

import asyncio

import pytest

from session_client.api.client import BackendClient
from session_client.config import Settings
from session_client.exceptions import BackendError
from session_client.models.sessions import HealthCheckResult, ServerStatus
from session_client.session.health import HealthMonitor
from session_client.storage.client_store import (
    LAST_SERVER_CHECK_KEY,
    SERVER_STATUS_KEY,
    ClientSessionStore,
)


class GatedBackend:
    """Health probe that blocks until the test opens the gate."""

    def __init__(self, fail: bool = False) -> None:
        self.gate = asyncio.Event()
        self.fail = fail

    async def check_health(self) -> dict:
        await self.gate.wait()
        if self.fail:
            raise BackendError("Connection refused")
        return {"status": "healthy"}


@pytest.fixture
def monitor(store: ClientSessionStore, backend_client: BackendClient, settings: Settings):
    health = HealthMonitor(store, backend_client, settings)
    yield health
    health.close()


@pytest.mark.asyncio
async def test_status_starts_unknown(monitor: HealthMonitor) -> None:
    assert monitor.status() is ServerStatus.UNKNOWN
    assert monitor.last_checked_at() is None


@pytest.mark.asyncio
async def test_successful_check_records_online(monitor: HealthMonitor, store) -> None:
    result = await monitor.check()

    assert result.status is ServerStatus.ONLINE
    assert result.previous_status is ServerStatus.UNKNOWN
    assert result.restart_detected is False
    assert store.get(SERVER_STATUS_KEY) == "online"
    assert monitor.last_checked_at() is not None


@pytest.mark.asyncio
@pytest.mark.parametrize("mode", ["offline", "down"])
async def test_failed_check_records_offline(monitor: HealthMonitor, fake_backend, mode) -> None:
    fake_backend.health = mode

    result = await monitor.check()

    assert result.status is ServerStatus.OFFLINE
    assert monitor.status() is ServerStatus.OFFLINE
    assert monitor.last_checked_at() is not None


@pytest.mark.asyncio
async def test_restart_signalled_once_on_offline_to_online(
    monitor: HealthMonitor, fake_backend
) -> None:
    signals = []
    for mode in ["online", "online", "offline", "online", "online"]:
        fake_backend.health = mode
        signals.append((await monitor.check()).restart_detected)

    assert signals == [False, False, False, True, False]


@pytest.mark.asyncio
async def test_unknown_to_online_is_not_a_restart(monitor: HealthMonitor, store) -> None:
    store.set(SERVER_STATUS_KEY, "garbage")

    result = await monitor.check()

    assert result.previous_status is ServerStatus.UNKNOWN
    assert result.restart_detected is False


@pytest.mark.asyncio
async def test_reset_during_check_makes_result_stale(store, settings) -> None:
    backend = GatedBackend(fail=True)
    monitor = HealthMonitor(store, backend, settings)
    store.set(SERVER_STATUS_KEY, "online")

    task = asyncio.create_task(monitor.check())
    await asyncio.sleep(0)
    monitor.reset()
    backend.gate.set()
    result = await task

    assert result.stale is True
    assert result.restart_detected is False
    assert store.get(SERVER_STATUS_KEY) is None
    assert store.get(LAST_SERVER_CHECK_KEY) is None


@pytest.mark.asyncio
async def test_overlapping_checks_signal_restart_once(store, settings) -> None:
    backend = GatedBackend()
    monitor = HealthMonitor(store, backend, settings)
    store.set(SERVER_STATUS_KEY, "offline")

    first = asyncio.create_task(monitor.check())
    second = asyncio.create_task(monitor.check())
    await asyncio.sleep(0)
    backend.gate.set()
    results = await asyncio.gather(first, second)

    assert [r.restart_detected for r in results].count(True) == 1
    assert monitor.status() is ServerStatus.ONLINE


@pytest.mark.asyncio
async def test_polling_runs_until_cancelled(monitor: HealthMonitor, fake_backend) -> None:
    results: list[HealthCheckResult] = []

    handle = monitor.start_polling(0.05, on_result=results.append)
    await asyncio.sleep(0.4)
    handle.cancel()
    seen = len(results)
    await asyncio.sleep(0.2)

    assert seen >= 2
    assert len(results) == seen
    assert handle.cancelled is True
    assert all(r.status is ServerStatus.ONLINE for r in results)


@pytest.mark.asyncio
async def test_cancel_twice_is_harmless(monitor: HealthMonitor) -> None:
    handle = monitor.start_polling(30.0)

    handle.cancel()
    handle.cancel()

    assert handle.cancelled is True


@pytest.mark.asyncio
async def test_check_after_cancel_writes_status_but_is_not_acted_on(
    monitor: HealthMonitor, fake_backend
) -> None:
    calls = []
    handle = monitor.start_polling(30.0, on_result=calls.append)
    handle.cancel()
    fake_backend.health = "offline"

    await monitor._poll_tick(handle, calls.append)

    assert calls == []
    assert monitor.status() is ServerStatus.OFFLINE
