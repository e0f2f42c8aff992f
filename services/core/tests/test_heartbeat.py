"""
Tests for HeartbeatScheduler.

Covers the fetch-store-publish cycle, failure handling, and shutdown at
every suspension point.
"""

import asyncio
from unittest.mock import MagicMock

import pytest

from datafeed.engine.events import SNAPSHOT_TOPIC, EventBus
from datafeed.engine.heartbeat import HeartbeatScheduler, SchedulerState
from datafeed.engine.retry import RetryExecutor, RetryPolicy
from datafeed.engine.store import SnapshotStore
from datafeed.providers.base import NetworkError, RateLimitedError, Snapshot
from datafeed.providers.mock import MockProvider


def make_snapshot(price=100.0, ts=1_700_000_000):
    return Snapshot(symbol="AAPL", price=price, macd=0.5, signal=0.4, hist=0.1, ts=ts)


class ScriptedProvider:
    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def fetch(self, symbol):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class RateLimitedForever:
    def __init__(self):
        self.calls = 0

    async def fetch(self, symbol):
        self.calls += 1
        raise RateLimitedError()


async def instant_sleep(delay):
    await asyncio.sleep(0)


def make_scheduler(provider, publisher=None, interval=10.0, policy=None):
    store = SnapshotStore()
    executor = RetryExecutor(provider, policy or RetryPolicy(), sleep=instant_sleep, jitter=lambda upper: 0.0)
    scheduler = HeartbeatScheduler(
        symbol="AAPL",
        executor=executor,
        store=store,
        publisher=publisher if publisher is not None else EventBus(),
        interval_seconds=interval,
    )
    return scheduler, store


@pytest.mark.asyncio
async def test_tick_success_stores_and_publishes():
    snapshot = make_snapshot()
    bus = EventBus()
    queue = bus.subscribe(SNAPSHOT_TOPIC)
    scheduler, store = make_scheduler(ScriptedProvider([snapshot]), publisher=bus)

    result = await scheduler.tick()

    assert result == snapshot
    assert store.read() == snapshot
    assert queue.get_nowait() == snapshot
    assert scheduler.state == SchedulerState.IDLE
    assert scheduler.ticks == 1


@pytest.mark.asyncio
async def test_tick_publishes_after_store_write():
    snapshot = make_snapshot()
    store_seen = []
    publisher = MagicMock()

    scheduler, store = make_scheduler(ScriptedProvider([snapshot]), publisher=publisher)
    publisher.publish.side_effect = lambda topic, payload: store_seen.append(store.read())

    await scheduler.tick()

    publisher.publish.assert_called_once_with(SNAPSHOT_TOPIC, snapshot)
    assert store_seen == [snapshot]


@pytest.mark.asyncio
async def test_publish_failure_does_not_roll_back():
    snapshot = make_snapshot()
    publisher = MagicMock()
    publisher.publish.side_effect = RuntimeError("bus closed")
    scheduler, store = make_scheduler(ScriptedProvider([snapshot]), publisher=publisher)

    result = await scheduler.tick()

    assert result == snapshot
    assert store.read() == snapshot
    assert scheduler.state == SchedulerState.IDLE


@pytest.mark.asyncio
async def test_terminal_failure_leaves_store_untouched():
    first = make_snapshot(price=100.0)
    provider = ScriptedProvider([first, NetworkError("a"), NetworkError("b"), NetworkError("c")])
    publisher = MagicMock()
    scheduler, store = make_scheduler(provider, publisher=publisher)

    await scheduler.tick()
    result = await scheduler.tick()

    assert result is None
    assert store.read() == first  # stale value persists
    assert store.state().consecutive_failures == 1
    assert "c" in store.state().last_error
    assert publisher.publish.call_count == 1


@pytest.mark.asyncio
async def test_terminal_failure_with_no_prior_success_stays_absent():
    provider = ScriptedProvider([NetworkError("x")] * 3)
    scheduler, store = make_scheduler(provider)

    assert await scheduler.tick() is None
    assert store.read() is None


@pytest.mark.asyncio
async def test_state_is_fetching_during_execute():
    observed = []

    class ObservingProvider:
        async def fetch(self, symbol):
            observed.append(scheduler.state)
            return make_snapshot()

    scheduler, _ = make_scheduler(ObservingProvider())
    await scheduler.tick()

    assert observed == [SchedulerState.FETCHING]
    assert scheduler.state == SchedulerState.IDLE


@pytest.mark.asyncio
async def test_run_ticks_on_interval_until_shutdown():
    provider = MockProvider()
    scheduler, store = make_scheduler(provider, interval=0.01)
    shutdown = asyncio.Event()

    task = asyncio.create_task(scheduler.run(shutdown))
    await asyncio.sleep(0.1)
    shutdown.set()
    await asyncio.wait_for(task, timeout=1.0)

    assert scheduler.ticks >= 2
    assert store.read() is not None
    assert store.read().symbol == "AAPL"


@pytest.mark.asyncio
async def test_shutdown_interrupts_tick_wait():
    scheduler, _ = make_scheduler(MockProvider(), interval=3600.0)
    shutdown = asyncio.Event()

    task = asyncio.create_task(scheduler.run(shutdown))
    await asyncio.sleep(0.05)
    shutdown.set()
    await asyncio.wait_for(task, timeout=1.0)

    assert scheduler.ticks == 1


@pytest.mark.asyncio
async def test_shutdown_interrupts_rate_limit_loop():
    """An upstream that rate-limits forever can't block shutdown."""
    provider = RateLimitedForever()
    store = SnapshotStore()
    executor = RetryExecutor(provider, RetryPolicy(rate_limit_cooldown=3600.0))
    scheduler = HeartbeatScheduler("AAPL", executor, store, EventBus(), interval_seconds=10.0)

    scheduler.start()
    await asyncio.sleep(0.05)
    assert scheduler.running
    assert scheduler.state == SchedulerState.FETCHING

    await scheduler.stop(grace_seconds=1.0)

    assert not scheduler.running
    assert provider.calls == 1
    assert store.read() is None


@pytest.mark.asyncio
async def test_stop_cancels_hung_provider_after_grace():
    class HangingProvider:
        async def fetch(self, symbol):
            await asyncio.sleep(3600)

    scheduler, _ = make_scheduler(HangingProvider())
    scheduler.start()
    await asyncio.sleep(0.01)

    await asyncio.wait_for(scheduler.stop(grace_seconds=0.05), timeout=1.0)

    assert not scheduler.running


@pytest.mark.asyncio
async def test_start_twice_keeps_single_task():
    scheduler, _ = make_scheduler(MockProvider(), interval=3600.0)
    scheduler.start()
    first_task = scheduler._task
    scheduler.start()

    assert scheduler._task is first_task
    await scheduler.stop()


@pytest.mark.asyncio
async def test_independent_schedulers_do_not_share_state():
    a, store_a = make_scheduler(ScriptedProvider([make_snapshot(price=1.0)]))
    b, store_b = make_scheduler(ScriptedProvider([make_snapshot(price=2.0)]))

    await a.tick()
    await b.tick()

    assert store_a.read().price == 1.0
    assert store_b.read().price == 2.0
