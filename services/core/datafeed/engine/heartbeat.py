"""Heartbeat scheduler: periodic fetch, store and publish."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from ..providers.base import DataError, Snapshot
from .events import SNAPSHOT_TOPIC, EventPublisher
from .retry import RetryExecutor
from .store import SnapshotStore
from .timing import ShutdownRequested, SleepFunc, wait_or_shutdown


logger = logging.getLogger(__name__)


class SchedulerState(Enum):
    IDLE = "idle"
    FETCHING = "fetching"


class HeartbeatScheduler:
    """
    Drives one RetryExecutor for one symbol on a fixed interval.

    The interval is waited after each tick's work finishes, so a slow or
    rate-limited fetch pushes later ticks back instead of overlapping them.
    """

    def __init__(
        self,
        symbol: str,
        executor: RetryExecutor,
        store: SnapshotStore,
        publisher: EventPublisher,
        interval_seconds: float = 10.0,
        sleep: SleepFunc = asyncio.sleep,
    ):
        """
        Args:
            symbol: Symbol to fetch every tick
            executor: Retry wrapper around the provider
            store: Destination for successful snapshots
            publisher: Notified with every stored snapshot
            interval_seconds: Wait between the end of one tick and the next
            sleep: Sleep coroutine for the tick wait (injectable for tests)
        """
        self.symbol = symbol
        self.executor = executor
        self.store = store
        self.publisher = publisher
        self.interval_seconds = interval_seconds
        self._sleep = sleep

        self.state = SchedulerState.IDLE
        self.ticks = 0
        self._shutdown = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self, shutdown: asyncio.Event | None = None) -> Snapshot | None:
        """
        Run one fetch-store-publish cycle.

        Returns:
            The stored snapshot, or None on terminal failure

        Raises:
            ShutdownRequested: shutdown was requested mid-retry
        """
        self.state = SchedulerState.FETCHING
        self.ticks += 1
        try:
            try:
                snapshot = await self.executor.execute(self.symbol, shutdown=shutdown)
            except DataError as e:
                logger.error(f"Heartbeat failed for {self.symbol}: {e}")
                await self.store.record_failure(e)
                return None

            await self.store.write(snapshot)

            try:
                self.publisher.publish(SNAPSHOT_TOPIC, snapshot)
            except Exception as e:
                logger.error(f"Failed to publish snapshot event: {e}")

            logger.debug(f"{snapshot.symbol} snapshot stored: ts={snapshot.ts} price={snapshot.price:.4f}")
            return snapshot
        finally:
            self.state = SchedulerState.IDLE

    async def run(self, shutdown: asyncio.Event | None = None) -> None:
        """Tick until `shutdown` is set (or forever when no event is given)."""
        logger.info(f"Heartbeat started for {self.symbol} (interval: {self.interval_seconds}s)")
        try:
            while shutdown is None or not shutdown.is_set():
                await self.tick(shutdown)
                await wait_or_shutdown(self.interval_seconds, shutdown, self._sleep)
        except ShutdownRequested:
            pass
        except asyncio.CancelledError:
            logger.info(f"Heartbeat for {self.symbol} cancelled.")
            raise
        logger.info(f"Heartbeat for {self.symbol} stopped.")

    def start(self) -> None:
        """Spawn the heartbeat loop as a background task."""
        if self.running:
            logger.warning(f"Heartbeat for {self.symbol} already running.")
            return
        self._shutdown = asyncio.Event()
        self._task = asyncio.create_task(self._run_guarded())

    async def stop(self, grace_seconds: float = 5.0) -> None:
        """Signal shutdown and wait for the loop; cancel it after the grace period."""
        if self._task is None:
            return

        self._shutdown.set()
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=grace_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Heartbeat for {self.symbol} did not stop in {grace_seconds}s, cancelling.")
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
        finally:
            self._task = None

    async def _run_guarded(self) -> None:
        try:
            await self.run(self._shutdown)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Fatal error in heartbeat for {self.symbol}: {e}", exc_info=True)
