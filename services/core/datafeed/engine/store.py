"""Single-slot holder for the latest snapshot plus fetch health metadata."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, replace

from ..providers.base import Snapshot


@dataclass(frozen=True)
class StoreState:
    """Immutable view of the store, swapped as one reference on every update."""
    snapshot: Snapshot | None = None
    last_success_ts: float | None = None
    last_error: str | None = None
    last_error_ts: float | None = None
    consecutive_failures: int = 0


class SnapshotStore:
    """
    Latest-value cell shared between the heartbeat (writer) and readers.

    Updates are serialized by a lock and replace the whole state record, so a
    reader sees either the old or the new record, never a mix.
    """

    def __init__(self):
        self._state = StoreState()
        self._write_lock = asyncio.Lock()

    async def write(self, snapshot: Snapshot) -> None:
        async with self._write_lock:
            self._state = StoreState(
                snapshot=snapshot,
                last_success_ts=time.time(),
                last_error=self._state.last_error,
                last_error_ts=self._state.last_error_ts,
                consecutive_failures=0,
            )

    async def record_failure(self, error: BaseException | str) -> None:
        """Record a terminal fetch failure. The held snapshot is left as-is."""
        async with self._write_lock:
            self._state = replace(
                self._state,
                last_error=str(error)[:500],
                last_error_ts=time.time(),
                consecutive_failures=self._state.consecutive_failures + 1,
            )

    def read(self) -> Snapshot | None:
        return self._state.snapshot

    def state(self) -> StoreState:
        return self._state
