"""Read-only access to the snapshot store for request handlers."""

from __future__ import annotations

import time
from typing import Any

from ..providers.base import Snapshot
from .store import SnapshotStore


class QueryService:
    def __init__(self, store: SnapshotStore):
        self.store = store

    def get_latest(self) -> Snapshot | None:
        """Latest snapshot, or None before the first successful fetch."""
        return self.store.read()

    def get_status(self, now: float | None = None) -> dict[str, Any]:
        """
        Staleness and fetch health for the held snapshot.

        `age_seconds` is measured from the snapshot's own timestamp.
        """
        state = self.store.state()
        now = time.time() if now is None else now
        snapshot = state.snapshot

        return {
            "has_snapshot": snapshot is not None,
            "symbol": snapshot.symbol if snapshot else None,
            "age_seconds": max(0.0, now - snapshot.ts) if snapshot else None,
            "last_success_ts": state.last_success_ts,
            "last_error": state.last_error,
            "last_error_ts": state.last_error_ts,
            "consecutive_failures": state.consecutive_failures,
        }
