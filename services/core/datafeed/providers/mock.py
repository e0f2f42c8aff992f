"""Synthetic snapshot provider for local development."""

from __future__ import annotations

import random
import time

from .base import Snapshot


class MockProvider:
    """Returns random values around a base price. Never fails, never rate-limits."""

    def __init__(self, base_price: float = 100.0, rng: random.Random | None = None):
        self.base_price = base_price
        self._rng = rng or random.Random()

    async def fetch(self, symbol: str) -> Snapshot:
        rng = self._rng
        return Snapshot(
            symbol=symbol,
            price=self.base_price + rng.uniform(-5.0, 5.0),
            macd=rng.uniform(-2.0, 2.0),
            signal=rng.uniform(-2.0, 2.0),
            hist=rng.uniform(-1.0, 1.0),
            ts=int(time.time()),
        )
