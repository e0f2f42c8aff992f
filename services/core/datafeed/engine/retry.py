"""
Retry executor: failure classification and backoff around a DataProvider.

Budget policy per error kind:

    kind           counts against max_attempts   wait before retry
    NETWORK        yes                            base ** attempt + jitter
    UNKNOWN        yes                            base ** attempt + jitter
    RATE_LIMITED   no (retried indefinitely)      fixed cooldown

Rate-limited fetches never surface to the caller; only a shutdown request
ends that loop.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Callable

from ..providers.base import DataError, DataProvider, ErrorKind, Snapshot, UnknownDataError
from .timing import SleepFunc, wait_or_shutdown


logger = logging.getLogger(__name__)


BUDGET_POLICY: dict[ErrorKind, bool] = {
    ErrorKind.NETWORK: True,
    ErrorKind.UNKNOWN: True,
    ErrorKind.RATE_LIMITED: False,
}


def counts_against_budget(kind: ErrorKind) -> bool:
    """Whether a failure of this kind consumes one of the allowed attempts."""
    return BUDGET_POLICY[kind]


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry with exponential backoff."""
    max_attempts: int = 3
    base_backoff: float = 2.0  # exponential base, seconds
    rate_limit_cooldown: float = 60.0

    def backoff_for(self, attempt: int) -> float:
        """Deterministic part of the wait after the given failed attempt."""
        return self.base_backoff ** attempt


def uniform_jitter(upper: float) -> float:
    return random.uniform(0, upper)


class RetryExecutor:
    """Wraps a provider with retry, backoff and rate-limit cooldown."""

    def __init__(
        self,
        provider: DataProvider,
        policy: RetryPolicy | None = None,
        sleep: SleepFunc = asyncio.sleep,
        jitter: Callable[[float], float] = uniform_jitter,
    ):
        """
        Args:
            provider: Snapshot source
            policy: Retry limits (defaults: 3 attempts, base 2s, 60s cooldown)
            sleep: Sleep coroutine (injectable for tests)
            jitter: Maps the backoff upper bound to a random extra delay
        """
        self.provider = provider
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._jitter = jitter

    async def execute(self, symbol: str, shutdown: asyncio.Event | None = None) -> Snapshot:
        """
        Fetch a snapshot, retrying per the budget policy.

        Returns:
            The first successful Snapshot

        Raises:
            DataError: terminal failure after max_attempts counted failures
            ShutdownRequested: `shutdown` was set during a backoff or cooldown
        """
        attempt = 0

        while True:
            try:
                return await self.provider.fetch(symbol)
            except asyncio.CancelledError:
                raise
            except DataError as e:
                error = e
            except Exception as e:
                logger.error(f"Unexpected error fetching {symbol}: {e}", exc_info=True)
                error = UnknownDataError(f"{type(e).__name__}: {e}")

            if not counts_against_budget(error.kind):
                logger.warning(
                    f"Error fetching {symbol} (attempt {attempt}/{self.policy.max_attempts}, not counted): "
                    f"{error}, cooling down {self.policy.rate_limit_cooldown:.0f}s..."
                )
                await wait_or_shutdown(self.policy.rate_limit_cooldown, shutdown, self._sleep)
                continue

            attempt += 1
            logger.warning(f"Error fetching {symbol} (attempt {attempt}/{self.policy.max_attempts}): {error}")

            if attempt >= self.policy.max_attempts:
                raise error

            backoff = self.policy.backoff_for(attempt)
            delay = backoff + self._jitter(backoff)
            logger.info(f"Retrying {symbol} in {delay:.1f}s")
            await wait_or_shutdown(delay, shutdown, self._sleep)
