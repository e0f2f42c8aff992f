"""HTTP snapshot provider backed by a JSON endpoint."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

import aiohttp

from .base import NetworkError, RateLimitedError, Snapshot, UnknownDataError


logger = logging.getLogger(__name__)


class RestSnapshotProvider:
    """
    Fetches a snapshot with a single GET request.

    Expects `GET {base_url}?symbol=AAPL` to answer with a JSON object holding
    `price`, `macd`, `signal` and `hist`; any upstream `symbol` or `ts` is
    ignored in favour of the requested symbol and the fetch time. Failures are mapped
    onto the provider error taxonomy:

    - HTTP 429 -> RateLimitedError
    - connection errors, timeouts, 5xx -> NetworkError
    - other statuses, malformed payloads -> UnknownDataError
    """

    def __init__(self, base_url: str, timeout_seconds: float = 10.0):
        """
        Initialize REST provider.

        Args:
            base_url: Snapshot endpoint URL
            timeout_seconds: Total per-request timeout
        """
        self.base_url = base_url
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def fetch(self, symbol: str) -> Snapshot:
        session = await self._get_session()
        params = {"symbol": symbol}

        try:
            async with session.get(self.base_url, params=params) as response:
                if response.status == 429:
                    raise RateLimitedError()
                if response.status >= 500:
                    text = await response.text()
                    raise NetworkError(f"HTTP {response.status}: {text[:200]}")
                if response.status != 200:
                    text = await response.text()
                    raise UnknownDataError(f"HTTP {response.status}: {text[:200]}")

                data = await response.json(content_type=None)

        except aiohttp.ClientError as e:
            raise NetworkError(str(e) or type(e).__name__) from e
        except asyncio.TimeoutError as e:
            raise NetworkError("request timed out") from e
        except ValueError as e:
            # json decode errors
            raise UnknownDataError(f"invalid JSON for {symbol}: {e}") from e

        return self._parse(symbol, data)

    @staticmethod
    def _parse(symbol: str, data: Any) -> Snapshot:
        """Convert a JSON payload into a Snapshot."""
        if not isinstance(data, dict):
            raise UnknownDataError(f"unexpected payload type for {symbol}: {type(data).__name__}")

        # Symbol and timestamp are ours: the requested symbol, stamped at fetch time
        try:
            return Snapshot(
                symbol=symbol,
                price=float(data["price"]),
                macd=float(data["macd"]),
                signal=float(data["signal"]),
                hist=float(data["hist"]),
                ts=int(time.time()),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise UnknownDataError(f"malformed snapshot for {symbol}: {e!r}") from e
