"""Base types, errors and protocols for market snapshot providers."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Protocol


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time market reading for one symbol."""
    symbol: str
    price: float
    macd: float
    signal: float
    hist: float  # passed through as-is, not checked against macd - signal
    ts: int  # Unix timestamp in seconds (set at fetch time)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class ErrorKind(Enum):
    """Closed set of provider failure kinds."""
    NETWORK = "network"
    RATE_LIMITED = "rate_limited"
    UNKNOWN = "unknown"


class DataError(Exception):
    """Base class for classified provider failures."""
    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail

    def __str__(self) -> str:
        if self.detail:
            return f"{self.kind.value} error: {self.detail}"
        return f"{self.kind.value} error"


class NetworkError(DataError):
    """Transient transport failure (connection reset, timeout, 5xx)."""
    kind = ErrorKind.NETWORK


class RateLimitedError(DataError):
    """Upstream asked us to slow down."""
    kind = ErrorKind.RATE_LIMITED

    def __str__(self) -> str:
        return "rate limited"


class UnknownDataError(DataError):
    """Anything else: bad payload, unexpected status, unexpected exception."""
    kind = ErrorKind.UNKNOWN


class DataProvider(Protocol):
    """Protocol for snapshot providers."""

    async def fetch(self, symbol: str) -> Snapshot:
        """
        Fetch one snapshot for `symbol`.

        Raises a DataError subclass on failure. Retrying is the caller's job;
        providers should not retry internally.
        """
        ...
