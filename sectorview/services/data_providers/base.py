"""Market data fetcher contract.

A fetcher turns a ticker into a FetchedQuote or raises one of the
FetchError subclasses below. The refresh orchestrator absorbs every
FetchError: rate limits are retried with backoff, everything else skips
the symbol.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Optional, Protocol, runtime_checkable


# =============================================================================
# Exceptions
# =============================================================================


class FetchError(Exception):
    """Base class for provider failures on a single symbol."""

    def __init__(self, symbol: str, message: str = ""):
        self.symbol = symbol
        self.message = message or self.__class__.__name__
        super().__init__(f"{symbol}: {self.message}")


class NotFoundError(FetchError):
    """Provider has no data for the symbol."""


class RateLimitedError(FetchError):
    """Provider throttled the request. Retryable."""


class NetworkError(FetchError):
    """Transport failure or timeout."""


class ParseError(FetchError):
    """Provider answered but the payload was unusable."""


# =============================================================================
# Quote
# =============================================================================


@dataclass
class FetchedQuote:
    """Market metrics for one symbol as returned by a provider.

    Only price, price_change and price_change_percent are mandatory.
    provider_sector is the provider's own sector label, used to classify
    stocks that have no sector yet.
    """

    symbol: str
    price: float
    price_change: float
    price_change_percent: float
    volume: Optional[int] = None
    avg_volume_10d: Optional[int] = None
    market_cap: Optional[int] = None
    pe_ratio: Optional[float] = None
    pb_ratio: Optional[float] = None
    eps: Optional[float] = None
    dividend_yield: Optional[float] = None
    beta: Optional[float] = None
    week52_high: Optional[float] = None
    week52_low: Optional[float] = None
    name: Optional[str] = None
    provider_sector: Optional[str] = None

    def snapshot_values(self) -> dict[str, Any]:
        """Fields stored on a MarketDataSnapshot."""
        values = asdict(self)
        for key in ("symbol", "name", "provider_sector"):
            values.pop(key)
        return values


def calculate_price_change(price: float, prev_close: float) -> tuple[float, float]:
    """Absolute and percent change against the previous close.

    A zero previous close yields a 0% change.
    """
    change = price - prev_close
    percent = (change / prev_close) * 100.0 if prev_close != 0 else 0.0
    return change, percent


@runtime_checkable
class MarketDataFetcher(Protocol):
    """Anything that can fetch a quote for one symbol."""

    async def fetch(self, symbol: str) -> FetchedQuote:
        ...
