"""
Yahoo Finance quote fetcher.

Wraps the blocking yfinance client in a shared thread pool and maps every
provider failure onto the FetchError taxonomy, so the refresh orchestrator
never sees a raw yfinance or transport exception.

Usage:
    from sectorview.services.data_providers import get_yfinance_fetcher

    fetcher = get_yfinance_fetcher()
    quote = await fetcher.fetch("AAPL")
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional

import yfinance as yf
from yfinance.exceptions import YFRateLimitError

from sectorview.core.config import settings
from sectorview.core.logging import get_logger

from .base import (
    FetchedQuote,
    NetworkError,
    NotFoundError,
    ParseError,
    RateLimitedError,
    calculate_price_change,
)

logger = get_logger("data_providers.yfinance")

# Single shared executor for ALL yfinance calls
_executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="yfinance")


def _safe_float(value: Any) -> Optional[float]:
    """Safely convert value to float."""
    if value is None:
        return None
    try:
        f = float(value)
        if f != f or f == float('inf') or f == float('-inf'):
            return None
        return f
    except (ValueError, TypeError):
        return None


def _safe_int(value: Any) -> Optional[int]:
    """Safely convert value to int."""
    f = _safe_float(value)
    return int(f) if f is not None else None


def _to_yahoo_symbol(symbol: str) -> str:
    """Yahoo uses dashes for share classes (BRK.B -> BRK-B)."""
    return symbol.upper().replace(".", "-")


def parse_ticker_info(symbol: str, info: dict[str, Any]) -> FetchedQuote:
    """Build a FetchedQuote from a yfinance `Ticker.info` payload.

    Raises:
        NotFoundError: If the payload is empty or has no price
        ParseError: If the price is present but has no previous close
    """
    if not info:
        raise NotFoundError(symbol, "no data returned")

    price = _safe_float(info.get("regularMarketPrice") or info.get("currentPrice"))
    if price is None:
        raise NotFoundError(symbol, "no market price")

    prev_close = _safe_float(
        info.get("regularMarketPreviousClose") or info.get("previousClose")
    )
    if prev_close is None:
        raise ParseError(symbol, "missing previous close")

    change, percent = calculate_price_change(price, prev_close)

    return FetchedQuote(
        symbol=symbol.upper(),
        price=price,
        price_change=change,
        price_change_percent=percent,
        volume=_safe_int(info.get("regularMarketVolume") or info.get("volume")),
        avg_volume_10d=_safe_int(
            info.get("averageVolume10days") or info.get("averageDailyVolume10Day")
        ),
        market_cap=_safe_int(info.get("marketCap")),
        pe_ratio=_safe_float(info.get("trailingPE")),
        pb_ratio=_safe_float(info.get("priceToBook")),
        eps=_safe_float(info.get("trailingEps")),
        dividend_yield=_safe_float(info.get("dividendYield")),
        beta=_safe_float(info.get("beta")),
        week52_high=_safe_float(info.get("fiftyTwoWeekHigh")),
        week52_low=_safe_float(info.get("fiftyTwoWeekLow")),
        name=info.get("shortName") or info.get("longName"),
        provider_sector=info.get("sector"),
    )


class YFinanceFetcher:
    """Fetches one quote per call from Yahoo Finance via yfinance."""

    def __init__(self, timeout: float | None = None):
        self._timeout = timeout or settings.fetch_timeout

    def _fetch_info_sync(self, symbol: str) -> dict[str, Any]:
        """Fetch raw ticker info (blocking)."""
        ticker = yf.Ticker(_to_yahoo_symbol(symbol))
        return ticker.info or {}

    async def fetch(self, symbol: str) -> FetchedQuote:
        """Fetch a quote for one symbol.

        Raises:
            RateLimitedError: Yahoo throttled the request
            NetworkError: Transport failure or timeout
            NotFoundError: Unknown symbol or no price
            ParseError: Unusable payload
        """
        loop = asyncio.get_running_loop()
        try:
            info = await asyncio.wait_for(
                loop.run_in_executor(_executor, self._fetch_info_sync, symbol),
                timeout=self._timeout,
            )
        except YFRateLimitError as e:
            raise RateLimitedError(symbol, str(e)) from e
        except asyncio.TimeoutError as e:
            raise NetworkError(symbol, f"timed out after {self._timeout}s") from e
        except (ConnectionError, OSError) as e:
            raise NetworkError(symbol, str(e)) from e
        except (KeyError, ValueError, TypeError) as e:
            raise ParseError(symbol, str(e)) from e
        except Exception as e:
            # yfinance surfaces HTTP client errors from several backends
            logger.debug(f"yfinance fetch failed for {symbol}: {e!r}")
            if "Too Many Requests" in str(e) or "429" in str(e):
                raise RateLimitedError(symbol, str(e)) from e
            raise NetworkError(symbol, str(e)) from e

        return parse_ticker_info(symbol, info)


# Singleton instance
_instance: Optional[YFinanceFetcher] = None


def get_yfinance_fetcher() -> YFinanceFetcher:
    """Get singleton YFinanceFetcher instance."""
    global _instance
    if _instance is None:
        _instance = YFinanceFetcher()
    return _instance
