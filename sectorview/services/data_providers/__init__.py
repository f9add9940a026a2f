"""Data providers - external market data access."""

from .base import (
    FetchedQuote,
    FetchError,
    MarketDataFetcher,
    NetworkError,
    NotFoundError,
    ParseError,
    RateLimitedError,
    calculate_price_change,
)
from .resilience import RetryExhaustedError, retry_async
from .yfinance_fetcher import YFinanceFetcher, get_yfinance_fetcher


__all__ = [
    "FetchError",
    "FetchedQuote",
    "MarketDataFetcher",
    "NetworkError",
    "NotFoundError",
    "ParseError",
    "RateLimitedError",
    "RetryExhaustedError",
    "YFinanceFetcher",
    "calculate_price_change",
    "get_yfinance_fetcher",
    "retry_async",
]
