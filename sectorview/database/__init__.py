"""Database layer: ORM models, async sessions and seed data."""

from .connection import (
    close_database,
    get_engine,
    get_session,
    init_database,
)
from .orm import (
    Base,
    MarketDataSnapshot,
    OutlierDetection,
    Sector,
    Stock,
    StockUniverseMembership,
    UniverseType,
)


__all__ = [
    "Base",
    "MarketDataSnapshot",
    "OutlierDetection",
    "Sector",
    "Stock",
    "StockUniverseMembership",
    "UniverseType",
    "close_database",
    "get_engine",
    "get_session",
    "init_database",
]
