"""SQLAlchemy ORM models for SectorView.

This module defines all database tables using SQLAlchemy 2.0 ORM style.
Runs on SQLite (aiosqlite) for local use and PostgreSQL (asyncpg) for
deployments.

Usage:
    from sectorview.database.orm import Stock, MarketDataSnapshot
    from sectorview.database.connection import get_session

    async with get_session() as session:
        stock = await session.get(Stock, 1)
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    MetaData,
    String,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
)


# Naming convention for constraints and indexes (deterministic names for Alembic)
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class UniverseType(str, Enum):
    """Tracked universes. SP500 is the primary universe, RUSSELL2000 the secondary."""

    PRIMARY = "sp500"
    SECONDARY = "russell2000"


class Base(DeclarativeBase):
    """Base class for all ORM models with naming convention."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


# =============================================================================
# TAXONOMY & UNIVERSE
# =============================================================================


class Sector(Base):
    """GICS sector. Seeded once, never modified."""
    __tablename__ = "sectors"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    symbol: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)

    stocks: Mapped[list[Stock]] = relationship(back_populates="sector")


class Stock(Base):
    """Tracked stock. A NULL sector_id means unclassified."""
    __tablename__ = "stocks"

    id: Mapped[int] = mapped_column(primary_key=True)
    symbol: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sector_id: Mapped[int | None] = mapped_column(ForeignKey("sectors.id"))

    sector: Mapped[Sector | None] = relationship(back_populates="stocks")

    __table_args__ = (
        Index("idx_stocks_sector", "sector_id"),
    )


class StockUniverseMembership(Base):
    """Time-bounded universe membership. Rows are closed, never deleted."""
    __tablename__ = "stock_universe_membership"

    id: Mapped[int] = mapped_column(primary_key=True)
    stock_id: Mapped[int] = mapped_column(ForeignKey("stocks.id", ondelete="CASCADE"), nullable=False)
    universe_type: Mapped[str] = mapped_column(String(20), nullable=False)
    date_added: Mapped[date] = mapped_column(Date, nullable=False)
    date_removed: Mapped[date | None] = mapped_column(Date)

    __table_args__ = (
        CheckConstraint(
            "universe_type IN ('sp500', 'russell2000')",
            name="universe_type_valid",
        ),
        # At most one active row per (stock, universe)
        Index(
            "uq_membership_active",
            "stock_id",
            "universe_type",
            unique=True,
            sqlite_where=text("date_removed IS NULL"),
            postgresql_where=text("date_removed IS NULL"),
        ),
        Index("idx_membership_universe_active", "universe_type", "date_removed"),
    )


# =============================================================================
# MARKET DATA
# =============================================================================


class MarketDataSnapshot(Base):
    """Append-only timestamped market metrics for one stock."""
    __tablename__ = "market_data_snapshots"

    id: Mapped[int] = mapped_column(primary_key=True)
    stock_id: Mapped[int] = mapped_column(ForeignKey("stocks.id", ondelete="CASCADE"), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    # Price
    price: Mapped[float] = mapped_column(Float, nullable=False)
    price_change: Mapped[float] = mapped_column(Float, nullable=False)
    price_change_percent: Mapped[float] = mapped_column(Float, nullable=False)
    # Volume & liquidity
    volume: Mapped[int | None] = mapped_column(BigInteger)
    avg_volume_10d: Mapped[int | None] = mapped_column(BigInteger)
    # Valuation
    market_cap: Mapped[int | None] = mapped_column(BigInteger)
    pe_ratio: Mapped[float | None] = mapped_column(Float)
    pb_ratio: Mapped[float | None] = mapped_column(Float)
    # Profitability
    eps: Mapped[float | None] = mapped_column(Float)
    dividend_yield: Mapped[float | None] = mapped_column(Float)
    # Volatility
    beta: Mapped[float | None] = mapped_column(Float)
    # 52-week range
    week52_high: Mapped[float | None] = mapped_column(Float)
    week52_low: Mapped[float | None] = mapped_column(Float)

    __table_args__ = (
        Index("idx_market_data_stock_timestamp", "stock_id", "timestamp"),
        Index("idx_market_data_timestamp", "timestamp"),
    )


# =============================================================================
# OUTLIER DETECTION
# =============================================================================


class OutlierDetection(Base):
    """One sector-relative outlier classification per stock per day."""
    __tablename__ = "outlier_detections"

    id: Mapped[int] = mapped_column(primary_key=True)
    stock_id: Mapped[int] = mapped_column(ForeignKey("stocks.id", ondelete="CASCADE"), nullable=False)
    sector_id: Mapped[int] = mapped_column(ForeignKey("sectors.id"), nullable=False)
    detection_date: Mapped[date] = mapped_column(Date, nullable=False)
    detection_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    # Z-scores
    pe_z_score: Mapped[float | None] = mapped_column(Float)
    pb_z_score: Mapped[float | None] = mapped_column(Float)
    price_z_score: Mapped[float] = mapped_column(Float, nullable=False)
    volume_z_score: Mapped[float | None] = mapped_column(Float)
    # Analysis
    composite_score: Mapped[float] = mapped_column(Float, nullable=False)
    outlier_type: Mapped[str] = mapped_column(String(20), nullable=False)
    significance_level: Mapped[str] = mapped_column(String(20), nullable=False)
    threshold_used: Mapped[float] = mapped_column(Float, nullable=False)
    universe_type: Mapped[str] = mapped_column(String(20), nullable=False, default=UniverseType.PRIMARY.value)

    __table_args__ = (
        UniqueConstraint("stock_id", "detection_date", name="uq_outlier_stock_date"),
        Index("idx_outlier_sector_date", "sector_id", "detection_date"),
        Index("idx_outlier_date", "detection_date"),
    )
