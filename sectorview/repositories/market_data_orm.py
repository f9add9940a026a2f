"""Market data snapshot repository using SQLAlchemy ORM.

Snapshots are append-only. Each save commits in its own transaction so
readers see a consistent store while a refresh is still writing.

Usage:
    from sectorview.repositories import market_data_orm as market_data_repo

    await market_data_repo.save_snapshot(stock_id, quote.snapshot_values())
    latest = await market_data_repo.get_latest_snapshots(member_ids)
"""

from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from sectorview.core.exceptions import PersistenceError
from sectorview.core.logging import get_logger
from sectorview.database.connection import get_session
from sectorview.database.orm import MarketDataSnapshot


logger = get_logger("repositories.market_data_orm")


SNAPSHOT_FIELDS = (
    "price",
    "price_change",
    "price_change_percent",
    "volume",
    "avg_volume_10d",
    "market_cap",
    "pe_ratio",
    "pb_ratio",
    "eps",
    "dividend_yield",
    "beta",
    "week52_high",
    "week52_low",
)


async def save_snapshot(
    stock_id: int,
    values: Mapping[str, Any],
    timestamp: datetime | None = None,
) -> MarketDataSnapshot:
    """Append one snapshot for a stock.

    Args:
        stock_id: Stock the snapshot belongs to
        values: Snapshot fields; unknown keys are ignored, missing ones stored as NULL
        timestamp: Snapshot time (defaults to now, UTC)

    Raises:
        PersistenceError: If the write fails
    """
    snapshot = MarketDataSnapshot(
        stock_id=stock_id,
        timestamp=timestamp or datetime.now(timezone.utc),
        **{field: values.get(field) for field in SNAPSHOT_FIELDS},
    )
    try:
        async with get_session() as session:
            session.add(snapshot)
            await session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Failed to save snapshot for stock {stock_id}: {e}")
        raise PersistenceError(
            f"Failed to save market data for stock {stock_id}",
            details={"stock_id": stock_id},
        ) from e
    return snapshot


async def get_latest_snapshots(
    stock_ids: Collection[int] | None = None,
) -> dict[int, MarketDataSnapshot]:
    """Latest snapshot per stock.

    Ties on timestamp are broken by the higher id, so the later insert wins.

    Args:
        stock_ids: Restrict to these stocks (None = all stocks)

    Returns:
        Mapping of stock_id to its most recent snapshot
    """
    if stock_ids is not None and not stock_ids:
        return {}

    ranked = select(
        MarketDataSnapshot.id.label("snapshot_id"),
        func.row_number()
        .over(
            partition_by=MarketDataSnapshot.stock_id,
            order_by=(MarketDataSnapshot.timestamp.desc(), MarketDataSnapshot.id.desc()),
        )
        .label("rn"),
    )
    if stock_ids is not None:
        ranked = ranked.where(MarketDataSnapshot.stock_id.in_(list(stock_ids)))
    ranked = ranked.subquery()

    stmt = (
        select(MarketDataSnapshot)
        .join(ranked, ranked.c.snapshot_id == MarketDataSnapshot.id)
        .where(ranked.c.rn == 1)
    )

    async with get_session() as session:
        result = await session.execute(stmt)
        return {snap.stock_id: snap for snap in result.scalars().all()}


async def get_snapshot_history(stock_id: int, limit: int = 100) -> Sequence[MarketDataSnapshot]:
    """Most recent snapshots for one stock, newest first."""
    async with get_session() as session:
        result = await session.execute(
            select(MarketDataSnapshot)
            .where(MarketDataSnapshot.stock_id == stock_id)
            .order_by(MarketDataSnapshot.timestamp.desc(), MarketDataSnapshot.id.desc())
            .limit(limit)
        )
        return result.scalars().all()
