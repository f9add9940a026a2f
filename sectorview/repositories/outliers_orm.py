"""Outlier detection repository using SQLAlchemy ORM.

One detection per (stock, day). A new run for a sector replaces that
sector's rows for the day inside a single transaction.

Usage:
    from sectorview.repositories import outliers_orm as outliers_repo

    await outliers_repo.replace_detections(sector_id, today, "sp500", rows)
    rows = await outliers_repo.list_detections(sector_id=3, min_score=2.0)
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import and_, delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from sectorview.core.exceptions import PersistenceError
from sectorview.core.logging import get_logger
from sectorview.database.connection import get_session
from sectorview.database.orm import OutlierDetection, UniverseType


logger = get_logger("repositories.outliers_orm")


_UPSERT_COLUMNS = (
    "sector_id",
    "detection_timestamp",
    "pe_z_score",
    "pb_z_score",
    "price_z_score",
    "volume_z_score",
    "composite_score",
    "outlier_type",
    "significance_level",
    "threshold_used",
    "universe_type",
)


def _insert_for(dialect_name: str):
    if dialect_name == "postgresql":
        return postgresql.insert
    return sqlite.insert


async def replace_detections(
    sector_id: int,
    detection_date: date,
    universe: UniverseType | str,
    rows: Sequence[Mapping[str, Any]],
) -> int:
    """Replace a sector's detections for one day.

    Rows left over from an earlier run the same day are deleted, then each
    new row is upserted on (stock_id, detection_date). Either everything
    is written or nothing is.

    Args:
        sector_id: Sector the run covered
        detection_date: Day of the run
        universe: Universe the run covered
        rows: Detection values keyed by OutlierDetection column name

    Returns:
        Number of rows written

    Raises:
        PersistenceError: If the transaction fails
    """
    universe_value = UniverseType(universe).value
    now = datetime.now(timezone.utc)

    try:
        async with get_session() as session:
            insert = _insert_for(session.get_bind().dialect.name)

            await session.execute(
                delete(OutlierDetection).where(
                    and_(
                        OutlierDetection.sector_id == sector_id,
                        OutlierDetection.detection_date == detection_date,
                        OutlierDetection.universe_type == universe_value,
                    )
                )
            )

            for row in rows:
                values = {
                    **row,
                    "sector_id": sector_id,
                    "detection_date": detection_date,
                    "detection_timestamp": now,
                    "universe_type": universe_value,
                }
                stmt = insert(OutlierDetection).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=["stock_id", "detection_date"],
                    set_={col: stmt.excluded[col] for col in _UPSERT_COLUMNS},
                )
                await session.execute(stmt)

            await session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Failed to store detections for sector {sector_id}: {e}")
        raise PersistenceError(
            f"Failed to store outlier detections for sector {sector_id}",
            details={"sector_id": sector_id, "detection_date": detection_date.isoformat()},
        ) from e

    logger.debug(
        f"Stored {len(rows)} detections for sector {sector_id} on {detection_date}"
    )
    return len(rows)


async def list_detections(
    stock_id: int | None = None,
    sector_id: int | None = None,
    min_score: float | None = None,
    detection_date: date | None = None,
    universe: UniverseType | str | None = None,
    limit: int = 500,
) -> Sequence[OutlierDetection]:
    """Stored detections, highest composite score first.

    Every filter is optional and they combine with AND.
    """
    stmt = select(OutlierDetection)
    if stock_id is not None:
        stmt = stmt.where(OutlierDetection.stock_id == stock_id)
    if sector_id is not None:
        stmt = stmt.where(OutlierDetection.sector_id == sector_id)
    if min_score is not None:
        stmt = stmt.where(OutlierDetection.composite_score >= min_score)
    if detection_date is not None:
        stmt = stmt.where(OutlierDetection.detection_date == detection_date)
    if universe is not None:
        stmt = stmt.where(OutlierDetection.universe_type == UniverseType(universe).value)

    stmt = stmt.order_by(
        OutlierDetection.detection_date.desc(),
        OutlierDetection.composite_score.desc(),
    ).limit(limit)

    async with get_session() as session:
        result = await session.execute(stmt)
        return result.scalars().all()
