"""Sector service - the operations exposed to API routes and other callers.

Usage:
    from sectorview.services import sector_service

    sectors = await sector_service.get_sector_performance()
    result = await sector_service.refresh_market_data(on_progress=print)
    outliers = await sector_service.detect_outliers(threshold=2.0)
"""

from __future__ import annotations

from datetime import date

from sectorview.core.logging import get_logger
from sectorview.database.orm import UniverseType
from sectorview.repositories import outliers_orm as outliers_repo
from sectorview.repositories import sectors_orm as sectors_repo
from sectorview.repositories import universe_orm as universe_repo
from sectorview.schemas import (
    OutlierDetectionRecord,
    OutlierStock,
    RefreshResult,
    SectorOutliers,
    SectorResponse,
    SectorSummary,
    StockResponse,
)

from . import outlier_engine
from .refresh import ProgressCallback, get_refresh_orchestrator
from .sector_aggregator import get_sector_summaries
from .sector_cache import get_sector_cache


logger = get_logger("services.sector_service")


def _universe(universe: UniverseType | str | None) -> UniverseType:
    return UniverseType(universe) if universe is not None else UniverseType.PRIMARY


async def get_sectors() -> list[SectorResponse]:
    """All GICS sectors, by name."""
    sectors = await sectors_repo.list_sectors()
    return [SectorResponse.model_validate(s) for s in sectors]


async def get_stocks_by_sector(sector_id: int) -> list[StockResponse]:
    """All stocks assigned to a sector.

    Raises:
        SectorNotFoundError: Unknown sector id
    """
    await sectors_repo.get_sector(sector_id)
    stocks = await universe_repo.list_stocks_by_sector(sector_id)
    return [StockResponse.model_validate(s) for s in stocks]


async def get_sector_performance(universe: UniverseType | str | None = None) -> list[SectorSummary]:
    """Sector summaries for a universe (primary by default).

    Primary-universe summaries are served from the cache while it is fresh.
    """
    universe = _universe(universe)
    cache = get_sector_cache()

    if universe is UniverseType.PRIMARY:
        cached = cache.get()
        if cached is not None:
            return cached

    summaries = await get_sector_summaries(universe)
    if universe is UniverseType.PRIMARY and summaries:
        cache.set(summaries)
    return summaries


async def refresh_market_data(on_progress: ProgressCallback | None = None) -> RefreshResult:
    """Discover and refresh the whole primary universe."""
    return await get_refresh_orchestrator().refresh_universe(
        UniverseType.PRIMARY, on_progress=on_progress
    )


async def refresh_secondary_universe_data(
    on_progress: ProgressCallback | None = None,
) -> RefreshResult:
    """Discover and refresh the whole secondary universe."""
    return await get_refresh_orchestrator().refresh_universe(
        UniverseType.SECONDARY, on_progress=on_progress
    )


async def refresh_sector_data(
    sector_symbol: str,
    on_progress: ProgressCallback | None = None,
) -> list[SectorSummary]:
    """Refresh one sector's primary-universe members and return all summaries."""
    return await get_refresh_orchestrator().refresh_sector(
        sector_symbol, on_progress=on_progress
    )


async def detect_outliers(
    threshold: float | None = None,
    universe: UniverseType | str | None = None,
) -> list[SectorOutliers]:
    """Run detection over every sector and return the outliers grouped by sector."""
    return await outlier_engine.detect_all_sectors(_universe(universe), threshold)


async def get_sector_outliers(
    sector_id: int,
    threshold: float | None = None,
    universe: UniverseType | str | None = None,
) -> list[OutlierStock]:
    """Outliers in one sector right now, without touching stored detections.

    Raises:
        SectorNotFoundError: Unknown sector id
    """
    sector = await sectors_repo.get_sector(sector_id)
    return await outlier_engine.detect_sector(
        sector, _universe(universe), threshold, persist=False
    )


async def list_outlier_detections(
    stock_id: int | None = None,
    sector_id: int | None = None,
    min_score: float | None = None,
    detection_date: date | None = None,
    universe: UniverseType | str | None = None,
    limit: int = 500,
) -> list[OutlierDetectionRecord]:
    """Stored detections, filtered."""
    rows = await outliers_repo.list_detections(
        stock_id=stock_id,
        sector_id=sector_id,
        min_score=min_score,
        detection_date=detection_date,
        universe=universe,
        limit=limit,
    )
    return [OutlierDetectionRecord.model_validate(r) for r in rows]
