"""Sector API routes - taxonomy, performance and per-sector outliers."""

from __future__ import annotations

from typing import Annotated, Optional

from fastapi import APIRouter, Path, Query

from sectorview.core.logging import get_logger
from sectorview.database.orm import UniverseType
from sectorview.schemas import (
    OutlierStock,
    SectorResponse,
    SectorSummary,
    StockResponse,
)
from sectorview.services import sector_service


logger = get_logger("api.sectors")

router = APIRouter(prefix="/sectors")


@router.get(
    "",
    response_model=list[SectorResponse],
    summary="List sectors",
)
async def list_sectors() -> list[SectorResponse]:
    return await sector_service.get_sectors()


@router.get(
    "/performance",
    response_model=list[SectorSummary],
    summary="Sector performance",
    description="Aggregated metrics per sector over the latest snapshot of each active member.",
)
async def sector_performance(
    universe: Annotated[Optional[UniverseType], Query(description="Universe (default sp500)")] = None,
) -> list[SectorSummary]:
    return await sector_service.get_sector_performance(universe)


@router.get(
    "/{sector_id}/stocks",
    response_model=list[StockResponse],
    summary="Stocks in a sector",
)
async def sector_stocks(
    sector_id: Annotated[int, Path(ge=1)],
) -> list[StockResponse]:
    return await sector_service.get_stocks_by_sector(sector_id)


@router.get(
    "/{sector_id}/outliers",
    response_model=list[OutlierStock],
    summary="Outliers in a sector",
    description="Runs detection for one sector; stored detections are not changed.",
)
async def sector_outliers(
    sector_id: Annotated[int, Path(ge=1)],
    threshold: Annotated[Optional[float], Query(ge=0, description="Composite score threshold")] = None,
    universe: Annotated[Optional[UniverseType], Query()] = None,
) -> list[OutlierStock]:
    return await sector_service.get_sector_outliers(sector_id, threshold, universe)
