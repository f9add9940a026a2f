"""Outlier detection API routes."""

from __future__ import annotations

from datetime import date
from typing import Annotated, Optional

from fastapi import APIRouter, Query

from sectorview.core.logging import get_logger
from sectorview.database.orm import UniverseType
from sectorview.schemas import OutlierDetectionRecord, SectorOutliers
from sectorview.services import sector_service


logger = get_logger("api.outliers")

router = APIRouter(prefix="/outliers")


@router.post(
    "/detect",
    response_model=list[SectorOutliers],
    summary="Detect outliers",
    description="Runs detection over every sector and stores today's results.",
)
async def detect_outliers(
    threshold: Annotated[Optional[float], Query(ge=0, description="Composite score threshold")] = None,
    universe: Annotated[Optional[UniverseType], Query()] = None,
) -> list[SectorOutliers]:
    return await sector_service.detect_outliers(threshold, universe)


@router.get(
    "/detections",
    response_model=list[OutlierDetectionRecord],
    summary="Stored detections",
)
async def list_detections(
    stock_id: Annotated[Optional[int], Query(ge=1)] = None,
    sector_id: Annotated[Optional[int], Query(ge=1)] = None,
    min_score: Annotated[Optional[float], Query(ge=0)] = None,
    detection_date: Annotated[Optional[date], Query()] = None,
    universe: Annotated[Optional[UniverseType], Query()] = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> list[OutlierDetectionRecord]:
    return await sector_service.list_outlier_detections(
        stock_id=stock_id,
        sector_id=sector_id,
        min_score=min_score,
        detection_date=detection_date,
        universe=universe,
        limit=limit,
    )
