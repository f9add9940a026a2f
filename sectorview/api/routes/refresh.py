"""Refresh API routes.

These run the refresh inside the request and return its result. Use the
/ws/refresh WebSocket to follow progress.
"""

from __future__ import annotations

from fastapi import APIRouter

from sectorview.core.logging import get_logger
from sectorview.schemas import RefreshResult, RefreshStatusResponse, SectorSummary
from sectorview.services import sector_service
from sectorview.services.refresh import get_refresh_orchestrator


logger = get_logger("api.refresh")

router = APIRouter(prefix="/refresh")


@router.post(
    "",
    response_model=RefreshResult,
    summary="Refresh the primary universe",
    responses={409: {"description": "A refresh is already running"}},
)
async def refresh_primary() -> RefreshResult:
    return await sector_service.refresh_market_data()


@router.post(
    "/secondary",
    response_model=RefreshResult,
    summary="Refresh the secondary universe",
    responses={409: {"description": "A refresh is already running"}},
)
async def refresh_secondary() -> RefreshResult:
    return await sector_service.refresh_secondary_universe_data()


@router.post(
    "/sectors/{sector_symbol}",
    response_model=list[SectorSummary],
    summary="Refresh one sector",
    responses={404: {"description": "Unknown sector"}, 409: {"description": "A refresh is already running"}},
)
async def refresh_sector(sector_symbol: str) -> list[SectorSummary]:
    return await sector_service.refresh_sector_data(sector_symbol)


@router.get(
    "/status",
    response_model=RefreshStatusResponse,
    summary="Refresh status",
)
async def refresh_status() -> RefreshStatusResponse:
    orchestrator = get_refresh_orchestrator()
    return RefreshStatusResponse(
        in_progress=orchestrator.in_progress,
        phase=orchestrator.phase.value,
    )
