"""WebSocket route streaming refresh progress."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from sectorview.core.exceptions import AppException
from sectorview.core.logging import get_logger
from sectorview.database.orm import UniverseType
from sectorview.schemas import RefreshProgress, WSEvent, WSEventType
from sectorview.services import sector_service

logger = get_logger("api.routes.ws")

router = APIRouter(tags=["websocket"])


@router.websocket("/ws/refresh")
async def refresh_stream(
    websocket: WebSocket,
    universe: UniverseType = Query(UniverseType.PRIMARY),
    sector: Optional[str] = Query(None, description="Sector ETF symbol for a sector-scoped refresh"),
):
    """
    Run a refresh and stream its progress.

    Connect: ws://host/ws/refresh?universe=sp500 (or ?sector=XLK)

    Events you'll receive, in order:
    - connected
    - progress: {current, total, phase} per step
    - result: the RefreshResult (or the sector summaries)
    - error: if the refresh failed (e.g. REFRESH_IN_PROGRESS)

    The socket is closed after the result or error.
    """
    await websocket.accept()
    connected = True

    async def send_progress(event: RefreshProgress) -> None:
        # A refresh is never cancelled mid-flight; a gone client just stops getting events
        nonlocal connected
        if not connected:
            return
        try:
            await websocket.send_json(
                WSEvent(type=WSEventType.PROGRESS, data=event.model_dump()).model_dump(mode="json")
            )
        except (WebSocketDisconnect, RuntimeError):
            logger.debug("Client went away; refresh continues")
            connected = False

    try:
        await websocket.send_json(WSEvent(type=WSEventType.CONNECTED).model_dump(mode="json"))

        if sector:
            summaries = await sector_service.refresh_sector_data(sector, on_progress=send_progress)
            data = [s.model_dump() for s in summaries]
        elif universe is UniverseType.SECONDARY:
            result = await sector_service.refresh_secondary_universe_data(on_progress=send_progress)
            data = result.model_dump()
        else:
            result = await sector_service.refresh_market_data(on_progress=send_progress)
            data = result.model_dump()

        if not connected:
            return
        await websocket.send_json(
            WSEvent(type=WSEventType.RESULT, data=data).model_dump(mode="json")
        )
    except WebSocketDisconnect:
        logger.debug("Client disconnected during refresh")
        return
    except AppException as e:
        if not connected:
            logger.debug(f"Refresh failed after client left: {e.message}")
            return
        await websocket.send_json(
            WSEvent(type=WSEventType.ERROR, data=e.to_dict(), message=e.message).model_dump(mode="json")
        )

    await websocket.close()
