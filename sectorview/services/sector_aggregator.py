"""Sector-level summaries over each member's latest snapshot.

`aggregate_sectors` is a pure function of its inputs; `get_sector_summaries`
loads those inputs for one universe.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Protocol

import numpy as np

from sectorview.core.logging import get_logger
from sectorview.database.orm import UniverseType
from sectorview.repositories import market_data_orm as market_data_repo
from sectorview.repositories import sectors_orm as sectors_repo
from sectorview.repositories import universe_orm as universe_repo
from sectorview.schemas import SectorSummary


logger = get_logger("services.sector_aggregator")


class _SectorLike(Protocol):
    id: int
    name: str
    symbol: str


class _StockLike(Protocol):
    id: int
    sector_id: int | None


def _mean(values: list[float]) -> float | None:
    return float(np.mean(values)) if values else None


def aggregate_sectors(
    sectors: Sequence[_SectorLike],
    members: Iterable[_StockLike],
    latest_snapshots: Mapping[int, Any],
) -> list[SectorSummary]:
    """Summarise each sector over its members' latest snapshots.

    Members without a sector or without a snapshot do not count. A sector
    with no qualifying member gets stock_count 0 and every derived field None.

    Args:
        sectors: Sectors to report, in output order
        members: Active universe members
        latest_snapshots: stock_id -> latest snapshot (needs price_change_percent,
            pe_ratio, market_cap and beta attributes)
    """
    by_sector: dict[int, list[Any]] = {}
    for stock in members:
        if stock.sector_id is None:
            continue
        snapshot = latest_snapshots.get(stock.id)
        if snapshot is None:
            continue
        by_sector.setdefault(stock.sector_id, []).append(snapshot)

    summaries = []
    for sector in sectors:
        snapshots = by_sector.get(sector.id, [])
        caps = [s.market_cap for s in snapshots if s.market_cap is not None]
        summaries.append(
            SectorSummary(
                sector_id=sector.id,
                name=sector.name,
                symbol=sector.symbol,
                avg_change_percent=_mean([s.price_change_percent for s in snapshots]),
                avg_pe_ratio=_mean([s.pe_ratio for s in snapshots if s.pe_ratio is not None]),
                total_market_cap=int(sum(caps)) if caps else None,
                stock_count=len(snapshots),
                avg_beta=_mean([s.beta for s in snapshots if s.beta is not None]),
            )
        )
    return summaries


async def get_sector_summaries(universe: UniverseType | str = UniverseType.PRIMARY) -> list[SectorSummary]:
    """Current summaries for every sector, restricted to a universe's active members."""
    sectors = await sectors_repo.list_sectors()
    members = await universe_repo.list_active_member_stocks(universe, classified_only=True)
    latest = await market_data_repo.get_latest_snapshots([m.id for m in members])
    summaries = aggregate_sectors(sectors, members, latest)
    logger.debug(
        f"Aggregated {len(summaries)} sectors over {len(latest)} snapshots ({UniverseType(universe).value})"
    )
    return summaries
