"""Bring a universe's stored membership in line with a constituent list.

Both discovery sources produce a list of Constituent rows; this module owns
everything that happens to the registry afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional

from sectorview.core.exceptions import AlreadyMemberError, NotMemberError
from sectorview.core.logging import get_logger
from sectorview.database.orm import UniverseType
from sectorview.repositories import sectors_orm as sectors_repo
from sectorview.repositories import universe_orm as universe_repo
from sectorview.schemas import DiscoveryResult


logger = get_logger("discovery.reconcile")


# Wikipedia uses the official GICS name; the sector table uses the short one
GICS_NAME_ALIASES: dict[str, str] = {
    "Information Technology": "Technology",
}

# Yahoo Finance sector labels -> sector table names
YAHOO_SECTOR_MAP: dict[str, str] = {
    "Technology": "Technology",
    "Healthcare": "Health Care",
    "Financial Services": "Financials",
    "Consumer Cyclical": "Consumer Discretionary",
    "Communication Services": "Communication Services",
    "Industrials": "Industrials",
    "Consumer Defensive": "Consumer Staples",
    "Energy": "Energy",
    "Utilities": "Utilities",
    "Real Estate": "Real Estate",
    "Basic Materials": "Materials",
}


@dataclass(frozen=True)
class Constituent:
    """One row of a universe's constituent list."""

    symbol: str
    name: str
    sector: Optional[str] = None  # GICS name, None when the source has no sector


def canonical_sector_name(gics_name: str) -> str:
    name = gics_name.strip()
    return GICS_NAME_ALIASES.get(name, name)


def map_provider_sector(provider_sector: str | None) -> str | None:
    """Sector table name for a Yahoo Finance sector label, or None if unknown."""
    if not provider_sector:
        return None
    return YAHOO_SECTOR_MAP.get(provider_sector.strip())


async def reconcile_universe(
    universe: UniverseType,
    constituents: list[Constituent],
    today: date | None = None,
    min_for_removal: int = 0,
) -> DiscoveryResult:
    """Apply a constituent list to the registry.

    New symbols are inserted, sector changes applied, memberships opened for
    constituents that are not active members and closed for active members
    that are no longer listed. Removal is skipped when fewer than
    `min_for_removal` constituents were parsed, so a truncated download
    cannot empty the universe.
    """
    today = today or date.today()
    result = DiscoveryResult()
    sector_ids = await sectors_repo.get_sector_ids_by_name()
    active = await universe_repo.list_active_members(universe)
    seen: set[int] = set()

    for row in constituents:
        sector_id: int | None = None
        if row.sector is not None:
            sector_id = sector_ids.get(canonical_sector_name(row.sector))
            if sector_id is None:
                result.errors.append(f"Unknown sector '{row.sector}' for {row.symbol}")
                existing = await universe_repo.get_stock_by_symbol(row.symbol)
                if existing is not None:
                    seen.add(existing.id)
                continue

        stock, created = await universe_repo.get_or_create_stock(
            row.symbol, row.name, sector_id
        )
        if created:
            result.stocks_discovered += 1
        elif sector_id is not None and stock.sector_id != sector_id:
            await universe_repo.assign_sector(stock.id, sector_id)
            result.stocks_updated += 1
        else:
            result.stocks_unchanged += 1

        seen.add(stock.id)
        if stock.id not in active:
            try:
                await universe_repo.add_to_universe(stock.id, universe, today)
            except AlreadyMemberError:
                pass
            active.add(stock.id)

    departed = active - seen
    if departed and len(constituents) < min_for_removal:
        result.errors.append(
            f"Skipped {len(departed)} removals: only {len(constituents)} constituents parsed"
        )
    else:
        for stock_id in departed:
            try:
                await universe_repo.remove_from_universe(stock_id, universe, today)
                result.stocks_removed += 1
            except NotMemberError:
                pass

    logger.info(
        f"{universe.value} discovery: {result.stocks_discovered} new, "
        f"{result.stocks_updated} updated, {result.stocks_unchanged} unchanged, "
        f"{result.stocks_removed} removed, {len(result.errors)} errors"
    )
    return result
