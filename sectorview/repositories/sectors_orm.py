"""Sector taxonomy repository using SQLAlchemy ORM.

Sectors are seeded once and never modified, so this module is read-only.

Usage:
    from sectorview.repositories import sectors_orm as sectors_repo

    sector = await sectors_repo.get_sector_by_symbol("XLK")
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select

from sectorview.core.exceptions import SectorNotFoundError
from sectorview.core.logging import get_logger
from sectorview.database.connection import get_session
from sectorview.database.orm import Sector


logger = get_logger("repositories.sectors_orm")


async def list_sectors() -> Sequence[Sector]:
    """List all sectors ordered by name."""
    async with get_session() as session:
        result = await session.execute(select(Sector).order_by(Sector.name))
        return result.scalars().all()


async def get_sector(sector_id: int) -> Sector:
    """Get a sector by id.

    Raises:
        SectorNotFoundError: If no sector has this id
    """
    async with get_session() as session:
        sector = await session.get(Sector, sector_id)
    if sector is None:
        raise SectorNotFoundError(
            f"Sector not found: {sector_id}", details={"sector_id": sector_id}
        )
    return sector


async def get_sector_by_symbol(symbol: str) -> Sector:
    """Get a sector by its ETF symbol (e.g. XLK).

    Raises:
        SectorNotFoundError: If no sector has this symbol
    """
    async with get_session() as session:
        result = await session.execute(
            select(Sector).where(Sector.symbol == symbol.upper())
        )
        sector = result.scalar_one_or_none()
    if sector is None:
        raise SectorNotFoundError(
            f"Sector not found: {symbol}", details={"sector_symbol": symbol}
        )
    return sector


async def get_sector_ids_by_name() -> dict[str, int]:
    """Map sector names to ids, for classifying discovered stocks."""
    async with get_session() as session:
        result = await session.execute(select(Sector.name, Sector.id))
        return {name: sector_id for name, sector_id in result.all()}
