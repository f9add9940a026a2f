"""Universe registry: stocks, sector assignment and universe membership.

Membership rows are never deleted. Leaving a universe closes the active row
(sets date_removed); rejoining opens a new one. Writes for the same stock are
serialised in-process, and the partial unique index on
(stock_id, universe_type) WHERE date_removed IS NULL backs that up at the
database level.

Usage:
    from sectorview.repositories import universe_orm as universe_repo

    stock, created = await universe_repo.get_or_create_stock("AAPL", "Apple Inc.", sector_id)
    await universe_repo.add_to_universe(stock.id, UniverseType.PRIMARY)
    members = await universe_repo.list_active_members(UniverseType.PRIMARY)
"""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import Sequence
from datetime import date

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError

from sectorview.core.exceptions import (
    AlreadyMemberError,
    NotMemberError,
    SectorNotFoundError,
    StockNotFoundError,
)
from sectorview.core.logging import get_logger
from sectorview.database.connection import get_session
from sectorview.database.orm import (
    Sector,
    Stock,
    StockUniverseMembership,
    UniverseType,
)


logger = get_logger("repositories.universe_orm")


# =============================================================================
# PER-STOCK WRITE SERIALISATION
# =============================================================================

# asyncio locks belong to one event loop, so keep one lock table per loop
_locks_by_loop: weakref.WeakKeyDictionary[
    asyncio.AbstractEventLoop, dict[int, asyncio.Lock]
] = weakref.WeakKeyDictionary()


def _stock_lock(stock_id: int) -> asyncio.Lock:
    """Get or create the write lock for a stock."""
    loop = asyncio.get_running_loop()
    locks = _locks_by_loop.setdefault(loop, {})
    if stock_id not in locks:
        locks[stock_id] = asyncio.Lock()
    return locks[stock_id]


def _universe_value(universe: UniverseType | str) -> str:
    return UniverseType(universe).value


# =============================================================================
# STOCKS
# =============================================================================

async def get_stock(stock_id: int) -> Stock:
    """Get a stock by id.

    Raises:
        StockNotFoundError: If no stock has this id
    """
    async with get_session() as session:
        stock = await session.get(Stock, stock_id)
    if stock is None:
        raise StockNotFoundError(
            f"Stock not found: {stock_id}", details={"stock_id": stock_id}
        )
    return stock


async def get_stock_by_symbol(symbol: str) -> Stock | None:
    """Get a stock by ticker, or None."""
    async with get_session() as session:
        result = await session.execute(
            select(Stock).where(Stock.symbol == symbol.upper())
        )
        return result.scalar_one_or_none()


async def get_or_create_stock(
    symbol: str,
    name: str,
    sector_id: int | None = None,
) -> tuple[Stock, bool]:
    """Return the stock for a ticker, inserting it if unknown.

    An existing stock keeps its sector; use assign_sector() to change it.

    Returns:
        (stock, created)
    """
    existing = await get_stock_by_symbol(symbol)
    if existing is not None:
        return existing, False

    async with get_session() as session:
        stock = Stock(symbol=symbol.upper(), name=name, sector_id=sector_id)
        session.add(stock)
        try:
            await session.commit()
        except IntegrityError:
            # Lost an insert race for the same symbol
            await session.rollback()
            existing = await get_stock_by_symbol(symbol)
            if existing is None:
                raise
            return existing, False

    logger.debug(f"Inserted stock {stock.symbol} (sector_id={sector_id})")
    return stock, True


async def list_stocks_by_sector(sector_id: int) -> Sequence[Stock]:
    """All stocks assigned to a sector, regardless of universe."""
    async with get_session() as session:
        result = await session.execute(
            select(Stock).where(Stock.sector_id == sector_id).order_by(Stock.symbol)
        )
        return result.scalars().all()


# =============================================================================
# SECTOR ASSIGNMENT
# =============================================================================

async def assign_sector(stock_id: int, sector_id: int | None) -> bool:
    """Set a stock's sector. Idempotent.

    Returns:
        True if the stored sector changed

    Raises:
        StockNotFoundError: If the stock does not exist
        SectorNotFoundError: If the sector does not exist
    """
    async with _stock_lock(stock_id):
        async with get_session() as session:
            stock = await session.get(Stock, stock_id)
            if stock is None:
                raise StockNotFoundError(
                    f"Stock not found: {stock_id}", details={"stock_id": stock_id}
                )
            if sector_id is not None and await session.get(Sector, sector_id) is None:
                raise SectorNotFoundError(
                    f"Sector not found: {sector_id}", details={"sector_id": sector_id}
                )
            if stock.sector_id == sector_id:
                return False

            stock.sector_id = sector_id
            await session.commit()

    logger.debug(f"Assigned stock {stock_id} to sector {sector_id}")
    return True


# =============================================================================
# UNIVERSE MEMBERSHIP
# =============================================================================

async def _get_active_membership(
    session,
    stock_id: int,
    universe: str,
) -> StockUniverseMembership | None:
    result = await session.execute(
        select(StockUniverseMembership).where(
            and_(
                StockUniverseMembership.stock_id == stock_id,
                StockUniverseMembership.universe_type == universe,
                StockUniverseMembership.date_removed.is_(None),
            )
        )
    )
    return result.scalar_one_or_none()


async def add_to_universe(
    stock_id: int,
    universe: UniverseType | str,
    on_date: date | None = None,
) -> StockUniverseMembership:
    """Open a membership row for a stock.

    Raises:
        StockNotFoundError: If the stock does not exist
        AlreadyMemberError: If the stock already has an active row
    """
    universe_value = _universe_value(universe)
    on_date = on_date or date.today()

    async with _stock_lock(stock_id):
        async with get_session() as session:
            if await session.get(Stock, stock_id) is None:
                raise StockNotFoundError(
                    f"Stock not found: {stock_id}", details={"stock_id": stock_id}
                )
            if await _get_active_membership(session, stock_id, universe_value):
                raise AlreadyMemberError(
                    details={"stock_id": stock_id, "universe": universe_value}
                )

            membership = StockUniverseMembership(
                stock_id=stock_id,
                universe_type=universe_value,
                date_added=on_date,
            )
            session.add(membership)
            try:
                await session.commit()
            except IntegrityError as e:
                # Another process opened the row first
                await session.rollback()
                raise AlreadyMemberError(
                    details={"stock_id": stock_id, "universe": universe_value}
                ) from e

    return membership


async def remove_from_universe(
    stock_id: int,
    universe: UniverseType | str,
    on_date: date | None = None,
) -> StockUniverseMembership:
    """Close a stock's active membership row.

    Raises:
        NotMemberError: If the stock has no active row
    """
    universe_value = _universe_value(universe)
    on_date = on_date or date.today()

    async with _stock_lock(stock_id):
        async with get_session() as session:
            membership = await _get_active_membership(session, stock_id, universe_value)
            if membership is None:
                raise NotMemberError(
                    details={"stock_id": stock_id, "universe": universe_value}
                )
            membership.date_removed = on_date
            await session.commit()

    return membership


async def list_active_members(universe: UniverseType | str) -> set[int]:
    """Ids of all stocks with an active membership in the universe."""
    async with get_session() as session:
        result = await session.execute(
            select(StockUniverseMembership.stock_id).where(
                and_(
                    StockUniverseMembership.universe_type == _universe_value(universe),
                    StockUniverseMembership.date_removed.is_(None),
                )
            )
        )
        return set(result.scalars().all())


async def list_active_member_stocks(
    universe: UniverseType | str,
    sector_id: int | None = None,
    classified_only: bool = False,
) -> Sequence[Stock]:
    """Active member stocks of a universe, optionally narrowed to one sector.

    Args:
        universe: Universe to list
        sector_id: Only members assigned to this sector
        classified_only: Skip members without a sector
    """
    stmt = (
        select(Stock)
        .join(StockUniverseMembership, StockUniverseMembership.stock_id == Stock.id)
        .where(
            and_(
                StockUniverseMembership.universe_type == _universe_value(universe),
                StockUniverseMembership.date_removed.is_(None),
            )
        )
        .order_by(Stock.symbol)
    )
    if sector_id is not None:
        stmt = stmt.where(Stock.sector_id == sector_id)
    elif classified_only:
        stmt = stmt.where(Stock.sector_id.is_not(None))

    async with get_session() as session:
        result = await session.execute(stmt)
        return result.scalars().all()


async def get_membership_history(
    stock_id: int,
    universe: UniverseType | str | None = None,
) -> Sequence[StockUniverseMembership]:
    """All membership rows of a stock, oldest first."""
    stmt = select(StockUniverseMembership).where(
        StockUniverseMembership.stock_id == stock_id
    )
    if universe is not None:
        stmt = stmt.where(
            StockUniverseMembership.universe_type == _universe_value(universe)
        )
    stmt = stmt.order_by(StockUniverseMembership.id)

    async with get_session() as session:
        result = await session.execute(stmt)
        return result.scalars().all()
