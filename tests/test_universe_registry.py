"""Tests for the universe registry: stocks, sectors and membership."""

from __future__ import annotations

import asyncio
from datetime import date

import pytest

from sectorview.core.exceptions import (
    AlreadyMemberError,
    NotMemberError,
    SectorNotFoundError,
    StockNotFoundError,
)
from sectorview.database.orm import UniverseType
from sectorview.repositories import sectors_orm as sectors_repo
from sectorview.repositories import universe_orm as universe_repo


class TestSeed:
    """Seeded taxonomy and starter universe."""

    async def test_eleven_sectors(self, db):
        sectors = await sectors_repo.list_sectors()
        assert len(sectors) == 11
        assert {s.symbol for s in sectors} >= {"XLK", "XLV", "XLRE", "XLC"}

    async def test_classified_seed_stocks_are_primary_members(self, db):
        members = await universe_repo.list_active_members(UniverseType.PRIMARY)
        assert len(members) == 55

    async def test_unclassified_seed_stocks_exist_but_are_not_members(self, db):
        stock = await universe_repo.get_stock_by_symbol("PLTR")
        assert stock is not None
        assert stock.sector_id is None
        assert stock.id not in await universe_repo.list_active_members(UniverseType.PRIMARY)


class TestStocks:
    """Stock lookup and creation."""

    async def test_get_or_create_is_idempotent(self, db):
        first, created = await universe_repo.get_or_create_stock("zzzz", "Zed Corp.")
        again, created_again = await universe_repo.get_or_create_stock("ZZZZ", "Other name")
        assert created is True
        assert created_again is False
        assert again.id == first.id
        assert again.name == "Zed Corp."

    async def test_get_stock_unknown(self, db):
        with pytest.raises(StockNotFoundError):
            await universe_repo.get_stock(999_999)

    async def test_sector_lookup_by_symbol_is_case_insensitive(self, db):
        sector = await sectors_repo.get_sector_by_symbol("xlk")
        assert sector.name == "Technology"

    async def test_unknown_sector_symbol(self, db):
        with pytest.raises(SectorNotFoundError):
            await sectors_repo.get_sector_by_symbol("XXX")


class TestAssignSector:
    """Sector assignment."""

    async def test_assign_and_reassign(self, db):
        stock = await universe_repo.get_stock_by_symbol("PLTR")
        xlk = await sectors_repo.get_sector_by_symbol("XLK")

        assert await universe_repo.assign_sector(stock.id, xlk.id) is True
        assert await universe_repo.assign_sector(stock.id, xlk.id) is False
        assert (await universe_repo.get_stock(stock.id)).sector_id == xlk.id

    async def test_unknown_sector(self, db):
        stock = await universe_repo.get_stock_by_symbol("PLTR")
        with pytest.raises(SectorNotFoundError):
            await universe_repo.assign_sector(stock.id, 999)

    async def test_unknown_stock(self, db):
        with pytest.raises(StockNotFoundError):
            await universe_repo.assign_sector(999_999, 1)


class TestMembership:
    """Time-bounded universe membership."""

    async def test_add_then_add_again_fails(self, db):
        stock, _ = await universe_repo.get_or_create_stock("NEWCO", "New Co.")
        await universe_repo.add_to_universe(stock.id, UniverseType.SECONDARY, date(2026, 1, 5))

        with pytest.raises(AlreadyMemberError):
            await universe_repo.add_to_universe(stock.id, UniverseType.SECONDARY, date(2026, 1, 6))

    async def test_universes_are_independent(self, db):
        stock = await universe_repo.get_stock_by_symbol("AAPL")
        await universe_repo.add_to_universe(stock.id, UniverseType.SECONDARY)

        assert stock.id in await universe_repo.list_active_members(UniverseType.PRIMARY)
        assert stock.id in await universe_repo.list_active_members(UniverseType.SECONDARY)

    async def test_remove_closes_row_and_keeps_history(self, db):
        stock, _ = await universe_repo.get_or_create_stock("NEWCO", "New Co.")
        await universe_repo.add_to_universe(stock.id, "russell2000", date(2026, 1, 5))
        closed = await universe_repo.remove_from_universe(stock.id, "russell2000", date(2026, 2, 1))

        assert closed.date_removed == date(2026, 2, 1)
        assert stock.id not in await universe_repo.list_active_members(UniverseType.SECONDARY)
        history = await universe_repo.get_membership_history(stock.id)
        assert len(history) == 1

    async def test_rejoin_opens_new_row(self, db):
        stock, _ = await universe_repo.get_or_create_stock("NEWCO", "New Co.")
        await universe_repo.add_to_universe(stock.id, "russell2000", date(2026, 1, 5))
        await universe_repo.remove_from_universe(stock.id, "russell2000", date(2026, 2, 1))
        await universe_repo.add_to_universe(stock.id, "russell2000", date(2026, 3, 1))

        history = await universe_repo.get_membership_history(stock.id, "russell2000")
        assert [(m.date_added, m.date_removed) for m in history] == [
            (date(2026, 1, 5), date(2026, 2, 1)),
            (date(2026, 3, 1), None),
        ]

    async def test_remove_non_member_fails(self, db):
        stock, _ = await universe_repo.get_or_create_stock("NEWCO", "New Co.")
        with pytest.raises(NotMemberError):
            await universe_repo.remove_from_universe(stock.id, UniverseType.PRIMARY)

    async def test_add_unknown_stock(self, db):
        with pytest.raises(StockNotFoundError):
            await universe_repo.add_to_universe(999_999, UniverseType.PRIMARY)

    async def test_concurrent_adds_leave_one_active_row(self, db):
        stock, _ = await universe_repo.get_or_create_stock("RACE", "Race Inc.")

        results = await asyncio.gather(
            *(universe_repo.add_to_universe(stock.id, UniverseType.SECONDARY) for _ in range(5)),
            return_exceptions=True,
        )

        assert sum(1 for r in results if not isinstance(r, Exception)) == 1
        assert all(isinstance(r, AlreadyMemberError) for r in results if isinstance(r, Exception))
        history = await universe_repo.get_membership_history(stock.id, UniverseType.SECONDARY)
        assert len([m for m in history if m.date_removed is None]) == 1

    async def test_active_member_stocks_by_sector(self, db):
        xlk = await sectors_repo.get_sector_by_symbol("XLK")
        stocks = await universe_repo.list_active_member_stocks(UniverseType.PRIMARY, sector_id=xlk.id)
        assert [s.symbol for s in stocks] == ["AAPL", "AVGO", "CRM", "MSFT", "NVDA"]
