"""Tests for universe discovery: constituent parsing and reconciliation."""

from __future__ import annotations

from datetime import date

import httpx
import pytest

from sectorview.core.exceptions import DiscoveryError
from sectorview.database.orm import UniverseType
from sectorview.repositories import sectors_orm as sectors_repo
from sectorview.repositories import universe_orm as universe_repo
from sectorview.services.discovery import (
    Constituent,
    canonical_sector_name,
    discover_russell2000,
    discover_sp500,
    map_provider_sector,
    parse_iwm_csv,
    parse_sp500_html,
    reconcile_universe,
)
from sectorview.services.discovery.http import fetch_text


SP500_HTML = """
<html><body>
<table class="wikitable"><tr><th>Year</th><th>Event</th></tr><tr><td>2025</td><td>x</td></tr></table>
<table class="wikitable sortable" id="constituents">
  <thead>
    <tr><th>Symbol</th><th>Security</th><th>GICS Sector</th><th>GICS Sub-Industry</th></tr>
  </thead>
  <tbody>
    <tr><td>AAPL</td><td>Apple Inc.</td><td>Information Technology</td><td>Hardware</td></tr>
    <tr><td>XOM</td><td>Exxon Mobil</td><td>Energy</td><td>Integrated Oil</td></tr>
    <tr><td>BRK.B</td><td>Berkshire Hathaway</td><td>Financials</td><td>Multi-Sector Holdings</td></tr>
  </tbody>
</table>
</body></html>
"""

IWM_CSV = "\ufeff" + "\n".join([
    "iShares Russell 2000 ETF",
    'Fund Holdings as of,"Mar 02, 2026"',
    'Inception Date,"May 22, 2000"',
    "",
    "Ticker,Name,Sector,Asset Class,Market Value",
    '"SMCI","SUPER MICRO COMPUTER INC","Information Technology","Equity","1,000,000"',
    '"ELF","E L F BEAUTY INC","Consumer Staples","Equity","900,000"',
    '"XTSLA","BLK CSH FND TREASURY SL AGENCY","Cash and/or Derivatives","Money Market","50,000"',
    '"-","USD CASH","Cash and/or Derivatives","Cash","10,000"',
    '"NONAME","","Industrials","Equity","1"',
    "",
    '"The content contained herein is owned or licensed by BlackRock."',
])


# =============================================================================
# Parsing
# =============================================================================


class TestParseSp500:
    """Wikipedia constituents table."""

    def test_parses_constituents_table(self):
        constituents = parse_sp500_html(SP500_HTML)
        assert constituents == [
            Constituent("AAPL", "Apple Inc.", "Information Technology"),
            Constituent("XOM", "Exxon Mobil", "Energy"),
            Constituent("BRK.B", "Berkshire Hathaway", "Financials"),
        ]

    def test_missing_table(self):
        with pytest.raises(DiscoveryError):
            parse_sp500_html("<html><body><table><tr><td>1</td></tr></table></body></html>")

    def test_no_tables(self):
        with pytest.raises(DiscoveryError):
            parse_sp500_html("<html><body><p>maintenance</p></body></html>")


class TestParseIwm:
    """iShares holdings CSV."""

    def test_parses_equities_only(self):
        constituents = parse_iwm_csv(IWM_CSV)
        assert [c.symbol for c in constituents] == ["SMCI", "ELF", "NONAME"]
        assert constituents[0].name == "SUPER MICRO COMPUTER INC"
        assert all(c.sector is None for c in constituents)

    def test_name_defaults_to_ticker(self):
        constituents = parse_iwm_csv(IWM_CSV)
        assert constituents[-1].name == "NONAME"

    def test_without_header(self):
        assert parse_iwm_csv("not,a,holdings,file\n1,2,3,4\n") == []


class TestSectorNames:
    """Sector label mapping."""

    def test_gics_alias(self):
        assert canonical_sector_name(" Information Technology ") == "Technology"
        assert canonical_sector_name("Energy") == "Energy"

    @pytest.mark.parametrize(
        "label,expected",
        [
            ("Healthcare", "Health Care"),
            ("Financial Services", "Financials"),
            ("Consumer Cyclical", "Consumer Discretionary"),
            ("Consumer Defensive", "Consumer Staples"),
            ("Basic Materials", "Materials"),
            ("Conglomerates", None),
            (None, None),
            ("", None),
        ],
    )
    def test_provider_sector(self, label, expected):
        assert map_provider_sector(label) == expected


# =============================================================================
# Reconciliation
# =============================================================================


class TestReconcile:
    """Applying a constituent list to the registry."""

    async def test_discovers_adds_and_removes(self, db):
        today = date(2026, 3, 2)
        result = await reconcile_universe(
            UniverseType.PRIMARY,
            [
                Constituent("AAPL", "Apple Inc.", "Information Technology"),
                Constituent("NEWCO", "New Co.", "Energy"),
            ],
            today=today,
        )

        assert result.stocks_discovered == 1
        assert result.stocks_unchanged == 1
        assert result.stocks_removed == 54
        assert result.errors == []

        members = await universe_repo.list_active_members(UniverseType.PRIMARY)
        newco = await universe_repo.get_stock_by_symbol("NEWCO")
        aapl = await universe_repo.get_stock_by_symbol("AAPL")
        assert members == {aapl.id, newco.id}
        assert newco.sector_id == (await sectors_repo.get_sector_by_symbol("XLE")).id

    async def test_sector_change_counts_as_update(self, db):
        result = await reconcile_universe(
            UniverseType.PRIMARY,
            [Constituent("AAPL", "Apple Inc.", "Communication Services")],
            min_for_removal=10,
        )
        assert result.stocks_updated == 1
        aapl = await universe_repo.get_stock_by_symbol("AAPL")
        assert aapl.sector_id == (await sectors_repo.get_sector_by_symbol("XLC")).id

    async def test_unknown_sector_is_reported(self, db):
        result = await reconcile_universe(
            UniverseType.SECONDARY,
            [Constituent("ODD", "Odd Inc.", "Cryptocurrency")],
        )
        assert result.stocks_discovered == 0
        assert len(result.errors) == 1
        assert await universe_repo.get_stock_by_symbol("ODD") is None

    async def test_unknown_sector_keeps_existing_membership(self, db):
        result = await reconcile_universe(
            UniverseType.PRIMARY,
            [
                Constituent("AAPL", "Apple Inc.", "Cryptocurrency"),
                Constituent("XOM", "Exxon Mobil", "Energy"),
            ],
        )

        aapl = await universe_repo.get_stock_by_symbol("AAPL")
        xom = await universe_repo.get_stock_by_symbol("XOM")
        assert len(result.errors) == 1
        assert result.stocks_removed == 53
        assert await universe_repo.list_active_members(UniverseType.PRIMARY) == {aapl.id, xom.id}

    async def test_short_list_does_not_remove(self, db):
        result = await reconcile_universe(
            UniverseType.PRIMARY,
            [Constituent("AAPL", "Apple Inc.", "Information Technology")],
            min_for_removal=450,
        )
        assert result.stocks_removed == 0
        assert len(result.errors) == 1
        assert len(await universe_repo.list_active_members(UniverseType.PRIMARY)) == 55

    async def test_reconcile_is_idempotent(self, db):
        constituents = [Constituent("SMCI", "Super Micro"), Constituent("ELF", "e.l.f.")]
        await reconcile_universe(UniverseType.SECONDARY, constituents)
        again = await reconcile_universe(UniverseType.SECONDARY, constituents)

        assert (again.stocks_discovered, again.stocks_unchanged, again.stocks_removed) == (0, 2, 0)
        assert len(await universe_repo.list_active_members(UniverseType.SECONDARY)) == 2

    async def test_unsectored_rows_keep_existing_sector(self, db):
        await reconcile_universe(UniverseType.SECONDARY, [Constituent("AAPL", "Apple Inc.")])
        aapl = await universe_repo.get_stock_by_symbol("AAPL")
        assert aapl.sector_id == (await sectors_repo.get_sector_by_symbol("XLK")).id
        assert aapl.id in await universe_repo.list_active_members(UniverseType.SECONDARY)


# =============================================================================
# Downloads
# =============================================================================


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestDownloads:
    """HTTP layer and end-to-end discovery."""

    async def test_http_error_status(self):
        async with _client(lambda request: httpx.Response(503)) as client:
            with pytest.raises(DiscoveryError) as exc_info:
                await fetch_text("https://example.test/list", "Test", client)
        assert exc_info.value.details["status_code"] == 503

    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(DiscoveryError):
                await fetch_text("https://example.test/list", "Test", client)

    async def test_sends_user_agent(self):
        seen = {}

        def handler(request):
            seen["ua"] = request.headers["user-agent"]
            return httpx.Response(200, text="ok")

        async with _client(handler) as client:
            assert await fetch_text("https://example.test/list", "Test", client) == "ok"
        assert seen["ua"].startswith("SectorView/")

    async def test_discover_sp500_end_to_end(self, db):
        async with _client(lambda request: httpx.Response(200, text=SP500_HTML)) as client:
            result = await discover_sp500(client)

        # Three rows is far below the removal guard, so nobody is removed
        assert (result.stocks_discovered, result.stocks_updated, result.stocks_unchanged) == (0, 1, 2)
        assert result.stocks_removed == 0
        assert len(result.errors) == 1
        brk = await universe_repo.get_stock_by_symbol("BRK.B")
        assert brk.sector_id == (await sectors_repo.get_sector_by_symbol("XLF")).id

    async def test_discover_russell2000_end_to_end(self, db):
        async with _client(lambda request: httpx.Response(200, text=IWM_CSV)) as client:
            result = await discover_russell2000(client)

        assert result.stocks_discovered == 3
        assert len(await universe_repo.list_active_members(UniverseType.SECONDARY)) == 3
