"""Seed data: the 11 GICS sectors and a representative S&P 500 starter set."""

from __future__ import annotations

from datetime import date

from sqlalchemy import select

from sectorview.core.logging import get_logger

from .connection import get_session
from .orm import Sector, Stock, StockUniverseMembership, UniverseType


logger = get_logger("database.seed")


# (name, sector ETF symbol)
GICS_SECTORS: list[tuple[str, str]] = [
    ("Technology", "XLK"),
    ("Health Care", "XLV"),
    ("Financials", "XLF"),
    ("Consumer Discretionary", "XLY"),
    ("Communication Services", "XLC"),
    ("Industrials", "XLI"),
    ("Consumer Staples", "XLP"),
    ("Energy", "XLE"),
    ("Utilities", "XLU"),
    ("Real Estate", "XLRE"),
    ("Materials", "XLB"),
]

# sector symbol -> [(stock symbol, name)]
SEED_STOCKS: dict[str | None, list[tuple[str, str]]] = {
    "XLK": [
        ("AAPL", "Apple Inc."),
        ("MSFT", "Microsoft Corp."),
        ("NVDA", "NVIDIA Corp."),
        ("AVGO", "Broadcom Inc."),
        ("CRM", "Salesforce Inc."),
    ],
    "XLV": [
        ("JNJ", "Johnson & Johnson"),
        ("PFE", "Pfizer Inc."),
        ("UNH", "UnitedHealth Group Inc."),
        ("ABBV", "AbbVie Inc."),
        ("TMO", "Thermo Fisher Scientific Inc."),
    ],
    "XLF": [
        ("JPM", "JPMorgan Chase & Co."),
        ("BAC", "Bank of America Corp."),
        ("WFC", "Wells Fargo & Co."),
        ("GS", "Goldman Sachs Group Inc."),
        ("MS", "Morgan Stanley"),
    ],
    "XLY": [
        ("AMZN", "Amazon.com Inc."),
        ("TSLA", "Tesla Inc."),
        ("HD", "Home Depot Inc."),
        ("MCD", "McDonald's Corp."),
        ("NKE", "Nike Inc."),
    ],
    # GOOGL and META sit in Communication Services (primary GICS classification)
    "XLC": [
        ("GOOGL", "Alphabet Inc."),
        ("META", "Meta Platforms Inc."),
        ("VZ", "Verizon Communications Inc."),
        ("T", "AT&T Inc."),
        ("DIS", "Walt Disney Co."),
    ],
    "XLI": [
        ("BA", "Boeing Co."),
        ("CAT", "Caterpillar Inc."),
        ("UPS", "United Parcel Service Inc."),
        ("GE", "GE Aerospace"),
        ("RTX", "RTX Corp."),
    ],
    "XLP": [
        ("PG", "Procter & Gamble Co."),
        ("KO", "Coca-Cola Co."),
        ("PEP", "PepsiCo Inc."),
        ("WMT", "Walmart Inc."),
        ("COST", "Costco Wholesale Corp."),
    ],
    "XLE": [
        ("XOM", "Exxon Mobil Corp."),
        ("CVX", "Chevron Corp."),
        ("COP", "ConocoPhillips"),
        ("EOG", "EOG Resources Inc."),
        ("SLB", "Schlumberger Ltd."),
    ],
    "XLU": [
        ("NEE", "NextEra Energy Inc."),
        ("SO", "Southern Co."),
        ("DUK", "Duke Energy Corp."),
        ("AEP", "American Electric Power Co."),
        ("EXC", "Exelon Corp."),
    ],
    "XLRE": [
        ("AMT", "American Tower Corp."),
        ("PLD", "Prologis Inc."),
        ("CCI", "Crown Castle Inc."),
        ("EQIX", "Equinix Inc."),
        ("SPG", "Simon Property Group Inc."),
    ],
    "XLB": [
        ("LIN", "Linde plc"),
        ("APD", "Air Products & Chemicals Inc."),
        ("SHW", "Sherwin-Williams Co."),
        ("FCX", "Freeport-McMoRan Inc."),
        ("DOW", "Dow Inc."),
    ],
    # Unclassified: addressable, but excluded from aggregation and detection
    None: [
        ("BRK.B", "Berkshire Hathaway Inc."),
        ("PLTR", "Palantir Technologies Inc."),
    ],
}


async def seed_database(today: date | None = None) -> dict[str, int]:
    """Insert missing sectors and starter stocks.

    Newly inserted classified stocks join the primary universe. Existing rows
    are left alone, so a stock that discovery removed from the universe is not
    re-added on the next start.
    """
    today = today or date.today()
    sectors_added = 0
    stocks_added = 0

    async with get_session() as session:
        existing_sectors = {
            s.symbol: s
            for s in (await session.execute(select(Sector))).scalars().all()
        }
        for name, symbol in GICS_SECTORS:
            if symbol not in existing_sectors:
                sector = Sector(name=name, symbol=symbol)
                session.add(sector)
                existing_sectors[symbol] = sector
                sectors_added += 1
        await session.flush()

        existing_stocks = set(
            (await session.execute(select(Stock.symbol))).scalars().all()
        )
        for sector_symbol, stocks in SEED_STOCKS.items():
            sector_id = existing_sectors[sector_symbol].id if sector_symbol else None
            for symbol, name in stocks:
                if symbol in existing_stocks:
                    continue
                stock = Stock(symbol=symbol, name=name, sector_id=sector_id)
                session.add(stock)
                await session.flush()
                if sector_id is not None:
                    session.add(
                        StockUniverseMembership(
                            stock_id=stock.id,
                            universe_type=UniverseType.PRIMARY.value,
                            date_added=today,
                        )
                    )
                stocks_added += 1

        await session.commit()

    if sectors_added or stocks_added:
        logger.info(f"Seeded {sectors_added} sectors and {stocks_added} stocks")
    return {"sectors": sectors_added, "stocks": stocks_added}
