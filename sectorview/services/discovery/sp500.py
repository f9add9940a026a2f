"""
S&P 500 constituent discovery from Wikipedia.

Usage:
    from sectorview.services.discovery import discover_sp500

    result = await discover_sp500()
"""

from __future__ import annotations

from io import StringIO

import httpx
import pandas as pd

from sectorview.core.exceptions import DiscoveryError
from sectorview.core.logging import get_logger
from sectorview.database.orm import UniverseType
from sectorview.schemas import DiscoveryResult

from .http import fetch_text
from .reconcile import Constituent, reconcile_universe


logger = get_logger("discovery.sp500")

SP500_WIKIPEDIA_URL = "https://en.wikipedia.org/wiki/List_of_S%26P_500_companies"

# Fewer parsed rows than this means the page changed; don't close memberships
MIN_SP500_CONSTITUENTS = 450


def parse_sp500_html(html: str) -> list[Constituent]:
    """Extract (symbol, name, GICS sector) rows from the constituents table.

    Raises:
        DiscoveryError: If no table with Symbol / Security / GICS Sector columns exists
    """
    try:
        tables = pd.read_html(StringIO(html))
    except ValueError as e:
        raise DiscoveryError("No tables found on the S&P 500 page") from e

    for table in tables:
        columns = {str(col).strip(): col for col in table.columns}
        if not {"Symbol", "Security", "GICS Sector"} <= columns.keys():
            continue

        constituents = []
        for symbol, name, sector in zip(
            table[columns["Symbol"]],
            table[columns["Security"]],
            table[columns["GICS Sector"]],
        ):
            if pd.isna(symbol) or pd.isna(sector):
                continue
            symbol = str(symbol).strip().upper()
            sector = str(sector).strip()
            if not symbol or not sector:
                continue
            name = str(name).strip() if not pd.isna(name) else symbol
            constituents.append(Constituent(symbol=symbol, name=name, sector=sector))
        return constituents

    raise DiscoveryError("Could not find S&P 500 table on Wikipedia")


async def discover_sp500(client: httpx.AsyncClient | None = None) -> DiscoveryResult:
    """Reconcile the primary universe with the current S&P 500 list."""
    html = await fetch_text(SP500_WIKIPEDIA_URL, "Wikipedia", client)
    constituents = parse_sp500_html(html)
    logger.info(f"Parsed {len(constituents)} S&P 500 constituents")
    return await reconcile_universe(
        UniverseType.PRIMARY,
        constituents,
        min_for_removal=MIN_SP500_CONSTITUENTS,
    )
