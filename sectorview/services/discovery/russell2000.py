"""
Russell 2000 constituent discovery from the iShares IWM holdings file.

The holdings CSV starts with a few lines of fund metadata and ends with a
disclaimer, so the header row is located by content before parsing.
Discovered stocks carry no sector; they are classified later from the
provider's sector label after their first successful fetch.

Usage:
    from sectorview.services.discovery import discover_russell2000

    result = await discover_russell2000()
"""

from __future__ import annotations

from io import StringIO

import httpx
import pandas as pd

from sectorview.core.logging import get_logger
from sectorview.database.orm import UniverseType
from sectorview.schemas import DiscoveryResult

from .http import fetch_text
from .reconcile import Constituent, reconcile_universe


logger = get_logger("discovery.russell2000")

IWM_CSV_URL = (
    "https://www.ishares.com/us/products/239710/ISHARES-RUSSELL-2000-ETF/"
    "1467271812596.ajax?fileType=csv&fileName=IWM_holdings&dataType=fund"
)

MIN_RUSSELL2000_CONSTITUENTS = 1500


def _find_header_row(lines: list[str]) -> int | None:
    for index, line in enumerate(lines):
        lower = line.lower()
        if "ticker" in lower and "asset class" in lower:
            return index
    return None


def parse_iwm_csv(text: str) -> list[Constituent]:
    """Extract equity holdings from the IWM CSV.

    Rows whose asset class is not Equity, and rows with an empty or "-"
    ticker, are dropped. A file without a recognisable header yields an
    empty list.
    """
    lines = text.lstrip("\ufeff").splitlines()
    header_index = _find_header_row(lines)
    if header_index is None:
        logger.warning("IWM holdings file has no Ticker / Asset Class header")
        return []

    frame = pd.read_csv(
        StringIO("\n".join(lines[header_index:])),
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        on_bad_lines="skip",
    )
    frame = frame.fillna("")
    frame.columns = [str(col).strip().lower() for col in frame.columns]
    if "ticker" not in frame.columns:
        return []

    if "asset class" in frame.columns:
        frame = frame[frame["asset class"].str.strip().str.lower() == "equity"]

    constituents = []
    for _, row in frame.iterrows():
        ticker = row["ticker"].strip().upper()
        if not ticker or ticker == "-":
            continue
        name = row["name"].strip() if "name" in frame.columns else ""
        constituents.append(Constituent(symbol=ticker, name=name or ticker))
    return constituents


async def discover_russell2000(client: httpx.AsyncClient | None = None) -> DiscoveryResult:
    """Reconcile the secondary universe with the current IWM holdings."""
    text = await fetch_text(IWM_CSV_URL, "iShares IWM holdings", client)
    constituents = parse_iwm_csv(text)
    logger.info(f"Parsed {len(constituents)} Russell 2000 constituents")
    return await reconcile_universe(
        UniverseType.SECONDARY,
        constituents,
        min_for_removal=MIN_RUSSELL2000_CONSTITUENTS,
    )
