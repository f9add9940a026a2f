"""Universe discovery: reconcile stored membership with published constituent lists."""

from .reconcile import (
    YAHOO_SECTOR_MAP,
    Constituent,
    canonical_sector_name,
    map_provider_sector,
    reconcile_universe,
)
from .russell2000 import discover_russell2000, parse_iwm_csv
from .sp500 import discover_sp500, parse_sp500_html


__all__ = [
    "Constituent",
    "YAHOO_SECTOR_MAP",
    "canonical_sector_name",
    "discover_russell2000",
    "discover_sp500",
    "map_provider_sector",
    "parse_iwm_csv",
    "parse_sp500_html",
    "reconcile_universe",
]
