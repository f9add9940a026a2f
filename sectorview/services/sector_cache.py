"""In-process TTL cache for the primary universe's sector summaries."""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from sectorview.core.config import settings
from sectorview.schemas import SectorSummary


class SectorSummaryCache:
    """Holds one list of summaries with a time-to-live.

    Entries are copied on the way in and out so callers can't mutate the
    cached list.
    """

    def __init__(
        self,
        ttl: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ttl = settings.sector_cache_ttl if ttl is None else ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._entry: tuple[float, list[SectorSummary]] | None = None

    def get(self) -> Optional[list[SectorSummary]]:
        """Cached summaries, or None if empty or expired."""
        with self._lock:
            if self._entry is None:
                return None
            cached_at, sectors = self._entry
            if self._clock() - cached_at >= self._ttl:
                return None
            return [s.model_copy() for s in sectors]

    def get_even_if_expired(self) -> Optional[list[SectorSummary]]:
        with self._lock:
            if self._entry is None:
                return None
            return [s.model_copy() for s in self._entry[1]]

    def set(self, sectors: list[SectorSummary]) -> None:
        with self._lock:
            self._entry = (self._clock(), [s.model_copy() for s in sectors])

    def invalidate(self) -> None:
        with self._lock:
            self._entry = None


# Singleton instance
_instance: Optional[SectorSummaryCache] = None


def get_sector_cache() -> SectorSummaryCache:
    """Get singleton SectorSummaryCache instance."""
    global _instance
    if _instance is None:
        _instance = SectorSummaryCache()
    return _instance
