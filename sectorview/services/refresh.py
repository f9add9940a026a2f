"""
Refresh orchestration: discovery, concurrent fetching, aggregation, detection.

One refresh runs at a time per process. A second request fails at once with
AlreadyInProgressError and changes nothing.

Phases:
    IDLE -> DISCOVERING (whole-universe refresh only) -> FETCHING
         -> AGGREGATING -> DONE | FAILED

Fetching runs with bounded parallelism. Rate-limited symbols are retried
with capped exponential backoff; any other fetch failure skips the symbol.
Each successful quote is committed right away, so a later failure keeps the
snapshots already written. A failed store write stops the remaining fetches
and fails the refresh with PersistenceError.

Usage:
    from sectorview.services.refresh import get_refresh_orchestrator

    orchestrator = get_refresh_orchestrator()
    result = await orchestrator.refresh_universe(
        UniverseType.PRIMARY,
        on_progress=lambda event: print(event.current, event.total, event.phase),
    )
"""

from __future__ import annotations

import asyncio
import inspect
import threading
import uuid
from collections.abc import Awaitable, Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sectorview.core.config import settings
from sectorview.core.exceptions import (
    AlreadyInProgressError,
    AppException,
    DataUnavailableError,
    PersistenceError,
)
from sectorview.core.logging import get_logger, run_id_var
from sectorview.database.orm import Stock, UniverseType
from sectorview.repositories import market_data_orm as market_data_repo
from sectorview.repositories import sectors_orm as sectors_repo
from sectorview.repositories import universe_orm as universe_repo
from sectorview.schemas import (
    DiscoveryResult,
    RefreshProgress,
    RefreshResult,
    SectorSummary,
)
from sectorview.services import outlier_engine
from sectorview.services.data_providers import (
    FetchError,
    MarketDataFetcher,
    RateLimitedError,
    RetryExhaustedError,
    get_yfinance_fetcher,
    retry_async,
)
from sectorview.services.discovery import (
    discover_russell2000,
    discover_sp500,
    map_provider_sector,
)
from sectorview.services.sector_aggregator import get_sector_summaries
from sectorview.services.sector_cache import SectorSummaryCache, get_sector_cache


logger = get_logger("services.refresh")


ProgressCallback = Callable[[RefreshProgress], Optional[Awaitable[None]]]
Discoverer = Callable[[], Awaitable[DiscoveryResult]]


class RefreshPhase(str, Enum):
    """Orchestrator state."""

    IDLE = "idle"
    DISCOVERING = "discovering"
    FETCHING = "fetching"
    AGGREGATING = "aggregating"
    DONE = "done"
    FAILED = "failed"


# =============================================================================
# SINGLE-FLIGHT TOKEN
# =============================================================================


class SingleFlightToken:
    """Process-wide exclusive token for refresh runs.

    Acquisition never waits: if the token is held the caller gets
    AlreadyInProgressError. The token is released on every exit path.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @property
    def held(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def hold(self) -> Iterator[None]:
        if not self._lock.acquire(blocking=False):
            raise AlreadyInProgressError()
        try:
            yield
        finally:
            self._lock.release()


_refresh_token = SingleFlightToken()


def get_refresh_token() -> SingleFlightToken:
    return _refresh_token


# =============================================================================
# ORCHESTRATOR
# =============================================================================


@dataclass
class FetchOutcome:
    """Counts from one fetch phase."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    classified: int = 0


async def _emit(callback: ProgressCallback | None, event: RefreshProgress) -> None:
    if callback is None:
        return
    result = callback(event)
    if inspect.isawaitable(result):
        await result


class RefreshOrchestrator:
    """Runs whole-universe and sector-scoped refreshes.

    Args:
        fetcher: Quote source (default: the shared yfinance fetcher)
        token: Single-flight token (default: the process-wide one)
        cache: Primary-universe summary cache to update after a refresh
        discoverers: universe -> coroutine function reconciling its membership
        workers: Maximum concurrent fetches
        max_retries: Retries after a rate-limited fetch
        backoff_base: First backoff delay in seconds
        backoff_max: Backoff delay cap in seconds
    """

    def __init__(
        self,
        fetcher: MarketDataFetcher | None = None,
        token: SingleFlightToken | None = None,
        cache: SectorSummaryCache | None = None,
        discoverers: dict[UniverseType, Discoverer] | None = None,
        workers: int | None = None,
        max_retries: int | None = None,
        backoff_base: float | None = None,
        backoff_max: float | None = None,
    ):
        self._fetcher = fetcher or get_yfinance_fetcher()
        self._token = token or get_refresh_token()
        self._cache = cache or get_sector_cache()
        self._discoverers = discoverers if discoverers is not None else {
            UniverseType.PRIMARY: discover_sp500,
            UniverseType.SECONDARY: discover_russell2000,
        }
        self._workers = workers or settings.refresh_workers
        self._max_retries = settings.fetch_max_retries if max_retries is None else max_retries
        self._backoff_base = settings.fetch_backoff_base if backoff_base is None else backoff_base
        self._backoff_max = settings.fetch_backoff_max if backoff_max is None else backoff_max
        self.phase = RefreshPhase.IDLE

    @property
    def in_progress(self) -> bool:
        return self._token.held

    # -------------------------------------------------------------------------
    # Public entry points
    # -------------------------------------------------------------------------

    async def refresh_universe(
        self,
        universe: UniverseType | str = UniverseType.PRIMARY,
        on_progress: ProgressCallback | None = None,
        discover: bool | None = None,
    ) -> RefreshResult:
        """Refresh every active member of a universe.

        Raises:
            AlreadyInProgressError: Another refresh holds the token
            DataUnavailableError: No symbol could be fetched
            PersistenceError: A snapshot or detection write failed
        """
        universe = UniverseType(universe)
        discover = settings.discovery_enabled if discover is None else discover

        with self._token.hold():
            run_token = run_id_var.set(uuid.uuid4().hex)
            try:
                logger.info(f"Refresh started ({universe.value})")

                discovery = None
                if discover and universe in self._discoverers:
                    self.phase = RefreshPhase.DISCOVERING
                    discovery = await self._run_discovery(universe)
                    await _emit(on_progress, RefreshProgress(current=1, total=1, phase="discovery"))

                stocks = await universe_repo.list_active_member_stocks(universe)
                outcome = await self._fetch_phase(stocks, on_progress)

                self.phase = RefreshPhase.AGGREGATING
                sectors = await get_sector_summaries(universe)
                if universe is UniverseType.PRIMARY:
                    self._cache.set(sectors)
                await outlier_engine.detect_all_sectors(universe)

                self.phase = RefreshPhase.DONE
                logger.info(
                    f"Refresh finished ({universe.value}): "
                    f"{outcome.succeeded}/{outcome.total} succeeded, {outcome.failed} failed, "
                    f"{outcome.classified} newly classified"
                )
                return RefreshResult(
                    sectors=sectors,
                    discovery=discovery,
                    total=outcome.total,
                    succeeded=outcome.succeeded,
                    failed=outcome.failed,
                )
            except BaseException:
                self.phase = RefreshPhase.FAILED
                raise
            finally:
                run_id_var.reset(run_token)

    async def refresh_sector(
        self,
        sector_symbol: str,
        on_progress: ProgressCallback | None = None,
    ) -> list[SectorSummary]:
        """Refresh the primary-universe members of one sector.

        Returns summaries for every sector; detection runs for this sector only.

        Raises:
            AlreadyInProgressError: Another refresh holds the token
            SectorNotFoundError: Unknown sector symbol (nothing is fetched)
            DataUnavailableError: No symbol could be fetched
            PersistenceError: A snapshot or detection write failed
        """
        with self._token.hold():
            run_token = run_id_var.set(uuid.uuid4().hex)
            try:
                sector = await sectors_repo.get_sector_by_symbol(sector_symbol)
                logger.info(f"Sector refresh started ({sector.symbol})")

                stocks = await universe_repo.list_active_member_stocks(
                    UniverseType.PRIMARY, sector_id=sector.id
                )
                outcome = await self._fetch_phase(stocks, on_progress)

                self.phase = RefreshPhase.AGGREGATING
                sectors = await get_sector_summaries(UniverseType.PRIMARY)
                self._cache.set(sectors)
                await outlier_engine.detect_sector(sector, UniverseType.PRIMARY)

                self.phase = RefreshPhase.DONE
                logger.info(
                    f"Sector refresh finished ({sector.symbol}): "
                    f"{outcome.succeeded}/{outcome.total} succeeded"
                )
                return sectors
            except BaseException:
                self.phase = RefreshPhase.FAILED
                raise
            finally:
                run_id_var.reset(run_token)

    # -------------------------------------------------------------------------
    # Phases
    # -------------------------------------------------------------------------

    async def _run_discovery(self, universe: UniverseType) -> DiscoveryResult | None:
        """Reconcile membership; failures are logged and the refresh goes on."""
        try:
            return await self._discoverers[universe]()
        except Exception as e:
            logger.warning(f"{universe.value} discovery failed (non-fatal): {e}")
            return None

    async def _fetch_phase(
        self,
        stocks: Sequence[Stock],
        on_progress: ProgressCallback | None,
    ) -> FetchOutcome:
        """Fetch and store quotes for all stocks with bounded parallelism.

        Raises:
            DataUnavailableError: Zero successful fetches
            PersistenceError: A snapshot write failed
        """
        self.phase = RefreshPhase.FETCHING
        outcome = FetchOutcome(total=len(stocks))
        sector_ids = await sectors_repo.get_sector_ids_by_name()

        semaphore = asyncio.Semaphore(self._workers)
        progress_lock = asyncio.Lock()
        completed = 0
        abort: list[PersistenceError] = []

        async def run(stock: Stock) -> None:
            nonlocal completed
            async with semaphore:
                if abort:
                    return
                try:
                    ok = await self._refresh_symbol(stock, sector_ids, outcome)
                except PersistenceError as e:
                    abort.append(e)
                    return

                async with progress_lock:
                    completed += 1
                    if ok:
                        outcome.succeeded += 1
                    else:
                        outcome.failed += 1
                    await _emit(
                        on_progress,
                        RefreshProgress(current=completed, total=outcome.total, phase="fetching"),
                    )

        results = await asyncio.gather(*(run(s) for s in stocks), return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                raise result
        if abort:
            logger.error(
                f"Refresh aborted after {outcome.succeeded} snapshots: {abort[0].message}"
            )
            raise abort[0]

        if outcome.succeeded == 0:
            raise DataUnavailableError(
                details={"total": outcome.total, "failed": outcome.failed}
            )
        return outcome

    async def _fetch_with_backoff(self, symbol: str):
        return await retry_async(
            lambda: self._fetcher.fetch(symbol),
            max_attempts=self._max_retries + 1,
            base_delay=self._backoff_base,
            max_delay=self._backoff_max,
            retry_on=(RateLimitedError,),
        )

    async def _refresh_symbol(
        self,
        stock: Stock,
        sector_ids: dict[str, int],
        outcome: FetchOutcome,
    ) -> bool:
        """Fetch, store and (if needed) classify one stock.

        Returns:
            False if the symbol was skipped

        Raises:
            PersistenceError: The snapshot write failed
        """
        try:
            quote = await self._fetch_with_backoff(stock.symbol)
        except RetryExhaustedError as e:
            logger.warning(f"Skipping {stock.symbol}: still rate limited after {e.attempts} attempts")
            return False
        except FetchError as e:
            logger.warning(f"Skipping {stock.symbol}: {type(e).__name__}: {e.message}")
            return False

        await market_data_repo.save_snapshot(stock.id, quote.snapshot_values())

        if stock.sector_id is None:
            sector_name = map_provider_sector(quote.provider_sector)
            sector_id = sector_ids.get(sector_name) if sector_name else None
            if sector_id is not None:
                try:
                    await universe_repo.assign_sector(stock.id, sector_id)
                    outcome.classified += 1
                except AppException as e:
                    logger.warning(f"Could not classify {stock.symbol}: {e.message}")
        return True


# Singleton instance
_instance: Optional[RefreshOrchestrator] = None


def get_refresh_orchestrator() -> RefreshOrchestrator:
    """Get singleton RefreshOrchestrator instance."""
    global _instance
    if _instance is None:
        _instance = RefreshOrchestrator()
    return _instance
