"""
Sector-relative statistical outlier detection.

Each stock is compared with the other members of its sector on four
metrics: P/E, P/B, daily price change and volume ratio (today's volume over
the 10-day average). Per metric the peer sample needs at least two values
and a non-zero sample standard deviation, otherwise the metric's z-score is
None for the whole sector. A sector without a usable price sample is skipped.

Composite score:
    sqrt(sum(w_i * z_i^2) / sum(w_i)) over the metrics present for the stock

Classification (first match wins):
    ValueTrap      (pe_z <= -1 or pb_z <= -1) and price_z <= -1
    GrowthPremium  (pe_z >= 1 or pb_z >= 1) and price_z >= 1
    Momentum       price_z >= 2 and volume_z >= 1
    Undervalued    pe_z <= -1 or pb_z <= -1
    Overvalued     pe_z >= 1 or pb_z >= 1
    Mixed          anything else

Significance:
    < 1.5 not reported, [1.5, 2) Moderate, [2, 3) Strong, >= 3 Extreme

The pure functions here are what the tests pin down; `detect_sector` and
`detect_all_sectors` load member snapshots and store the results.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any

import numpy as np

from sectorview.core.config import settings
from sectorview.core.logging import get_logger
from sectorview.database.orm import Sector, UniverseType
from sectorview.repositories import market_data_orm as market_data_repo
from sectorview.repositories import outliers_orm as outliers_repo
from sectorview.repositories import sectors_orm as sectors_repo
from sectorview.repositories import universe_orm as universe_repo
from sectorview.schemas import (
    OutlierStock,
    OutlierType,
    SectorOutliers,
    SignificanceLevel,
    ZScores,
)


logger = get_logger("services.outlier_engine")


# =============================================================================
# CONFIGURATION
# =============================================================================

WEIGHT_PRICE = 0.35
WEIGHT_PE = 0.30
WEIGHT_PB = 0.20
WEIGHT_VOLUME = 0.15

MIN_PEERS = 2
SIGMA_EPSILON = 1e-12

REPORTING_FLOOR = 1.5
STRONG_FLOOR = 2.0
EXTREME_FLOOR = 3.0


def default_threshold(universe: UniverseType | str) -> float:
    """Composite threshold used when the caller gives none."""
    if UniverseType(universe) is UniverseType.SECONDARY:
        return settings.secondary_outlier_threshold
    return settings.primary_outlier_threshold


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass(frozen=True)
class PeerObservation:
    """One stock's latest metrics as seen by the engine."""

    stock_id: int
    symbol: str
    name: str
    price_change_percent: float | None
    pe_ratio: float | None = None
    pb_ratio: float | None = None
    volume_ratio: float | None = None


@dataclass(frozen=True)
class MetricStats:
    """Sample mean and standard deviation of one metric across a sector."""

    mean: float
    std: float
    count: int

    def z(self, value: float | None) -> float | None:
        if value is None:
            return None
        return (value - self.mean) / self.std


# =============================================================================
# STATISTICS
# =============================================================================


def volume_ratio(volume: int | None, avg_volume_10d: int | None) -> float | None:
    """Today's volume relative to the 10-day average. None unless both are known and avg > 0."""
    if volume is None or avg_volume_10d is None or avg_volume_10d <= 0:
        return None
    return volume / avg_volume_10d


def metric_stats(values: Iterable[float | None]) -> MetricStats | None:
    """Sample statistics (n-1 denominator) over the present values.

    Returns None when fewer than MIN_PEERS values are present or the
    standard deviation is zero.
    """
    present = np.array([v for v in values if v is not None], dtype=float)
    if len(present) < MIN_PEERS:
        return None
    std = float(np.std(present, ddof=1))
    if not np.isfinite(std) or std <= SIGMA_EPSILON:
        return None
    return MetricStats(mean=float(np.mean(present)), std=std, count=len(present))


def compute_zscores(observations: Sequence[PeerObservation]) -> dict[int, ZScores] | None:
    """Z-scores for every observation with a price, keyed by stock_id.

    Returns None when the price metric has no usable sample, which excludes
    the sector from detection.
    """
    price_stats = metric_stats(o.price_change_percent for o in observations)
    if price_stats is None:
        return None
    pe_stats = metric_stats(o.pe_ratio for o in observations)
    pb_stats = metric_stats(o.pb_ratio for o in observations)
    volume_stats = metric_stats(o.volume_ratio for o in observations)

    zscores = {}
    for obs in observations:
        if obs.price_change_percent is None:
            continue
        zscores[obs.stock_id] = ZScores(
            price_z=price_stats.z(obs.price_change_percent),
            pe_z=pe_stats.z(obs.pe_ratio) if pe_stats else None,
            pb_z=pb_stats.z(obs.pb_ratio) if pb_stats else None,
            volume_z=volume_stats.z(obs.volume_ratio) if volume_stats else None,
        )
    return zscores


def composite_score(z: ZScores) -> float:
    """Weighted RMS of the z-scores present for a stock."""
    weighted_sum = WEIGHT_PRICE * z.price_z ** 2
    total_weight = WEIGHT_PRICE

    for value, weight in (
        (z.pe_z, WEIGHT_PE),
        (z.pb_z, WEIGHT_PB),
        (z.volume_z, WEIGHT_VOLUME),
    ):
        if value is not None:
            weighted_sum += weight * value ** 2
            total_weight += weight

    return float(np.sqrt(weighted_sum / total_weight))


def classify_outlier(z: ZScores) -> OutlierType:
    """Outlier type from the z-vector; first matching rule wins."""
    cheap = (z.pe_z is not None and z.pe_z <= -1) or (z.pb_z is not None and z.pb_z <= -1)
    rich = (z.pe_z is not None and z.pe_z >= 1) or (z.pb_z is not None and z.pb_z >= 1)

    if cheap and z.price_z <= -1:
        return OutlierType.VALUE_TRAP
    if rich and z.price_z >= 1:
        return OutlierType.GROWTH_PREMIUM
    if z.price_z >= 2 and z.volume_z is not None and z.volume_z >= 1:
        return OutlierType.MOMENTUM
    if cheap:
        return OutlierType.UNDERVALUED
    if rich:
        return OutlierType.OVERVALUED
    return OutlierType.MIXED


def classify_significance(score: float) -> SignificanceLevel | None:
    """Severity tier for a composite score; None below the reporting floor."""
    if score >= EXTREME_FLOOR:
        return SignificanceLevel.EXTREME
    if score >= STRONG_FLOOR:
        return SignificanceLevel.STRONG
    if score >= REPORTING_FLOOR:
        return SignificanceLevel.MODERATE
    return None


def find_sector_outliers(
    observations: Sequence[PeerObservation],
    threshold: float,
) -> list[OutlierStock]:
    """Outliers among one sector's peers, highest composite first.

    A stock is reported when its composite reaches `threshold` and the
    reporting floor.
    """
    zscores = compute_zscores(observations)
    if zscores is None:
        return []

    outliers = []
    for obs in observations:
        z = zscores.get(obs.stock_id)
        if z is None:
            continue
        score = composite_score(z)
        significance = classify_significance(score)
        if significance is None or score < threshold:
            continue
        outliers.append(
            OutlierStock(
                stock_id=obs.stock_id,
                symbol=obs.symbol,
                name=obs.name,
                z_scores=z,
                composite_score=score,
                outlier_type=classify_outlier(z),
                significance_level=significance,
            )
        )

    outliers.sort(key=lambda o: (-o.composite_score, o.symbol))
    return outliers


def build_observations(
    members: Iterable[Any],
    latest_snapshots: Mapping[int, Any],
) -> list[PeerObservation]:
    """Pair stocks with their latest snapshot; stocks without one are left out."""
    observations = []
    for stock in members:
        snap = latest_snapshots.get(stock.id)
        if snap is None:
            continue
        observations.append(
            PeerObservation(
                stock_id=stock.id,
                symbol=stock.symbol,
                name=stock.name,
                price_change_percent=snap.price_change_percent,
                pe_ratio=snap.pe_ratio,
                pb_ratio=snap.pb_ratio,
                volume_ratio=volume_ratio(snap.volume, snap.avg_volume_10d),
            )
        )
    return observations


# =============================================================================
# DETECTION RUNS
# =============================================================================


def _detection_row(outlier: OutlierStock, threshold: float) -> dict[str, Any]:
    return {
        "stock_id": outlier.stock_id,
        "pe_z_score": outlier.z_scores.pe_z,
        "pb_z_score": outlier.z_scores.pb_z,
        "price_z_score": outlier.z_scores.price_z,
        "volume_z_score": outlier.z_scores.volume_z,
        "composite_score": outlier.composite_score,
        "outlier_type": outlier.outlier_type.value,
        "significance_level": outlier.significance_level.value,
        "threshold_used": threshold,
    }


async def detect_sector(
    sector: Sector,
    universe: UniverseType | str = UniverseType.PRIMARY,
    threshold: float | None = None,
    detection_date: date | None = None,
    persist: bool = True,
) -> list[OutlierStock]:
    """Run detection for one sector and store the day's results.

    The sector's stored rows for the day are replaced, so re-running on
    unchanged data leaves the same rows behind.
    """
    universe = UniverseType(universe)
    threshold = default_threshold(universe) if threshold is None else threshold
    detection_date = detection_date or date.today()

    members = await universe_repo.list_active_member_stocks(universe, sector_id=sector.id)
    latest = await market_data_repo.get_latest_snapshots([m.id for m in members])
    observations = build_observations(members, latest)
    outliers = find_sector_outliers(observations, threshold)

    if persist:
        await outliers_repo.replace_detections(
            sector.id,
            detection_date,
            universe,
            [_detection_row(o, threshold) for o in outliers],
        )

    logger.debug(
        f"{sector.symbol}: {len(outliers)} outliers among {len(observations)} peers "
        f"(threshold={threshold}, {universe.value})"
    )
    return outliers


async def detect_all_sectors(
    universe: UniverseType | str = UniverseType.PRIMARY,
    threshold: float | None = None,
    detection_date: date | None = None,
    sector_ids: set[int] | None = None,
) -> list[SectorOutliers]:
    """Run detection sector by sector and group the results.

    Args:
        universe: Universe whose members are compared
        threshold: Composite threshold (None = the universe's default)
        detection_date: Day to store the rows under (default today)
        sector_ids: Restrict the run to these sectors
    """
    sectors = await sectors_repo.list_sectors()
    grouped: dict[str, SectorOutliers] = {}

    for sector in sectors:
        if sector_ids is not None and sector.id not in sector_ids:
            continue
        outliers = await detect_sector(sector, universe, threshold, detection_date)
        grouped[sector.symbol] = SectorOutliers(
            sector_id=sector.id,
            sector_name=sector.name,
            sector_symbol=sector.symbol,
            outlier_count=len(outliers),
            outliers=outliers,
        )

    total = sum(group.outlier_count for group in grouped.values())
    logger.info(
        f"Outlier detection ({UniverseType(universe).value}): "
        f"{total} outliers across {len(grouped)} sectors"
    )
    return list(grouped.values())
