"""Tests for sector-relative outlier detection."""

from __future__ import annotations

from datetime import date

import numpy as np
import pytest

from sectorview.database.orm import UniverseType
from sectorview.repositories import market_data_orm as market_data_repo
from sectorview.repositories import outliers_orm as outliers_repo
from sectorview.repositories import sectors_orm as sectors_repo
from sectorview.repositories import universe_orm as universe_repo
from sectorview.schemas import OutlierType, SignificanceLevel, ZScores
from sectorview.services import sector_service
from sectorview.services.outlier_engine import (
    PeerObservation,
    build_observations,
    classify_outlier,
    classify_significance,
    composite_score,
    compute_zscores,
    default_threshold,
    detect_all_sectors,
    detect_sector,
    find_sector_outliers,
    metric_stats,
    volume_ratio,
)


def _obs(stock_id, change, pe=None, pb=None, vol=None, symbol=None):
    return PeerObservation(
        stock_id=stock_id,
        symbol=symbol or f"S{stock_id}",
        name=f"Stock {stock_id}",
        price_change_percent=change,
        pe_ratio=pe,
        pb_ratio=pb,
        volume_ratio=vol,
    )


# =============================================================================
# Statistics
# =============================================================================


class TestMetricStats:
    """Tests for per-metric sector statistics."""

    def test_sample_standard_deviation(self):
        stats = metric_stats([20, 25, 30, 100])
        assert stats.mean == pytest.approx(43.75)
        assert stats.std == pytest.approx(np.std([20, 25, 30, 100], ddof=1))
        assert stats.count == 4

    def test_ignores_missing_values(self):
        stats = metric_stats([1.0, None, 3.0])
        assert stats.count == 2
        assert stats.mean == pytest.approx(2.0)

    def test_fewer_than_two_values_has_no_stats(self):
        assert metric_stats([5.0]) is None
        assert metric_stats([None, 5.0, None]) is None
        assert metric_stats([]) is None

    def test_zero_spread_has_no_stats(self):
        assert metric_stats([3.0, 3.0, 3.0]) is None

    def test_z_of_missing_value_is_none(self):
        stats = metric_stats([1.0, 2.0, 3.0])
        assert stats.z(None) is None


class TestVolumeRatio:
    """Tests for today's volume over the 10-day average."""

    def test_ratio(self):
        assert volume_ratio(300, 100) == pytest.approx(3.0)

    @pytest.mark.parametrize("volume,avg", [(None, 100), (100, None), (100, 0)])
    def test_unknown_or_zero_average(self, volume, avg):
        assert volume_ratio(volume, avg) is None


class TestComputeZScores:
    """Tests for z-score computation over a sector."""

    def test_pe_example(self):
        observations = [
            _obs(1, 0.1, pe=20),
            _obs(2, 0.2, pe=25),
            _obs(3, 0.3, pe=30),
            _obs(4, 0.4, pe=100),
        ]
        zscores = compute_zscores(observations)
        expected = (100 - 43.75) / np.std([20, 25, 30, 100], ddof=1)
        assert zscores[4].pe_z == pytest.approx(expected)
        assert zscores[4].pe_z == pytest.approx(1.49, abs=0.01)

    def test_zscores_invert_to_values(self):
        changes = [-3.2, 0.5, 1.1, 2.7, -0.4, 4.0]
        observations = [_obs(i, c) for i, c in enumerate(changes, start=1)]
        zscores = compute_zscores(observations)
        mean = np.mean(changes)
        std = np.std(changes, ddof=1)
        for i, change in enumerate(changes, start=1):
            assert zscores[i].price_z * std + mean == pytest.approx(change)

    def test_zscores_are_standardised(self):
        changes = [-3.2, 0.5, 1.1, 2.7, -0.4, 4.0]
        zscores = compute_zscores([_obs(i, c) for i, c in enumerate(changes, start=1)])
        values = [z.price_z for z in zscores.values()]
        assert np.mean(values) == pytest.approx(0.0, abs=1e-12)
        assert np.std(values, ddof=1) == pytest.approx(1.0)

    def test_metric_without_peers_is_none_for_everyone(self):
        observations = [_obs(1, 1.0, pe=15), _obs(2, 2.0), _obs(3, 3.0)]
        zscores = compute_zscores(observations)
        assert all(z.pe_z is None for z in zscores.values())

    def test_sector_without_price_sample_is_excluded(self):
        assert compute_zscores([_obs(1, 1.0, pe=10), _obs(2, None, pe=20)]) is None
        assert compute_zscores([_obs(1, 1.0), _obs(2, 1.0)]) is None

    def test_stock_without_price_gets_no_zscores(self):
        zscores = compute_zscores([_obs(1, 1.0), _obs(2, 2.0), _obs(3, None, pe=5)])
        assert set(zscores) == {1, 2}


# =============================================================================
# Composite, classification, significance
# =============================================================================


class TestCompositeScore:
    """Tests for the weighted RMS composite."""

    def test_price_only(self):
        assert composite_score(ZScores(price_z=-2.5)) == pytest.approx(2.5)

    def test_weights_over_present_metrics(self):
        z = ZScores(pe_z=1.52, pb_z=2.4, price_z=0.5)
        expected = np.sqrt((0.35 * 0.25 + 0.30 * 1.52 ** 2 + 0.20 * 2.4 ** 2) / 0.85)
        assert composite_score(z) == pytest.approx(expected)

    def test_all_metrics(self):
        z = ZScores(pe_z=1.0, pb_z=1.0, price_z=1.0, volume_z=1.0)
        assert composite_score(z) == pytest.approx(1.0)

    def test_not_rounded(self):
        score = composite_score(ZScores(pe_z=1.52, pb_z=2.4, price_z=0.5))
        assert score != round(score, 2)


class TestClassifyOutlier:
    """Tests for outlier type precedence."""

    def test_value_trap(self):
        assert classify_outlier(ZScores(pe_z=-1.2, price_z=-1.0)) == OutlierType.VALUE_TRAP

    def test_growth_premium(self):
        assert classify_outlier(ZScores(pb_z=1.0, price_z=1.5)) == OutlierType.GROWTH_PREMIUM

    def test_momentum(self):
        z = ZScores(price_z=2.0, volume_z=1.0)
        assert classify_outlier(z) == OutlierType.MOMENTUM

    def test_momentum_needs_volume(self):
        assert classify_outlier(ZScores(price_z=2.5)) == OutlierType.MIXED

    def test_growth_premium_wins_over_momentum(self):
        z = ZScores(pe_z=1.5, price_z=2.5, volume_z=3.0)
        assert classify_outlier(z) == OutlierType.GROWTH_PREMIUM

    def test_undervalued(self):
        assert classify_outlier(ZScores(pb_z=-1.0, price_z=0.0)) == OutlierType.UNDERVALUED

    def test_overvalued(self):
        z = ZScores(pe_z=1.52, pb_z=2.4, price_z=0.5)
        assert classify_outlier(z) == OutlierType.OVERVALUED

    def test_mixed(self):
        assert classify_outlier(ZScores(pe_z=0.9, pb_z=-0.9, price_z=-3.0)) == OutlierType.MIXED

    def test_deterministic(self):
        z = ZScores(pe_z=-1.3, pb_z=0.2, price_z=0.7, volume_z=1.9)
        assert {classify_outlier(z) for _ in range(10)} == {OutlierType.UNDERVALUED}


class TestClassifySignificance:
    """Tests for significance boundaries."""

    @pytest.mark.parametrize(
        "score,expected",
        [
            (1.49, None),
            (1.50, SignificanceLevel.MODERATE),
            (1.999, SignificanceLevel.MODERATE),
            (2.0, SignificanceLevel.STRONG),
            (2.999, SignificanceLevel.STRONG),
            (3.0, SignificanceLevel.EXTREME),
            (7.5, SignificanceLevel.EXTREME),
        ],
    )
    def test_boundaries(self, score, expected):
        assert classify_significance(score) == expected

    def test_overvalued_moderate_example(self):
        z = ZScores(pe_z=1.52, pb_z=2.4, price_z=0.5)
        assert classify_significance(composite_score(z)) == SignificanceLevel.MODERATE


class TestFindSectorOutliers:
    """Tests for per-sector outlier selection."""

    def _sector(self):
        # Ten flat peers and one mover: the mover's price z is 10/sqrt(11)
        observations = [_obs(i, 0.0, symbol=f"P{i:02d}") for i in range(1, 11)]
        observations.append(_obs(99, 12.0, symbol="MOVE"))
        return observations

    def test_reports_the_mover(self):
        outliers = find_sector_outliers(self._sector(), threshold=1.5)
        assert [o.symbol for o in outliers] == ["MOVE"]
        assert outliers[0].composite_score == pytest.approx(10 / np.sqrt(11))
        assert outliers[0].significance_level == SignificanceLevel.EXTREME

    def test_threshold_above_score_reports_nothing(self):
        assert find_sector_outliers(self._sector(), threshold=3.5) == []

    def test_threshold_below_floor_still_applies_floor(self):
        observations = [_obs(1, 0.0), _obs(2, 1.0), _obs(3, 2.0)]
        assert find_sector_outliers(observations, threshold=0.0) == []

    def test_sorted_by_score_then_symbol(self):
        observations = [_obs(i, 0.0, symbol=f"P{i:02d}") for i in range(1, 21)]
        observations.append(_obs(50, 15.0, symbol="BBB"))
        observations.append(_obs(51, 15.0, symbol="AAA"))
        observations.append(_obs(52, -30.0, symbol="ZZZ"))
        outliers = find_sector_outliers(observations, threshold=1.5)
        assert [o.symbol for o in outliers] == ["ZZZ", "AAA", "BBB"]

    def test_identical_inputs_identical_results(self):
        first = find_sector_outliers(self._sector(), threshold=1.5)
        second = find_sector_outliers(self._sector(), threshold=1.5)
        assert [o.model_dump() for o in first] == [o.model_dump() for o in second]

    def test_single_stock_sector_is_skipped(self):
        assert find_sector_outliers([_obs(1, 50.0)], threshold=0.0) == []


def test_default_thresholds():
    assert default_threshold(UniverseType.PRIMARY) == pytest.approx(1.5)
    assert default_threshold("russell2000") == pytest.approx(2.0)


def test_build_observations_skips_stocks_without_snapshot():
    class _Stock:
        def __init__(self, id, symbol):
            self.id, self.symbol, self.name = id, symbol, symbol

    class _Snap:
        price_change_percent = 1.0
        pe_ratio = 20.0
        pb_ratio = None
        volume = 200
        avg_volume_10d = 100

    observations = build_observations([_Stock(1, "A"), _Stock(2, "B")], {1: _Snap()})
    assert len(observations) == 1
    assert observations[0].volume_ratio == pytest.approx(2.0)


# =============================================================================
# Detection runs against the store
# =============================================================================


async def _snapshot_xlk(changes: dict[str, float]):
    sector = await sectors_repo.get_sector_by_symbol("XLK")
    members = await universe_repo.list_active_member_stocks(UniverseType.PRIMARY, sector_id=sector.id)
    for stock in members:
        await market_data_repo.save_snapshot(
            stock.id,
            {"price": 100.0, "price_change": 0.0, "price_change_percent": changes.get(stock.symbol, 0.0)},
        )
    return sector


class TestDetectSector:
    """Tests for stored detection runs."""

    async def test_detects_and_stores(self, db):
        sector = await _snapshot_xlk({"NVDA": 10.0})
        day = date(2026, 3, 2)

        outliers = await detect_sector(sector, detection_date=day)

        assert [o.symbol for o in outliers] == ["NVDA"]
        assert outliers[0].composite_score == pytest.approx(8 / np.sqrt(20))
        rows = await outliers_repo.list_detections(sector_id=sector.id, detection_date=day)
        assert len(rows) == 1
        assert rows[0].threshold_used == pytest.approx(1.5)
        assert rows[0].universe_type == "sp500"

    async def test_rerun_overwrites(self, db):
        sector = await _snapshot_xlk({"NVDA": 10.0})
        day = date(2026, 3, 2)

        await detect_sector(sector, detection_date=day)
        first = [
            (r.stock_id, r.composite_score, r.outlier_type, r.significance_level)
            for r in await outliers_repo.list_detections(detection_date=day)
        ]
        await detect_sector(sector, detection_date=day)
        second = [
            (r.stock_id, r.composite_score, r.outlier_type, r.significance_level)
            for r in await outliers_repo.list_detections(detection_date=day)
        ]

        assert first == second
        assert len(second) == 1

    async def test_rerun_drops_stale_rows(self, db):
        sector = await _snapshot_xlk({"NVDA": 10.0})
        day = date(2026, 3, 2)
        await detect_sector(sector, detection_date=day)

        await _snapshot_xlk({})
        outliers = await detect_sector(sector, detection_date=day)

        assert outliers == []
        assert await outliers_repo.list_detections(detection_date=day) == []

    async def test_sector_without_snapshots(self, db):
        sector = await sectors_repo.get_sector_by_symbol("XLE")
        assert await detect_sector(sector, detection_date=date(2026, 3, 2)) == []

    async def test_detect_all_sectors_groups_by_sector(self, db):
        await _snapshot_xlk({"NVDA": 10.0})
        groups = await detect_all_sectors(UniverseType.PRIMARY, detection_date=date(2026, 3, 2))

        assert len(groups) == 11
        by_symbol = {g.sector_symbol: g for g in groups}
        assert by_symbol["XLK"].outlier_count == 1
        assert sum(g.outlier_count for g in groups) == 1

    async def test_sector_query_leaves_stored_rows_alone(self, db):
        sector = await _snapshot_xlk({"NVDA": 10.0})
        day = date.today()
        await detect_sector(sector, detection_date=day)

        strict = await sector_service.get_sector_outliers(sector.id, threshold=2.5)
        loose = await sector_service.get_sector_outliers(sector.id)

        assert strict == []
        assert [o.symbol for o in loose] == ["NVDA"]
        rows = await outliers_repo.list_detections(sector_id=sector.id, detection_date=day)
        assert len(rows) == 1
        assert rows[0].threshold_used == pytest.approx(1.5)
