"""Outlier detection schemas."""

from __future__ import annotations

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field


class OutlierType(str, Enum):
    """Direction of a stock's deviation from its sector peers."""

    UNDERVALUED = "Undervalued"
    OVERVALUED = "Overvalued"
    MOMENTUM = "Momentum"
    VALUE_TRAP = "ValueTrap"
    GROWTH_PREMIUM = "GrowthPremium"
    MIXED = "Mixed"


class SignificanceLevel(str, Enum):
    """Severity tier derived from the composite score."""

    MODERATE = "Moderate"
    STRONG = "Strong"
    EXTREME = "Extreme"


class ZScores(BaseModel):
    """Sector-relative z-scores. None means the metric had no usable peer sample."""

    pe_z: float | None = None
    pb_z: float | None = None
    price_z: float
    volume_z: float | None = None


class OutlierStock(BaseModel):
    """A stock flagged as an outlier within its sector."""

    stock_id: int
    symbol: str
    name: str
    z_scores: ZScores
    composite_score: float
    outlier_type: OutlierType
    significance_level: SignificanceLevel


class SectorOutliers(BaseModel):
    """Outliers of one sector."""

    sector_id: int
    sector_name: str
    sector_symbol: str
    outlier_count: int
    outliers: list[OutlierStock] = Field(default_factory=list)


class OutlierDetectionRecord(BaseModel):
    """A stored detection row."""

    id: int
    stock_id: int
    sector_id: int
    detection_date: date
    pe_z_score: float | None = None
    pb_z_score: float | None = None
    price_z_score: float
    volume_z_score: float | None = None
    composite_score: float
    outlier_type: OutlierType
    significance_level: SignificanceLevel
    threshold_used: float
    universe_type: str

    model_config = {"from_attributes": True}
