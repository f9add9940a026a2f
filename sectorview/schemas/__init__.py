"""Pydantic schemas shared by services and the API."""

from .common import (
    ErrorResponse,
    HealthResponse,
    RefreshStatusResponse,
    WSEvent,
    WSEventType,
)
from .outliers import (
    OutlierDetectionRecord,
    OutlierStock,
    OutlierType,
    SectorOutliers,
    SignificanceLevel,
    ZScores,
)
from .sectors import (
    DiscoveryResult,
    RefreshProgress,
    RefreshResult,
    SectorResponse,
    SectorSummary,
    StockResponse,
)


__all__ = [
    "DiscoveryResult",
    "ErrorResponse",
    "HealthResponse",
    "OutlierDetectionRecord",
    "OutlierStock",
    "OutlierType",
    "RefreshProgress",
    "RefreshResult",
    "RefreshStatusResponse",
    "SectorOutliers",
    "SectorResponse",
    "SectorSummary",
    "SignificanceLevel",
    "StockResponse",
    "WSEvent",
    "WSEventType",
    "ZScores",
]
