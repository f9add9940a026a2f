"""Sector, stock and refresh schemas."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class SectorResponse(BaseModel):
    """GICS sector."""

    id: int = Field(..., description="Sector id")
    name: str = Field(..., description="Sector name", examples=["Technology"])
    symbol: str = Field(..., description="Sector ETF symbol", examples=["XLK"])

    model_config = {"from_attributes": True}


class StockResponse(BaseModel):
    """Tracked stock."""

    id: int = Field(..., description="Stock id")
    symbol: str = Field(..., description="Ticker symbol")
    name: str = Field(..., description="Company name")
    sector_id: int | None = Field(None, description="Sector id (None = unclassified)")

    model_config = {"from_attributes": True}


class SectorSummary(BaseModel):
    """Aggregated metrics for one sector over its members' latest snapshots."""

    sector_id: int = Field(..., description="Sector id")
    name: str = Field(..., description="Sector name")
    symbol: str = Field(..., description="Sector ETF symbol")
    avg_change_percent: float | None = Field(None, description="Mean daily change percent")
    avg_pe_ratio: float | None = Field(None, description="Mean of reported P/E ratios")
    total_market_cap: int | None = Field(None, description="Sum of reported market caps")
    stock_count: int = Field(0, description="Members with at least one snapshot")
    avg_beta: float | None = Field(None, description="Mean of reported betas")


class DiscoveryResult(BaseModel):
    """Outcome of a universe membership reconciliation."""

    stocks_discovered: int = Field(0, description="New stocks inserted")
    stocks_updated: int = Field(0, description="Existing stocks whose sector changed")
    stocks_unchanged: int = Field(0, description="Existing stocks left as they were")
    stocks_removed: int = Field(0, description="Memberships closed because the stock left")
    errors: list[str] = Field(default_factory=list, description="Per-row problems")


class RefreshResult(BaseModel):
    """Result of a whole-universe refresh."""

    sectors: list[SectorSummary] = Field(default_factory=list)
    discovery: DiscoveryResult | None = Field(None, description="Present when discovery ran")
    total: int = Field(0, description="Symbols targeted")
    succeeded: int = Field(0, description="Snapshots written")
    failed: int = Field(0, description="Symbols skipped")


class RefreshProgress(BaseModel):
    """One ordered progress notification emitted during a refresh."""

    current: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    phase: Literal["discovery", "fetching"]
