"""SectorView - sector performance and sector-relative outlier detection."""
