"""Business logic services.

- data_providers: market data fetchers
- discovery: universe constituent reconciliation
- sector_aggregator: sector summaries
- outlier_engine: sector-relative outlier detection
- refresh: refresh orchestration
- sector_service: operations exposed to callers
"""
