"""Data access layer repositories.

Each repository module provides async functions for database operations.
All code uses SQLAlchemy ORM models from `sectorview.database.orm` with the
`get_session()` context manager.

ORM-based repositories:
- sectors_orm: read-only GICS sector taxonomy
- universe_orm: stocks, sector assignment and universe membership
- market_data_orm: append-only market data snapshots
- outliers_orm: daily outlier detections
"""

from . import market_data_orm
from . import outliers_orm
from . import sectors_orm
from . import universe_orm

__all__ = [
    "market_data_orm",
    "outliers_orm",
    "sectors_orm",
    "universe_orm",
]
