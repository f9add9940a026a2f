"""Core infrastructure: settings, logging, exceptions."""

from .config import settings
from .exceptions import (
    AlreadyInProgressError,
    AlreadyMemberError,
    AppException,
    DataUnavailableError,
    DiscoveryError,
    NotFoundError,
    NotMemberError,
    PersistenceError,
    SectorNotFoundError,
    StockNotFoundError,
)


__all__ = [
    "AlreadyInProgressError",
    "AlreadyMemberError",
    "AppException",
    "DataUnavailableError",
    "DiscoveryError",
    "NotFoundError",
    "NotMemberError",
    "PersistenceError",
    "SectorNotFoundError",
    "StockNotFoundError",
    "settings",
]
