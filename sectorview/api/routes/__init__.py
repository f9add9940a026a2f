"""API routes package."""

from . import (
    health,
    outliers,
    refresh,
    sectors,
    ws,
)


__all__ = [
    "health",
    "outliers",
    "refresh",
    "sectors",
    "ws",
]
