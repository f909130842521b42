"""API Routes Package."""

from api.routes import health, masters, operations, sync

__all__ = [
    "health",
    "masters",
    "operations",
    "sync",
]
