"""Sync Engine - idempotent search-then-write upserts against the ERP."""

from sync_engine.upsert import (
    UpsertAction,
    UpsertResult,
    search_one,
    find_first,
    write_or_create,
    upsert,
)

__all__ = [
    "UpsertAction",
    "UpsertResult",
    "search_one",
    "find_first",
    "write_or_create",
    "upsert",
]
