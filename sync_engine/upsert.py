"""Idempotent Upsert Engine.

Search-then-write primitive shared by every entity synchronizer (partners,
cost centers, pricelist items). Each synchronizer supplies the natural-key
search domain and the create/update payload pair; the engine guarantees at
most one ERP record per key under serialized callers.

Known gap: two concurrent callers can both miss the search and both create.
Calls are expected to be serialized by the calling automation.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from connectors.erp_base import Domain, ERPSession
from core.errors import RemoteCallError
from core.observability import get_logger, get_metrics

logger = get_logger(__name__)


class UpsertAction(str, Enum):
    """What the engine did for one natural key."""
    CREATED = "created"          # No match; record created
    UPDATED = "updated"          # Match found; update payload applied
    EXISTING = "existing"        # Match found; reused without writing
    UNAVAILABLE = "unavailable"  # No record could be obtained (degraded)


class UpsertResult(BaseModel):
    """Outcome of one upsert."""
    id: Optional[int] = Field(default=None, description="ERP record id (None when unavailable)")
    action: UpsertAction
    model: str
    record: Dict[str, Any] = Field(default_factory=dict, description="Matched row, when found by search")


async def search_one(
    session: ERPSession,
    model: str,
    domain: Domain,
    fields: Optional[List[str]] = None,
) -> Optional[Dict[str, Any]]:
    """Return the first record matching the domain, or None."""
    rows = await session.search_read(model, domain, fields or ["id"], limit=1)
    return rows[0] if rows else None


async def find_first(
    session: ERPSession,
    model: str,
    domains: Sequence[Domain],
    fields: Optional[List[str]] = None,
) -> Optional[Dict[str, Any]]:
    """Try each domain in order; the first hit wins."""
    for domain in domains:
        row = await search_one(session, model, domain, fields)
        if row is not None:
            return row
    return None


async def write_or_create(
    session: ERPSession,
    model: str,
    existing_id: Optional[int],
    create_values: Dict[str, Any],
    update_values: Optional[Dict[str, Any]] = None,
) -> UpsertResult:
    """Apply the write half of an upsert once the search is done.

    Args:
        session: Tenant session
        model: ERP model name
        existing_id: Id found by the search, or None
        create_values: Full payload for a new record
        update_values: Partial payload for an existing record. None reuses the
            record without writing (find-or-create); an empty dict reports
            UPDATED without issuing a write.

    Raises:
        RemoteCallError: The ERP accepted the create but returned no id
    """
    metrics = get_metrics()

    if existing_id:
        if update_values is None:
            action = UpsertAction.EXISTING
        else:
            if update_values:
                await session.write(model, [existing_id], update_values)
            action = UpsertAction.UPDATED
        metrics.record_upsert(model, action.value)
        logger.debug(f"{action.value} {model} id={existing_id}")
        return UpsertResult(id=existing_id, action=action, model=model)

    new_id = await session.create(model, create_values)
    if not new_id:
        raise RemoteCallError(f"ERP returned no id creating {model}", tenant=session.tenant.value)

    metrics.record_upsert(model, UpsertAction.CREATED.value)
    logger.debug(f"created {model} id={new_id}")
    return UpsertResult(id=new_id, action=UpsertAction.CREATED, model=model)


async def upsert(
    session: ERPSession,
    model: str,
    search_domain: Domain,
    create_values: Dict[str, Any],
    update_values: Optional[Dict[str, Any]] = None,
) -> UpsertResult:
    """Search for at most one record by natural key, then write or create.

    Usage:
        result = await upsert(
            session, "product.pricelist.item",
            [("pricelist_id", "=", 5), ("name", "=", "Mendoza - Santiago")],
            create_values={"pricelist_id": 5, "name": "Mendoza - Santiago", "fixed_price": 1500},
            update_values={"fixed_price": 1500},
        )
    """
    existing = await search_one(session, model, search_domain, ["id"])
    result = await write_or_create(
        session,
        model,
        existing["id"] if existing else None,
        create_values,
        update_values,
    )
    if existing:
        result.record = existing
    return result
