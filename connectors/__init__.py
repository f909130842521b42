"""Backend Connectors.

This package contains the ERP session interface, the Odoo implementation
and the record-store client.

Key Design Principle:
- Services depend ONLY on the ERPSession interface and the record-store
  client's four record operations
- Connectors translate every transport failure into core.errors types
- No aiohttp types leak through the interface
"""

from connectors.erp_base import (
    ERPSession,
    ERPModel,
    Domain,
    DomainTerm,
)
from connectors.odoo import OdooClient
from connectors.record_store import RecordStoreClient

__all__ = [
    # Core interface
    "ERPSession",
    "ERPModel",
    "Domain",
    "DomainTerm",

    # Implementations
    "OdooClient",
    "RecordStoreClient",
]
