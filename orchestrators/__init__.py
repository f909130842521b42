"""Orchestrators - the user-facing sync operations.

- MasterService: process / invoice an aggregate shipment
- OperationService: process a leg / invoice its carrier / describe its fields
- CatalogSyncService: companies to partners, tariffs to pricelist items,
  service products to the product catalog
"""

from orchestrators.models import (
    EntityResult,
    InvoiceResult,
    WriteBackStatus,
    MasterProcessResult,
    MasterInvoiceResult,
    LegProcessResult,
    CarrierInvoiceResult,
    CompanySyncResult,
    TariffItemResult,
    TariffSyncResult,
    ProductDefaults,
    ProductItemResult,
    ProductSyncResult,
    RecordFields,
)
from orchestrators.master_service import MasterService
from orchestrators.operation_service import OperationService
from orchestrators.catalog_sync import CatalogSyncService

__all__ = [
    # Results
    "EntityResult",
    "InvoiceResult",
    "WriteBackStatus",
    "MasterProcessResult",
    "MasterInvoiceResult",
    "LegProcessResult",
    "CarrierInvoiceResult",
    "CompanySyncResult",
    "TariffItemResult",
    "TariffSyncResult",
    "ProductDefaults",
    "ProductItemResult",
    "ProductSyncResult",
    "RecordFields",
    # Services
    "MasterService",
    "OperationService",
    "CatalogSyncService",
]
