"""Orchestrator Result Models.

Every public operation returns one of these. Each carries the business
record id, the resolved tenant, per-entity sub-results tagged with the action
taken, and the outcome of the record-store write-back.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from analytic import CostCenterResult
from core.tenants import TenantCode
from invoicing import CreatedInvoice
from partner_resolver import PartnerResult
from sync_engine import UpsertAction


class EntityResult(BaseModel):
    """An ERP record the call resolved or created."""
    id: Optional[int] = Field(default=None, description="ERP id (None when unavailable)")
    name: Optional[str] = None
    action: UpsertAction

    @classmethod
    def from_partner(cls, partner: PartnerResult) -> "EntityResult":
        return cls(id=partner.id, name=partner.name, action=partner.action)

    @classmethod
    def from_cost_center(cls, cost_center: CostCenterResult) -> "EntityResult":
        return cls(id=cost_center.id, name=cost_center.name, action=cost_center.action)


class InvoiceResult(BaseModel):
    """Invoice created by the call."""
    id: int
    name: str
    state: str
    amount_total: float
    line_count: int = 0
    action: UpsertAction = UpsertAction.CREATED

    @classmethod
    def from_created(cls, invoice: CreatedInvoice) -> "InvoiceResult":
        return cls(
            id=invoice.id,
            name=invoice.name,
            state=invoice.state,
            amount_total=float(invoice.amount_total),
            line_count=invoice.line_count,
        )


class WriteBackStatus(BaseModel):
    """Outcome of persisting ERP ids back to the record store.

    A failed write-back never fails the call; it is reported here.
    """
    attempted: bool = False
    ok: bool = False
    fields: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None


class RecordResult(BaseModel):
    """Fields shared by every orchestrator result."""
    record_id: str
    record_name: str
    tenant: TenantCode
    write_back: WriteBackStatus = Field(default_factory=WriteBackStatus)


class MasterProcessResult(RecordResult):
    partner: EntityResult
    cost_center: EntityResult


class MasterInvoiceResult(RecordResult):
    partner: EntityResult
    cost_center: EntityResult
    invoice: InvoiceResult
    total: float
    line_count: int
    skipped_legs: List[str] = Field(default_factory=list, description="Linked legs that no longer exist")


class LegProcessResult(RecordResult):
    parent_record_id: Optional[str] = None
    parent_name: Optional[str] = None
    partner: Optional[EntityResult] = None
    cost_center: EntityResult


class CarrierInvoiceResult(RecordResult):
    parent_name: Optional[str] = None
    partner: EntityResult
    cost_center: EntityResult
    invoice: InvoiceResult
    total: float


class CompanySyncResult(RecordResult):
    partner: EntityResult


class TariffItemResult(BaseModel):
    """One tariff row synchronized into the pricelist."""
    record_id: Optional[str] = None
    origin: Optional[str] = None
    destination: Optional[str] = None
    price: float = 0.0
    id: Optional[int] = None
    action: Optional[str] = None
    error: Optional[str] = None


class TariffSyncResult(BaseModel):
    tenant: TenantCode
    pricelist_id: int
    summary: Dict[str, int] = Field(default_factory=lambda: {"created": 0, "updated": 0, "errors": 0})
    details: List[TariffItemResult] = Field(default_factory=list)


class RecordFields(BaseModel):
    """Raw record-store fields, sorted by name."""
    record_id: str
    fields: Dict[str, Any] = Field(default_factory=dict)


class ProductDefaults(BaseModel):
    """ERP references every service product is created with."""
    categ_id: int
    uom_id: int
    tax_id: int
    income_account_id: Optional[int] = Field(default=None, description="Optional; products use the category account when absent")


class ProductItemResult(BaseModel):
    """One service product synchronized into the catalog."""
    slot: str = Field(description="ServiceProducts field the product backs (transport, subcontracted_freight, stay)")
    name: str
    template_id: Optional[int] = None
    id: Optional[int] = Field(default=None, description="product.product variant id used on invoice lines")
    action: Optional[str] = None
    error: Optional[str] = None


class ProductSyncResult(BaseModel):
    tenant: TenantCode
    defaults: ProductDefaults
    summary: Dict[str, int] = Field(default_factory=lambda: {"created": 0, "updated": 0, "errors": 0})
    details: List[ProductItemResult] = Field(default_factory=list)
