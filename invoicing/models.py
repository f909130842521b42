"""Invoice Data Models.

This module defines the Pydantic models for invoice composition:
- LegBilling: The billable view of one leg (route and rates)
- InvoiceLine: One line of a draft
- InvoiceDraft: A customer or carrier invoice ready to send to the ERP
- CreatedInvoice: The ERP's view of the created document
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from core.tenants import TenantCode
from invoicing.rates import normalize_rate


class MoveType(str, Enum):
    """ERP accounting document type."""
    OUT_INVOICE = "out_invoice"  # Customer invoice (sale)
    IN_INVOICE = "in_invoice"    # Vendor bill (purchase)


class LineKind(str, Enum):
    """Leading word of a line description."""
    TRANSPORT = "Transport"  # Customer side
    FREIGHT = "Freight"      # Carrier side


class LegBilling(BaseModel):
    """Billable data of one leg.

    Rates accept any record-store shape and are normalized on construction.
    """
    leg_id: str = Field(..., description="Record-store id of the leg")
    label: str = Field(..., description="Human-readable leg identifier")
    origin: Optional[str] = None
    destination: Optional[str] = None
    sell_rate: Decimal = Field(default=Decimal("0"), description="Customer rate")
    buy_rate: Decimal = Field(default=Decimal("0"), description="Carrier rate")

    @field_validator("sell_rate", "buy_rate", mode="before")
    @classmethod
    def _normalize(cls, value: Any) -> Decimal:
        return normalize_rate(value)


class InvoiceLine(BaseModel):
    """One invoice line."""
    product_id: int
    name: str
    quantity: Decimal = Field(default=Decimal("1"))
    price_unit: Decimal
    leg_id: Optional[str] = None
    analytic_account_id: Optional[int] = None

    @property
    def subtotal(self) -> Decimal:
        return self.quantity * self.price_unit

    def to_erp_values(self) -> Dict[str, Any]:
        values: Dict[str, Any] = {
            "product_id": self.product_id,
            "name": self.name,
            "quantity": float(self.quantity),
            "price_unit": float(self.price_unit),
        }
        if self.analytic_account_id:
            values["analytic_distribution"] = {str(self.analytic_account_id): 100}
        return values


class InvoiceDraft(BaseModel):
    """An invoice composed from legs, not yet created in the ERP."""
    tenant: TenantCode
    partner_id: int
    move_type: MoveType
    journal_id: Optional[int] = None
    currency_id: Optional[int] = None
    cost_center_id: Optional[int] = None
    ref: Optional[str] = None
    narration: Optional[str] = None
    lines: List[InvoiceLine] = Field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((line.subtotal for line in self.lines), Decimal("0"))

    def to_erp_values(self) -> Dict[str, Any]:
        """account.move create payload with one-shot line commands."""
        values: Dict[str, Any] = {
            "move_type": self.move_type.value,
            "partner_id": self.partner_id,
            "invoice_line_ids": [[0, 0, line.to_erp_values()] for line in self.lines],
        }
        if self.journal_id:
            values["journal_id"] = self.journal_id
        if self.currency_id:
            values["currency_id"] = self.currency_id
        if self.ref:
            values["ref"] = self.ref
        if self.narration:
            values["narration"] = self.narration
        return values


class CreatedInvoice(BaseModel):
    """Invoice as read back from the ERP after creation."""
    id: int
    name: str = "Draft"
    state: str = "draft"
    move_type: MoveType
    tenant: TenantCode
    amount_total: Decimal = Decimal("0")
    amount_untaxed: Decimal = Decimal("0")
    line_count: int = 0

    class Config:
        json_encoders = {
            Decimal: lambda v: float(v)
        }
