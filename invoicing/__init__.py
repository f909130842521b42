"""Invoicing - customer invoices and carrier bills from shipment legs.

Usage:
    from invoicing import InvoiceComposer, LegBilling

    legs = [LegBilling(leg_id="recL1", label="42", sell_rate=["1500"])]
    draft = composer.compose_customer_invoice(TenantCode.AR, partner_id=12, legs=legs)
    invoice = await composer.create_invoice(draft)
"""

from invoicing.models import (
    MoveType,
    LineKind,
    LegBilling,
    InvoiceLine,
    InvoiceDraft,
    CreatedInvoice,
)
from invoicing.rates import (
    normalize_rate,
    extract_lookup,
    build_line_description,
)
from invoicing.composer import InvoiceComposer

__all__ = [
    # Models
    "MoveType",
    "LineKind",
    "LegBilling",
    "InvoiceLine",
    "InvoiceDraft",
    "CreatedInvoice",
    # Rates
    "normalize_rate",
    "extract_lookup",
    "build_line_description",
    # Composer
    "InvoiceComposer",
]
