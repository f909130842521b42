"""Invoice Composer.

Builds customer invoices (one line per billable leg of a shipment) and
carrier bills (one line for a leg) and creates them in the tenant's ERP.

Line inclusion: a leg contributes a line only when its normalized rate (sell
for customers, buy for carriers) is strictly positive. Legs without a rate
are left out, never billed at zero. A draft with no lines is an error.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from connectors.erp_base import ERPModel
from core.errors import RemoteCallError, ValidationError
from core.observability import get_logger, log_record_action
from core.tenants import TenantCode
from invoicing.models import (
    CreatedInvoice,
    InvoiceDraft,
    InvoiceLine,
    LegBilling,
    LineKind,
    MoveType,
)
from invoicing.rates import ZERO, build_line_description
from sync_engine import search_one

logger = get_logger(__name__)

INVOICE_FIELDS = ["id", "name", "state", "amount_total", "amount_untaxed", "partner_id", "move_type"]


def _to_decimal(value: Any) -> Decimal:
    if value is None or value is False:
        return ZERO
    return Decimal(str(value))


class InvoiceComposer:
    """Compose and create customer invoices and carrier bills.

    Example:
        composer = InvoiceComposer(pool)
        draft = composer.compose_customer_invoice(
            TenantCode.AR, partner_id=12, legs=legs, cost_center_id=30, ref="Master M-7"
        )
        invoice = await composer.create_invoice(draft)
        print(invoice.name, invoice.amount_total)
    """

    def __init__(self, pool):
        """Initialize the composer.

        Args:
            pool: TenantConnectionPool supplying sessions and tenant settings
        """
        self.pool = pool

    # =========================================================================
    # Composition (no I/O)
    # =========================================================================

    def compose_customer_invoice(
        self,
        tenant: TenantCode,
        partner_id: int,
        legs: Sequence[LegBilling],
        cost_center_id: Optional[int] = None,
        ref: Optional[str] = None,
    ) -> InvoiceDraft:
        """Customer invoice with one line per leg with a positive sell rate.

        Raises:
            ValidationError: No partner, or no leg with a positive sell rate
        """
        if not partner_id:
            raise ValidationError("Customer partner id is required to compose an invoice")

        settings = self.pool.tenant_settings(tenant)
        lines: List[InvoiceLine] = []
        for leg in legs:
            if leg.sell_rate <= 0:
                logger.debug(f"Leg {leg.leg_id} skipped: no sell rate")
                continue
            lines.append(InvoiceLine(
                product_id=settings.products.transport,
                name=build_line_description(LineKind.TRANSPORT.value, leg.label, leg.origin, leg.destination),
                price_unit=leg.sell_rate,
                leg_id=leg.leg_id,
                analytic_account_id=cost_center_id,
            ))

        if not lines:
            raise ValidationError("No legs with a valid sell rate to invoice")

        return InvoiceDraft(
            tenant=tenant,
            partner_id=partner_id,
            move_type=MoveType.OUT_INVOICE,
            journal_id=settings.journals.sale,
            cost_center_id=cost_center_id,
            ref=ref,
            lines=lines,
        )

    def compose_carrier_invoice(
        self,
        tenant: TenantCode,
        partner_id: int,
        leg: LegBilling,
        cost_center_id: Optional[int] = None,
        ref: Optional[str] = None,
        supplier_reference: Optional[str] = None,
    ) -> InvoiceDraft:
        """Carrier bill with a single line for the leg's buy rate.

        Args:
            supplier_reference: Carrier's own invoice number; replaces ``ref``

        Raises:
            ValidationError: No partner, or the buy rate is not positive
        """
        if not partner_id:
            raise ValidationError("Carrier partner id is required to compose an invoice")
        if leg.buy_rate <= 0:
            raise ValidationError(f"Leg {leg.label} has no valid buy rate to invoice")

        settings = self.pool.tenant_settings(tenant)
        line = InvoiceLine(
            product_id=settings.products.subcontracted_freight,
            name=build_line_description(LineKind.FREIGHT.value, leg.label, leg.origin, leg.destination),
            price_unit=leg.buy_rate,
            leg_id=leg.leg_id,
            analytic_account_id=cost_center_id,
        )

        return InvoiceDraft(
            tenant=tenant,
            partner_id=partner_id,
            move_type=MoveType.IN_INVOICE,
            journal_id=settings.journals.purchase,
            cost_center_id=cost_center_id,
            ref=supplier_reference or ref,
            lines=[line],
        )

    # =========================================================================
    # ERP operations
    # =========================================================================

    async def create_invoice(self, draft: InvoiceDraft) -> CreatedInvoice:
        """Create the draft as an account.move and read it back.

        Raises:
            ValidationError: Draft has no lines
        """
        if not draft.lines:
            raise ValidationError("Cannot create an invoice without lines")

        session = await self.pool.get_session(draft.tenant)
        invoice_id = await session.create(ERPModel.MOVE, draft.to_erp_values())
        if not invoice_id:
            raise RemoteCallError(
                f"ERP returned no id creating {draft.move_type.value}", tenant=draft.tenant.value
            )

        row = await search_one(session, ERPModel.MOVE, [("id", "=", invoice_id)], INVOICE_FIELDS) or {}
        invoice = CreatedInvoice(
            id=invoice_id,
            name=row.get("name") or "Draft",
            state=row.get("state") or "draft",
            move_type=draft.move_type,
            tenant=draft.tenant,
            amount_total=_to_decimal(row.get("amount_total", draft.total)),
            amount_untaxed=_to_decimal(row.get("amount_untaxed", draft.total)),
            line_count=len(draft.lines),
        )

        log_record_action(
            "invoice", "created", ERPModel.MOVE, invoice.id,
            tenant=draft.tenant.value, move_type=draft.move_type.value,
            lines=len(draft.lines), total=str(draft.total),
        )
        return invoice

    async def confirm_invoice(self, tenant: TenantCode, invoice_id: int) -> bool:
        """Post a draft invoice."""
        session = await self.pool.get_session(tenant)
        await session.call(ERPModel.MOVE, "action_post", [[invoice_id]])
        logger.info(f"Invoice {invoice_id} posted", extra_fields={"tenant": tenant.value})
        return True

    async def get_invoice(self, tenant: TenantCode, invoice_id: int) -> Optional[Dict[str, Any]]:
        session = await self.pool.get_session(tenant)
        return await search_one(session, ERPModel.MOVE, [("id", "=", invoice_id)], INVOICE_FIELDS)

    async def find_by_partner(
        self,
        tenant: TenantCode,
        partner_id: int,
        move_type: MoveType = MoveType.OUT_INVOICE,
        limit: int = 50,
    ) -> List[Dict[str, Any]]:
        session = await self.pool.get_session(tenant)
        return await session.search_read(
            ERPModel.MOVE,
            [("partner_id", "=", partner_id), ("move_type", "=", move_type.value)],
            ["id", "name", "state", "amount_total", "invoice_date"],
            limit=limit,
        )

    async def resolve_currency_id(self, tenant: TenantCode, code: str) -> Optional[int]:
        """ERP currency id for an ISO code, or None."""
        session = await self.pool.get_session(tenant)
        row = await search_one(session, ERPModel.CURRENCY, [("name", "=", code.strip().upper())], ["id"])
        return row["id"] if row else None
