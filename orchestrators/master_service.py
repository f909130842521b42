"""Master (aggregate shipment) orchestration.

process(shipment_id):
    load shipment -> route sale tenant -> customer partner -> MASTER-{name}
    cost center -> write tenant and ids back

invoice(shipment_id):
    load shipment -> route (persisted tenant wins) -> customer partner and
    cost center (same as process) -> legs with a positive sell rate ->
    customer invoice -> write billing state, number and id back

Calling invoice twice creates two invoices unless the re-invoice guard is on.
"""

from typing import Any, Dict, List, Tuple

from analytic import AnalyticHierarchyBuilder
from core.config import Settings
from core.errors import NotFoundError, ValidationError
from core.observability import get_logger
from invoicing import InvoiceComposer, LegBilling
from orchestrators.base import BaseSyncService, field_values, first_field, linked_ids
from orchestrators.models import (
    EntityResult,
    InvoiceResult,
    MasterInvoiceResult,
    MasterProcessResult,
)
from partner_resolver import PartnerResolver, PartyData, PartyRole
from tenancy import OperationKind, TenantCode, resolve_tenant

logger = get_logger(__name__)


class MasterService(BaseSyncService):
    """Process and invoice aggregate shipments.

    Example:
        service = MasterService(record_store, pool, partners, analytics, invoices, settings)
        result = await service.process("recM1")
        print(result.tenant, result.partner.id, result.cost_center.id)
    """

    def __init__(
        self,
        record_store,
        pool,
        partners: PartnerResolver,
        analytics: AnalyticHierarchyBuilder,
        invoices: InvoiceComposer,
        settings: Settings,
    ):
        super().__init__(record_store, pool, settings)
        self.partners = partners
        self.analytics = analytics
        self.invoices = invoices

    # =========================================================================
    # Field extraction
    # =========================================================================

    def _record_name(self, record_id: str, fields: Dict[str, Any]) -> str:
        return first_field(fields, self.fields.master_name) or record_id

    def _sale_tenant(self, fields: Dict[str, Any]) -> TenantCode:
        f = self.fields
        hints = field_values(fields, f.master_customer_country) + field_values(fields, f.master_destination)
        return resolve_tenant(
            first_field(fields, f.master_sale_tenant),
            hints,
            OperationKind.SALE,
            self.routing_policy,
        )

    def _customer_party(self, record_name: str, fields: Dict[str, Any]) -> PartyData:
        f = self.fields
        name = first_field(fields, f.master_customer_name)
        if not name:
            raise ValidationError(f"Master {record_name} has no customer name")
        return PartyData(
            name=name,
            role=PartyRole.CUSTOMER,
            tax_id=first_field(fields, f.master_customer_tax_id),
        )

    def _tenant_field(self, template: str, tenant: TenantCode) -> str:
        return self.fields.for_tenant(template, tenant)

    async def _resolve_parties(
        self,
        tenant: TenantCode,
        record_name: str,
        fields: Dict[str, Any],
    ) -> Tuple[EntityResult, EntityResult]:
        partner = await self.partners.find_or_create(tenant, self._customer_party(record_name, fields))
        cost_center = await self.analytics.for_shipment(tenant, record_name, partner_id=partner.id)
        return EntityResult.from_partner(partner), EntityResult.from_cost_center(cost_center)

    async def _load_legs(self, leg_ids: List[str]) -> Tuple[List[LegBilling], List[str]]:
        """Load linked legs in order; dangling links are skipped."""
        legs: List[LegBilling] = []
        skipped: List[str] = []
        for leg_id in leg_ids:
            try:
                record = await self._load(self.tables.operations, leg_id)
            except NotFoundError:
                logger.warning(f"Linked leg {leg_id} not found, skipping")
                skipped.append(leg_id)
                continue
            legs.append(self._leg_billing(leg_id, record.get("fields") or {}))
        return legs, skipped

    # =========================================================================
    # Operations
    # =========================================================================

    async def process(self, shipment_id: str) -> MasterProcessResult:
        """Create or reuse the shipment's customer partner and cost center."""
        return await self._track("master_process", shipment_id, lambda: self._process(shipment_id))

    async def _process(self, shipment_id: str) -> MasterProcessResult:
        record = await self._load(self.tables.masters, shipment_id)
        fields = record.get("fields") or {}
        record_name = self._record_name(shipment_id, fields)

        tenant = self._sale_tenant(fields)
        partner, cost_center = await self._resolve_parties(tenant, record_name, fields)

        values: Dict[str, Any] = {
            self.fields.master_sale_tenant: tenant.value,
            self._tenant_field(self.fields.master_partner_id, tenant): str(partner.id),
        }
        if cost_center.id is not None:
            values[self._tenant_field(self.fields.master_cost_center_id, tenant)] = str(cost_center.id)

        write_back = await self._write_back(self.tables.masters, shipment_id, values)

        return MasterProcessResult(
            record_id=shipment_id,
            record_name=record_name,
            tenant=tenant,
            partner=partner,
            cost_center=cost_center,
            write_back=write_back,
        )

    async def invoice(self, shipment_id: str) -> MasterInvoiceResult:
        """Create the customer invoice for every billable leg of the shipment."""
        return await self._track("master_invoice", shipment_id, lambda: self._invoice(shipment_id))

    async def _invoice(self, shipment_id: str) -> MasterInvoiceResult:
        record = await self._load(self.tables.masters, shipment_id)
        fields = record.get("fields") or {}
        record_name = self._record_name(shipment_id, fields)
        self._guard_reinvoice(fields, self.fields.master_billing_state, f"Master {record_name}")

        tenant = self._sale_tenant(fields)
        partner, cost_center = await self._resolve_parties(tenant, record_name, fields)

        legs, skipped = await self._load_legs(linked_ids(fields, self.fields.master_legs))

        draft = self.invoices.compose_customer_invoice(
            tenant,
            partner.id,
            legs,
            cost_center_id=cost_center.id,
            ref=f"Master {record_name}",
        )
        created = await self.invoices.create_invoice(draft)

        values: Dict[str, Any] = {
            self.fields.master_sale_tenant: tenant.value,
            self.fields.master_billing_state: self.settings.billing.invoiced_state,
            self.fields.master_invoice_number: created.name,
            self._tenant_field(self.fields.master_invoice_id, tenant): str(created.id),
        }
        write_back = await self._write_back(self.tables.masters, shipment_id, values)

        return MasterInvoiceResult(
            record_id=shipment_id,
            record_name=record_name,
            tenant=tenant,
            partner=partner,
            cost_center=cost_center,
            invoice=InvoiceResult.from_created(created),
            total=float(draft.total),
            line_count=len(draft.lines),
            skipped_legs=skipped,
            write_back=write_back,
        )
