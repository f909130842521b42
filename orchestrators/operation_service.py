"""Operation (leg) orchestration.

Mirrors the Master flow at leg granularity on the cost side: the carrier is
the party, the cost tenant is routed from the carrier's country (or the
leg's origin), and the cost center is OP-{leg} coded under its shipment.
"""

from typing import Any, Dict, Optional, Tuple

from analytic import AnalyticHierarchyBuilder
from core.config import Settings
from core.errors import NotFoundError, ValidationError
from core.observability import get_logger
from invoicing import InvoiceComposer
from orchestrators.base import BaseSyncService, field_values, first_field, linked_ids
from orchestrators.models import (
    CarrierInvoiceResult,
    EntityResult,
    InvoiceResult,
    LegProcessResult,
    RecordFields,
)
from partner_resolver import PartnerResolver, PartyData, PartyRole
from tenancy import OperationKind, TenantCode, resolve_tenant

logger = get_logger(__name__)


class OperationService(BaseSyncService):
    """Process legs and invoice their carriers.

    Example:
        service = OperationService(record_store, pool, partners, analytics, invoices, settings)
        result = await service.invoice_carrier("recL1")
        print(result.tenant, result.invoice.name, result.total)
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
        return first_field(fields, self.fields.leg_name) or record_id

    def _cost_tenant(self, fields: Dict[str, Any]) -> TenantCode:
        f = self.fields
        hints = field_values(fields, f.leg_carrier_country) + field_values(fields, f.leg_origin)
        return resolve_tenant(
            first_field(fields, f.leg_cost_tenant),
            hints,
            OperationKind.COST,
            self.routing_policy,
        )

    def _carrier_party(self, fields: Dict[str, Any]) -> Optional[PartyData]:
        f = self.fields
        name = first_field(fields, f.leg_carrier_name)
        if not name:
            return None
        return PartyData(
            name=name,
            role=PartyRole.CARRIER,
            tax_id=first_field(fields, f.leg_carrier_tax_id),
        )

    async def _parent(self, fields: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
        """(record id, name) of the parent shipment; name is None when the link dangles."""
        parent_ids = linked_ids(fields, self.fields.leg_master)
        if not parent_ids:
            return None, None

        parent_id = parent_ids[0]
        try:
            record = await self._load(self.tables.masters, parent_id)
        except NotFoundError:
            logger.warning(f"Parent shipment {parent_id} not found, continuing without it")
            return parent_id, None
        return parent_id, first_field(record.get("fields") or {}, self.fields.master_name)

    # =========================================================================
    # Operations
    # =========================================================================

    async def process(self, leg_id: str) -> LegProcessResult:
        """Resolve the carrier (when known) and the leg's cost center."""
        return await self._track("leg_process", leg_id, lambda: self._process(leg_id))

    async def _process(self, leg_id: str) -> LegProcessResult:
        record = await self._load(self.tables.operations, leg_id)
        fields = record.get("fields") or {}
        record_name = self._record_name(leg_id, fields)

        parent_id, parent_name = await self._parent(fields)
        tenant = self._cost_tenant(fields)

        partner: Optional[EntityResult] = None
        party = self._carrier_party(fields)
        if party is not None:
            partner = EntityResult.from_partner(await self.partners.find_or_create(tenant, party))
        else:
            logger.info(f"Leg {record_name} has no carrier yet, skipping partner")

        cost_center = await self.analytics.for_leg(
            tenant,
            record_name,
            parent_shipment_id=parent_name,
            partner_id=partner.id if partner else None,
        )

        values: Dict[str, Any] = {self.fields.leg_cost_tenant: tenant.value}
        if cost_center.id is not None:
            values[self.fields.for_tenant(self.fields.leg_cost_center_id, tenant)] = str(cost_center.id)
        write_back = await self._write_back(self.tables.operations, leg_id, values)

        return LegProcessResult(
            record_id=leg_id,
            record_name=record_name,
            tenant=tenant,
            parent_record_id=parent_id,
            parent_name=parent_name,
            partner=partner,
            cost_center=EntityResult.from_cost_center(cost_center),
            write_back=write_back,
        )

    async def invoice_carrier(self, leg_id: str) -> CarrierInvoiceResult:
        """Create the carrier's vendor bill for the leg's buy rate."""
        return await self._track("carrier_invoice", leg_id, lambda: self._invoice_carrier(leg_id))

    async def _invoice_carrier(self, leg_id: str) -> CarrierInvoiceResult:
        record = await self._load(self.tables.operations, leg_id)
        fields = record.get("fields") or {}
        record_name = self._record_name(leg_id, fields)
        self._guard_reinvoice(fields, self.fields.leg_billing_state, f"Operation {record_name}")

        party = self._carrier_party(fields)
        if party is None:
            raise ValidationError(f"Operation {record_name} has no carrier")

        tenant = self._cost_tenant(fields)
        partner = await self.partners.find_or_create(tenant, party)

        _, parent_name = await self._parent(fields)
        cost_center = await self.analytics.for_leg(
            tenant, record_name, parent_shipment_id=parent_name, partner_id=partner.id
        )

        leg = self._leg_billing(leg_id, fields)
        draft = self.invoices.compose_carrier_invoice(
            tenant,
            partner.id,
            leg,
            cost_center_id=cost_center.id,
            ref=f"Operation {record_name}",
        )
        created = await self.invoices.create_invoice(draft)

        values: Dict[str, Any] = {
            self.fields.leg_cost_tenant: tenant.value,
            self.fields.leg_billing_state: self.settings.billing.invoiced_state,
            self.fields.leg_purchase_invoice_id: str(created.id),
        }
        write_back = await self._write_back(self.tables.operations, leg_id, values)

        return CarrierInvoiceResult(
            record_id=leg_id,
            record_name=record_name,
            tenant=tenant,
            parent_name=parent_name,
            partner=EntityResult.from_partner(partner),
            cost_center=EntityResult.from_cost_center(cost_center),
            invoice=InvoiceResult.from_created(created),
            total=float(draft.total),
            write_back=write_back,
        )

    async def describe(self, leg_id: str) -> RecordFields:
        """Raw fields of a leg, sorted by column name."""
        record = await self._load(self.tables.operations, leg_id)
        fields = record.get("fields") or {}
        return RecordFields(record_id=leg_id, fields={k: fields[k] for k in sorted(fields)})
