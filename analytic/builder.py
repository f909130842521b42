"""Analytic Hierarchy Builder.

Creates or reuses one analytic account per shipment and per leg:

    MASTER-{shipment}           code: {shipment}
    OP-{leg}                    code: {shipment}/{leg}  (or {leg} without parent)

The code carries the parent/child relation; the ERP schema has no real
hierarchy between the two. Accounts are keyed by name, so repeated calls for
the same id reuse the first account.

A create the ERP rejects does not abort the caller: the result comes back
with ``id=None`` and action UNAVAILABLE. Timeouts and transport failures
still propagate.
"""

from typing import Any, Dict, Optional

from analytic.models import LEG_PREFIX, MASTER_PREFIX, CostCenterResult
from connectors.erp_base import ERPModel
from core.errors import RemoteCallError, ValidationError
from core.observability import get_logger, get_metrics, log_record_action
from core.tenants import TenantCode
from sync_engine import UpsertAction, search_one, write_or_create

logger = get_logger(__name__)

ACCOUNT_FIELDS = ["id", "name", "code", "partner_id", "plan_id"]


def cost_center_name(prefix: str, record_id: str) -> str:
    """Prefix a record id, unless it already carries this same prefix.

    Only the own prefix is skipped: a shipment id that starts with the leg
    prefix still gets its own shipment account.

    >>> cost_center_name(MASTER_PREFIX, "OP-42")
    'MASTER-OP-42'
    """
    if record_id.upper().startswith(prefix):
        return record_id
    return f"{prefix}{record_id}"


class AnalyticHierarchyBuilder:
    """Find-or-create cost centers for shipments and legs.

    Example:
        builder = AnalyticHierarchyBuilder(pool)
        master_cc = await builder.for_shipment(TenantCode.AR, "M-7", partner_id=12)
        leg_cc = await builder.for_leg(TenantCode.CL, "42", parent_shipment_id="M-7")
        if not leg_cc.is_available:
            ...  # invoice lines go out without analytic distribution
    """

    def __init__(self, pool, plan_name_hint: str = "Mercotruck"):
        """Initialize the builder.

        Args:
            pool: TenantConnectionPool supplying tenant sessions
            plan_name_hint: Substring of the preferred analytic plan name
        """
        self.pool = pool
        self.plan_name_hint = plan_name_hint

    async def find_by_name(self, tenant: TenantCode, name: str) -> Optional[Dict[str, Any]]:
        session = await self.pool.get_session(tenant)
        return await search_one(session, ERPModel.ANALYTIC_ACCOUNT, [("name", "=", name)], ACCOUNT_FIELDS)

    async def get_default_plan(self, tenant: TenantCode) -> Optional[int]:
        """Plan whose name contains the hint, else the first plan, else None.

        Older ERP versions have no plan model; the lookup fault yields None.
        """
        session = await self.pool.get_session(tenant)
        try:
            row = await search_one(
                session, ERPModel.ANALYTIC_PLAN, [("name", "ilike", self.plan_name_hint)], ["id"]
            )
            if row is None:
                row = await search_one(session, ERPModel.ANALYTIC_PLAN, [], ["id"])
        except RemoteCallError as e:
            logger.warning(f"Analytic plan lookup failed, creating without plan: {e.message}")
            return None
        return row["id"] if row else None

    async def create(
        self,
        tenant: TenantCode,
        name: str,
        code: Optional[str] = None,
        partner_id: Optional[int] = None,
        plan_id: Optional[int] = None,
    ) -> Optional[int]:
        """Create an analytic account.

        Returns:
            New account id, or None when the ERP rejected the create
        """
        session = await self.pool.get_session(tenant)

        values: Dict[str, Any] = {"name": name}
        if partner_id:
            values["partner_id"] = partner_id
        plan_id = plan_id or await self.get_default_plan(tenant)
        if plan_id:
            values["plan_id"] = plan_id
        if code:
            values["code"] = code

        try:
            result = await write_or_create(session, ERPModel.ANALYTIC_ACCOUNT, None, values)
        except RemoteCallError as e:
            get_metrics().record_upsert(ERPModel.ANALYTIC_ACCOUNT, UpsertAction.UNAVAILABLE.value)
            logger.warning(
                f"Cost center {name} could not be created, continuing without it: {e.message}",
                extra_fields={"tenant": tenant.value, "cost_center": name},
            )
            return None
        return result.id

    async def find_or_create(
        self,
        tenant: TenantCode,
        name: str,
        code: Optional[str] = None,
        partner_id: Optional[int] = None,
    ) -> CostCenterResult:
        """Reuse the account with this name, or create it."""
        existing = await self.find_by_name(tenant, name)
        if existing:
            session = await self.pool.get_session(tenant)
            await write_or_create(session, ERPModel.ANALYTIC_ACCOUNT, existing["id"], {})
            result = CostCenterResult(
                id=existing["id"],
                name=existing.get("name") or name,
                code=existing.get("code") or code,
                action=UpsertAction.EXISTING,
            )
        else:
            new_id = await self.create(tenant, name, code=code, partner_id=partner_id)
            result = CostCenterResult(
                id=new_id,
                name=name,
                code=code,
                action=UpsertAction.CREATED if new_id else UpsertAction.UNAVAILABLE,
            )

        log_record_action(
            "cost_center", result.action.value, ERPModel.ANALYTIC_ACCOUNT, result.id,
            tenant=tenant.value, name=name, code=code,
        )
        return result

    async def for_shipment(
        self,
        tenant: TenantCode,
        shipment_id: str,
        partner_id: Optional[int] = None,
    ) -> CostCenterResult:
        """Cost center ``MASTER-{shipment_id}`` coded with the shipment id."""
        if not shipment_id:
            raise ValidationError("Shipment id is required for its cost center")
        return await self.find_or_create(
            tenant,
            cost_center_name(MASTER_PREFIX, shipment_id),
            code=shipment_id,
            partner_id=partner_id,
        )

    async def for_leg(
        self,
        tenant: TenantCode,
        leg_id: str,
        parent_shipment_id: Optional[str] = None,
        partner_id: Optional[int] = None,
    ) -> CostCenterResult:
        """Cost center ``OP-{leg_id}`` coded ``{parent}/{leg_id}`` when the parent is known."""
        if not leg_id:
            raise ValidationError("Leg id is required for its cost center")
        code = f"{parent_shipment_id}/{leg_id}" if parent_shipment_id else leg_id
        return await self.find_or_create(
            tenant,
            cost_center_name(LEG_PREFIX, leg_id),
            code=code,
            partner_id=partner_id,
        )
