"""Partner Resolver.

Resolves a business party (customer or carrier) to an ERP contact in the
tenant's company, creating one when no match exists.

Lookup order, first hit wins:
1. Exact tax id (CUIT/RUT)
2. Exact name
3. Case-insensitive substring name match

Updates never blank out existing data: only non-empty incoming fields are
written.
"""

from typing import Any, Dict, Optional, Tuple

from connectors.erp_base import ERPModel, ERPSession
from core.errors import ValidationError
from core.observability import get_logger, log_record_action
from core.tenants import TenantCode
from partner_resolver.models import MatchType, PartnerResult, PartyData, PartyRole
from sync_engine import UpsertAction, search_one, write_or_create

logger = get_logger(__name__)

PARTNER_FIELDS = ["id", "name", "vat"]


class PartnerResolver:
    """Find-or-create ERP contacts for customers and carriers.

    Example:
        resolver = PartnerResolver(pool)
        result = await resolver.find_or_create(
            TenantCode.CL,
            PartyData(name="Transportes Andes SpA", tax_id="76.123.456-7", role=PartyRole.CARRIER),
        )
        print(result.id, result.action)
    """

    def __init__(self, pool):
        """Initialize the resolver.

        Args:
            pool: TenantConnectionPool supplying tenant sessions
        """
        self.pool = pool

    async def _lookup(
        self,
        session: ERPSession,
        name: str,
        tax_id: Optional[str],
    ) -> Tuple[Optional[Dict[str, Any]], MatchType]:
        if tax_id:
            row = await search_one(session, ERPModel.PARTNER, [("vat", "=", tax_id)], PARTNER_FIELDS)
            if row:
                return row, MatchType.TAX_ID

        if name:
            row = await search_one(session, ERPModel.PARTNER, [("name", "=", name)], PARTNER_FIELDS)
            if row:
                return row, MatchType.EXACT_NAME

            row = await search_one(session, ERPModel.PARTNER, [("name", "ilike", name)], PARTNER_FIELDS)
            if row:
                return row, MatchType.SIMILAR_NAME

        return None, MatchType.NO_MATCH

    async def find_partner(
        self,
        tenant: TenantCode,
        name: str,
        tax_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Find an existing partner.

        Returns:
            Partner row ({"id", "name", "vat"}) or None
        """
        session = await self.pool.get_session(tenant)
        row, _ = await self._lookup(session, name, tax_id)
        return row

    async def _resolve_country_id(self, session: ERPSession, country_code: Optional[str]) -> Optional[int]:
        if not country_code:
            return None
        row = await search_one(
            session, ERPModel.COUNTRY, [("code", "=", country_code.strip().upper())], ["id"]
        )
        return row["id"] if row else None

    async def _create_values(self, session: ERPSession, party: PartyData) -> Dict[str, Any]:
        values: Dict[str, Any] = {
            "name": party.name,
            "is_company": True,
            "customer_rank": 1 if party.role == PartyRole.CUSTOMER else 0,
            "supplier_rank": 1 if party.role == PartyRole.CARRIER else 0,
        }
        if party.tax_id:
            values["vat"] = party.tax_id
        if party.email:
            values["email"] = party.email
        if party.phone:
            values["phone"] = party.phone

        country_id = await self._resolve_country_id(session, party.country_code)
        if country_id:
            values["country_id"] = country_id
        return values

    @staticmethod
    def _update_values(party: PartyData) -> Dict[str, Any]:
        candidates = {
            "name": party.name,
            "vat": party.tax_id,
            "email": party.email,
            "phone": party.phone,
        }
        return {k: v for k, v in candidates.items() if v}

    async def create_partner(self, tenant: TenantCode, party: PartyData) -> int:
        """Create a partner and return its id."""
        session = await self.pool.get_session(tenant)
        result = await write_or_create(
            session, ERPModel.PARTNER, None, await self._create_values(session, party)
        )
        return result.id

    async def update_partner(self, tenant: TenantCode, partner_id: int, party: PartyData) -> bool:
        """Write the party's non-empty fields onto an existing partner.

        Returns:
            True when something was written
        """
        if not partner_id:
            raise ValidationError("Partner id is required to update a partner")
        session = await self.pool.get_session(tenant)
        values = self._update_values(party)
        await write_or_create(session, ERPModel.PARTNER, partner_id, {}, values)
        return bool(values)

    async def find_or_create(self, tenant: TenantCode, party: PartyData) -> PartnerResult:
        """Resolve a party to an ERP contact.

        Returns:
            PartnerResult with action UPDATED for a match, CREATED otherwise

        Raises:
            ValidationError: Party has no name
        """
        name = (party.name or "").strip()
        if not name:
            raise ValidationError("Party name is required to resolve a partner")
        tax_id = (party.tax_id or "").strip() or None
        party = party.model_copy(update={"name": name, "tax_id": tax_id})

        session = await self.pool.get_session(tenant)
        existing, match_type = await self._lookup(session, name, tax_id)

        if existing:
            result = await write_or_create(
                session, ERPModel.PARTNER, existing["id"], {}, self._update_values(party)
            )
            partner = PartnerResult(
                id=result.id,
                name=existing.get("name") or name,
                action=result.action,
                match_type=match_type,
            )
        else:
            result = await write_or_create(
                session, ERPModel.PARTNER, None, await self._create_values(session, party)
            )
            partner = PartnerResult(id=result.id, name=name, action=UpsertAction.CREATED)

        log_record_action(
            "partner", partner.action.value, ERPModel.PARTNER, partner.id,
            tenant=tenant.value, role=party.role.value, match_type=partner.match_type.value,
        )
        return partner
