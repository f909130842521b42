"""Partner Resolver - customer and carrier contacts in the tenant's ERP.

Usage:
    from partner_resolver import PartnerResolver, PartyData, PartyRole

    resolver = PartnerResolver(pool)
    partner = await resolver.find_or_create(
        TenantCode.AR,
        PartyData(name="Acme SA", tax_id="30-71234567-8", role=PartyRole.CUSTOMER),
    )
"""

from partner_resolver.models import (
    PartyRole,
    PartyData,
    PartnerResult,
    MatchType,
)
from partner_resolver.resolver import PartnerResolver

__all__ = [
    # Models
    "PartyRole",
    "PartyData",
    "PartnerResult",
    "MatchType",
    # Resolver
    "PartnerResolver",
]
