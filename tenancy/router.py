"""Country Router.

Decides which tenant a business record is accounted in. Triangulation means
the sale side (customer) and the cost side (carrier) of the same shipment can
land in different tenants, e.g. an Argentine customer billed in AR while the
Chilean carrier's payable is booked in CL.

Rule, in priority order:
1. An explicit override on the record, when it names a known tenant
2. The country hint (customer country for sales, carrier/origin for costs):
   secondary tenant if ANY hint equals its country code or contains its
   country name, case-insensitively
3. The per-kind default (primary tenant)

The function is pure and total.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Sequence, Union

from core.config import Settings
from core.tenants import OperationKind, TenantCode


CountryHint = Union[None, str, Sequence[Optional[str]]]


@dataclass(frozen=True)
class RoutingPolicy:
    """Tenants and matching rule used by resolve_tenant()."""
    primary: TenantCode = TenantCode.AR
    secondary: TenantCode = TenantCode.CL
    secondary_country_code: str = "CL"
    secondary_country_name: str = "Chile"
    defaults: Dict[OperationKind, TenantCode] = field(
        default_factory=lambda: {
            OperationKind.SALE: TenantCode.AR,
            OperationKind.COST: TenantCode.AR,
        }
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> "RoutingPolicy":
        """Policy whose secondary tenant is the configured non-primary tenant."""
        primary = settings.primary_tenant
        secondary = next((code for code in settings.tenants if code != primary), cls.secondary)
        return cls(
            primary=primary,
            secondary=secondary,
            secondary_country_code=secondary.value,
            secondary_country_name=settings.tenant(secondary).country_name,
            defaults={kind: primary for kind in OperationKind},
        )

    def default_for(self, kind: OperationKind) -> TenantCode:
        return self.defaults.get(kind, self.primary)

    def matches_secondary(self, hint: str) -> bool:
        text = hint.strip().lower()
        if not text:
            return False
        return (
            text == self.secondary_country_code.lower()
            or self.secondary_country_name.lower() in text
        )


DEFAULT_ROUTING_POLICY = RoutingPolicy()


def _iter_hints(country_hint: CountryHint) -> Iterable[str]:
    if country_hint is None:
        return []
    if isinstance(country_hint, str):
        return [country_hint]
    return [str(h) for h in country_hint if h is not None]


def resolve_tenant(
    explicit_override: Optional[str],
    country_hint: CountryHint,
    operation_kind: OperationKind = OperationKind.SALE,
    policy: RoutingPolicy = DEFAULT_ROUTING_POLICY,
) -> TenantCode:
    """Resolve the tenant for one record.

    Args:
        explicit_override: Tenant previously persisted on the record (or typed by staff)
        country_hint: Country name(s)/code(s) relevant to the operation kind
        operation_kind: SALE (customer side) or COST (carrier side)
        policy: Tenant pair and matching rule

    Returns:
        Always one of the policy's two tenants
    """
    override = TenantCode.parse(explicit_override) if isinstance(explicit_override, str) else None
    if override is not None:
        return override

    for hint in _iter_hints(country_hint):
        if policy.matches_secondary(hint):
            return policy.secondary

    return policy.default_for(operation_kind)
