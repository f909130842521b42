"""Abstract ERP Session Interface.

This module defines the interface every tenant-scoped ERP session implements.
It is intentionally narrow - the sync services only ever search, create and
write records - so the services stay testable against an in-memory double.

Key Design Principles:
- A session is bound to ONE tenant and ONE accounting company
- Every call made through a session is scoped to that company
- Sessions raise the shared error taxonomy (core.errors), never transport types
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from core.tenants import TenantCode


# A search domain: list of (field, operator, value) triples, ANDed together.
DomainTerm = Tuple[str, str, Any]
Domain = List[Union[DomainTerm, List[Any]]]


class ERPModel:
    """ERP model names used by the sync services."""
    PARTNER = "res.partner"
    COUNTRY = "res.country"
    CURRENCY = "res.currency"
    ANALYTIC_ACCOUNT = "account.analytic.account"
    ANALYTIC_PLAN = "account.analytic.plan"
    MOVE = "account.move"
    PRICELIST = "product.pricelist"
    PRICELIST_ITEM = "product.pricelist.item"
    PRODUCT = "product.product"
    PRODUCT_TEMPLATE = "product.template"
    PRODUCT_CATEGORY = "product.category"
    UOM = "uom.uom"
    TAX = "account.tax"
    ACCOUNT = "account.account"


class ERPSession(ABC):
    """Authenticated, company-scoped session against one tenant's ERP.

    Implementations:
    - connectors/odoo/odoo_client.py (JSON-RPC)
    """

    def __init__(self, tenant: TenantCode, company_id: int):
        self.tenant = tenant
        self.company_id = company_id
        self.uid: Optional[int] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.uid)

    # =========================================================================
    # Connection Management
    # =========================================================================

    @abstractmethod
    async def login(self) -> int:
        """Authenticate and return the numeric user id.

        Raises:
            BackendConnectionError: Credentials rejected or backend unreachable
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release transport resources."""
        pass

    # =========================================================================
    # Record Operations
    # =========================================================================

    @abstractmethod
    async def call(
        self,
        model: str,
        method: str,
        args: Optional[Sequence[Any]] = None,
        kwargs: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Invoke a model method, scoped to the session's company.

        Returns:
            The method's result payload
        """
        pass

    async def search_read(
        self,
        model: str,
        domain: Optional[Domain] = None,
        fields: Optional[List[str]] = None,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        """Search records and return the requested fields.

        Args:
            model: ERP model name
            domain: Search domain (empty matches everything)
            fields: Fields to return (empty returns the model default)
            limit: Maximum rows (0 = unbounded)
        """
        kwargs: Dict[str, Any] = {}
        if fields:
            kwargs["fields"] = list(fields)
        if limit > 0:
            kwargs["limit"] = limit
        result = await self.call(model, "search_read", [list(domain or [])], kwargs)
        return result or []

    async def create(self, model: str, values: Dict[str, Any]) -> int:
        """Create one record and return its id."""
        result = await self.call(model, "create", [values])
        if isinstance(result, list):
            result = result[0] if result else None
        return int(result) if result else 0

    async def write(self, model: str, ids: Sequence[int], values: Dict[str, Any]) -> bool:
        """Partially update records; True when the ERP acknowledged the write."""
        result = await self.call(model, "write", [list(ids), values])
        return result is True

    def __repr__(self) -> str:
        return f"<{type(self).__name__} tenant={self.tenant.value} company={self.company_id} uid={self.uid}>"
