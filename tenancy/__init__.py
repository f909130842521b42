"""Tenancy - which ERP company a record belongs to, and how to reach it.

Usage:
    from tenancy import TenantConnectionPool, resolve_tenant, OperationKind

    tenant = resolve_tenant(record_override, ["Chile"], OperationKind.SALE)
    session = await pool.get_session(tenant)
"""

from core.tenants import TenantCode, OperationKind
from tenancy.router import (
    RoutingPolicy,
    DEFAULT_ROUTING_POLICY,
    resolve_tenant,
)
from tenancy.connection_manager import TenantConnectionPool

__all__ = [
    "TenantCode",
    "OperationKind",
    "RoutingPolicy",
    "DEFAULT_ROUTING_POLICY",
    "resolve_tenant",
    "TenantConnectionPool",
]
