"""Tenant Connection Pool.

Owns one authenticated ERP session per tenant. Sessions are created on first
use and cached for the life of the pool; later calls are cache hits with no
network cost. A failed login is not cached and does not affect the other
tenant's session.

The pool is created by the composition root (api/container.py) and passed to
the services that need it.
"""

import asyncio
from typing import Any, Callable, Dict

from connectors.erp_base import ERPSession
from connectors.odoo import OdooClient
from core.config import Settings, TenantSettings
from core.errors import BackendConnectionError, SyncError
from core.observability import get_logger
from core.tenants import TenantCode

logger = get_logger(__name__)

SessionFactory = Callable[[TenantSettings, float], ERPSession]


class TenantConnectionPool:
    """Lazily authenticated, process-lifetime ERP sessions keyed by tenant.

    Usage:
        pool = TenantConnectionPool(settings)
        session = await pool.get_session(TenantCode.CL)
        await session.search_read("res.partner", [("name", "=", "Acme")], ["id"])
        await pool.close()
    """

    def __init__(self, settings: Settings, session_factory: SessionFactory = OdooClient):
        """Initialize pool.

        Args:
            settings: Service settings (credentials are checked at first use)
            session_factory: Builds an unauthenticated session from tenant settings and timeout
        """
        self.settings = settings
        self._session_factory = session_factory
        self._sessions: Dict[TenantCode, ERPSession] = {}
        self._locks: Dict[TenantCode, asyncio.Lock] = {}

    def tenant_settings(self, tenant: TenantCode) -> TenantSettings:
        return self.settings.tenant(tenant)

    def is_connected(self, tenant: TenantCode) -> bool:
        session = self._sessions.get(tenant)
        return session is not None and session.is_authenticated

    async def get_session(self, tenant: TenantCode) -> ERPSession:
        """Get the tenant's authenticated session, logging in on first use.

        Raises:
            ConfigurationError: Tenant unknown or credentials incomplete
            BackendConnectionError: Login rejected or backend unreachable
        """
        session = self._sessions.get(tenant)
        if session is not None:
            return session

        lock = self._locks.setdefault(tenant, asyncio.Lock())
        async with lock:
            # Another caller may have logged in while we waited
            session = self._sessions.get(tenant)
            if session is not None:
                return session

            tenant_settings = self.settings.require_tenant(tenant)
            session = self._session_factory(tenant_settings, self.settings.http_timeout_seconds)
            try:
                await session.login()
            except BackendConnectionError as e:
                await session.close()
                if not e.tenant:
                    e.tenant = tenant.value
                logger.error(
                    f"Login failed for tenant {tenant.value}: {e.message}",
                    extra_fields={"tenant": tenant.value},
                )
                raise

            self._sessions[tenant] = session
            logger.info(
                f"Session established for tenant {tenant.value}",
                extra_fields={"tenant": tenant.value, "uid": session.uid, "company_id": session.company_id},
            )
            return session

    async def test_connections(self) -> Dict[str, Dict[str, Any]]:
        """Try to connect every configured tenant.

        Returns:
            {"AR": {"status": "ok", "uid": 2}, "CL": {"status": "error", "error": "..."}}
        """
        results: Dict[str, Dict[str, Any]] = {}
        for tenant in self.settings.tenants:
            try:
                session = await self.get_session(tenant)
                results[tenant.value] = {
                    "status": "ok",
                    "uid": session.uid,
                    "company_id": session.company_id,
                }
            except SyncError as e:
                results[tenant.value] = {"status": "error", "error": e.message}
        return results

    async def close(self) -> None:
        """Close every cached session."""
        for session in self._sessions.values():
            await session.close()
        self._sessions.clear()
