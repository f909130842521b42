"""Composition root.

Builds the object graph once per process: one record-store client, one
tenant connection pool, and the services sharing them. Routes reach it
through ``request.app.state.container``.
"""

from typing import Optional

from fastapi import Request

from analytic import AnalyticHierarchyBuilder
from connectors.odoo import OdooClient
from connectors.record_store import RecordStoreClient
from core.config import Settings
from invoicing import InvoiceComposer
from orchestrators import CatalogSyncService, MasterService, OperationService
from partner_resolver import PartnerResolver
from tenancy import TenantConnectionPool
from tenancy.connection_manager import SessionFactory


class ServiceContainer:
    """Owns the pool, the record store and every service built on them."""

    def __init__(self, settings: Settings, record_store, pool: TenantConnectionPool):
        self.settings = settings
        self.record_store = record_store
        self.pool = pool

        self.partners = PartnerResolver(pool)
        self.analytics = AnalyticHierarchyBuilder(pool, settings.billing.analytic_plan_hint)
        self.invoices = InvoiceComposer(pool)

        self.masters = MasterService(record_store, pool, self.partners, self.analytics, self.invoices, settings)
        self.operations = OperationService(record_store, pool, self.partners, self.analytics, self.invoices, settings)
        self.catalog = CatalogSyncService(record_store, pool, self.partners, settings)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        session_factory: SessionFactory = OdooClient,
        record_store: Optional[object] = None,
    ) -> "ServiceContainer":
        """Wire the production graph (Odoo sessions, Airtable record store)."""
        if record_store is None:
            record_store = RecordStoreClient(settings.record_store, settings.http_timeout_seconds)
        pool = TenantConnectionPool(settings, session_factory=session_factory)
        return cls(settings, record_store, pool)

    async def close(self) -> None:
        await self.pool.close()
        close = getattr(self.record_store, "close", None)
        if close is not None:
            await close()


def get_container(request: Request) -> ServiceContainer:
    """FastAPI dependency returning the app's container."""
    return request.app.state.container
