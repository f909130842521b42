"""Catalog sync endpoints (companies, tariffs, service products)."""

from fastapi import APIRouter, Depends, Query

from api.container import ServiceContainer, get_container
from core.tenants import TenantCode
from orchestrators import CompanySyncResult, ProductSyncResult, TariffSyncResult


router = APIRouter()


@router.post("/companies/{record_id}", response_model=CompanySyncResult)
async def sync_company(
    record_id: str,
    container: ServiceContainer = Depends(get_container),
) -> CompanySyncResult:
    """Create or update the partner for one company record."""
    return await container.catalog.sync_company(record_id)


@router.post("/tariffs", response_model=TariffSyncResult)
async def sync_tariffs(
    tenant: TenantCode = Query(default=TenantCode.AR, description="Tenant whose pricelist receives the tariffs"),
    container: ServiceContainer = Depends(get_container),
) -> TariffSyncResult:
    """Upsert every tariff row into the tenant's tariff pricelist."""
    return await container.catalog.sync_tariffs(tenant)


@router.post("/products", response_model=ProductSyncResult)
async def sync_products(
    tenant: TenantCode = Query(default=TenantCode.AR, description="Tenant whose product catalog is synchronized"),
    container: ServiceContainer = Depends(get_container),
) -> ProductSyncResult:
    """Create or update the service products used on invoice lines."""
    return await container.catalog.sync_products(tenant)
