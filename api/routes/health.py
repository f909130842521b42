"""Health check and metrics endpoints."""

from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from api.container import ServiceContainer, get_container
from core import __version__
from core.observability import get_metrics


router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    timestamp: str
    version: str
    services: Dict[str, str]


class TenantHealthResponse(BaseModel):
    """Per-tenant ERP connectivity."""
    status: str
    tenants: Dict[str, Dict[str, Any]]


@router.get("/health", response_model=HealthResponse)
async def health_check(container: ServiceContainer = Depends(get_container)) -> HealthResponse:
    """Health check endpoint (no remote calls)."""
    services = {"api": "up"}
    for tenant in container.settings.tenants:
        services[f"erp_{tenant.value.lower()}"] = "connected" if container.pool.is_connected(tenant) else "idle"

    return HealthResponse(
        status="healthy",
        timestamp=datetime.utcnow().isoformat(),
        version=__version__,
        services=services,
    )


@router.get("/health/tenants", response_model=TenantHealthResponse)
async def tenant_health(container: ServiceContainer = Depends(get_container)) -> TenantHealthResponse:
    """Log in to every tenant and report the outcome."""
    results = await container.pool.test_connections()
    status = "healthy" if all(r["status"] == "ok" for r in results.values()) else "degraded"
    return TenantHealthResponse(status=status, tenants=results)


@router.get("/metrics")
async def metrics_summary() -> Dict[str, Any]:
    """In-memory sync metrics."""
    return get_metrics().get_summary()


@router.get("/ready")
async def readiness_check() -> Dict[str, str]:
    """Readiness probe for Kubernetes."""
    return {"status": "ready"}


@router.get("/live")
async def liveness_check(response: Response) -> Dict[str, str]:
    """Liveness probe for Kubernetes."""
    return {"status": "alive"}
