"""Operation (leg) endpoints."""

from fastapi import APIRouter, Depends

from api.container import ServiceContainer, get_container
from orchestrators import CarrierInvoiceResult, LegProcessResult, RecordFields


router = APIRouter()


@router.post("/{record_id}/process", response_model=LegProcessResult)
async def process_operation(
    record_id: str,
    container: ServiceContainer = Depends(get_container),
) -> LegProcessResult:
    """Resolve the leg's carrier and cost center."""
    return await container.operations.process(record_id)


@router.post("/{record_id}/invoice", response_model=CarrierInvoiceResult)
async def invoice_carrier(
    record_id: str,
    container: ServiceContainer = Depends(get_container),
) -> CarrierInvoiceResult:
    """Create the carrier's vendor bill for the leg."""
    return await container.operations.invoice_carrier(record_id)


@router.get("/{record_id}/fields", response_model=RecordFields)
async def describe_operation(
    record_id: str,
    container: ServiceContainer = Depends(get_container),
) -> RecordFields:
    """Raw record-store fields of the leg, sorted by name."""
    return await container.operations.describe(record_id)
