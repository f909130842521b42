"""Master (aggregate shipment) endpoints.

Called by the record store's automations when staff move a shipment forward.
"""

from fastapi import APIRouter, Depends

from api.container import ServiceContainer, get_container
from orchestrators import MasterInvoiceResult, MasterProcessResult


router = APIRouter()


@router.post("/{record_id}/process", response_model=MasterProcessResult)
async def process_master(
    record_id: str,
    container: ServiceContainer = Depends(get_container),
) -> MasterProcessResult:
    """Create or reuse the shipment's customer partner and cost center."""
    return await container.masters.process(record_id)


@router.post("/{record_id}/invoice", response_model=MasterInvoiceResult)
async def invoice_master(
    record_id: str,
    container: ServiceContainer = Depends(get_container),
) -> MasterInvoiceResult:
    """Create the customer invoice for the shipment's billable legs."""
    return await container.masters.invoice(record_id)
