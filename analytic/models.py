"""Analytic (cost center) models."""

from typing import Optional

from pydantic import BaseModel, Field

from sync_engine import UpsertAction


MASTER_PREFIX = "MASTER-"
LEG_PREFIX = "OP-"


class CostCenterResult(BaseModel):
    """Cost center used to tag revenue/cost to a shipment or leg.

    ``id is None`` (action UNAVAILABLE) means the ERP refused to create it;
    callers continue without an analytic reference.
    """
    id: Optional[int] = Field(default=None, description="account.analytic.account id")
    name: str
    code: Optional[str] = Field(default=None, description="'{shipment}/{leg}' for legs with a known parent")
    action: UpsertAction

    @property
    def is_available(self) -> bool:
        return self.id is not None
