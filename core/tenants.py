"""Tenant identifiers shared by configuration, routing and connections."""

from enum import Enum
from typing import Optional


class TenantCode(str, Enum):
    """Country-scoped ERP company."""
    AR = "AR"  # Argentina, primary
    CL = "CL"  # Chile, secondary

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["TenantCode"]:
        """Case-insensitive lookup; None for blank or unknown values."""
        if value is None:
            return None
        if isinstance(value, cls):
            return value
        text = str(value).strip().upper()
        if not text:
            return None
        try:
            return cls(text)
        except ValueError:
            return None


class OperationKind(str, Enum):
    """Which side of the triangulation a record is routed for."""
    SALE = "sale"  # customer invoicing, routed by customer country
    COST = "cost"  # carrier payables, routed by carrier/origin country
