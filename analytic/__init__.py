"""Analytic - shipment and leg cost centers.

Usage:
    from analytic import AnalyticHierarchyBuilder

    builder = AnalyticHierarchyBuilder(pool, plan_name_hint="Mercotruck")
    cost_center = await builder.for_leg(TenantCode.CL, "42", parent_shipment_id="M-7")
"""

from analytic.models import CostCenterResult, MASTER_PREFIX, LEG_PREFIX
from analytic.builder import AnalyticHierarchyBuilder, cost_center_name

__all__ = [
    "CostCenterResult",
    "MASTER_PREFIX",
    "LEG_PREFIX",
    "AnalyticHierarchyBuilder",
    "cost_center_name",
]
