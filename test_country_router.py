"""
Tests for tenant routing (tenancy/router.py).

resolve_tenant is pure: these tests need no backends.
"""

import pytest

from core.tenants import OperationKind, TenantCode
from tenancy import DEFAULT_ROUTING_POLICY, RoutingPolicy, resolve_tenant


class TestResolveTenant:
    """Priority order: override, country hint, per-kind default."""

    def test_chile_hint_routes_to_secondary(self):
        """A Chilean customer is billed in CL."""
        assert resolve_tenant(None, "Chile") == TenantCode.CL

    def test_country_code_hint(self):
        """The bare ISO code matches too, case-insensitively."""
        assert resolve_tenant(None, "cl") == TenantCode.CL

    def test_name_substring_hint(self):
        """'Santiago, Chile' contains the secondary country name."""
        assert resolve_tenant(None, "Santiago, CHILE") == TenantCode.CL

    def test_partial_code_does_not_match(self):
        """'CLP' is not the code 'CL' and does not contain 'chile'."""
        assert resolve_tenant(None, "CLP") == TenantCode.AR

    def test_unknown_hint_defaults_to_primary(self):
        assert resolve_tenant(None, "Uruguay") == TenantCode.AR

    def test_missing_hint_defaults_to_primary(self):
        assert resolve_tenant(None, None) == TenantCode.AR
        assert resolve_tenant(None, "") == TenantCode.AR
        assert resolve_tenant(None, []) == TenantCode.AR

    def test_any_hint_in_list_matches(self):
        """Customer country and destination are both considered."""
        assert resolve_tenant(None, ["Argentina", None, "Valparaíso, Chile"]) == TenantCode.CL

    def test_override_wins_over_hint(self):
        """A persisted tenant beats re-inference."""
        assert resolve_tenant("AR", "Chile") == TenantCode.AR
        assert resolve_tenant("cl", "Argentina") == TenantCode.CL

    def test_invalid_override_is_ignored(self):
        assert resolve_tenant("BR", "Chile") == TenantCode.CL
        assert resolve_tenant("  ", None) == TenantCode.AR

    def test_cost_kind_defaults_to_primary(self):
        assert resolve_tenant(None, None, OperationKind.COST) == TenantCode.AR
        assert resolve_tenant(None, "Chile", OperationKind.COST) == TenantCode.CL

    def test_deterministic(self):
        """Same inputs, same tenant; always one of the two codes."""
        inputs = [
            (None, None), ("AR", None), (None, "Chile"), ("xx", "Peru"),
            (None, ["", "chile"]), ("CL", ["Argentina"]),
        ]
        for override, hint in inputs:
            first = resolve_tenant(override, hint)
            assert first in (TenantCode.AR, TenantCode.CL)
            assert all(resolve_tenant(override, hint) == first for _ in range(3))


class TestRoutingPolicy:
    """Policy built from settings."""

    def test_from_settings(self, settings):
        policy = RoutingPolicy.from_settings(settings)

        assert policy.primary == TenantCode.AR
        assert policy.secondary == TenantCode.CL
        assert policy.secondary_country_name == "Chile"
        assert policy.default_for(OperationKind.SALE) == TenantCode.AR
        assert policy.default_for(OperationKind.COST) == TenantCode.AR

    def test_swapped_primary(self, settings):
        """With CL primary, Argentine hints route to AR."""
        settings.primary_tenant = TenantCode.CL
        policy = RoutingPolicy.from_settings(settings)

        assert resolve_tenant(None, "Argentina", policy=policy) == TenantCode.AR
        assert resolve_tenant(None, "Peru", policy=policy) == TenantCode.CL

    def test_default_policy_is_frozen(self):
        with pytest.raises(Exception):
            DEFAULT_ROUTING_POLICY.primary = TenantCode.CL
