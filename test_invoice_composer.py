"""
Tests for rate normalization and invoice composition (invoicing/).
"""

from decimal import Decimal

import pytest

from connectors.erp_base import ERPModel
from core.errors import RemoteCallError, ValidationError
from core.tenants import TenantCode
from invoicing import (
    InvoiceComposer,
    LegBilling,
    MoveType,
    build_line_description,
    extract_lookup,
    normalize_rate,
)


@pytest.fixture
def composer(pool):
    return InvoiceComposer(pool)


def leg(leg_id="recL1", label="OP-1", sell=None, buy=None, origin=None, destination=None):
    return LegBilling(
        leg_id=leg_id, label=label, origin=origin, destination=destination,
        sell_rate=sell, buy_rate=buy,
    )


class TestRates:
    """normalize_rate / extract_lookup / build_line_description."""

    def test_normalize_rate(self):
        assert normalize_rate(None) == 0
        assert normalize_rate([]) == 0
        assert normalize_rate([7.5, 9]) == Decimal("7.5")
        assert normalize_rate("12.3") == Decimal("12.3")

    def test_normalize_odd_values(self):
        assert normalize_rate("abc") == 0
        assert normalize_rate("") == 0
        assert normalize_rate(True) == 0
        assert normalize_rate(float("nan")) == 0
        assert normalize_rate({"value": 3}) == 0
        assert normalize_rate(1500) == Decimal("1500")

    def test_extract_lookup(self):
        assert extract_lookup(["", None, " Chile "]) == "Chile"
        assert extract_lookup({"id": "usr1", "name": "Ana"}) == "Ana"
        assert extract_lookup([]) is None

    def test_line_description(self):
        assert build_line_description("Transport", "OP-1", "Mendoza", "Santiago") == "Transport OP-1 – Mendoza → Santiago"
        assert build_line_description("Freight", "OP-1", None, "Santiago") == "Freight OP-1 → Santiago"
        assert build_line_description("Freight", "OP-1") == "Freight OP-1"


class TestComposeCustomerInvoice:
    """Line inclusion and draft fields."""

    def test_only_positive_rates_become_lines(self, composer):
        """[0, 150, None] gives one line and a total of 150."""
        legs = [leg("recL1", sell=0), leg("recL2", label="OP-2", sell=150), leg("recL3", sell=None)]

        draft = composer.compose_customer_invoice(TenantCode.AR, 12, legs, cost_center_id=30, ref="Master M-7")

        assert len(draft.lines) == 1
        assert draft.lines[0].leg_id == "recL2"
        assert draft.total == Decimal("150")
        assert draft.move_type == MoveType.OUT_INVOICE
        assert draft.journal_id == 1

    def test_line_values(self, composer):
        legs = [leg(sell=["1200.50"], origin="Mendoza", destination="Santiago")]

        draft = composer.compose_customer_invoice(TenantCode.CL, 12, legs, cost_center_id=30)
        values = draft.to_erp_values()

        line = values["invoice_line_ids"][0][2]
        assert values["move_type"] == "out_invoice"
        assert values["partner_id"] == 12
        assert line["product_id"] == 2
        assert line["name"] == "Transport OP-1 – Mendoza → Santiago"
        assert line["quantity"] == 1.0
        assert line["price_unit"] == 1200.5
        assert line["analytic_distribution"] == {"30": 100}

    def test_no_cost_center_no_distribution(self, composer):
        draft = composer.compose_customer_invoice(TenantCode.AR, 12, [leg(sell=10)])

        assert "analytic_distribution" not in draft.lines[0].to_erp_values()

    def test_all_zero_rates_rejected(self, composer):
        """Never a zero-total invoice."""
        with pytest.raises(ValidationError):
            composer.compose_customer_invoice(TenantCode.AR, 12, [leg(sell=0), leg(sell=None), leg(sell="x")])

    def test_partner_required(self, composer):
        with pytest.raises(ValidationError):
            composer.compose_customer_invoice(TenantCode.AR, 0, [leg(sell=10)])


class TestComposeCarrierInvoice:
    """Single-line vendor bill."""

    def test_carrier_bill(self, composer):
        draft = composer.compose_carrier_invoice(
            TenantCode.CL, 40, leg(buy=[800]), ref="Operation OP-1", supplier_reference="F-0001-123",
        )

        assert draft.move_type == MoveType.IN_INVOICE
        assert draft.journal_id == 2
        assert draft.ref == "F-0001-123"
        assert draft.lines[0].product_id == 3
        assert draft.lines[0].name == "Freight OP-1"
        assert draft.total == Decimal("800")

    def test_non_positive_buy_rate(self, composer):
        with pytest.raises(ValidationError):
            composer.compose_carrier_invoice(TenantCode.CL, 40, leg(buy=-5))


class TestCreateInvoice:
    """ERP side of invoicing."""

    @pytest.mark.asyncio
    async def test_create_and_read_back(self, composer, erp):
        draft = composer.compose_customer_invoice(TenantCode.CL, 12, [leg(sell=150), leg(sell=50)])

        invoice = await composer.create_invoice(draft)

        assert invoice.name == "INV/2026/0001"
        assert invoice.state == "draft"
        assert invoice.amount_total == Decimal("200")
        assert invoice.line_count == 2
        assert invoice.tenant == TenantCode.CL
        assert erp[TenantCode.AR].rows(ERPModel.MOVE) == []

    @pytest.mark.asyncio
    async def test_no_id_returned(self, composer, erp):
        erp[TenantCode.AR].null_create.add(ERPModel.MOVE)
        draft = composer.compose_customer_invoice(TenantCode.AR, 12, [leg(sell=150)])

        with pytest.raises(RemoteCallError):
            await composer.create_invoice(draft)

    @pytest.mark.asyncio
    async def test_confirm_and_lookup(self, composer, erp):
        draft = composer.compose_carrier_invoice(TenantCode.AR, 40, leg(buy=100))
        invoice = await composer.create_invoice(draft)

        assert await composer.confirm_invoice(TenantCode.AR, invoice.id)
        row = await composer.get_invoice(TenantCode.AR, invoice.id)
        assert row["state"] == "posted"

        bills = await composer.find_by_partner(TenantCode.AR, 40, MoveType.IN_INVOICE)
        assert [b["id"] for b in bills] == [invoice.id]

    @pytest.mark.asyncio
    async def test_resolve_currency(self, composer, erp):
        usd = erp[TenantCode.CL].seed(ERPModel.CURRENCY, name="USD")

        assert await composer.resolve_currency_id(TenantCode.CL, "usd") == usd
        assert await composer.resolve_currency_id(TenantCode.CL, "EUR") is None
