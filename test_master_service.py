"""
Tests for shipment orchestration (orchestrators/master_service.py).

Full service graph over the in-memory ERP and record store.
"""

import pytest

from connectors.erp_base import ERPModel
from core.errors import BackendConnectionError, NotFoundError, RemoteCallError, ValidationError
from core.tenants import TenantCode
from sync_engine import UpsertAction


MASTERS = "Masters"
LEGS = "tblV9e6v8lhdMCqUG"


@pytest.fixture
def chile_shipment(record_store):
    """Shipment M-7 for a Chilean customer with three linked legs (one dangling)."""
    record_store.add(
        MASTERS, "recM1",
        **{
            "Master": "M-7",
            "Nombre del Cliente": ["Viña Andes SpA"],
            "CUIT/RUT": "76.123.456-7",
            "País del Cliente": ["Chile"],
            "Destino": "Santiago",
            "Operaciones / Órdenes de Viaje 2": ["recL1", "recL2", "recL9"],
        },
    )
    record_store.add(
        LEGS, "recL1",
        **{"Nombre de Operación": "OP-1", "Origen": "Mendoza", "Destino": "Los Andes", "Tarifa de Venta": [1500]},
    )
    record_store.add(
        LEGS, "recL2",
        **{"Nombre de Operación": "OP-2", "Origen": "Los Andes", "Destino": "Santiago", "Tarifa de Venta": None},
    )
    return "recM1"


class TestProcess:
    """MasterService.process."""

    @pytest.mark.asyncio
    async def test_chile_customer_end_to_end(self, container, record_store, erp, chile_shipment):
        """Routed to CL, then the persisted tenant keeps it there without a hint."""
        first = await container.masters.process(chile_shipment)

        assert first.tenant == TenantCode.CL
        assert first.record_name == "M-7"
        assert first.partner.action == UpsertAction.CREATED
        assert first.cost_center.name == "MASTER-M-7"
        assert first.write_back.ok
        fields = record_store.fields(MASTERS, "recM1")
        assert fields["company_venta"] == "CL"
        assert fields["odoo_partner_id_cl"] == str(first.partner.id)
        assert fields["odoo_analytic_id_master_cl"] == str(first.cost_center.id)
        assert erp[TenantCode.AR].rows(ERPModel.PARTNER) == []

        # Country hint gone: the persisted tenant decides
        del fields["País del Cliente"]
        fields["Destino"] = None
        second = await container.masters.process(chile_shipment)

        assert second.tenant == TenantCode.CL
        assert second.partner.id == first.partner.id
        assert second.partner.action == UpsertAction.UPDATED
        assert second.cost_center.id == first.cost_center.id
        assert second.cost_center.action == UpsertAction.EXISTING

    @pytest.mark.asyncio
    async def test_argentine_customer_default(self, container, record_store):
        record_store.add(MASTERS, "recM2", **{"Master": "M-8", "Cliente": "Acme SA", "País": "Argentina"})

        result = await container.masters.process("recM2")

        assert result.tenant == TenantCode.AR
        assert record_store.fields(MASTERS, "recM2")["company_venta"] == "AR"

    @pytest.mark.asyncio
    async def test_write_back_failure_is_reported(self, container, record_store, chile_shipment, fresh_metrics):
        """The ERP work stands; the failure is in the result."""
        record_store.update_error = BackendConnectionError("Record store down", backend="record_store")

        result = await container.masters.process(chile_shipment)

        assert result.partner.id is not None
        assert result.write_back.attempted
        assert not result.write_back.ok
        assert "Record store down" in result.write_back.error
        summary = fresh_metrics.get_summary()
        assert summary["write_back_failures"] == 1
        assert summary["operations"]["by_name"]["master_process"]["completed"] == 1

    @pytest.mark.asyncio
    async def test_cost_center_unavailable(self, container, record_store, erp, chile_shipment):
        """A rejected cost center is left off the write-back."""
        erp[TenantCode.CL].fail_on[(ERPModel.ANALYTIC_ACCOUNT, "create")] = RemoteCallError("Access error")

        result = await container.masters.process(chile_shipment)

        assert result.cost_center.id is None
        assert result.cost_center.action == UpsertAction.UNAVAILABLE
        assert "odoo_analytic_id_master_cl" not in result.write_back.fields

    @pytest.mark.asyncio
    async def test_missing_record(self, container, fresh_metrics):
        with pytest.raises(NotFoundError):
            await container.masters.process("recNOPE")
        assert fresh_metrics.get_summary()["operations"]["failures_by_error"] == {"NotFoundError": 1}

    @pytest.mark.asyncio
    async def test_missing_customer(self, container, record_store):
        record_store.add(MASTERS, "recM3", Master="M-9")

        with pytest.raises(ValidationError):
            await container.masters.process("recM3")


class TestInvoice:
    """MasterService.invoice."""

    @pytest.mark.asyncio
    async def test_invoice_billable_legs(self, container, record_store, erp, chile_shipment):
        result = await container.masters.invoice(chile_shipment)

        assert result.tenant == TenantCode.CL
        assert result.line_count == 1
        assert result.total == 1500.0
        assert result.skipped_legs == ["recL9"]
        assert result.invoice.name == "INV/2026/0001"
        assert result.invoice.amount_total == 1500.0

        move = erp[TenantCode.CL].rows(ERPModel.MOVE)[0]
        assert move["ref"] == "Master M-7"
        line = move["invoice_line_ids"][0][2]
        assert line["name"] == "Transport OP-1 – Mendoza → Los Andes"
        assert line["analytic_distribution"] == {str(result.cost_center.id): 100}

        fields = record_store.fields(MASTERS, "recM1")
        assert fields["estado_contable_master"] == "facturado"
        assert fields["numero_factura_master"] == "INV/2026/0001"
        assert fields["odoo_invoice_id_cl"] == str(result.invoice.id)

    @pytest.mark.asyncio
    async def test_reuses_process_entities(self, container, chile_shipment):
        processed = await container.masters.process(chile_shipment)
        invoiced = await container.masters.invoice(chile_shipment)

        assert invoiced.partner.id == processed.partner.id
        assert invoiced.cost_center.id == processed.cost_center.id

    @pytest.mark.asyncio
    async def test_invoice_twice_creates_two(self, container, erp, chile_shipment):
        """Not idempotent unless the re-invoice guard is on."""
        await container.masters.invoice(chile_shipment)
        await container.masters.invoice(chile_shipment)

        assert len(erp[TenantCode.CL].rows(ERPModel.MOVE)) == 2

    @pytest.mark.asyncio
    async def test_reinvoice_guard(self, container, settings, erp, chile_shipment):
        settings.billing.block_reinvoice = True
        await container.masters.invoice(chile_shipment)

        with pytest.raises(ValidationError):
            await container.masters.invoice(chile_shipment)
        assert len(erp[TenantCode.CL].rows(ERPModel.MOVE)) == 1

    @pytest.mark.asyncio
    async def test_no_billable_legs(self, container, record_store, erp, chile_shipment):
        record_store.fields(LEGS, "recL1")["Tarifa de Venta"] = 0

        with pytest.raises(ValidationError):
            await container.masters.invoice(chile_shipment)
        assert erp[TenantCode.CL].rows(ERPModel.MOVE) == []
