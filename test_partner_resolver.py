"""
Tests for partner resolution (partner_resolver/).
"""

import pytest

from connectors.erp_base import ERPModel
from core.errors import ValidationError
from core.tenants import TenantCode
from partner_resolver import MatchType, PartnerResolver, PartyData, PartyRole
from sync_engine import UpsertAction


PARTNER = ERPModel.PARTNER


@pytest.fixture
def resolver(pool):
    return PartnerResolver(pool)


class TestFindOrCreate:
    """Lookup order and create/update behavior."""

    @pytest.mark.asyncio
    async def test_creates_customer(self, resolver, erp):
        cl = erp[TenantCode.CL]
        chile_id = cl.seed(ERPModel.COUNTRY, code="CL", name="Chile")

        result = await resolver.find_or_create(
            TenantCode.CL,
            PartyData(name="  Viña Andes SpA ", tax_id="76.123.456-7", country_code="cl"),
        )

        assert result.action == UpsertAction.CREATED
        assert result.match_type == MatchType.NO_MATCH
        row = cl.tables[PARTNER][result.id]
        assert row["name"] == "Viña Andes SpA"
        assert row["vat"] == "76.123.456-7"
        assert row["customer_rank"] == 1
        assert row["supplier_rank"] == 0
        assert row["country_id"] == chile_id
        assert erp[TenantCode.AR].rows(PARTNER) == []

    @pytest.mark.asyncio
    async def test_creates_carrier_without_country(self, resolver, erp):
        """Unknown country code is left off the partner."""
        result = await resolver.find_or_create(
            TenantCode.AR,
            PartyData(name="Fletes Sur", role=PartyRole.CARRIER, country_code="UY"),
        )

        row = erp[TenantCode.AR].tables[PARTNER][result.id]
        assert row["supplier_rank"] == 1
        assert "country_id" not in row

    @pytest.mark.asyncio
    async def test_tax_id_match_first(self, resolver, erp):
        """Tax id beats an exact name match on another partner."""
        ar = erp[TenantCode.AR]
        by_vat = ar.seed(PARTNER, name="Acme Old Name", vat="30-71234567-8")
        ar.seed(PARTNER, name="Acme", vat=None)

        result = await resolver.find_or_create(TenantCode.AR, PartyData(name="Acme", tax_id="30-71234567-8"))

        assert result.id == by_vat
        assert result.action == UpsertAction.UPDATED
        assert result.match_type == MatchType.TAX_ID
        assert ar.tables[PARTNER][by_vat]["name"] == "Acme"

    @pytest.mark.asyncio
    async def test_exact_then_similar_name(self, resolver, erp):
        ar = erp[TenantCode.AR]
        similar = ar.seed(PARTNER, name="Logística Acme SRL")

        result = await resolver.find_or_create(TenantCode.AR, PartyData(name="acme"))

        assert result.id == similar
        assert result.match_type == MatchType.SIMILAR_NAME

    @pytest.mark.asyncio
    async def test_update_never_blanks(self, resolver, erp):
        """Empty incoming fields are not written."""
        ar = erp[TenantCode.AR]
        partner_id = ar.seed(PARTNER, name="Acme", vat="30-1", email="ops@acme.com")

        await resolver.find_or_create(TenantCode.AR, PartyData(name="Acme", email=""))

        row = ar.tables[PARTNER][partner_id]
        assert row["vat"] == "30-1"
        assert row["email"] == "ops@acme.com"

    @pytest.mark.asyncio
    async def test_repeat_call_reuses_partner(self, resolver, erp):
        party = PartyData(name="Acme", tax_id="30-1")

        first = await resolver.find_or_create(TenantCode.AR, party)
        second = await resolver.find_or_create(TenantCode.AR, party)

        assert first.id == second.id
        assert len(erp[TenantCode.AR].rows(PARTNER)) == 1

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, resolver):
        with pytest.raises(ValidationError):
            await resolver.find_or_create(TenantCode.AR, PartyData(name="   "))


class TestDirectOperations:
    """find_partner / create_partner / update_partner."""

    @pytest.mark.asyncio
    async def test_find_partner(self, resolver, erp):
        partner_id = erp[TenantCode.CL].seed(PARTNER, name="Acme", vat="76-1")

        row = await resolver.find_partner(TenantCode.CL, "Other", tax_id="76-1")

        assert row["id"] == partner_id
        assert await resolver.find_partner(TenantCode.CL, "Nobody") is None

    @pytest.mark.asyncio
    async def test_create_and_update(self, resolver, erp):
        partner_id = await resolver.create_partner(TenantCode.AR, PartyData(name="Acme"))

        written = await resolver.update_partner(TenantCode.AR, partner_id, PartyData(name="Acme", phone="+54 11"))

        assert written is True
        assert erp[TenantCode.AR].tables[PARTNER][partner_id]["phone"] == "+54 11"

    @pytest.mark.asyncio
    async def test_update_requires_id(self, resolver):
        with pytest.raises(ValidationError):
            await resolver.update_partner(TenantCode.AR, 0, PartyData(name="Acme"))
