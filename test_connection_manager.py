"""
Tests for the tenant connection pool (tenancy/connection_manager.py) and the
settings it is built from (core/config.py).
"""

import pytest

from conftest import FakeERPSession
from core.config import load_settings
from core.errors import BackendConnectionError, ConfigurationError
from core.tenants import TenantCode
from tenancy import TenantConnectionPool


class TestTenantConnectionPool:
    """Lazy login, caching and failure isolation."""

    @pytest.mark.asyncio
    async def test_login_once_then_cached(self, pool, erp):
        """Second call is a cache hit with no further login."""
        first = await pool.get_session(TenantCode.AR)
        second = await pool.get_session(TenantCode.AR)

        assert first is second
        assert erp[TenantCode.AR].login_count == 1
        assert pool.is_connected(TenantCode.AR)
        assert not pool.is_connected(TenantCode.CL)

    @pytest.mark.asyncio
    async def test_sessions_are_company_scoped(self, pool):
        ar = await pool.get_session(TenantCode.AR)
        cl = await pool.get_session(TenantCode.CL)

        assert ar.company_id == 1
        assert cl.company_id == 2

    @pytest.mark.asyncio
    async def test_failed_login_not_cached(self, pool, erp):
        """A rejected login is retried on the next call and tagged with the tenant."""
        erp[TenantCode.CL].login_error = BackendConnectionError("Access denied")

        with pytest.raises(BackendConnectionError) as exc_info:
            await pool.get_session(TenantCode.CL)
        assert exc_info.value.tenant == "CL"
        assert erp[TenantCode.CL].closed
        assert not pool.is_connected(TenantCode.CL)

        erp[TenantCode.CL].login_error = None
        session = await pool.get_session(TenantCode.CL)
        assert session.is_authenticated
        assert erp[TenantCode.CL].login_count == 2

    @pytest.mark.asyncio
    async def test_failure_isolated_per_tenant(self, pool, erp):
        """CL failing does not affect AR."""
        erp[TenantCode.CL].login_error = BackendConnectionError("Timeout")

        with pytest.raises(BackendConnectionError):
            await pool.get_session(TenantCode.CL)
        session = await pool.get_session(TenantCode.AR)
        assert session.is_authenticated

    @pytest.mark.asyncio
    async def test_missing_credentials(self, settings):
        """Blank credentials fail before any network call."""
        settings.tenants[TenantCode.CL].password = ""
        created = []

        def factory(ts, timeout):
            created.append(ts.code)
            return FakeERPSession(ts.code, ts.company_id)

        pool = TenantConnectionPool(settings, session_factory=factory)

        with pytest.raises(ConfigurationError) as exc_info:
            await pool.get_session(TenantCode.CL)
        assert "password" in exc_info.value.message
        assert created == []

    @pytest.mark.asyncio
    async def test_test_connections(self, pool, erp):
        erp[TenantCode.CL].login_error = BackendConnectionError("Access denied")

        results = await pool.test_connections()

        assert results["AR"] == {"status": "ok", "uid": 2, "company_id": 1}
        assert results["CL"]["status"] == "error"
        assert "Access denied" in results["CL"]["error"]

    @pytest.mark.asyncio
    async def test_close(self, pool, erp):
        await pool.get_session(TenantCode.AR)
        await pool.close()

        assert erp[TenantCode.AR].closed
        assert not pool.is_connected(TenantCode.AR)

    def test_tenant_settings(self, pool):
        assert pool.tenant_settings(TenantCode.CL).currency == "USD"


class TestLoadSettings:
    """Environment to Settings."""

    def test_tenant_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ERP_URL", "https://erp.example.com/")
        monkeypatch.setenv("ERP_CL_DB", "freight_cl")
        monkeypatch.setenv("ERP_CL_PRODUCT_TRANSPORT", "41")
        monkeypatch.setenv("ERP_CL_PRODUCT_STAY", "43")
        for name in ("ERP_CL_URL", "ERP_CL_COMPANY_ID", "ERP_CL_PRODUCT_FREIGHT", "ERP_AR_PRODUCT_TRANSPORT"):
            monkeypatch.delenv(name, raising=False)

        settings = load_settings(env_file=tmp_path / "missing.env")

        cl = settings.tenants[TenantCode.CL]
        assert cl.url == "https://erp.example.com"
        assert cl.db == "freight_cl"
        assert cl.company_id == 2
        assert (cl.products.transport, cl.products.subcontracted_freight, cl.products.stay) == (41, 3, 43)
        assert settings.tenants[TenantCode.AR].products.transport == 2
