"""
Shared fixtures for the sync service tests.

Provides in-memory doubles for both backends:
- FakeERPSession: one tenant's ERP, tables keyed by model name
- FakeRecordStore: record-store tables keyed by table name

Services are wired exactly as in production (ServiceContainer), only the
session factory and the record store are swapped.
"""

import itertools
from typing import Any, Dict, List, Optional, Sequence

import pytest

from api.container import ServiceContainer
from connectors.erp_base import ERPModel, ERPSession
from core.config import RecordStoreSettings, Settings, TenantSettings
from core.errors import BackendConnectionError, NotFoundError
from core.observability.metrics import SyncMetrics
from core.tenants import TenantCode
from tenancy import TenantConnectionPool


# =============================================================================
# ERP double
# =============================================================================

def _matches(row: Dict[str, Any], domain: Sequence[Any]) -> bool:
    for field, operator, value in domain:
        current = row.get(field)
        if operator == "=":
            if current != value:
                return False
        elif operator == "ilike":
            if str(value).lower() not in str(current or "").lower():
                return False
        else:
            raise AssertionError(f"Unsupported operator in test double: {operator}")
    return True


class FakeERPSession(ERPSession):
    """In-memory ERP company.

    Attributes:
        tables: {model: {id: row}}
        calls: Every (model, method, args) issued through call()
        fail_on: {(model, method): exception} raised instead of running the call
        null_create: Models whose create returns no id
        login_error: Raised by login() when set
    """

    def __init__(self, tenant: TenantCode, company_id: int):
        super().__init__(tenant, company_id)
        self.tables: Dict[str, Dict[int, Dict[str, Any]]] = {}
        self.calls: List[tuple] = []
        self.fail_on: Dict[tuple, Exception] = {}
        self.null_create: set = set()
        self.login_error: Optional[Exception] = None
        self.login_count = 0
        self.closed = False
        self._ids = itertools.count(100)

    # Seeding and inspection

    def seed(self, model: str, **values) -> int:
        record_id = next(self._ids)
        self.tables.setdefault(model, {})[record_id] = {"id": record_id, **values}
        return record_id

    def rows(self, model: str) -> List[Dict[str, Any]]:
        return list(self.tables.get(model, {}).values())

    def method_calls(self, model: str, method: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == model and c[1] == method]

    # ERPSession

    async def login(self) -> int:
        self.login_count += 1
        if self.login_error is not None:
            raise self.login_error
        self.uid = 2
        return self.uid

    async def close(self) -> None:
        self.closed = True

    async def call(self, model, method, args=None, kwargs=None):
        args = list(args or [])
        kwargs = kwargs or {}
        self.calls.append((model, method, args))

        if (model, method) in self.fail_on:
            raise self.fail_on[(model, method)]

        if method == "search_read":
            rows = [r for r in self.rows(model) if _matches(r, args[0] if args else [])]
            limit = kwargs.get("limit") or len(rows)
            fields = kwargs.get("fields")
            if fields:
                rows = [{k: r.get(k) for k in set(fields) | {"id"}} for r in rows]
            return [dict(r) for r in rows[:limit]]

        if method == "create":
            if model in self.null_create:
                return False
            values = dict(args[0])
            if model == ERPModel.MOVE:
                values.update(self._move_defaults(values))
            return self.seed(model, **values)

        if method == "write":
            ids, values = args
            for record_id in ids:
                self.tables[model][record_id].update(values)
            return True

        if method == "action_post":
            for record_id in args[0]:
                self.tables[model][record_id]["state"] = "posted"
            return True

        raise AssertionError(f"Unsupported method in test double: {model}.{method}")

    def _move_defaults(self, values: Dict[str, Any]) -> Dict[str, Any]:
        total = sum(
            line[2]["quantity"] * line[2]["price_unit"] for line in values.get("invoice_line_ids", [])
        )
        prefix = "INV" if values.get("move_type") == "out_invoice" else "BILL"
        count = len(self.rows(ERPModel.MOVE)) + 1
        return {
            "name": f"{prefix}/2026/{count:04d}",
            "state": "draft",
            "amount_total": total,
            "amount_untaxed": total,
        }


# =============================================================================
# Record store double
# =============================================================================

class FakeRecordStore:
    """In-memory record store with the RecordStoreClient surface."""

    def __init__(self):
        self.tables: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.updates: List[tuple] = []
        self.update_error: Optional[Exception] = None
        self.closed = False

    def add(self, table: str, record_id: str, **fields) -> None:
        self.tables.setdefault(table, {})[record_id] = dict(fields)

    def fields(self, table: str, record_id: str) -> Dict[str, Any]:
        return self.tables[table][record_id]

    async def get_record(self, table: str, record_id: str) -> Dict[str, Any]:
        if record_id not in self.tables.get(table, {}):
            raise NotFoundError(f"Record not found: {table}/{record_id}", table=table, record_id=record_id)
        return {"id": record_id, "fields": dict(self.tables[table][record_id])}

    async def update_record(self, table: str, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        self.updates.append((table, record_id, dict(fields)))
        if self.update_error is not None:
            raise self.update_error
        self.tables.setdefault(table, {}).setdefault(record_id, {}).update(fields)
        return {"id": record_id, "fields": dict(self.tables[table][record_id])}

    async def create_record(self, table: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        record_id = f"rec{len(self.tables.get(table, {})) + 1:03d}"
        self.add(table, record_id, **fields)
        return {"id": record_id, "fields": dict(fields)}

    async def search_records(self, table: str, filter_formula: Optional[str] = None) -> List[Dict[str, Any]]:
        if table not in self.tables:
            raise NotFoundError(f"Table not found: {table}", table=table)
        return [{"id": rid, "fields": dict(f)} for rid, f in self.tables[table].items()]

    async def close(self) -> None:
        self.closed = True


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def fresh_metrics():
    """Each test starts with empty process metrics."""
    SyncMetrics._instance = None
    yield SyncMetrics.instance()
    SyncMetrics._instance = None


def make_tenant(code: TenantCode, country: str, currency: str, company_id: int, **overrides) -> TenantSettings:
    values = dict(
        code=code,
        country_name=country,
        currency=currency,
        company_id=company_id,
        url=f"https://erp-{code.value.lower()}.example.com",
        db=f"freight_{code.value.lower()}",
        username="sync@example.com",
        password="secret",
    )
    values.update(overrides)
    return TenantSettings(**values)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        tenants={
            TenantCode.AR: make_tenant(TenantCode.AR, "Argentina", "ARS", 1),
            TenantCode.CL: make_tenant(TenantCode.CL, "Chile", "USD", 2),
        },
        record_store=RecordStoreSettings(api_key="key", base_id="appTEST"),
    )


@pytest.fixture
def erp() -> Dict[TenantCode, FakeERPSession]:
    """One fake ERP company per tenant, shared by every session the pool opens."""
    return {
        TenantCode.AR: FakeERPSession(TenantCode.AR, 1),
        TenantCode.CL: FakeERPSession(TenantCode.CL, 2),
    }


@pytest.fixture
def pool(settings, erp) -> TenantConnectionPool:
    return TenantConnectionPool(settings, session_factory=lambda ts, timeout: erp[ts.code])


@pytest.fixture
def record_store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def container(settings, erp, record_store) -> ServiceContainer:
    return ServiceContainer.from_settings(
        settings,
        session_factory=lambda ts, timeout: erp[ts.code],
        record_store=record_store,
    )
