"""Shared orchestrator plumbing.

- Record loading and field extraction (lookup lists, fallback column names)
- Operation tracking: correlation ids, audit log lines, metrics
- Best-effort write-back of ERP ids to the record store
"""

import time
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, TypeVar, Union

from core.config import Settings
from core.errors import PartialWriteError, SyncError, ValidationError
from core.observability import (
    get_logger,
    get_metrics,
    log_sync_error,
    log_sync_start,
    log_sync_success,
    with_correlation,
)
from invoicing import LegBilling, extract_lookup
from orchestrators.models import WriteBackStatus
from tenancy import RoutingPolicy

logger = get_logger(__name__)

T = TypeVar("T")

FieldNames = Union[str, Iterable[str]]


def first_field(fields: Dict[str, Any], names: FieldNames) -> Optional[str]:
    """Text of the first non-empty column among ``names``."""
    if isinstance(names, str):
        names = [names]
    for name in names:
        text = extract_lookup(fields.get(name))
        if text:
            return text
    return None


def field_values(fields: Dict[str, Any], names: FieldNames) -> List[str]:
    """Every non-empty text value across ``names``, lookup lists flattened."""
    if isinstance(names, str):
        names = [names]
    values: List[str] = []
    for name in names:
        raw = fields.get(name)
        items = raw if isinstance(raw, (list, tuple)) else [raw]
        for item in items:
            text = extract_lookup(item)
            if text:
                values.append(text)
    return values


def linked_ids(fields: Dict[str, Any], name: str) -> List[str]:
    """Record ids of a link column (a list of ids, or a single id)."""
    raw = fields.get(name)
    if not raw:
        return []
    if isinstance(raw, str):
        return [raw]
    return [str(item) for item in raw if item]


class BaseSyncService:
    """Common base for the Master, Operation and catalog services."""

    def __init__(self, record_store, pool, settings: Settings):
        """Initialize service.

        Args:
            record_store: RecordStoreClient (or any object with the same record operations)
            pool: TenantConnectionPool
            settings: Service settings
        """
        self.record_store = record_store
        self.pool = pool
        self.settings = settings
        self.fields = settings.fields
        self.tables = settings.record_store.tables
        self.routing_policy = RoutingPolicy.from_settings(settings)

    # =========================================================================
    # Records
    # =========================================================================

    async def _load(self, table: str, record_id: str) -> Dict[str, Any]:
        """Load a record; raises NotFoundError when absent."""
        if not record_id or not record_id.strip():
            raise ValidationError(f"A record id is required to read {table}")
        return await self.record_store.get_record(table, record_id.strip())

    def _leg_billing(self, leg_id: str, fields: Dict[str, Any]) -> LegBilling:
        f = self.fields
        return LegBilling(
            leg_id=leg_id,
            label=first_field(fields, f.leg_name) or leg_id,
            origin=first_field(fields, f.leg_origin),
            destination=first_field(fields, f.leg_destination),
            sell_rate=fields.get(f.leg_sell_rate),
            buy_rate=fields.get(f.leg_buy_rate),
        )

    def _guard_reinvoice(self, fields: Dict[str, Any], state_field: str, record_name: str) -> None:
        """Reject a second invoice when the re-invoice guard is on."""
        if not self.settings.billing.block_reinvoice:
            return
        state = (first_field(fields, state_field) or "").lower()
        if state == self.settings.billing.invoiced_state.lower():
            raise ValidationError(f"{record_name} is already invoiced")

    # =========================================================================
    # Tracking
    # =========================================================================

    async def _track(self, operation: str, record_id: str, func: Callable[[], Awaitable[T]]) -> T:
        """Run one orchestration call with correlation ids, audit lines and metrics."""
        metrics = get_metrics()
        start_time = time.time()

        with with_correlation(record_id=record_id, operation=operation):
            log_sync_start(operation, record_id=record_id)
            metrics.record_operation_started(operation)
            try:
                result = await func()
            except SyncError as e:
                metrics.record_operation_failed(operation, type(e).__name__)
                log_sync_error(operation, e.message, record_id=record_id, error_type=type(e).__name__)
                raise
            except Exception as e:
                metrics.record_operation_failed(operation, type(e).__name__)
                log_sync_error(operation, str(e), record_id=record_id, error_type=type(e).__name__)
                raise

            duration_ms = (time.time() - start_time) * 1000
            metrics.record_operation_completed(operation, duration_ms)
            log_sync_success(
                operation,
                duration_ms,
                record_id=record_id,
                tenant=getattr(getattr(result, "tenant", None), "value", None),
            )
            return result

    # =========================================================================
    # Write-back
    # =========================================================================

    async def _apply_write_back(self, table: str, record_id: str, values: Dict[str, Any]) -> None:
        try:
            await self.record_store.update_record(table, record_id, values)
        except SyncError as e:
            raise PartialWriteError(
                f"Write-back to {table}/{record_id} failed: {e.message}",
                table=table,
                record_id=record_id,
                fields=values,
            ) from e

    async def _write_back(self, table: str, record_id: str, values: Dict[str, Any]) -> WriteBackStatus:
        """Persist values to the record store without failing the call.

        Returns:
            WriteBackStatus with ok=False and the error when the store refused
        """
        if not values:
            return WriteBackStatus()

        try:
            await self._apply_write_back(table, record_id, values)
        except PartialWriteError as e:
            get_metrics().record_write_back_failure()
            logger.warning(e.message, extra_fields={"table": table, "fields": sorted(values)})
            return WriteBackStatus(attempted=True, ok=False, fields=values, error=e.message)

        return WriteBackStatus(attempted=True, ok=True, fields=values)
