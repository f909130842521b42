"""
Observability for the Sync Service

Provides:
- Structured logging with correlation IDs (record, tenant, operation)
- Sync audit helpers (start / success / error / per-record action)
- In-memory metrics (operations, upserts, write-back failures, timings)
"""

from core.observability.metrics import (
    SyncMetrics,
    get_metrics,
)

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    with_correlation,
    log_sync_start,
    log_sync_success,
    log_sync_error,
    log_record_action,
)

__all__ = [
    # Metrics
    "SyncMetrics",
    "get_metrics",
    # Logging
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "with_correlation",
    "log_sync_start",
    "log_sync_success",
    "log_sync_error",
    "log_record_action",
]
