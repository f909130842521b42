"""
Metrics Collection for the Sync Service

Collects and exposes metrics for:
- Sync operations (started, completed, failed) per operation name
- Upsert outcomes (created, updated, existing, unavailable) per ERP model
- Record-store write-back failures
- Processing times (average, p95) per operation

Metrics are kept in memory for the life of the process.
"""

import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Dict, List, Optional, Any


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class OperationMetrics:
    """Counters for orchestration calls."""
    started: int = 0
    completed: int = 0
    failed: int = 0
    in_progress: int = 0

    by_name: Dict[str, Dict[str, int]] = field(
        default_factory=lambda: defaultdict(lambda: {"started": 0, "completed": 0, "failed": 0})
    )
    failures_by_error: Dict[str, int] = field(default_factory=lambda: defaultdict(int))


@dataclass
class TimingMetrics:
    """Processing time metrics."""
    samples: List[float] = field(default_factory=list)
    max_samples: int = 1000

    by_stage: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    def add_sample(self, duration_ms: float, stage: str = None):
        """Add a timing sample."""
        self.samples.append(duration_ms)
        if len(self.samples) > self.max_samples:
            self.samples = self.samples[-self.max_samples:]

        if stage:
            self.by_stage[stage].append(duration_ms)
            if len(self.by_stage[stage]) > self.max_samples:
                self.by_stage[stage] = self.by_stage[stage][-self.max_samples:]

    def get_average(self, stage: str = None) -> float:
        """Get average processing time."""
        samples = self.by_stage.get(stage, []) if stage else self.samples
        return statistics.mean(samples) if samples else 0.0

    def get_p95(self, stage: str = None) -> float:
        """Get 95th percentile processing time."""
        samples = self.by_stage.get(stage, []) if stage else self.samples
        if not samples:
            return 0.0
        sorted_samples = sorted(samples)
        idx = int(len(sorted_samples) * 0.95)
        return sorted_samples[min(idx, len(sorted_samples) - 1)]


# =============================================================================
# Metrics Collector (Singleton)
# =============================================================================

class SyncMetrics:
    """
    Thread-safe metrics collector for sync operations.

    Usage:
        metrics = SyncMetrics.instance()
        metrics.record_operation_started("master_process")
        metrics.record_operation_completed("master_process", duration_ms=840)
    """

    _instance: Optional["SyncMetrics"] = None
    _instance_lock = Lock()

    def __init__(self):
        self.operations = OperationMetrics()
        self.timings = TimingMetrics()
        self.upserts: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self.write_back_failures = 0
        self._lock = Lock()

    @classmethod
    def instance(cls) -> "SyncMetrics":
        """Get singleton instance."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    # =========================================================================
    # Operations
    # =========================================================================

    def record_operation_started(self, operation: str):
        with self._lock:
            self.operations.started += 1
            self.operations.in_progress += 1
            self.operations.by_name[operation]["started"] += 1

    def record_operation_completed(self, operation: str, duration_ms: float = None):
        with self._lock:
            self.operations.completed += 1
            self.operations.in_progress = max(0, self.operations.in_progress - 1)
            self.operations.by_name[operation]["completed"] += 1

            if duration_ms is not None:
                self.timings.add_sample(duration_ms, operation)

    def record_operation_failed(self, operation: str, error_type: str = None):
        with self._lock:
            self.operations.failed += 1
            self.operations.in_progress = max(0, self.operations.in_progress - 1)
            self.operations.by_name[operation]["failed"] += 1
            if error_type:
                self.operations.failures_by_error[error_type] += 1

    # =========================================================================
    # Upserts and write-back
    # =========================================================================

    def record_upsert(self, model: str, action: str):
        with self._lock:
            self.upserts[model][action] += 1

    def record_write_back_failure(self):
        with self._lock:
            self.write_back_failures += 1

    # =========================================================================
    # Timing
    # =========================================================================

    def get_timing_stats(self, stage: str = None) -> Dict[str, float]:
        """Get timing statistics for an operation."""
        with self._lock:
            return {
                "average_ms": self.timings.get_average(stage),
                "p95_ms": self.timings.get_p95(stage),
                "sample_count": len(self.timings.by_stage.get(stage, []) if stage else self.timings.samples),
            }

    # =========================================================================
    # Summary
    # =========================================================================

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        with self._lock:
            return {
                "operations": {
                    "started": self.operations.started,
                    "completed": self.operations.completed,
                    "failed": self.operations.failed,
                    "in_progress": self.operations.in_progress,
                    "by_name": {k: dict(v) for k, v in self.operations.by_name.items()},
                    "failures_by_error": dict(self.operations.failures_by_error),
                },
                "upserts": {model: dict(actions) for model, actions in self.upserts.items()},
                "write_back_failures": self.write_back_failures,
                "timings": {
                    "overall": {
                        "average_ms": self.timings.get_average(),
                        "p95_ms": self.timings.get_p95(),
                    },
                    "by_operation": {
                        stage: {
                            "average_ms": self.timings.get_average(stage),
                            "p95_ms": self.timings.get_p95(stage),
                        }
                        for stage in self.timings.by_stage.keys()
                    },
                },
            }


def get_metrics() -> SyncMetrics:
    """Get the process-wide metrics collector."""
    return SyncMetrics.instance()
