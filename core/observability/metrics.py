"""
Metrics Collection for Order Reporting

Collects in-process counters for:
- Order outcomes (started, succeeded, partial, failed, cancelled)
- Store fetch retries and exhausted fetches
- Stage payloads that could not be decoded
- Processing times (average, p95) per step

Nothing is persisted; a worker or CLI run reads get_summary() at the end.
"""

import statistics
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, List, Optional


# =============================================================================
# Metric Data Classes
# =============================================================================

@dataclass
class OrderMetrics:
    """Per-order outcome counters."""
    started: int = 0
    succeeded: int = 0
    partial: int = 0
    failed: int = 0
    cancelled: int = 0
    in_progress: int = 0


@dataclass
class FetchMetrics:
    """Order store fetch counters."""
    retries: int = 0
    exhausted: int = 0
    by_operation: Dict[str, Dict[str, int]] = field(
        default_factory=lambda: defaultdict(lambda: {"retries": 0, "exhausted": 0})
    )


@dataclass
class TimingMetrics:
    """Processing time samples, overall and per step."""
    samples: List[float] = field(default_factory=list)
    max_samples: int = 1000
    by_stage: Dict[str, List[float]] = field(default_factory=lambda: defaultdict(list))

    def add_sample(self, duration_ms: float, stage: Optional[str] = None):
        self.samples.append(duration_ms)
        if len(self.samples) > self.max_samples:
            self.samples = self.samples[-self.max_samples:]

        if stage:
            self.by_stage[stage].append(duration_ms)
            if len(self.by_stage[stage]) > self.max_samples:
                self.by_stage[stage] = self.by_stage[stage][-self.max_samples:]

    def get_average(self, stage: Optional[str] = None) -> float:
        samples = self.by_stage.get(stage, []) if stage else self.samples
        return statistics.mean(samples) if samples else 0.0

    def get_p95(self, stage: Optional[str] = None) -> float:
        """95th percentile (nearest rank)."""
        samples = self.by_stage.get(stage, []) if stage else self.samples
        if not samples:
            return 0.0
        sorted_samples = sorted(samples)
        idx = int(len(sorted_samples) * 0.95)
        return sorted_samples[min(idx, len(sorted_samples) - 1)]


# =============================================================================
# Metrics Collector (Singleton)
# =============================================================================

class MetricsCollector:
    """
    Thread-safe metrics collector.

    Usage:
        metrics = MetricsCollector.instance()
        metrics.record_order_started("ORD-001")
        metrics.record_order_finished("ORD-001", "success", duration_ms=42.0)
    """

    _instance: Optional["MetricsCollector"] = None
    _instance_lock = Lock()

    def __init__(self):
        self.orders = OrderMetrics()
        self.fetches = FetchMetrics()
        self.timings = TimingMetrics()
        self.malformed_payloads: Dict[str, int] = defaultdict(int)
        self._lock = Lock()

    @classmethod
    def instance(cls) -> "MetricsCollector":
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls):
        """Drop the singleton (tests start each case from zero)."""
        with cls._instance_lock:
            cls._instance = None

    # =========================================================================
    # Order Metrics
    # =========================================================================

    def record_order_started(self, order_id: str):
        with self._lock:
            self.orders.started += 1
            self.orders.in_progress += 1

    def record_order_finished(self, order_id: str, status: str, duration_ms: Optional[float] = None):
        """Record an order outcome: "success", "partial" or "failed"."""
        with self._lock:
            if status == "success":
                self.orders.succeeded += 1
            elif status == "partial":
                self.orders.partial += 1
            else:
                self.orders.failed += 1
            self.orders.in_progress = max(0, self.orders.in_progress - 1)

            if duration_ms is not None:
                self.timings.add_sample(duration_ms, "order")

    def record_order_cancelled(self, order_id: str, started: bool = False):
        with self._lock:
            self.orders.cancelled += 1
            if started:
                self.orders.in_progress = max(0, self.orders.in_progress - 1)

    # =========================================================================
    # Fetch and Payload Metrics
    # =========================================================================

    def record_fetch_retry(self, operation: str, attempt: int, error: Optional[str] = None):
        with self._lock:
            self.fetches.retries += 1
            self.fetches.by_operation[operation]["retries"] += 1

    def record_fetch_exhausted(self, operation: str):
        with self._lock:
            self.fetches.exhausted += 1
            self.fetches.by_operation[operation]["exhausted"] += 1

    def record_malformed_payload(self, stage: int):
        with self._lock:
            self.malformed_payloads[f"stage{stage}"] += 1

    # =========================================================================
    # Timing Metrics
    # =========================================================================

    def record_processing_time(self, stage: str, duration_ms: float):
        with self._lock:
            self.timings.add_sample(duration_ms, stage)

    def get_timing_stats(self, stage: Optional[str] = None) -> Dict[str, float]:
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
        with self._lock:
            return {
                "orders": {
                    "started": self.orders.started,
                    "succeeded": self.orders.succeeded,
                    "partial": self.orders.partial,
                    "failed": self.orders.failed,
                    "cancelled": self.orders.cancelled,
                    "in_progress": self.orders.in_progress,
                },
                "fetches": {
                    "retries": self.fetches.retries,
                    "exhausted": self.fetches.exhausted,
                    "by_operation": {k: dict(v) for k, v in self.fetches.by_operation.items()},
                },
                "malformed_payloads": dict(self.malformed_payloads),
                "timings": {
                    "overall": {
                        "average_ms": self.timings.get_average(),
                        "p95_ms": self.timings.get_p95(),
                    },
                    "by_stage": {
                        stage: {
                            "average_ms": self.timings.get_average(stage),
                            "p95_ms": self.timings.get_p95(stage),
                        }
                        for stage in self.timings.by_stage.keys()
                    },
                },
            }


# =============================================================================
# Module-level convenience functions
# =============================================================================

def get_metrics() -> MetricsCollector:
    """Get the global metrics collector."""
    return MetricsCollector.instance()


def record_order_started(order_id: str):
    get_metrics().record_order_started(order_id)


def record_order_finished(order_id: str, status: str, duration_ms: Optional[float] = None):
    get_metrics().record_order_finished(order_id, status, duration_ms)


def record_order_cancelled(order_id: str, started: bool = False):
    get_metrics().record_order_cancelled(order_id, started)


def record_fetch_retry(operation: str, attempt: int, error: Optional[str] = None):
    get_metrics().record_fetch_retry(operation, attempt, error)


def record_fetch_exhausted(operation: str):
    get_metrics().record_fetch_exhausted(operation)


def record_malformed_payload(stage: int):
    get_metrics().record_malformed_payload(stage)


def record_processing_time(stage: str, duration_ms: float):
    get_metrics().record_processing_time(stage, duration_ms)
