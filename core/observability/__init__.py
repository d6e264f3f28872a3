"""
Observability for order reporting

Provides:
- Structured logging with correlation IDs (batch, order, entity)
- Metrics collection (order outcomes, fetch retries, processing times)
"""

from core.observability.metrics import (
    MetricsCollector,
    get_metrics,
    record_order_started,
    record_order_finished,
    record_order_cancelled,
    record_fetch_retry,
    record_fetch_exhausted,
    record_malformed_payload,
    record_processing_time,
)

from core.observability.logging import (
    get_logger,
    configure_logging,
    CorrelationContext,
    with_correlation,
)

__all__ = [
    # Metrics
    "MetricsCollector",
    "get_metrics",
    "record_order_started",
    "record_order_finished",
    "record_order_cancelled",
    "record_fetch_retry",
    "record_fetch_exhausted",
    "record_malformed_payload",
    "record_processing_time",
    # Logging
    "get_logger",
    "configure_logging",
    "CorrelationContext",
    "with_correlation",
]
