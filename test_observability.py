"""
Observability Validation Test

This test validates the observability stack:
1. Metrics collection works (order outcomes, fetch retries, timings)
2. Structured logging with correlation IDs works
3. Concurrent orders in one batch keep their own correlation context
"""

import asyncio
import json
import logging

import pytest


def test_observability_imports():
    """Verify all observability modules import correctly."""
    from core.observability import (
        MetricsCollector, get_metrics,
        record_order_started, record_order_finished, record_order_cancelled,
        record_fetch_retry, record_fetch_exhausted, record_malformed_payload,
        record_processing_time,
        get_logger, configure_logging, CorrelationContext, with_correlation,
    )
    assert MetricsCollector is not None
    assert get_metrics is not None
    assert CorrelationContext is not None


class TestMetricsCollector:
    """Test the metrics collection system."""

    def test_singleton_instance(self):
        """MetricsCollector returns same instance until reset."""
        from core.observability.metrics import MetricsCollector
        m1 = MetricsCollector.instance()
        m2 = MetricsCollector.instance()
        assert m1 is m2

        MetricsCollector.reset()
        assert MetricsCollector.instance() is not m1

    def test_order_outcome_tracking(self):
        """Track order started/succeeded/partial/failed/cancelled counts."""
        from core.observability.metrics import get_metrics

        mc = get_metrics()
        for order_id in ("ORD-1", "ORD-2", "ORD-3", "ORD-4"):
            mc.record_order_started(order_id)
        mc.record_order_finished("ORD-1", "success", duration_ms=12.0)
        mc.record_order_finished("ORD-2", "partial")
        mc.record_order_finished("ORD-3", "failed")
        mc.record_order_cancelled("ORD-4", started=True)
        mc.record_order_cancelled("ORD-5")

        orders = mc.get_summary()["orders"]
        assert orders == {
            "started": 4,
            "succeeded": 1,
            "partial": 1,
            "failed": 1,
            "cancelled": 2,
            "in_progress": 0,
        }

    def test_fetch_retry_tracking(self):
        """Track retries and exhausted fetches per operation."""
        from core.observability.metrics import (
            get_metrics, record_fetch_exhausted, record_fetch_retry, record_malformed_payload,
        )

        record_fetch_retry("order", 1, "503")
        record_fetch_retry("order", 2, "503")
        record_fetch_retry("directory", 1)
        record_fetch_exhausted("order")
        record_malformed_payload(3)
        record_malformed_payload(3)

        summary = get_metrics().get_summary()
        assert summary["fetches"]["retries"] == 3
        assert summary["fetches"]["exhausted"] == 1
        assert summary["fetches"]["by_operation"]["order"] == {"retries": 2, "exhausted": 1}
        assert summary["fetches"]["by_operation"]["directory"] == {"retries": 1, "exhausted": 0}
        assert summary["malformed_payloads"] == {"stage3": 2}

    def test_timing_percentile_calculation(self):
        """P95 and average computed correctly."""
        from core.observability.metrics import get_metrics

        mc = get_metrics()
        for i in range(1, 101):
            mc.record_processing_time("process_order", float(i))

        stats = mc.get_timing_stats("process_order")
        assert stats["sample_count"] == 100
        # Average should be ~50.5
        assert 49 <= stats["average_ms"] <= 52
        # P95 should be ~95
        assert 93 <= stats["p95_ms"] <= 97

    def test_empty_timings(self):
        from core.observability.metrics import get_metrics
        stats = get_metrics().get_timing_stats("never_recorded")
        assert stats == {"average_ms": 0.0, "p95_ms": 0.0, "sample_count": 0}


class TestCorrelatedLogging:
    """Test structured logging with correlation IDs."""

    def test_correlation_context_creation(self):
        """Create correlation context and drop unset fields."""
        from core.observability.logging import CorrelationContext

        ctx = CorrelationContext(batch_id="batch-7", order_id="ORD-001", workflow_id="wf-abc")
        assert ctx.to_dict() == {"batch_id": "batch-7", "order_id": "ORD-001", "workflow_id": "wf-abc"}

        merged = ctx.merge(order_id="ORD-002", entity_id=None)
        assert merged.batch_id == "batch-7"
        assert merged.order_id == "ORD-002"
        assert ctx.order_id == "ORD-001"

    def test_nested_contexts_restore(self):
        """with_correlation layers fields and restores them on exit."""
        from core.observability.logging import get_correlation_context, with_correlation

        assert get_correlation_context().batch_id is None

        with with_correlation(batch_id="batch-1"):
            with with_correlation(order_id="ORD-1") as inner:
                assert inner.batch_id == "batch-1"
                assert inner.order_id == "ORD-1"
            assert get_correlation_context().order_id is None
            assert get_correlation_context().batch_id == "batch-1"

        assert get_correlation_context().batch_id is None

    def test_context_var_isolation(self):
        """Concurrent tasks see only their own order_id."""
        from core.observability.logging import get_correlation_context, with_correlation

        async def order_task(order_id):
            with with_correlation(order_id=order_id):
                await asyncio.sleep(0)
                return get_correlation_context().order_id

        async def batch():
            with with_correlation(batch_id="batch-2"):
                return await asyncio.gather(*(order_task(o) for o in ("A", "B", "C")))

        assert asyncio.run(batch()) == ["A", "B", "C"]

    def test_structured_formatter_json_output(self):
        """StructuredFormatter outputs valid JSON."""
        from core.observability.logging import StructuredFormatter, with_correlation

        formatter = StructuredFormatter()

        with with_correlation(batch_id="batch-7", order_id="ORD-001"):
            record = logging.LogRecord(
                name="reconciliation.engine",
                level=logging.INFO,
                pathname="engine.py",
                lineno=10,
                msg="Reconciled order %s",
                args=("ORD-001",),
                exc_info=None,
            )
            record.extra_fields = {"grand_total": "600.00"}

            data = json.loads(formatter.format(record))

        assert data["message"] == "Reconciled order ORD-001"
        assert data["level"] == "INFO"
        assert data["batch_id"] == "batch-7"
        assert data["order_id"] == "ORD-001"
        assert data["grand_total"] == "600.00"

    def test_human_readable_formatter(self):
        """HumanReadableFormatter puts the correlation IDs in brackets."""
        from core.observability.logging import HumanReadableFormatter, with_correlation

        formatter = HumanReadableFormatter()
        record = logging.LogRecord("reports.bills", logging.WARNING, "bills.py", 1, "Bill built", (), None)

        assert "[-]: Bill built" in formatter.format(record)
        with with_correlation(batch_id="batch-7", order_id="ORD-001", entity_id="5"):
            line = formatter.format(record)
        assert "[WARNING] reports.bills [batch-7/ORD-001/entity:5]: Bill built" in line

    def test_logger_attaches_extra_fields(self, caplog):
        """get_logger records carry extra_fields for the formatters."""
        from core.observability.logging import get_logger

        logger = get_logger("reports.test_extra")
        with caplog.at_level(logging.INFO, logger="reports.test_extra"):
            logger.info("Built %d rows", 3, extra_fields={"entity_id": "5"})

        (record,) = [r for r in caplog.records if r.name == "reports.test_extra"]
        assert record.getMessage() == "Built 3 rows"
        assert record.extra_fields == {"entity_id": "5"}

    def test_logger_is_cached(self):
        from core.observability.logging import get_logger
        assert get_logger("reports.cached") is get_logger("reports.cached")


class TestBatchCorrelation:
    """Log lines from a batch run carry the batch and order IDs."""

    def test_batch_logs_are_correlated(self, store):
        from core.observability.logging import StructuredFormatter
        from workflows.report_batch import run_report_batch

        lines = []

        class Collect(logging.Handler):
            def emit(self, record):
                lines.append(json.loads(StructuredFormatter().format(record)))

        handler = Collect(level=logging.INFO)
        root = logging.getLogger()
        root.addHandler(handler)
        try:
            asyncio.run(run_report_batch(["ORD-1", "NOPE"], store, batch_id="batch-logs"))
        finally:
            root.removeHandler(handler)

        assert lines
        assert all(line.get("batch_id") == "batch-logs" for line in lines if line["logger"].startswith(
            ("workflows", "activities")
        ))
        failures = [line for line in lines if line["level"] == "ERROR"]
        assert [line["order_id"] for line in failures] == ["NOPE"]
