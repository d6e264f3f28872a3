"""Multi-order batch runner: retries, failures, cancellation, concurrency."""

import asyncio

import pytest

from activities.report import fetch_order_bundle, process_order
from connectors.memory_store import InMemoryOrderStore
from connectors.order_store import (
    OrderNotFoundError,
    RetriesExhaustedError,
    RetryConfig,
    StoreUnavailableError,
)
from core.config import ReportSettings
from core.observability.metrics import get_metrics
from models.reports import ReportStatus
from workflows.report_batch import new_batch_id, run_report_batch


class RecordingSleep:
    """Backoff sleep that returns immediately and remembers the delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def run(coro):
    return asyncio.run(coro)


class TestBatchOutcomes:
    def test_outcomes_in_input_order(self, store):
        result = run(run_report_batch(["ORD-3", "ORD-1", "ORD-2"], store, batch_id="batch-test"))
        assert result.batch_id == "batch-test"
        assert [(o.order_id, o.status) for o in result.outcomes] == [
            ("ORD-3", ReportStatus.PARTIAL),
            ("ORD-1", ReportStatus.SUCCESS),
            ("ORD-2", ReportStatus.PARTIAL),
        ]
        assert result.outcomes[1].report.grand_total == 600
        assert result.summary() == {"success": 1, "partial": 2, "failed": 0, "cancelled": 0}

    def test_empty_batch(self, store):
        result = run(run_report_batch([], store))
        assert result.outcomes == []
        assert result.cancelled == []
        assert "drivers" not in store.calls

    def test_directory_loaded_once(self, store):
        run(run_report_batch(["ORD-1", "ORD-2", "ORD-1"], store))
        assert store.calls["drivers"] == 1
        assert store.calls["order:ORD-1"] == 2

    def test_metrics(self, store):
        run(run_report_batch(["ORD-1", "ORD-2", "MISSING"], store))
        orders = get_metrics().get_summary()["orders"]
        assert orders == {
            "started": 3, "succeeded": 1, "partial": 1, "failed": 1, "cancelled": 0, "in_progress": 0,
        }

    def test_batch_ids_are_unique(self):
        assert new_batch_id() != new_batch_id()
        assert new_batch_id().startswith("batch-")


class TestRetries:
    def test_transient_failures_are_retried(self, store):
        sleep = RecordingSleep()
        store.fail_next("ORD-1", 2)
        result = run(run_report_batch(["ORD-1"], store, sleep=sleep))

        (outcome,) = result.outcomes
        assert outcome.status == ReportStatus.SUCCESS
        assert outcome.attempts == 3
        assert store.calls["order:ORD-1"] == 3
        assert sleep.delays == [1.0, 2.0]
        assert get_metrics().get_summary()["fetches"]["retries"] == 2

    def test_exhausted_retries_fail_only_that_order(self, store):
        store.fail_next("ORD-2", 10)
        settings = ReportSettings(retry_attempts=4, retry_base_delay=0.5)
        result = run(run_report_batch(["ORD-1", "ORD-2"], store, settings, sleep=RecordingSleep()))

        ok, failed = result.outcomes
        assert ok.status == ReportStatus.SUCCESS
        assert failed.status == ReportStatus.FAILED
        assert failed.attempts == 4
        assert "after 4 attempt(s)" in failed.error
        assert store.calls["order:ORD-2"] == 4
        assert get_metrics().get_summary()["fetches"]["exhausted"] == 1

    def test_unknown_order_is_not_retried(self, store):
        sleep = RecordingSleep()
        result = run(run_report_batch(["NOPE"], store, sleep=sleep))
        (outcome,) = result.outcomes
        assert outcome.status == ReportStatus.FAILED
        assert outcome.attempts == 1
        assert "Order not found: NOPE" in outcome.error
        assert store.calls["order:NOPE"] == 1
        assert sleep.delays == []

    def test_fetch_order_bundle(self, store):
        store.fail_next("ORD-2", 1)
        bundle, attempts = run(fetch_order_bundle(store, "ORD-2", RetryConfig(base_delay=0), sleep=RecordingSleep()))
        assert bundle.order.order_id == "ORD-2"
        assert attempts == 2

        with pytest.raises(OrderNotFoundError):
            run(fetch_order_bundle(store, "NOPE"))

        store.fail_next("ORD-2", 2)
        with pytest.raises(RetriesExhaustedError) as exc_info:
            run(fetch_order_bundle(store, "ORD-2", RetryConfig(max_attempts=2), sleep=RecordingSleep()))
        assert exc_info.value.attempts == 2

    def test_process_order_never_raises_store_errors(self, store):
        outcome = run(process_order(store, "NOPE"))
        assert outcome.status == ReportStatus.FAILED
        assert outcome.report is None


class CancellingStore(InMemoryOrderStore):
    """Sets the cancel event when a given order is fetched."""

    cancel_on = None
    event = None

    async def fetch_order(self, order_id):
        if order_id == self.cancel_on:
            self.event.set()
            raise StoreUnavailableError("store going away", 503)
        return await super().fetch_order(order_id)


class TestCancellation:
    def test_cancelled_before_start(self, store):
        async def scenario():
            event = asyncio.Event()
            event.set()
            return await run_report_batch(["ORD-1", "ORD-2", "ORD-3"], store, cancel_event=event)

        result = run(scenario())
        assert result.outcomes == []
        assert result.cancelled == ["ORD-1", "ORD-2", "ORD-3"]
        assert get_metrics().get_summary()["orders"]["cancelled"] == 3
        assert "order:ORD-1" not in store.calls

    def test_cancelled_mid_batch(self, snapshot):
        async def scenario():
            event = asyncio.Event()
            store = CancellingStore.from_snapshot(snapshot)
            store.cancel_on = "ORD-2"
            store.event = event
            settings = ReportSettings(max_concurrency=1)
            return await run_report_batch(["ORD-1", "ORD-2", "ORD-3"], store, settings, cancel_event=event)

        result = run(scenario())
        assert [o.order_id for o in result.outcomes] == ["ORD-1"]
        assert result.cancelled == ["ORD-2", "ORD-3"]

        orders = get_metrics().get_summary()["orders"]
        assert orders["started"] == 2
        assert orders["cancelled"] == 2
        assert orders["in_progress"] == 0


class SlowStore(InMemoryOrderStore):
    """Yields to the loop during each order fetch and tracks concurrency."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.in_flight = 0
        self.peak = 0

    async def fetch_order(self, order_id):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(0.01)
            return await super().fetch_order(order_id)
        finally:
            self.in_flight -= 1


class FailingDirectoryStore(InMemoryOrderStore):
    async def fetch_drivers(self):
        raise StoreUnavailableError("drivers unavailable", 503)


class TestConcurrency:
    def test_in_flight_orders_are_capped(self, snapshot):
        store = SlowStore.from_snapshot(snapshot)
        result = run(run_report_batch(["ORD-1", "ORD-2"] * 3, store, ReportSettings(max_concurrency=2)))
        assert len(result.outcomes) == 6
        assert store.peak == 2

    def test_directory_failure_fails_the_batch(self, snapshot):
        store = FailingDirectoryStore.from_snapshot(snapshot)
        with pytest.raises(StoreUnavailableError):
            run(run_report_batch(["ORD-1"], store, sleep=RecordingSleep()))
