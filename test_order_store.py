"""Order store backends: in-memory snapshots and the REST client."""

import asyncio
import json

import pytest
from aiohttp import web
from aiohttp import test_utils

from connectors.http_store import HttpOrderStore, unwrap
from connectors.memory_store import InMemoryOrderStore
from connectors.order_store import (
    OrderNotFoundError,
    OrderStoreError,
    RetryConfig,
    StoreUnavailableError,
    load_bundles,
    load_catalogs,
    load_directory,
)
from models.canonical import EntityType


class TestInMemoryStore:
    def test_bundle(self, store):
        bundle = asyncio.run(store.get_bundle("ORD-1"))
        assert bundle.order.order_id == "ORD-1"
        assert bundle.order.is_paid
        assert [i.product_name for i in bundle.order.items] == ["Tomato", "Carrot"]
        assert bundle.stages.stage1 is not None
        assert bundle.stages.stage4 is not None

    def test_unassigned_order_has_no_stages(self, store):
        stages = asyncio.run(store.get_stage_assignment("ORD-3"))
        assert [stages.stage1, stages.stage2, stages.stage3, stages.stage4] == [None] * 4

    def test_unknown_order(self, store):
        with pytest.raises(OrderNotFoundError):
            asyncio.run(store.get_order("NOPE"))

    def test_injected_failures(self, store):
        store.fail_next("ORD-1", 1)
        with pytest.raises(StoreUnavailableError):
            asyncio.run(store.get_order("ORD-1"))
        assert asyncio.run(store.get_order("ORD-1")).order_id == "ORD-1"
        assert store.calls["order:ORD-1"] == 2

    def test_records_are_copies(self, store):
        order = asyncio.run(store.fetch_order("ORD-1"))
        order["payment_status"] = "unpaid"
        assert asyncio.run(store.get_order("ORD-1")).is_paid

    def test_directory_and_lists(self, store):
        directory = asyncio.run(load_directory(store))
        assert [d.name for d in directory.drivers] == ["Rajesh", "Kumar"]
        assert directory.entity_name(EntityType.FARMER, "9") == "Selvi"
        assert directory.entity_name(EntityType.SUPPLIER, "3") == "Green Traders"
        assert directory.entities[EntityType.THIRD_PARTY] == []

        bundles = asyncio.run(load_bundles(store))
        assert [b.order.order_id for b in bundles] == ["ORD-1", "ORD-2", "ORD-3"]

        with pytest.raises(ValueError):
            asyncio.run(store.list_entities("wholesaler"))

    def test_from_file(self, tmp_path, snapshot):
        path = tmp_path / "snapshot.json"
        path.write_text(json.dumps(snapshot), encoding="utf-8")
        store = InMemoryOrderStore.from_file(path)
        assert asyncio.run(store.get_order("ORD-2")).payment_label == "Unpaid"
        assert len(asyncio.run(load_catalogs(store))["driver_rates"]) == 2

    def test_assignments_keyed_by_order(self, snapshot):
        snapshot["assignments"] = {record["oid"]: record for record in snapshot["assignments"]}
        store = InMemoryOrderStore.from_snapshot(snapshot)
        assert asyncio.run(store.get_stage_assignment("ORD-2")).stage4 is not None


# =============================================================================
# REST client
# =============================================================================

def make_backend(snapshot, flaky=None, seen=None):
    """aiohttp app serving the snapshot the way the order backend does.

    flaky: order_id -> number of 503 responses before answering
    seen: list collecting (path, Authorization header) per request
    """
    flaky = dict(flaky or {})
    orders = {o["oid"]: o for o in snapshot["orders"]}
    assignments = {a["oid"]: a for a in snapshot["assignments"]}

    @web.middleware
    async def record(request, handler):
        if seen is not None:
            seen.append((request.path, request.headers.get("Authorization")))
        return await handler(request)

    async def get_order(request):
        order_id = request.match_info["order_id"]
        if flaky.get(order_id, 0) > 0:
            flaky[order_id] -= 1
            return web.json_response({"message": "busy"}, status=503)
        if order_id == "BROKEN":
            return web.json_response({"message": "bad request"}, status=400)
        if order_id not in orders:
            return web.json_response({"message": "Order not found"}, status=404)
        return web.json_response({"data": orders[order_id]})

    async def list_orders(request):
        return web.json_response({"data": list(orders.values())})

    async def get_assignment(request):
        order_id = request.match_info["order_id"]
        if order_id not in assignments:
            return web.json_response({"message": "No assignment"}, status=404)
        return web.json_response({"data": assignments[order_id]})

    def listing(key, paginated=False):
        async def handler(request):
            rows = snapshot[key]
            return web.json_response({"data": {"items": rows, "total": len(rows)}} if paginated else {"data": rows})
        return handler

    app = web.Application(middlewares=[record])
    app.router.add_get("/api/order/list", list_orders)
    app.router.add_get("/api/order/{order_id}", get_order)
    app.router.add_get("/api/order-assignment/{order_id}", get_assignment)
    app.router.add_get("/api/driver/list", listing("drivers"))
    app.router.add_get("/api/farmer/list", listing("farmers", paginated=True))
    app.router.add_get("/api/supplier/list", listing("suppliers"))
    app.router.add_get("/api/third-party/list", listing("third_parties"))
    app.router.add_get("/api/inventory-stock/", listing("stock"))
    app.router.add_get("/api/labour-rate/list", listing("labour_rates"))
    app.router.add_get("/api/driver-rate/list", listing("driver_rates"))
    return app


def with_backend(snapshot, scenario, flaky=None, seen=None):
    """Run `scenario(store)` against a live test backend."""
    async def run():
        async with test_utils.TestServer(make_backend(snapshot, flaky, seen)) as server:
            store = HttpOrderStore(
                str(server.make_url("/api")),
                token="token-123",
                timeout_seconds=5,
            )
            async with store:
                return await scenario(store)

    return asyncio.run(run())


class TestHttpOrderStore:
    def test_unwrap(self):
        assert unwrap({"data": [1]}) == [1]
        assert unwrap([1]) == [1]
        assert unwrap({"oid": "x"}) == {"oid": "x"}

    def test_bundle_through_envelope(self, snapshot):
        seen = []
        bundle = with_backend(snapshot, lambda store: store.get_bundle("ORD-1"), seen=seen)
        assert bundle.order.customer_name == "Fresh Mart"
        assert bundle.stages.stage3 is not None
        assert ("/api/order/ORD-1", "Bearer token-123") in seen
        assert ("/api/order-assignment/ORD-1", "Bearer token-123") in seen

    def test_missing_order_is_not_found(self, snapshot):
        seen = []
        with pytest.raises(OrderNotFoundError):
            with_backend(snapshot, lambda store: store.get_order("NOPE"), seen=seen)
        assert len(seen) == 1

    def test_missing_assignment_means_unassigned(self, snapshot):
        stages = with_backend(snapshot, lambda store: store.get_stage_assignment("ORD-3"))
        assert stages.stage1 is None

    def test_transient_error_is_a_single_request(self, snapshot):
        seen = []
        with pytest.raises(StoreUnavailableError) as exc_info:
            with_backend(snapshot, lambda store: store.get_order("ORD-2"), flaky={"ORD-2": 1}, seen=seen)
        assert exc_info.value.status_code == 503
        assert seen == [("/api/order/ORD-2", "Bearer token-123")]

    def test_connection_error_is_unavailable(self):
        async def scenario():
            async with HttpOrderStore("http://127.0.0.1:1/api", timeout_seconds=2) as store:
                await store.get_order("ORD-1")

        with pytest.raises(StoreUnavailableError):
            asyncio.run(scenario())

    def test_client_error_not_retried(self, snapshot):
        seen = []
        with pytest.raises(OrderStoreError) as exc_info:
            with_backend(snapshot, lambda store: store.get_order("BROKEN"), seen=seen)
        assert exc_info.value.status_code == 400
        assert not isinstance(exc_info.value, (StoreUnavailableError, OrderNotFoundError))
        assert len(seen) == 1

    def test_directory_and_catalogs(self, snapshot):
        async def scenario(store):
            return await load_directory(store), await load_catalogs(store), await store.list_orders()

        directory, catalogs, orders = with_backend(snapshot, scenario)
        assert [d.name for d in directory.drivers] == ["Rajesh", "Kumar"]
        assert directory.entity_name(EntityType.FARMER, "5") == "Murugan"
        assert directory.entity_name(EntityType.SUPPLIER, "3") == "Green Traders"
        assert catalogs["stock"][0]["product_name"] == "10 KG BOX"
        assert [o.order_id for o in orders] == ["ORD-1", "ORD-2", "ORD-3"]


class TestOrderFetchOverHttp:
    """One backend request per fetch attempt."""

    def order_hits(self, seen, order_id):
        return sum(1 for path, _ in seen if path == f"/api/order/{order_id}")

    def test_failing_order_bounded_by_retry_attempts(self, snapshot):
        from activities.report import process_order
        from models.reports import ReportStatus

        seen = []
        retry = RetryConfig(max_attempts=3, base_delay=0)
        outcome = with_backend(
            snapshot, lambda store: process_order(store, "ORD-2", retry=retry),
            flaky={"ORD-2": 100}, seen=seen,
        )
        assert outcome.status == ReportStatus.FAILED
        assert outcome.attempts == 3
        assert self.order_hits(seen, "ORD-2") == 3

    def test_recovering_order_counts_match_requests(self, snapshot):
        from activities.report import process_order
        from models.reports import ReportStatus

        seen = []
        retry = RetryConfig(max_attempts=3, base_delay=0)
        outcome = with_backend(
            snapshot, lambda store: process_order(store, "ORD-2", retry=retry),
            flaky={"ORD-2": 2}, seen=seen,
        )
        assert outcome.status == ReportStatus.PARTIAL
        assert outcome.attempts == 3
        assert self.order_hits(seen, "ORD-2") == 3

    def test_batch_over_http(self, snapshot):
        from core.config import ReportSettings
        from workflows.report_batch import run_report_batch

        seen = []
        settings = ReportSettings(retry_attempts=2, retry_base_delay=0)
        result = with_backend(
            snapshot,
            lambda store: run_report_batch(["ORD-1", "ORD-2"], store, settings, batch_id="batch-http"),
            flaky={"ORD-1": 100}, seen=seen,
        )
        assert [(o.order_id, o.status.value, o.attempts) for o in result.outcomes] == [
            ("ORD-1", "failed", 2),
            ("ORD-2", "partial", 1),
        ]
        assert self.order_hits(seen, "ORD-1") == 2
