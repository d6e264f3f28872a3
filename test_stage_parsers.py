"""Stage payload parsers and assignment-record splitting."""

import json
from decimal import Decimal

from core.observability.metrics import get_metrics
from models.canonical import EntityType, StageStatus
from stages.parsers import (
    parse_order_stages,
    parse_stage1,
    parse_stage2,
    parse_stage3,
    parse_stage4,
)
from stages.record import (
    parse_driver_record,
    parse_entity_record,
    parse_order_record,
    split_assignment_record,
)


class TestStage1:
    def test_list_payload(self):
        data = parse_stage1([
            {"product": "Tomato", "entityType": "farmer", "entityId": 9, "assignedQty": "30kg", "assignedBoxes": 0},
            {"productName": "Beans", "entity_type": "Third Party", "entity_id": "T1", "assigned_qty": 4},
        ])
        assert not data.malformed
        assert [i.product for i in data.items] == ["Tomato", "Beans"]
        tomato, beans = data.items
        assert tomato.entity_type == EntityType.FARMER
        assert tomato.entity_id == "9"
        assert tomato.assigned_qty == Decimal("30")
        assert beans.entity_type == EntityType.THIRD_PARTY
        assert beans.assigned_qty == Decimal("4")

    def test_json_text_payload(self):
        raw = json.dumps([{"product": "Tomato", "assignedQty": 12}])
        data = parse_stage1(raw)
        assert data.items[0].assigned_qty == Decimal("12")

    def test_object_payload_with_routes_and_summary(self):
        data = parse_stage1({
            "productAssignments": [{"product": "Tomato", "assignedQty": 5}],
            "deliveryRoutes": json.dumps([{"routeId": 1, "product": "Tomato", "location": "Hosur", "driver": "Kumar"}]),
            "summaryData": {"driverAssignments": [
                {"driver": "Kumar", "assignments": [{"product": "Tomato", "entityType": "farmer"}]},
            ]},
        })
        assert len(data.items) == 1
        assert data.delivery_routes[0].location == "Hosur"
        assert data.delivery_routes[0].driver == "Kumar"
        assert data.driver_assignments[0].driver == "Kumar"
        assert data.driver_assignments[0].assignments[0].entity_type == EntityType.FARMER

    def test_lines_without_product_are_dropped(self):
        data = parse_stage1([{"assignedQty": 5}, {"product": "", "assignedQty": 1}, {"product": "Okra"}])
        assert [i.product for i in data.items] == ["Okra"]

    def test_malformed_text_is_empty_not_raised(self):
        data = parse_stage1("[{not json")
        assert data.malformed
        assert data.items == []
        assert get_metrics().get_summary()["malformed_payloads"] == {"stage1": 1}

    def test_absent_payload(self):
        data = parse_stage1(None)
        assert not data.malformed
        assert data.is_empty


class TestStage2:
    def test_items_and_summary(self):
        data = parse_stage2(
            {"stage2Assignments": [{"productName": "Tomato", "wastage": "1.5", "pickedQuantity": 20}]},
            summary={
                "labourAssignments": [{"labour": "Ravi", "assignments": [{"product": "Tomato"}, {"product": "Beans"}]}],
                "labourPrices": [{"labourName": "Ravi", "totalAmount": 650, "labourWage": 600}],
            },
        )
        assert data.items[0].wastage_kg == Decimal("1.5")
        assert data.items[0].picked_quantity == Decimal("20")
        assert data.labour_assignments[0].products == ["Tomato", "Beans"]
        assert data.labour_wages == {"Ravi": Decimal("650")}

    def test_labour_map_prefers_item_labour(self):
        data = parse_stage2(
            {"productAssignments": [{"product": "Tomato", "labourName": "Ravi"}]},
            summary={"labourAssignments": [{"labour": "Siva", "assignments": [{"product": "Beans"}]}]},
        )
        assert data.labour_map() == {"Tomato": "Ravi"}

    def test_labour_map_falls_back_to_summary(self):
        data = parse_stage2(
            {"productAssignments": [{"product": "Tomato"}]},
            summary={"labourAssignments": [
                {"labour": "Ravi", "assignments": [{"product": "Tomato"}]},
                {"labour": "Siva", "assignments": [{"product": "Tomato"}, {"product": "Beans"}]},
            ]},
        )
        assert data.labour_map() == {"Tomato": "Ravi, Siva", "Beans": "Siva"}

    def test_malformed_summary_marks_stage(self):
        data = parse_stage2({"productAssignments": []}, summary="{oops")
        assert data.malformed


class TestStage3:
    def test_products_and_airport_groups_keep_order(self):
        data = parse_stage3({
            "products": [
                {"product": "Tomato", "grossWeight": "75.5kg", "noOfPkgs": "3", "selectedDriverId": 7},
                {"productName": "Beans", "gross_weight": 12, "no_of_pkgs": 1},
            ],
            "summaryData": json.dumps({
                "airportGroups": {
                    "MAA": {"products": [{"product": "Tomato", "driver": "Kumar"}]},
                    "BLR": {"products": [{"product": "Beans", "driver": ""}]},
                },
            }),
        })
        tomato, beans = data.items
        assert tomato.gross_weight == "75.5kg"
        assert tomato.gross_weight_kg == Decimal("75.5")
        assert tomato.no_of_pkgs == 3
        assert tomato.selected_driver_id == "7"
        assert beans.gross_weight_kg == Decimal("12")
        assert [g.airport_code for g in data.airport_groups] == ["MAA", "BLR"]
        assert data.airport_groups[1].products[0].driver is None

    def test_bare_list_payload(self):
        data = parse_stage3([{"product": "Tomato", "grossWeight": "5"}])
        assert data.items[0].gross_weight_kg == Decimal("5")

    def test_malformed(self):
        data = parse_stage3("not json at all")
        assert data.malformed
        assert data.items == []


class TestStage4:
    def test_review_data_rows(self):
        data = parse_stage4({"reviewData": {"productRows": [
            {"product_name": "Tomato", "finalPrice": 15, "marketPrice": 14, "net_weight": 30},
        ]}})
        row = data.items[0]
        assert row.product == "Tomato"
        assert row.final_price == Decimal("15")
        assert row.market_price == Decimal("14")
        assert row.net_weight == Decimal("30")

    def test_review_data_as_json_text(self):
        raw = {"reviewData": json.dumps({"productRows": [{"product": "Beans", "finalPrice": "40"}]})}
        assert parse_stage4(raw).items[0].final_price == Decimal("40")

    def test_top_level_rows_and_price_fallbacks(self):
        data = parse_stage4({"productRows": [
            {"product": "Beans", "price": 40, "quantity": 12},
            {"product": "Okra", "finalPrice": 0, "final_price": 22},
        ]})
        beans, okra = data.items
        assert beans.final_price == Decimal("40")
        assert beans.net_weight == Decimal("0")
        assert beans.quantity == Decimal("12")
        assert okra.final_price == Decimal("22")


class TestAssignmentRecord:
    def test_split_full_record(self, snapshot):
        record = snapshot["assignments"][0]
        stages = split_assignment_record("ORD-1", record)
        assert stages.stage1.status == StageStatus.COMPLETED
        assert stages.stage2.status == StageStatus.PENDING
        assert all(stages.get(n) is not None for n in (1, 2, 3, 4))

    def test_missing_record_has_no_stages(self):
        stages = split_assignment_record("ORD-9", None)
        assert all(stages.get(n) is None for n in (1, 2, 3, 4))
        parsed = parse_order_stages(stages)
        assert parsed.missing == [1, 2, 3, 4]
        assert not parsed.complete

    def test_blank_and_text_payloads(self):
        stages = split_assignment_record("ORD-1", {
            "stage1_data": json.dumps([{"product": "Tomato", "assignedQty": 3}]),
            "stage2_data": "",
            "stage3_data": "{broken",
        })
        parsed = parse_order_stages(stages)
        assert parsed.stage1.items[0].assigned_qty == Decimal("3")
        assert parsed.missing == [2, 4]
        assert parsed.malformed == [3]

    def test_empty_containers_are_absent(self, snapshot):
        record = dict(snapshot["assignments"][0])
        record["stage2_data"] = {"productAssignments": []}
        record["stage3_data"] = {"products": [], "summaryData": {"airportGroups": {}}}
        record["stage4_data"] = "[]"
        stages = split_assignment_record("ORD-1", record)
        assert stages.stage1 is not None
        assert [stages.get(n) for n in (2, 3, 4)] == [None, None, None]

        parsed = parse_order_stages(stages)
        assert parsed.missing == [2, 3, 4]
        assert not parsed.complete

    def test_empty_stage_makes_report_partial(self, snapshot):
        import asyncio
        from connectors.memory_store import InMemoryOrderStore
        from models.reports import ReportStatus
        from reconciliation.engine import reconcile_order

        snapshot["assignments"][0]["stage3_data"] = {"products": []}
        bundle = asyncio.run(InMemoryOrderStore.from_snapshot(snapshot).get_bundle("ORD-1"))
        report = reconcile_order(bundle.order, bundle.stages)
        assert report.status == ReportStatus.PARTIAL
        assert report.missing_stages == [3]

    def test_order_record(self, snapshot):
        order = parse_order_record(snapshot["orders"][0])
        assert order.order_id == "ORD-1"
        assert order.customer_name == "Fresh Mart"
        assert order.is_paid
        assert order.payment_label == "Paid"
        assert order.report_date.day == 1
        assert order.items[1].num_boxes == 2

    def test_unpaid_statuses(self, snapshot):
        assert not parse_order_record(snapshot["orders"][1]).is_paid
        assert parse_order_record(snapshot["orders"][1]).payment_label == "Unpaid"

    def test_directory_records(self):
        driver = parse_driver_record({"did": 7, "driver_id": "DRV-007", "driver_name": " Rajesh ", "vehicle_number": "TN01"})
        assert driver.id == "7"
        assert driver.code == "DRV-007"
        assert driver.name == "Rajesh"
        assert parse_driver_record({"did": 8}) is None

        entity = parse_entity_record({"fid": 5, "farmer_name": "Murugan"})
        assert entity.id == "5"
        assert entity.display_name == "Murugan"
