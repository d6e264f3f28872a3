"""Shared fixtures: a small order-store snapshot.

ORD-1 (paid, all four stages):
    farmer 5   Tomato 10kg + Tomato 5kg @ 20   -> 300
    supplier 3 Carrot 10kg (2 boxes) @ 30      -> 300
    Stage 3 routes Tomato to Kumar (airport group) and Carrot to driver 7 (Rajesh)
ORD-2 (unpaid, stages 1 and 4 only):
    farmer 5   Tomato 30kg @ 18                -> 540
ORD-3 (unpaid, nothing assigned yet)
"""

import pytest

from core.observability.metrics import MetricsCollector


def build_snapshot() -> dict:
    return {
        "orders": [
            {
                "oid": "ORD-1",
                "customer_name": "Fresh Mart",
                "order_received_date": "2025-03-01",
                "createdAt": "2025-03-01T08:00:00Z",
                "payment_status": "paid",
                "items": [
                    {"product_name": "Tomato", "net_weight": 20},
                    {"product_name": "Carrot", "net_weight": 10, "num_boxes": 2},
                ],
            },
            {
                "oid": "ORD-2",
                "customer_name": "City Hotel",
                "order_received_date": "2025-03-05",
                "createdAt": "2025-03-05T09:00:00Z",
                "payment_status": "pending",
                "items": [{"product_name": "Tomato", "net_weight": 30}],
            },
            {
                "oid": "ORD-3",
                "customer_name": "Late Order",
                "createdAt": "2025-03-07T10:00:00Z",
                "payment_status": "unpaid",
                "items": [],
            },
        ],
        "assignments": [
            {
                "oid": "ORD-1",
                "product_assignments": [
                    {"product": "Tomato", "entityType": "farmer", "entityId": 5, "assignedQty": 10,
                     "assignedTo": "Murugan (field)"},
                    {"product": "Tomato", "entityType": "farmer", "entityId": 5, "assignedQty": 5},
                    {"product": "Carrot", "entityType": "supplier", "entityId": 3, "assignedQty": 10,
                     "assignedBoxes": 2},
                ],
                "stage1_status": "completed",
                "stage2_data": {
                    "productAssignments": [
                        {"product": "Tomato", "labourName": "Ravi", "pickedQuantity": 15},
                        {"product": "Carrot", "labourName": "Siva", "pickedQuantity": 10},
                    ],
                },
                "stage3_data": {
                    "products": [
                        {"product": "Tomato", "grossWeight": "16kg", "noOfPkgs": 2, "ct": "CT1",
                         "airportName": "Chennai", "airportLocation": "MAA", "selectedDriver": 7,
                         "status": "Delivered"},
                        {"product": "Carrot", "grossWeight": "10.5kg", "noOfPkgs": 1, "packingType": "thermo",
                         "airportName": "Chennai", "selectedDriver": 7},
                    ],
                    "summaryData": {
                        "airportGroups": {"MAA": {"products": [{"product": "Tomato", "driver": "Kumar"}]}},
                    },
                },
                "stage4_data": {
                    "reviewData": {
                        "productRows": [
                            {"product_name": "Tomato", "finalPrice": 20, "net_weight": 15},
                            {"product_name": "Carrot", "finalPrice": 30, "net_weight": 10},
                        ],
                    },
                },
            },
            {
                "oid": "ORD-2",
                "product_assignments": [
                    {"product": "Tomato", "entityType": "farmer", "entityId": 5, "assignedQty": 30},
                ],
                "stage4_data": {"productRows": [{"product": "Tomato", "finalPrice": 18, "netWeight": 30}]},
            },
        ],
        "drivers": [
            {"did": 7, "driver_id": "DRV-007", "driver_name": "Rajesh", "vehicle_number": "TN01AB1234"},
            {"did": 8, "driver_id": "DRV-008", "driver_name": "Kumar", "vehicle_number": "TN02CD5678"},
        ],
        "farmers": [
            {"fid": 5, "farmer_name": "Murugan"},
            {"fid": 9, "farmer_name": "Selvi"},
        ],
        "suppliers": [{"sid": 3, "supplier_name": "Green Traders"}],
        "third_parties": [],
        "stock": [
            {"product_name": "10 KG BOX", "average_price": 85},
            {"product_name": "Thermo Box", "average_price": 150},
        ],
        "labour_rates": [{"labourType": "Normal", "amount": 500, "status": "Active"}],
        "driver_rates": [
            {"deliveryType": "Local", "amount": 300, "status": "Active"},
            {"deliveryType": "Airport Delivery", "amount": 800, "status": "Active"},
        ],
    }


@pytest.fixture
def snapshot():
    """Fresh snapshot dict; tests may mutate it."""
    return build_snapshot()


@pytest.fixture
def store(snapshot):
    from connectors.memory_store import InMemoryOrderStore
    return InMemoryOrderStore.from_snapshot(snapshot)


@pytest.fixture(autouse=True)
def reset_metrics():
    MetricsCollector.reset()
    yield
    MetricsCollector.reset()
