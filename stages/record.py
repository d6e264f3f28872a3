"""Split an order-assignment record into per-stage assignments.

The order-management store keeps all four stages of one order in a single
record:

    {
        "oid": "...",
        "product_assignments": [...],      # stage 1 (or stage1_data)
        "delivery_routes": [...],          # stage 1 routes
        "stage1_summary_data": {...},      # stage 1 summary (or summary_data)
        "stage2_data": {...}, "stage2_summary_data": {...},
        "stage3_data": {...},
        "stage4_data": {...},
        "stage1_status": "completed", ...
    }

Any of those keys may be missing or hold JSON text. A stage whose payload
holds nothing (missing, blank, or only empty lists and objects) has not
been reached yet and is left absent.
"""

import json
from typing import Any, Dict, Optional

from models.canonical import (
    Driver,
    EntityRecord,
    Order,
    OrderItem,
    OrderStages,
    StageAssignment,
    StageStatus,
)
from stages import accessors as acc
from stages.accessors import first_defined, first_present


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        if not value.strip():
            return False
        try:
            value = json.loads(value)
        except ValueError:
            # Malformed text is present; the stage parser flags it
            return True
        return _has_value(value)
    if isinstance(value, dict):
        return any(_has_value(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return any(_has_value(v) for v in value)
    return True


def _assignment(
    order_id: str,
    stage_number: int,
    record: Dict[str, Any],
    payload: Any,
    sections: Optional[Dict[str, Any]] = None,
) -> Optional[StageAssignment]:
    if not _has_value(payload):
        return None
    status = first_present(record, acc.record_stage_status(stage_number))
    return StageAssignment(
        order_id=order_id,
        stage_number=stage_number,
        status=StageStatus.parse(status),
        payload=payload,
        sections={k: v for k, v in (sections or {}).items() if _has_value(v)},
    )


def split_assignment_record(order_id: str, record: Optional[Dict[str, Any]]) -> OrderStages:
    """Build OrderStages from a raw assignment record.

    A missing record (no assignment yet) yields OrderStages with every
    stage absent.
    """
    stages = OrderStages(order_id=order_id)
    if not record:
        return stages

    stages.stage1 = _assignment(
        order_id, 1, record,
        first_defined(record, acc.RECORD_STAGE1_ITEMS),
        {
            "delivery_routes": first_defined(record, acc.RECORD_STAGE1_ROUTES),
            "summary": first_defined(record, acc.RECORD_STAGE1_SUMMARY),
        },
    )
    stages.stage2 = _assignment(
        order_id, 2, record,
        first_defined(record, acc.RECORD_STAGE2),
        {"summary": first_defined(record, acc.RECORD_STAGE2_SUMMARY)},
    )
    stages.stage3 = _assignment(order_id, 3, record, first_defined(record, acc.RECORD_STAGE3))
    stages.stage4 = _assignment(order_id, 4, record, first_defined(record, acc.RECORD_STAGE4))
    return stages


# =============================================================================
# Order and Directory Records
# =============================================================================

def parse_order_record(raw: Dict[str, Any]) -> Order:
    """Build an Order from the store's order record."""
    items = []
    for item in first_present(raw, acc.ORDER_ITEMS, default=[]):
        if not isinstance(item, dict):
            continue
        items.append(OrderItem(
            product_name=first_present(item, acc.ORDER_ITEM_PRODUCT),
            total_price=first_present(item, acc.ORDER_ITEM_TOTAL_PRICE),
            net_weight=first_present(item, acc.ORDER_ITEM_NET_WEIGHT),
            num_boxes=first_present(item, acc.ORDER_ITEM_BOXES),
        ))
    return Order(
        order_id=str(first_present(raw, acc.ORDER_ID, default="")),
        customer_name=first_present(raw, acc.ORDER_CUSTOMER),
        order_date=first_present(raw, acc.ORDER_DATE),
        created_at=first_present(raw, acc.ORDER_CREATED_AT),
        payment_status=first_present(raw, acc.ORDER_PAYMENT_STATUS),
        items=items,
    )


def parse_driver_record(raw: Dict[str, Any]) -> Optional[Driver]:
    driver_id = first_present(raw, acc.DRIVER_ID)
    name = first_present(raw, acc.DRIVER_NAME)
    if driver_id is None or not name:
        return None
    return Driver(
        id=str(driver_id),
        code=first_present(raw, acc.DRIVER_CODE),
        name=str(name).strip(),
        vehicle_number=first_present(raw, acc.DRIVER_VEHICLE),
        mobile_number=first_present(raw, acc.DRIVER_MOBILE),
    )


def parse_entity_record(raw: Dict[str, Any]) -> Optional[EntityRecord]:
    entity_id = first_present(raw, acc.ENTITY_ID)
    name = first_present(raw, acc.ENTITY_NAME)
    if entity_id is None or not name:
        return None
    return EntityRecord(
        id=str(entity_id),
        display_name=str(name).strip(),
        phone=first_present(raw, acc.ENTITY_PHONE),
    )
