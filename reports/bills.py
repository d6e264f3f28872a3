"""Bills and bill statements for one supply entity across orders.

Bill rows flatten every order's Stage-1 lines for the entity into dated
rows. Orders are taken newest first by creation time; orders created at
the same moment keep the order they were fetched in. Serial numbers run
across all orders in that iteration order.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Sequence, Union

from core.observability.logging import get_logger
from models.canonical import Directory, EntityType, OrderBundle
from models.reports import PENDING_PRICING_LABEL, BillLine, BillStatement
from reconciliation.pricing import to_money
from reports.builder import entity_display_name, resolve_line
from stages.normalize import bill_product_name
from stages.parsers import parse_order_stages

logger = get_logger(__name__)

ZERO = Decimal("0")


def _timestamp(value: Optional[datetime]) -> float:
    if value is None:
        return float("-inf")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def newest_first(bundles: Sequence[OrderBundle]) -> List[OrderBundle]:
    """Sort by creation time, newest first; ties keep fetch order."""
    return sorted(bundles, key=lambda b: _timestamp(b.order.created_at or b.order.order_date), reverse=True)


def unit_label(boxes: int) -> str:
    return f"BOX {boxes}" if boxes > 0 else "STOCK"


def _entity_key(entity_type: Union[EntityType, str], entity_id) -> tuple:
    return (EntityType.parse(entity_type), str(entity_id))


# =============================================================================
# Bill Rows
# =============================================================================

def build_bill_rows(
    entity_type: Union[EntityType, str],
    entity_id,
    bundles: Sequence[OrderBundle],
) -> List[BillLine]:
    """Bill lines for one entity across all of its orders.

    Args:
        entity_type: farmer, supplier or thirdParty
        entity_id: Entity identifier
        bundles: Orders with their stages, in fetch order

    Returns:
        BillLines with serial numbers 1..n
    """
    key = _entity_key(entity_type, entity_id)
    rows: List[BillLine] = []

    for bundle in newest_first(bundles):
        order = bundle.order
        parsed = parse_order_stages(bundle.stages)
        for item in parsed.stage1.items:
            if item.entity_key != key:
                continue
            resolved = resolve_line(order.order_id, item, parsed)
            boxes = item.assigned_boxes
            amount = resolved.amount
            rows.append(BillLine(
                serial_no=len(rows) + 1,
                order_id=order.order_id,
                date=order.created_at or order.order_date,
                product=bill_product_name(item.product),
                unit=unit_label(boxes),
                quantity=Decimal(boxes) if boxes > 0 else resolved.quantity_kg,
                quantity_kg=resolved.quantity_kg,
                price=resolved.price_per_kg,
                amount=amount,
                paid_amount=amount if order.is_paid else to_money(ZERO),
                outstanding_amount=to_money(ZERO) if order.is_paid else amount,
                remarks=PENDING_PRICING_LABEL if resolved.pricing_pending else "",
            ))

    return rows


def build_bill_statement(
    entity_type: Union[EntityType, str],
    entity_id,
    bundles: Sequence[OrderBundle],
    directory: Optional[Directory] = None,
) -> BillStatement:
    """Bill lines plus the statement header (name, billing count, totals)."""
    parsed_type, parsed_id = _entity_key(entity_type, entity_id)
    if parsed_type is None:
        raise ValueError(f"Unknown entity type: {entity_type!r}")

    lines = build_bill_rows(parsed_type, parsed_id, bundles)

    written_name = None
    for bundle in bundles:
        for item in parse_order_stages(bundle.stages).stage1.items:
            if item.entity_key == (parsed_type, parsed_id) and item.entity_name:
                written_name = item.entity_name
                break
        if written_name:
            break

    statement = BillStatement(
        entity_type=parsed_type,
        entity_id=parsed_id,
        entity_name=entity_display_name(parsed_type, parsed_id, written_name, directory),
        billing_count=len({line.order_id for line in lines}),
        total_amount=to_money(sum((l.amount for l in lines), ZERO)),
        paid_amount=to_money(sum((l.paid_amount for l in lines), ZERO)),
        outstanding_amount=to_money(sum((l.outstanding_amount for l in lines), ZERO)),
        lines=lines,
    )
    logger.info(
        f"Bill statement for {parsed_type.value} {parsed_id}: "
        f"{len(lines)} lines over {statement.billing_count} orders, total {statement.total_amount}",
        extra_fields={"entity_id": parsed_id},
    )
    return statement
