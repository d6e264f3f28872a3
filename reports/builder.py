"""Entity and driver reports for one order.

Exposes:
- resolve_lines(order_id, stages) -> [ResolvedLine]
- build_entity_report(order_id, stages, directory, order) -> [EntityAmount]
- build_driver_report(order_id, stages, directory) -> DriverBuckets
"""

from decimal import Decimal
from typing import Dict, List, Optional, Tuple, Union

from core.observability.logging import get_logger
from models.canonical import Directory, EntityType, Order, OrderStages, Stage1Item
from models.reports import UNKNOWN_ENTITY_LABEL, EntityAmount, ResolvedLine
from reconciliation.drivers import DriverBuckets, group_by_driver
from reconciliation.pricing import compute_amount, to_money
from reconciliation.quantity import resolve_quantity
from stages.normalize import clean_product_name
from stages.parsers import ParsedStages, parse_order_stages

logger = get_logger(__name__)

StagesInput = Union[ParsedStages, OrderStages, None]


def ensure_parsed(stages: StagesInput) -> ParsedStages:
    """Accept raw stage assignments or already-parsed stages."""
    if isinstance(stages, ParsedStages):
        return stages
    return parse_order_stages(stages)


# =============================================================================
# Resolved Lines
# =============================================================================

def resolve_line(
    order_id: str,
    line: Stage1Item,
    parsed: ParsedStages,
    driver_name: Optional[str] = None,
) -> ResolvedLine:
    """Resolve quantity and price of one Stage-1 line on its own."""
    quantity = resolve_quantity(
        line.product,
        stage1_items=[line],
        stage2_items=parsed.stage2.items,
        stage3_items=parsed.stage3.items,
        stage4_items=parsed.stage4.items,
    )
    price = compute_amount(line.product, quantity.quantity_kg, parsed.stage4.items)
    return ResolvedLine(
        order_id=order_id,
        product=line.product,
        entity_type=line.entity_type,
        entity_id=line.entity_id,
        quantity_kg=quantity.quantity_kg,
        boxes=line.assigned_boxes,
        source=quantity.source,
        driver_name=driver_name,
        price_per_kg=price.price_per_kg,
        amount=price.amount,
        pricing_pending=price.pricing_pending,
    )


def _drivers_by_product(buckets: Optional[DriverBuckets]) -> Dict[str, str]:
    drivers: Dict[str, str] = {}
    for bucket in buckets or []:
        for line in bucket.lines:
            drivers.setdefault(line.product, bucket.driver_name)
    return drivers


def resolve_lines(
    order_id: str,
    stages: StagesInput,
    buckets: Optional[DriverBuckets] = None,
) -> List[ResolvedLine]:
    """Resolve every Stage-1 line of an order, in payload order."""
    parsed = ensure_parsed(stages)
    drivers = _drivers_by_product(buckets)
    return [
        resolve_line(order_id, line, parsed, drivers.get(line.product))
        for line in parsed.stage1.items
    ]


# =============================================================================
# Entity Report
# =============================================================================

def entity_display_name(
    entity_type: Optional[EntityType],
    entity_id: Optional[str],
    fallback: Optional[str],
    directory: Optional[Directory],
) -> str:
    """Directory name, else the name written on the Stage-1 line, else Unknown."""
    if directory is not None:
        name = directory.entity_name(entity_type, entity_id)
        if name:
            return name
    return fallback or UNKNOWN_ENTITY_LABEL


def build_entity_report(
    order_id: str,
    stages: StagesInput,
    directory: Optional[Directory] = None,
    order: Optional[Order] = None,
    resolved_lines: Optional[List[ResolvedLine]] = None,
) -> List[EntityAmount]:
    """Group Stage-1 lines by (entity type, entity id) and total their amounts.

    Args:
        order_id: Order the lines belong to
        stages: Raw or parsed stages of the order
        directory: Entity directory for display names
        order: Order record for date and payment status
        resolved_lines: Lines already resolved by the caller (must be in
            Stage-1 order)

    Returns:
        EntityAmount per entity, in first-seen order
    """
    parsed = ensure_parsed(stages)
    lines = resolved_lines if resolved_lines is not None else resolve_lines(order_id, parsed)

    keys: List[Tuple[Optional[EntityType], Optional[str]]] = []
    groups: Dict[Tuple[Optional[EntityType], Optional[str]], EntityAmount] = {}

    for item, resolved in zip(parsed.stage1.items, lines):
        key = item.entity_key
        group = groups.get(key)
        if group is None:
            group = EntityAmount(
                order_id=order_id,
                entity_type=item.entity_type,
                entity_id=item.entity_id,
                entity_name=entity_display_name(item.entity_type, item.entity_id, item.entity_name, directory),
                order_date=order.report_date if order else None,
                payment_status=order.payment_label if order else "Unpaid",
            )
            groups[key] = group
            keys.append(key)

        display = clean_product_name(item.product)
        if display and display not in group.products:
            group.products.append(display)
        group.lines.append(resolved)
        group.quantity_kg += resolved.quantity_kg
        group.total_amount = to_money(group.total_amount + resolved.amount)
        group.pricing_pending = group.pricing_pending or resolved.pricing_pending

    report = []
    for key in keys:
        group = groups[key]
        group.products_display = ", ".join(group.products)
        report.append(group)

    logger.debug(
        f"Entity report for {order_id}: {len(report)} entities from {len(lines)} lines",
        extra_fields={"order_id": order_id},
    )
    return report


def entity_total(amounts: List[EntityAmount]) -> Decimal:
    return to_money(sum((a.total_amount for a in amounts), Decimal("0")))


# =============================================================================
# Driver Report
# =============================================================================

def build_driver_report(
    order_id: str,
    stages: StagesInput,
    directory: Optional[Directory] = None,
) -> DriverBuckets:
    """Driver buckets of an order with Stage-4 prices on every line."""
    parsed = ensure_parsed(stages)
    buckets = group_by_driver(
        parsed.stage3.items,
        parsed.stage3.airport_groups,
        directory,
        stage4_items=parsed.stage4.items,
        labour_map=parsed.stage2.labour_map(),
    )
    logger.debug(
        f"Driver report for {order_id}: {len(buckets)} driver(s)",
        extra_fields={"order_id": order_id},
    )
    return buckets
