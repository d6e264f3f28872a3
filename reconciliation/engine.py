"""Reconciliation engine for produce order fulfillment.

Exposes high-level function:
- reconcile_order(order, stages, directory) -> OrderReport
"""

from typing import List, Optional

from core.observability.logging import get_logger
from models.canonical import Directory, Order, OrderStages
from models.reports import OrderReport, ReportStatus
from reconciliation.checks import (
    CheckResult,
    check_q_zero_quantity,
    check_s1_over_assignment,
    check_s3_driver_unresolved,
    check_s4_pricing_pending,
    check_stage_payload_malformed,
    overall_status,
)
from reports.builder import build_driver_report, build_entity_report, entity_total, resolve_lines
from stages.parsers import parse_order_stages

logger = get_logger(__name__)


# =============================================================================
# Main Reconciliation Engine
# =============================================================================

def reconcile_order(
    order: Order,
    stages: Optional[OrderStages],
    directory: Optional[Directory] = None,
) -> OrderReport:
    """Reconcile one order across its four fulfillment stages.

    Stage payloads are parsed once; the driver buckets, resolved lines,
    entity amounts and checks are all derived from that single parse.

    Args:
        order: Order record
        stages: Stage assignments of the order (None when nothing has
            been assigned yet)
        directory: Driver and entity directory

    Returns:
        OrderReport; status is "partial" when a stage is missing or
        its payload could not be decoded
    """
    order_id = order.order_id
    parsed = parse_order_stages(stages)

    buckets = build_driver_report(order_id, parsed, directory)
    lines = resolve_lines(order_id, parsed, buckets)
    amounts = build_entity_report(order_id, parsed, directory, order, resolved_lines=lines)

    # =========================================================================
    # Checks
    # =========================================================================
    checks: List[CheckResult] = [
        check_stage_payload_malformed(order_id, parsed.malformed),
        check_s1_over_assignment(order, parsed.stage1.items),
        check_s4_pricing_pending(order_id, parsed.stage4, lines),
        check_s3_driver_unresolved(order_id, buckets.to_list()),
        check_q_zero_quantity(order_id, lines),
    ]
    check_status = overall_status(checks)

    status = ReportStatus.SUCCESS if parsed.complete else ReportStatus.PARTIAL
    grand_total = entity_total(amounts)

    report = OrderReport(
        order_id=order_id,
        status=status,
        check_status=check_status.value,
        customer_name=order.customer_name,
        order_date=order.report_date,
        payment_status=order.payment_label,
        missing_stages=list(parsed.missing),
        malformed_stages=list(parsed.malformed),
        resolved_lines=lines,
        entity_amounts=amounts,
        driver_buckets=buckets.to_list(),
        checks=[c.to_dict() for c in checks],
        grand_total=grand_total,
    )

    logger.info(
        f"Reconciled order {order_id}: {status.value}, {len(amounts)} entities, "
        f"{len(buckets)} drivers, total {grand_total}",
        extra_fields={
            "order_id": order_id,
            "status": status.value,
            "check_status": check_status.value,
            "missing_stages": parsed.missing,
            "malformed_stages": parsed.malformed,
        },
    )
    return report
