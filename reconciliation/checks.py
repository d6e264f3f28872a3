"""Reconciliation checks for a single order.

Checks never change report numbers; they flag conditions a reviewer should
look at:
- S1_OVER_ASSIGNMENT: more kg (or boxes) assigned in Stage 1 than ordered
- S4_PRICING_PENDING: lines without a Stage-4 price
- S3_DRIVER_UNRESOLVED: routing lines with no known driver
- Q_ZERO_QUANTITY: lines for which no stage gives a quantity
- STAGE_PAYLOAD_MALFORMED: a stage payload could not be decoded
"""

from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Sequence

from models.canonical import Order, Stage1Item, Stage4Data
from models.reports import UNASSIGNED_DRIVER_LABEL, DriverBucket, QuantitySource, ResolvedLine
from stages.normalize import match_product


# =============================================================================
# Configuration & Data Structures
# =============================================================================

DRIVER_NOT_FOUND_PREFIX = "Driver Not Found"


class Severity(str, Enum):
    BLOCK = "BLOCK"
    WARN = "WARN"
    INFO = "INFO"


class CheckStatus(str, Enum):
    PASS = "PASS"
    WARN = "WARN"
    FAIL = "FAIL"


class CheckResult:
    """Result of a single reconciliation check."""

    def __init__(
        self,
        check_id: str,
        severity: Severity,
        passed: bool,
        message: str,
        evidence: Optional[Dict] = None,
    ):
        self.check_id = check_id
        self.severity = severity
        self.passed = passed
        self.message = message
        self.evidence = evidence or {}

    def to_dict(self) -> Dict:
        return {
            "check_id": self.check_id,
            "severity": self.severity.value,
            "passed": self.passed,
            "message": self.message,
            "evidence": self.evidence,
        }


# =============================================================================
# Individual Check Functions
# =============================================================================

def check_s1_over_assignment(order: Optional[Order], stage1_items: Sequence[Stage1Item]) -> CheckResult:
    """S1: Stage-1 assignments should not exceed the ordered quantity.

    Upstream does not enforce this, so it is only reported.
    """
    if order is None or not order.items:
        return CheckResult(
            check_id="S1_OVER_ASSIGNMENT",
            severity=Severity.INFO,
            passed=True,
            message="No order items to compare Stage 1 assignments against",
        )

    over = []
    for item in order.items:
        if not item.product_name:
            continue
        assigned_kg = Decimal("0")
        assigned_boxes = 0
        for line in stage1_items:
            if match_product(item.product_name, line.product):
                assigned_kg += line.assigned_qty
                assigned_boxes += line.assigned_boxes
        if item.net_weight > 0 and assigned_kg > item.net_weight:
            over.append({
                "product": item.product_name,
                "ordered_kg": str(item.net_weight),
                "assigned_kg": str(assigned_kg),
            })
        elif item.num_boxes > 0 and assigned_boxes > item.num_boxes:
            over.append({
                "product": item.product_name,
                "ordered_boxes": item.num_boxes,
                "assigned_boxes": assigned_boxes,
            })

    if over:
        return CheckResult(
            check_id="S1_OVER_ASSIGNMENT",
            severity=Severity.WARN,
            passed=False,
            message=f"Order {order.order_id}: {len(over)} product(s) assigned beyond the ordered quantity",
            evidence={"order_id": order.order_id, "products": over},
        )

    return CheckResult(
        check_id="S1_OVER_ASSIGNMENT",
        severity=Severity.INFO,
        passed=True,
        message=f"Order {order.order_id}: Stage 1 assignments within ordered quantities",
        evidence={"order_id": order.order_id},
    )


def check_s4_pricing_pending(
    order_id: str,
    stage4: Stage4Data,
    resolved_lines: Sequence[ResolvedLine],
) -> CheckResult:
    """S4: Every resolved line should have a Stage-4 price."""
    pending = sorted({line.product for line in resolved_lines if line.pricing_pending})

    if not stage4.items:
        return CheckResult(
            check_id="S4_PRICING_PENDING",
            severity=Severity.WARN,
            passed=False,
            message=f"Order {order_id} has no Stage 4 pricing yet",
            evidence={"order_id": order_id, "products": pending},
        )

    if pending:
        return CheckResult(
            check_id="S4_PRICING_PENDING",
            severity=Severity.WARN,
            passed=False,
            message=f"Order {order_id}: {len(pending)} product(s) missing from Stage 4 pricing",
            evidence={"order_id": order_id, "products": pending},
        )

    return CheckResult(
        check_id="S4_PRICING_PENDING",
        severity=Severity.INFO,
        passed=True,
        message=f"Order {order_id}: all products priced",
        evidence={"order_id": order_id},
    )


def check_s3_driver_unresolved(order_id: str, buckets: Sequence[DriverBucket]) -> CheckResult:
    """S3: Routing lines should resolve to a known driver."""
    unresolved = []
    for bucket in buckets:
        if bucket.driver_name == UNASSIGNED_DRIVER_LABEL or bucket.driver_name.startswith(DRIVER_NOT_FOUND_PREFIX):
            unresolved.append({
                "driver": bucket.driver_name,
                "products": [line.product for line in bucket.lines],
            })

    if unresolved:
        count = sum(len(u["products"]) for u in unresolved)
        return CheckResult(
            check_id="S3_DRIVER_UNRESOLVED",
            severity=Severity.WARN,
            passed=False,
            message=f"Order {order_id}: {count} routing line(s) without a known driver",
            evidence={"order_id": order_id, "buckets": unresolved},
        )

    return CheckResult(
        check_id="S3_DRIVER_UNRESOLVED",
        severity=Severity.INFO,
        passed=True,
        message=f"Order {order_id}: all routing lines have a driver",
        evidence={"order_id": order_id},
    )


def check_q_zero_quantity(order_id: str, resolved_lines: Sequence[ResolvedLine]) -> CheckResult:
    """Q: A line with no quantity in any stage is reported, not dropped."""
    zero = [
        {"product": line.product, "entity_id": line.entity_id}
        for line in resolved_lines
        if line.source == QuantitySource.NONE
    ]

    if zero:
        return CheckResult(
            check_id="Q_ZERO_QUANTITY",
            severity=Severity.WARN,
            passed=False,
            message=f"Order {order_id}: {len(zero)} line(s) resolved to zero quantity",
            evidence={"order_id": order_id, "lines": zero},
        )

    return CheckResult(
        check_id="Q_ZERO_QUANTITY",
        severity=Severity.INFO,
        passed=True,
        message=f"Order {order_id}: every line has a quantity",
        evidence={"order_id": order_id},
    )


def check_stage_payload_malformed(order_id: str, malformed_stages: Sequence[int]) -> CheckResult:
    """Malformed stage payloads are treated as empty; flag them."""
    if malformed_stages:
        return CheckResult(
            check_id="STAGE_PAYLOAD_MALFORMED",
            severity=Severity.BLOCK,
            passed=False,
            message=f"Order {order_id}: stage payload(s) {list(malformed_stages)} could not be parsed",
            evidence={"order_id": order_id, "stages": list(malformed_stages)},
        )

    return CheckResult(
        check_id="STAGE_PAYLOAD_MALFORMED",
        severity=Severity.INFO,
        passed=True,
        message=f"Order {order_id}: all present stage payloads parsed",
        evidence={"order_id": order_id},
    )


# =============================================================================
# Overall Status
# =============================================================================

def overall_status(checks: List[CheckResult]) -> CheckStatus:
    """FAIL on any failed BLOCK check, WARN on any failed WARN check."""
    failed = [c for c in checks if not c.passed]
    if any(c.severity == Severity.BLOCK for c in failed):
        return CheckStatus.FAIL
    if any(c.severity == Severity.WARN for c in failed):
        return CheckStatus.WARN
    return CheckStatus.PASS
