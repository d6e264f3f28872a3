"""Report models produced by the reconciliation engine.

Everything here is derived per invocation and never persisted by the
engine itself. Serializing the same inputs twice yields identical JSON.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from pydantic import Field

from models.canonical import CanonicalBase, EntityType


PENDING_PRICING_LABEL = "Pending pricing"
UNKNOWN_ENTITY_LABEL = "Unknown"
UNASSIGNED_DRIVER_LABEL = "Unassigned"


class QuantitySource(str, Enum):
    """Stage the resolved quantity was taken from."""
    STAGE1 = "stage1"
    STAGE4 = "stage4"
    STAGE3 = "stage3"
    STAGE2 = "stage2"
    NONE = "none"


class ReportStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class PaymentFilter(str, Enum):
    ALL = "all"
    PAID = "paid"
    UNPAID = "unpaid"


# =============================================================================
# Line-level Results
# =============================================================================

class ResolvedLine(CanonicalBase):
    """One Stage-1 line with its canonical quantity, price and amount."""
    order_id: str
    product: str
    entity_type: Optional[EntityType] = None
    entity_id: Optional[str] = None
    quantity_kg: Decimal = Decimal("0")
    boxes: int = 0
    source: QuantitySource = QuantitySource.NONE
    driver_name: Optional[str] = None
    price_per_kg: Decimal = Decimal("0")
    amount: Decimal = Decimal("0")
    pricing_pending: bool = False


class DriverLine(CanonicalBase):
    """A Stage-3 routing line placed in a driver bucket."""
    product: str
    labour: Optional[str] = None
    gross_weight: Optional[str] = None
    weight_kg: Decimal = Decimal("0")
    ct: Optional[str] = None
    packages: int = 0
    packing_type: Optional[str] = None
    quantity_kg: Decimal = Decimal("0")
    quantity_source: QuantitySource = QuantitySource.NONE
    price_per_kg: Decimal = Decimal("0")
    amount: Decimal = Decimal("0")
    pricing_pending: bool = False
    airport_name: Optional[str] = None
    airport_location: Optional[str] = None
    status: Optional[str] = None


class DriverBucket(CanonicalBase):
    """All lines moved by one driver, with totals."""
    index: int
    driver_name: str
    driver_id: Optional[str] = None
    vehicle_number: Optional[str] = None
    airport_name: Optional[str] = None
    lines: List[DriverLine] = Field(default_factory=list)
    total_weight: Decimal = Decimal("0")
    total_packages: int = 0
    total_amount: Decimal = Decimal("0")


class EntityAmount(CanonicalBase):
    """Money owed to one farmer/supplier/third party for one order."""
    order_id: str
    entity_type: Optional[EntityType] = None
    entity_id: Optional[str] = None
    entity_name: str = UNKNOWN_ENTITY_LABEL
    products: List[str] = Field(default_factory=list)
    products_display: str = ""
    order_date: Optional[datetime] = None
    quantity_kg: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    payment_status: str = "Unpaid"
    pricing_pending: bool = False
    lines: List[ResolvedLine] = Field(default_factory=list)


# =============================================================================
# Bills and Statements
# =============================================================================

class BillLine(CanonicalBase):
    serial_no: int
    order_id: str
    date: Optional[datetime] = None
    product: str
    unit: str
    quantity: Decimal = Decimal("0")
    quantity_kg: Decimal = Decimal("0")
    price: Decimal = Decimal("0")
    amount: Decimal = Decimal("0")
    paid_amount: Decimal = Decimal("0")
    outstanding_amount: Decimal = Decimal("0")
    remarks: str = ""


class BillStatement(CanonicalBase):
    """Bill lines for one entity plus the statement header totals."""
    entity_type: EntityType
    entity_id: str
    entity_name: str = UNKNOWN_ENTITY_LABEL
    billing_count: int = 0
    total_amount: Decimal = Decimal("0")
    paid_amount: Decimal = Decimal("0")
    outstanding_amount: Decimal = Decimal("0")
    lines: List[BillLine] = Field(default_factory=list)


class EntityHistory(CanonicalBase):
    """Per-order amounts for one entity over a date window."""
    entity_type: EntityType
    entity_id: str
    entity_name: str = UNKNOWN_ENTITY_LABEL
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    payment_filter: PaymentFilter = PaymentFilter.ALL
    entries: List[EntityAmount] = Field(default_factory=list)
    total_amount: Decimal = Decimal("0")
    paid_amount: Decimal = Decimal("0")
    pending_amount: Decimal = Decimal("0")


class DriverExpenseSheet(CanonicalBase):
    """Packaging, labour and transport costs for one driver bucket."""
    driver_name: str
    vehicle_number: Optional[str] = None
    box_5kg_count: int = 0
    thermo_box_count: int = 0
    net_bag_count: int = 0
    box_10kg_count: int = 0
    box_cost: Decimal = Decimal("0")
    labour_names: List[str] = Field(default_factory=list)
    labour_rate: Decimal = Decimal("0")
    labour_cost: Decimal = Decimal("0")
    pickup_cost: Decimal = Decimal("0")
    tape_paper_cost: Decimal = Decimal("0")
    driver_wage: Decimal = Decimal("0")
    total_expenses: Decimal = Decimal("0")
    total_weight: Decimal = Decimal("0")
    tare_weight: Decimal = Decimal("0")
    net_weight: Decimal = Decimal("0")
    veg_total: Decimal = Decimal("0")
    grand_total: Decimal = Decimal("0")
    grand_total_per_kg: Decimal = Decimal("0")


# =============================================================================
# Order and Batch Results
# =============================================================================

class OrderReport(CanonicalBase):
    """Reconciled view of one order."""
    order_id: str
    status: ReportStatus = ReportStatus.SUCCESS
    check_status: str = "PASS"
    customer_name: Optional[str] = None
    order_date: Optional[datetime] = None
    payment_status: str = "Unpaid"
    missing_stages: List[int] = Field(default_factory=list)
    malformed_stages: List[int] = Field(default_factory=list)
    resolved_lines: List[ResolvedLine] = Field(default_factory=list)
    entity_amounts: List[EntityAmount] = Field(default_factory=list)
    driver_buckets: List[DriverBucket] = Field(default_factory=list)
    checks: List[Dict] = Field(default_factory=list)
    grand_total: Decimal = Decimal("0")


class OrderOutcome(CanonicalBase):
    order_id: str
    status: ReportStatus
    report: Optional[OrderReport] = None
    error: Optional[str] = None
    attempts: int = 0


class BatchResult(CanonicalBase):
    """Best-effort result of a multi-order run."""
    batch_id: str
    outcomes: List[OrderOutcome] = Field(default_factory=list)
    cancelled: List[str] = Field(default_factory=list)

    def by_status(self, status: ReportStatus) -> List[OrderOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def succeeded(self) -> List[OrderOutcome]:
        return self.by_status(ReportStatus.SUCCESS)

    @property
    def partial(self) -> List[OrderOutcome]:
        return self.by_status(ReportStatus.PARTIAL)

    @property
    def failed(self) -> List[OrderOutcome]:
        return self.by_status(ReportStatus.FAILED)

    def summary(self) -> Dict[str, int]:
        return {
            "success": len(self.succeeded),
            "partial": len(self.partial),
            "failed": len(self.failed),
            "cancelled": len(self.cancelled),
        }
