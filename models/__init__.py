"""Models Package.

Data models for the fulfillment reconciliation engine including:
- Canonical order, stage and directory models
- Report models (resolved lines, driver buckets, bills, batch results)
- Data reference models for artifact storage
"""

from models.canonical import (
    Order,
    OrderItem,
    EntityType,
    StageStatus,
    StageAssignment,
    OrderStages,
    OrderBundle,
    Stage1Item,
    Stage2Item,
    Stage3Item,
    Stage4Item,
    DeliveryRoute,
    LabourAssignment,
    AirportGroup,
    AirportGroupProduct,
    DriverAssignmentGroup,
    DriverAssignmentEntry,
    Stage1Data,
    Stage2Data,
    Stage3Data,
    Stage4Data,
    Driver,
    EntityRecord,
    Directory,
)

from models.reports import (
    QuantitySource,
    ReportStatus,
    PaymentFilter,
    ResolvedLine,
    DriverLine,
    DriverBucket,
    EntityAmount,
    BillLine,
    BillStatement,
    EntityHistory,
    DriverExpenseSheet,
    OrderReport,
    OrderOutcome,
    BatchResult,
)

from models.refs import (
    DataReference,
    BatchReportRefs,
)

__all__ = [
    # Canonical models
    "Order",
    "OrderItem",
    "EntityType",
    "StageStatus",
    "StageAssignment",
    "OrderStages",
    "OrderBundle",
    "Stage1Item",
    "Stage2Item",
    "Stage3Item",
    "Stage4Item",
    "DeliveryRoute",
    "LabourAssignment",
    "AirportGroup",
    "AirportGroupProduct",
    "DriverAssignmentGroup",
    "DriverAssignmentEntry",
    "Stage1Data",
    "Stage2Data",
    "Stage3Data",
    "Stage4Data",
    "Driver",
    "EntityRecord",
    "Directory",

    # Report models
    "QuantitySource",
    "ReportStatus",
    "PaymentFilter",
    "ResolvedLine",
    "DriverLine",
    "DriverBucket",
    "EntityAmount",
    "BillLine",
    "BillStatement",
    "EntityHistory",
    "DriverExpenseSheet",
    "OrderReport",
    "OrderOutcome",
    "BatchResult",

    # Reference models
    "DataReference",
    "BatchReportRefs",
]
