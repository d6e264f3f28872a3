"""Canonical order and stage models.

These models are the typed view of the semi-structured records kept by the
order-management store. Parsing of the raw stage payloads lives in /stages/;
the models here only carry normalized values.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.functional_validators import BeforeValidator
from typing_extensions import Annotated


# =============================================================================
# Value Parsers (handle the loose formats written by the stage forms)
# =============================================================================

_NUMBER_PREFIX = re.compile(r"^\d*\.?\d*")


def parse_number(value) -> Decimal:
    """Parse a quantity, weight or price into a Decimal.

    Unit suffixes and other non-numeric characters are stripped
    ("120kg" -> 120, "Rs. 45" -> 45). Anything unparseable is zero.
    """
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    cleaned = re.sub(r"[^0-9.]", "", str(value))
    match = _NUMBER_PREFIX.match(cleaned)
    text = match.group(0) if match else ""
    if text in ("", "."):
        return Decimal("0")
    try:
        return Decimal(text)
    except InvalidOperation:
        return Decimal("0")


def _parse_int(value) -> int:
    return int(parse_number(value))


def _parse_text(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        value = ", ".join(str(v) for v in value if v not in (None, ""))
    text = str(value).strip()
    return text or None


def _parse_id(value) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip() or None


def _parse_datetime(value):
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    s = str(value).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(s)
    except ValueError:
        pass
    for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%m/%d/%Y"):
        try:
            return datetime.strptime(s, fmt)
        except ValueError:
            continue
    return None


DecimalValue = Annotated[Decimal, BeforeValidator(parse_number)]
IntValue = Annotated[int, BeforeValidator(_parse_int)]
TextValue = Annotated[Optional[str], BeforeValidator(_parse_text)]
IdValue = Annotated[Optional[str], BeforeValidator(_parse_id)]
DateTimeValue = Annotated[Optional[datetime], BeforeValidator(_parse_datetime)]


# =============================================================================
# Base Model
# =============================================================================

class CanonicalBase(BaseModel):
    """Base model for all canonical data structures."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# =============================================================================
# Enums
# =============================================================================

class EntityType(str, Enum):
    """Source of supply for a Stage-1 line."""
    FARMER = "farmer"
    SUPPLIER = "supplier"
    THIRD_PARTY = "thirdParty"

    @classmethod
    def parse(cls, value) -> Optional["EntityType"]:
        if value is None:
            return None
        if isinstance(value, EntityType):
            return value
        key = re.sub(r"[\s_\-]", "", str(value)).lower()
        return _ENTITY_TYPE_KEYS.get(key)


_ENTITY_TYPE_KEYS = {
    "farmer": EntityType.FARMER,
    "farmers": EntityType.FARMER,
    "supplier": EntityType.SUPPLIER,
    "suppliers": EntityType.SUPPLIER,
    "thirdparty": EntityType.THIRD_PARTY,
    "thirdparties": EntityType.THIRD_PARTY,
}


class StageStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"

    @classmethod
    def parse(cls, value) -> "StageStatus":
        if isinstance(value, StageStatus):
            return value
        if value is not None and str(value).strip().lower() in ("completed", "complete", "done"):
            return cls.COMPLETED
        return cls.PENDING


PAID_STATUSES = {"paid", "completed"}


# =============================================================================
# Orders
# =============================================================================

class OrderItem(CanonicalBase):
    """A product line on the customer order."""
    product_name: TextValue = None
    total_price: DecimalValue = Decimal("0")
    net_weight: DecimalValue = Decimal("0")
    num_boxes: IntValue = 0


class Order(CanonicalBase):
    """Customer order as returned by the order-management store."""
    order_id: str = Field(..., description="Immutable order identifier (oid)")
    customer_name: TextValue = None
    order_date: DateTimeValue = None
    created_at: DateTimeValue = None
    payment_status: TextValue = None
    items: List[OrderItem] = Field(default_factory=list)

    @property
    def is_paid(self) -> bool:
        return (self.payment_status or "").lower() in PAID_STATUSES

    @property
    def payment_label(self) -> str:
        return "Paid" if self.is_paid else "Unpaid"

    @property
    def report_date(self) -> Optional[datetime]:
        """Date shown on reports: received date, else creation time."""
        return self.order_date or self.created_at


# =============================================================================
# Stage Assignments
# =============================================================================

class StageAssignment(CanonicalBase):
    """Raw payload of one workflow stage for one order."""
    order_id: str
    stage_number: int = Field(..., ge=1, le=4)
    status: StageStatus = StageStatus.PENDING
    payload: Any = None
    sections: Dict[str, Any] = Field(
        default_factory=dict,
        description="Sub-payloads stored beside the main one (delivery_routes, summary)",
    )


class OrderStages(CanonicalBase):
    """The (up to) four stage assignments of one order."""
    order_id: str
    stage1: Optional[StageAssignment] = None
    stage2: Optional[StageAssignment] = None
    stage3: Optional[StageAssignment] = None
    stage4: Optional[StageAssignment] = None

    def get(self, stage_number: int) -> Optional[StageAssignment]:
        return getattr(self, f"stage{stage_number}")

    def payload(self, stage_number: int) -> Any:
        assignment = self.get(stage_number)
        return assignment.payload if assignment else None


# =============================================================================
# Stage Items
# =============================================================================

class Stage1Item(CanonicalBase):
    """Collection assignment: who supplies how much of a product."""
    product: str
    entity_type: Optional[EntityType] = None
    entity_id: IdValue = None
    entity_name: TextValue = None
    assigned_qty: DecimalValue = Decimal("0")
    assigned_boxes: IntValue = 0
    price: DecimalValue = Decimal("0")
    place: TextValue = None

    @property
    def entity_key(self) -> tuple:
        return (self.entity_type, self.entity_id)


class DeliveryRoute(CanonicalBase):
    """Stage-1 collection route (pickup location to driver)."""
    route_id: IdValue = None
    product: TextValue = None
    location: TextValue = None
    quantity: DecimalValue = Decimal("0")
    driver: TextValue = None
    labour: TextValue = None
    status: TextValue = None


class Stage2Item(CanonicalBase):
    """Packaging and quality record for a product."""
    product: str
    wastage_kg: DecimalValue = Decimal("0")
    reuse_kg: DecimalValue = Decimal("0")
    labour_name: TextValue = None
    picked_quantity: DecimalValue = Decimal("0")
    tape_color: TextValue = None
    tape_quantity: TextValue = None


class LabourAssignment(CanonicalBase):
    """Stage-2 summary: one labourer and the products they packed."""
    labour: str
    products: List[str] = Field(default_factory=list)


class Stage3Item(CanonicalBase):
    """Delivery routing line."""
    product: str
    gross_weight: TextValue = None
    gross_weight_kg: DecimalValue = Decimal("0")
    labour: TextValue = None
    ct: TextValue = None
    no_of_pkgs: IntValue = 0
    airport_name: TextValue = None
    airport_location: TextValue = None
    selected_driver_id: IdValue = None
    packing_type: TextValue = None
    status: TextValue = None


class AirportGroupProduct(CanonicalBase):
    product: str
    driver: TextValue = None


class AirportGroup(CanonicalBase):
    """Products (and their drivers) delivered to one airport."""
    airport_code: str
    products: List[AirportGroupProduct] = Field(default_factory=list)


class Stage4Item(CanonicalBase):
    """Final pricing row."""
    product: str
    market_price: DecimalValue = Decimal("0")
    final_price: DecimalValue = Decimal("0")
    net_weight: DecimalValue = Decimal("0")
    quantity: DecimalValue = Decimal("0")
    assigned_to: TextValue = None


# =============================================================================
# Directory (drivers and supply entities)
# =============================================================================

class Driver(CanonicalBase):
    id: str = Field(..., description="Internal driver id (did)")
    code: IdValue = Field(default=None, description="Human driver code (driver_id)")
    name: str
    vehicle_number: TextValue = None
    mobile_number: TextValue = None


class EntityRecord(CanonicalBase):
    id: str
    display_name: str
    phone: TextValue = None


class Directory(CanonicalBase):
    """Lookup tables for driver and entity display names."""
    drivers: List[Driver] = Field(default_factory=list)
    entities: Dict[EntityType, List[EntityRecord]] = Field(default_factory=dict)

    def find_driver(self, driver_id: Optional[str]) -> Optional[Driver]:
        if not driver_id:
            return None
        key = str(driver_id)
        for driver in self.drivers:
            if driver.id == key or (driver.code and driver.code == key):
                return driver
        return None

    def find_driver_by_name(self, name: str) -> Optional[Driver]:
        for driver in self.drivers:
            if driver.name == name:
                return driver
        return None

    def entity_name(self, entity_type: Optional[EntityType], entity_id: Optional[str]) -> Optional[str]:
        if entity_type is None or entity_id is None:
            return None
        for record in self.entities.get(entity_type, []):
            if record.id == str(entity_id):
                return record.display_name
        return None


# =============================================================================
# Parsed Stage Payloads
# =============================================================================

class DriverAssignmentEntry(CanonicalBase):
    product: str
    entity_type: Optional[EntityType] = None
    entity_name: TextValue = None
    labour: TextValue = None


class DriverAssignmentGroup(CanonicalBase):
    """Summary block: one driver and the products handed to them."""
    driver: str
    assignments: List[DriverAssignmentEntry] = Field(default_factory=list)


class StageData(CanonicalBase):
    """Common fields of a parsed stage payload.

    `malformed` is set when the raw payload was present but could not be
    decoded; the items are then empty.
    """
    malformed: bool = False

    @property
    def is_empty(self) -> bool:
        return not getattr(self, "items", None)


class Stage1Data(StageData):
    items: List[Stage1Item] = Field(default_factory=list)
    delivery_routes: List[DeliveryRoute] = Field(default_factory=list)
    driver_assignments: List[DriverAssignmentGroup] = Field(default_factory=list)


class Stage2Data(StageData):
    items: List[Stage2Item] = Field(default_factory=list)
    labour_assignments: List[LabourAssignment] = Field(default_factory=list)
    labour_wages: Dict[str, Decimal] = Field(default_factory=dict)

    def labour_map(self) -> Dict[str, str]:
        """Product -> labour name(s).

        Item labour wins. The summary's labour groups are only consulted
        when no item carries a labourer, and several labourers on one
        product are joined with ", ".
        """
        mapping: Dict[str, str] = {}
        for item in self.items:
            if item.labour_name:
                mapping[item.product] = item.labour_name
        if mapping:
            return mapping

        grouped: Dict[str, List[str]] = {}
        for assignment in self.labour_assignments:
            for product in assignment.products:
                names = grouped.setdefault(product, [])
                if assignment.labour not in names:
                    names.append(assignment.labour)
        return {product: ", ".join(names) for product, names in grouped.items()}


class Stage3Data(StageData):
    items: List[Stage3Item] = Field(default_factory=list)
    airport_groups: List[AirportGroup] = Field(default_factory=list)
    driver_assignments: List[DriverAssignmentGroup] = Field(default_factory=list)


class Stage4Data(StageData):
    items: List[Stage4Item] = Field(default_factory=list)


class OrderBundle(CanonicalBase):
    """An order together with its stage assignments."""
    order: Order
    stages: OrderStages
