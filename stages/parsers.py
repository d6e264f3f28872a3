"""Stage payload parsers.

Each parser turns one stage's semi-structured payload into typed items
plus the sub-collections that stage owns:

- parse_stage1 -> items, delivery_routes, driver_assignments
- parse_stage2 -> items, labour_assignments, labour_wages
- parse_stage3 -> items, airport_groups, driver_assignments
- parse_stage4 -> items (productRows, possibly under reviewData)

Payloads may arrive already decoded or as JSON text, and nested
sub-collections may themselves be JSON text. Malformed text never raises:
the parser returns empty data with `malformed=True` and logs a warning.
"""

import json
from dataclasses import dataclass, field as dataclass_field
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from core.observability.logging import get_logger
from core.observability.metrics import record_malformed_payload
from models.canonical import (
    AirportGroup,
    AirportGroupProduct,
    DeliveryRoute,
    DriverAssignmentEntry,
    DriverAssignmentGroup,
    EntityType,
    LabourAssignment,
    OrderStages,
    Stage1Data,
    Stage1Item,
    Stage2Data,
    Stage2Item,
    Stage3Data,
    Stage3Item,
    Stage4Data,
    Stage4Item,
    parse_number,
)
from stages import accessors as acc
from stages.accessors import first_defined, first_present

logger = get_logger(__name__)


class MalformedPayload(ValueError):
    """Raised internally when a payload cannot be decoded."""


# =============================================================================
# Decoding Helpers
# =============================================================================

def decode_payload(raw: Any, what: str = "payload") -> Any:
    """Decode JSON text; pass decoded structures through.

    Returns None for absent or blank input.

    Raises:
        MalformedPayload: text that is not valid JSON
    """
    if raw is None:
        return None
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise MalformedPayload(f"{what} is not valid JSON: {e.msg} at {e.pos}") from e
    return raw


def _as_list(value: Any, what: str) -> List[Any]:
    value = decode_payload(value, what)
    if value is None:
        return []
    if isinstance(value, dict):
        return list(value.values())
    if isinstance(value, list):
        return value
    raise MalformedPayload(f"{what} must be a list, got {type(value).__name__}")


def _as_dict(value: Any, what: str) -> Dict[str, Any]:
    value = decode_payload(value, what)
    if value is None:
        return {}
    if isinstance(value, dict):
        return value
    raise MalformedPayload(f"{what} must be an object, got {type(value).__name__}")


def _records(values: List[Any]) -> List[Dict[str, Any]]:
    return [v for v in values if isinstance(v, dict)]


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _malformed(stage: int, error: Exception, data_cls):
    logger.warning(
        f"Stage {stage} payload malformed, treating stage as empty: {error}",
        extra_fields={"stage": stage},
    )
    record_malformed_payload(stage)
    return data_cls(malformed=True)


# =============================================================================
# Shared Sub-collections
# =============================================================================

def _parse_driver_groups(raw: Any, what: str) -> List[DriverAssignmentGroup]:
    groups = []
    for record in _records(_as_list(raw, what)):
        driver = _text(first_present(record, acc.DRIVER_GROUP_NAME))
        if not driver:
            continue
        entries = []
        for entry in _records(_as_list(first_present(record, acc.DRIVER_GROUP_ENTRIES), what)):
            product = _text(first_present(entry, acc.DRIVER_ENTRY_PRODUCT))
            if not product:
                continue
            entries.append(DriverAssignmentEntry(
                product=product,
                entity_type=EntityType.parse(first_present(entry, acc.DRIVER_ENTRY_ENTITY_TYPE)),
                entity_name=first_present(entry, acc.DRIVER_ENTRY_ENTITY_NAME),
                labour=first_present(entry, acc.DRIVER_ENTRY_LABOUR),
            ))
        groups.append(DriverAssignmentGroup(driver=driver, assignments=entries))
    return groups


# =============================================================================
# Stage 1: Collection Assignment
# =============================================================================

def _parse_stage1_item(record: Dict[str, Any]) -> Optional[Stage1Item]:
    product = _text(first_present(record, acc.S1_PRODUCT))
    if not product:
        return None
    return Stage1Item(
        product=product,
        entity_type=EntityType.parse(first_present(record, acc.S1_ENTITY_TYPE)),
        entity_id=first_present(record, acc.S1_ENTITY_ID),
        entity_name=first_present(record, acc.S1_ENTITY_NAME),
        assigned_qty=first_present(record, acc.S1_QUANTITY),
        assigned_boxes=first_present(record, acc.S1_BOXES),
        price=first_present(record, acc.S1_PRICE),
        place=first_present(record, acc.S1_PLACE),
    )


def _parse_route(record: Dict[str, Any]) -> DeliveryRoute:
    return DeliveryRoute(
        route_id=first_present(record, acc.ROUTE_ID),
        product=first_present(record, acc.ROUTE_PRODUCT),
        location=first_present(record, acc.ROUTE_LOCATION),
        quantity=first_present(record, acc.ROUTE_QUANTITY),
        driver=first_present(record, acc.ROUTE_DRIVER),
        labour=first_present(record, acc.ROUTE_LABOUR),
        status=first_present(record, acc.ROUTE_STATUS),
    )


def parse_stage1(raw: Any, delivery_routes: Any = None, summary: Any = None) -> Stage1Data:
    """Parse Stage-1 product assignments.

    Args:
        raw: list of product assignments, or an object holding
            productAssignments (and optionally deliveryRoutes/summaryData)
        delivery_routes: routes stored beside the assignments
        summary: Stage-1 summary holding driverAssignments

    Returns:
        Stage1Data (empty when the stage is absent or malformed)
    """
    try:
        decoded = decode_payload(raw, "stage 1 assignments")
        if isinstance(decoded, dict):
            if delivery_routes is None:
                delivery_routes = first_present(decoded, acc.RECORD_STAGE1_ROUTES)
            if summary is None:
                summary = first_present(decoded, acc.RECORD_STAGE1_SUMMARY)
            decoded = first_present(decoded, acc.S1_PRODUCT_ASSIGNMENTS)

        items = []
        for record in _records(_as_list(decoded, "stage 1 assignments")):
            item = _parse_stage1_item(record)
            if item is not None:
                items.append(item)

        routes = [_parse_route(r) for r in _records(_as_list(delivery_routes, "stage 1 delivery routes"))]

        summary_data = _as_dict(summary, "stage 1 summary")
        drivers = _parse_driver_groups(
            first_present(summary_data, acc.S1_SUMMARY_DRIVERS), "stage 1 driver assignments"
        )
    except (MalformedPayload, ValidationError) as e:
        return _malformed(1, e, Stage1Data)

    return Stage1Data(items=items, delivery_routes=routes, driver_assignments=drivers)


# =============================================================================
# Stage 2: Packaging and Quality
# =============================================================================

def _parse_stage2_item(record: Dict[str, Any]) -> Optional[Stage2Item]:
    product = _text(first_present(record, acc.S2_PRODUCT))
    if not product:
        return None
    return Stage2Item(
        product=product,
        wastage_kg=first_present(record, acc.S2_WASTAGE),
        reuse_kg=first_present(record, acc.S2_REUSE),
        labour_name=first_present(record, acc.S2_LABOUR),
        picked_quantity=first_present(record, acc.S2_PICKED_QUANTITY),
        tape_color=first_present(record, acc.S2_TAPE_COLOR),
        tape_quantity=first_present(record, acc.S2_TAPE_QUANTITY),
    )


def _parse_labour_groups(raw: Any) -> List[LabourAssignment]:
    groups = []
    for record in _records(_as_list(raw, "stage 2 labour assignments")):
        labour = _text(first_present(record, acc.LABOUR_GROUP_NAME))
        if not labour:
            continue
        products = []
        for entry in _records(_as_list(first_present(record, acc.LABOUR_GROUP_ENTRIES), "stage 2 labour assignments")):
            product = _text(first_present(entry, acc.LABOUR_ENTRY_PRODUCT))
            if product and product not in products:
                products.append(product)
        groups.append(LabourAssignment(labour=labour, products=products))
    return groups


def _parse_labour_wages(raw: Any) -> Dict[str, Decimal]:
    wages = {}
    for record in _records(_as_list(raw, "stage 2 labour prices")):
        name = _text(first_present(record, acc.LABOUR_PRICE_NAME))
        if name:
            wages[name] = parse_number(first_defined(record, acc.LABOUR_PRICE_WAGE))
    return wages


def parse_stage2(raw: Any, summary: Any = None) -> Stage2Data:
    """Parse Stage-2 packaging/quality records.

    Args:
        raw: stage2 data object (productAssignments / stage2Assignments /
            assignments) or a bare list of records
        summary: Stage-2 summary holding labourAssignments and labourPrices
    """
    try:
        decoded = decode_payload(raw, "stage 2 data")
        if isinstance(decoded, dict):
            if summary is None:
                summary = decoded.get("summaryData")
            decoded = first_present(decoded, acc.S2_ITEMS)

        items = []
        for record in _records(_as_list(decoded, "stage 2 assignments")):
            item = _parse_stage2_item(record)
            if item is not None:
                items.append(item)

        summary_data = _as_dict(summary, "stage 2 summary")
        labour_groups = _parse_labour_groups(first_present(summary_data, acc.S2_SUMMARY_LABOUR_GROUPS))
        labour_wages = _parse_labour_wages(first_present(summary_data, acc.S2_SUMMARY_LABOUR_PRICES))
    except (MalformedPayload, ValidationError) as e:
        return _malformed(2, e, Stage2Data)

    return Stage2Data(items=items, labour_assignments=labour_groups, labour_wages=labour_wages)


# =============================================================================
# Stage 3: Delivery Routing
# =============================================================================

def _parse_stage3_item(record: Dict[str, Any]) -> Optional[Stage3Item]:
    product = _text(first_present(record, acc.S3_PRODUCT))
    if not product:
        return None
    gross_weight = first_present(record, acc.S3_GROSS_WEIGHT)
    return Stage3Item(
        product=product,
        gross_weight=gross_weight,
        gross_weight_kg=gross_weight,
        labour=first_present(record, acc.S3_LABOUR),
        ct=first_present(record, acc.S3_CT),
        no_of_pkgs=first_present(record, acc.S3_PACKAGES),
        airport_name=first_present(record, acc.S3_AIRPORT_NAME),
        airport_location=first_present(record, acc.S3_AIRPORT_LOCATION),
        selected_driver_id=first_present(record, acc.S3_SELECTED_DRIVER),
        packing_type=first_present(record, acc.S3_PACKING_TYPE),
        status=first_present(record, acc.S3_STATUS),
    )


def _parse_airport_groups(raw: Any) -> List[AirportGroup]:
    """Airport groups keep the order in which the payload lists them."""
    decoded = decode_payload(raw, "stage 3 airport groups")
    if decoded is None:
        return []
    if isinstance(decoded, dict):
        pairs: List[Tuple[str, Any]] = list(decoded.items())
    elif isinstance(decoded, list):
        pairs = [(str(g.get("airportCode") or g.get("code") or i), g) for i, g in enumerate(_records(decoded))]
    else:
        raise MalformedPayload("stage 3 airport groups must be an object or list")

    groups = []
    for code, group in pairs:
        if not isinstance(group, dict):
            continue
        products = []
        for entry in _records(_as_list(first_present(group, acc.AIRPORT_GROUP_PRODUCTS), "stage 3 airport group products")):
            product = _text(first_present(entry, acc.AIRPORT_PRODUCT_NAME))
            if product:
                products.append(AirportGroupProduct(
                    product=product,
                    driver=first_present(entry, acc.AIRPORT_PRODUCT_DRIVER),
                ))
        groups.append(AirportGroup(airport_code=str(code), products=products))
    return groups


def parse_stage3(raw: Any) -> Stage3Data:
    """Parse Stage-3 delivery routing (products + summaryData)."""
    try:
        decoded = decode_payload(raw, "stage 3 data")
        if isinstance(decoded, list):
            decoded = {"products": decoded}
        decoded = _as_dict(decoded, "stage 3 data")

        items = []
        for record in _records(_as_list(first_present(decoded, acc.S3_ITEMS), "stage 3 products")):
            item = _parse_stage3_item(record)
            if item is not None:
                items.append(item)

        summary = _as_dict(decoded.get("summaryData"), "stage 3 summary")
        airport_groups = _parse_airport_groups(summary.get("airportGroups"))
        drivers = _parse_driver_groups(summary.get("driverAssignments"), "stage 3 driver assignments")
    except (MalformedPayload, ValidationError) as e:
        return _malformed(3, e, Stage3Data)

    return Stage3Data(items=items, airport_groups=airport_groups, driver_assignments=drivers)


# =============================================================================
# Stage 4: Pricing
# =============================================================================

def _parse_stage4_item(record: Dict[str, Any]) -> Optional[Stage4Item]:
    product = _text(first_present(record, acc.S4_PRODUCT))
    if not product:
        return None
    return Stage4Item(
        product=product,
        market_price=first_present(record, acc.S4_MARKET_PRICE),
        final_price=first_present(record, acc.S4_PRICE),
        net_weight=first_present(record, acc.S4_NET_WEIGHT),
        quantity=first_present(record, acc.S4_QUANTITY),
        assigned_to=first_present(record, acc.S4_ASSIGNED_TO),
    )


def parse_stage4(raw: Any) -> Stage4Data:
    """Parse Stage-4 pricing rows (reviewData.productRows or productRows)."""
    try:
        decoded = decode_payload(raw, "stage 4 data")
        if isinstance(decoded, dict):
            review = decoded.get("reviewData")
            if isinstance(review, str):
                decoded = dict(decoded, reviewData=_as_dict(review, "stage 4 review data"))
            decoded = first_present(decoded, acc.S4_ROWS)

        items = []
        for record in _records(_as_list(decoded, "stage 4 product rows")):
            item = _parse_stage4_item(record)
            if item is not None:
                items.append(item)
    except (MalformedPayload, ValidationError) as e:
        return _malformed(4, e, Stage4Data)

    return Stage4Data(items=items)


# =============================================================================
# All Stages of One Order
# =============================================================================

@dataclass
class ParsedStages:
    """Parsed data of all four stages plus which were absent or malformed."""
    stage1: Stage1Data = dataclass_field(default_factory=Stage1Data)
    stage2: Stage2Data = dataclass_field(default_factory=Stage2Data)
    stage3: Stage3Data = dataclass_field(default_factory=Stage3Data)
    stage4: Stage4Data = dataclass_field(default_factory=Stage4Data)
    missing: List[int] = dataclass_field(default_factory=list)
    malformed: List[int] = dataclass_field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.missing and not self.malformed


def parse_order_stages(stages: Optional[OrderStages]) -> ParsedStages:
    """Run the four parsers once over an order's stage assignments."""
    parsed = ParsedStages()
    if stages is None:
        parsed.missing = [1, 2, 3, 4]
        return parsed

    for number in (1, 2, 3, 4):
        assignment = stages.get(number)
        if assignment is None or assignment.payload is None:
            parsed.missing.append(number)
            continue
        sections = assignment.sections
        if number == 1:
            data = parse_stage1(
                assignment.payload,
                delivery_routes=sections.get("delivery_routes"),
                summary=sections.get("summary"),
            )
        elif number == 2:
            data = parse_stage2(assignment.payload, summary=sections.get("summary"))
        elif number == 3:
            data = parse_stage3(assignment.payload)
        else:
            data = parse_stage4(assignment.payload)
        if data.malformed:
            parsed.malformed.append(number)
        setattr(parsed, f"stage{number}", data)

    return parsed
