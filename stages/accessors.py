"""Ordered field accessors for stage payloads.

Stage forms have been rewritten several times and the same value may be
stored under different keys. Each fallback chain below is an explicit,
ordered list of accessor functions; `first_present` walks a chain and
returns the first value that is present.

A value counts as *not present* when it is None, an empty string, zero
or False. This matches the way the stage forms write "no value".

Usage:
    from stages.accessors import S4_PRICE, first_present

    price = first_present(row, S4_PRICE)
"""

from decimal import Decimal
from typing import Any, Callable, List, Mapping, Optional, Sequence


Accessor = Callable[[Any], Any]


# =============================================================================
# Primitives
# =============================================================================

def is_present(value: Any) -> bool:
    """True unless value is None, "", 0 or False."""
    if value is None or value is False:
        return False
    if isinstance(value, str):
        return value != ""
    if isinstance(value, (int, float, Decimal)):
        return value != 0
    return True


def field(name: str) -> Accessor:
    """Accessor reading one key from a mapping."""
    def _get(record: Any) -> Any:
        if isinstance(record, Mapping):
            return record.get(name)
        return None
    _get.__name__ = f"field_{name}"
    _get.key = name
    return _get


def path(*names: str) -> Accessor:
    """Accessor reading a nested key (e.g. reviewData -> productRows)."""
    def _get(record: Any) -> Any:
        current = record
        for name in names:
            if not isinstance(current, Mapping):
                return None
            current = current.get(name)
        return current
    _get.__name__ = "path_" + "_".join(names)
    _get.key = ".".join(names)
    return _get


def first_present(record: Any, accessors: Sequence[Accessor], default: Any = None) -> Any:
    """Return the first present value produced by the accessor chain."""
    for accessor in accessors:
        value = accessor(record)
        if is_present(value):
            return value
    return default


def first_defined(record: Any, accessors: Sequence[Accessor], default: Any = None) -> Any:
    """Like first_present but only skips None (zero is a real value)."""
    for accessor in accessors:
        value = accessor(record)
        if value is not None:
            return value
    return default


def chain_keys(accessors: Sequence[Accessor]) -> List[Optional[str]]:
    """Keys read by a chain, in priority order."""
    return [getattr(a, "key", None) for a in accessors]


# =============================================================================
# Assignment Record (one record carries all four stages)
# =============================================================================

RECORD_STAGE1_ITEMS = [field("product_assignments"), field("stage1_data"), field("productAssignments")]
RECORD_STAGE1_ROUTES = [field("delivery_routes"), field("deliveryRoutes")]
RECORD_STAGE1_SUMMARY = [field("stage1_summary_data"), field("summary_data"), field("summaryData")]
RECORD_STAGE2 = [field("stage2_data")]
RECORD_STAGE2_SUMMARY = [field("stage2_summary_data")]
RECORD_STAGE3 = [field("stage3_data")]
RECORD_STAGE4 = [field("stage4_data")]


def record_stage_status(stage_number: int) -> List[Accessor]:
    return [field(f"stage{stage_number}_status"), field(f"stage{stage_number}Status")]


# =============================================================================
# Stage 1: collection assignment
# =============================================================================

S1_PRODUCT = [field("product"), field("productName"), field("product_name")]
S1_ENTITY_TYPE = [field("entityType"), field("entity_type")]
S1_ENTITY_ID = [field("entityId"), field("entity_id")]
S1_ENTITY_NAME = [field("entityName"), field("assignedTo"), field("entity_name")]
S1_QUANTITY = [field("assignedQty"), field("assigned_qty")]
S1_BOXES = [field("assignedBoxes"), field("assigned_boxes")]
S1_PRICE = [field("price")]
S1_PLACE = [field("place")]

S1_PRODUCT_ASSIGNMENTS = [field("productAssignments"), field("product_assignments")]
S1_SUMMARY_DRIVERS = [field("driverAssignments")]

ROUTE_ID = [field("routeId"), field("id")]
ROUTE_PRODUCT = [field("product"), field("productName")]
ROUTE_LOCATION = [field("location"), field("place")]
ROUTE_QUANTITY = [field("quantity"), field("qty")]
ROUTE_DRIVER = [field("driver"), field("driverName")]
ROUTE_LABOUR = [field("labour"), field("labourName")]
ROUTE_STATUS = [field("status")]

DRIVER_GROUP_NAME = [field("driver"), field("driverName")]
DRIVER_GROUP_ENTRIES = [field("assignments"), field("products")]
DRIVER_ENTRY_PRODUCT = [field("product"), field("productName")]
DRIVER_ENTRY_ENTITY_TYPE = [field("entityType"), field("entity_type")]
DRIVER_ENTRY_ENTITY_NAME = [field("entityName"), field("entity_name")]
DRIVER_ENTRY_LABOUR = [field("labour"), field("labourName")]


# =============================================================================
# Stage 2: packaging and quality
# =============================================================================

S2_ITEMS = [field("productAssignments"), field("stage2Assignments"), field("assignments")]
S2_PRODUCT = [field("product"), field("productName")]
S2_WASTAGE = [field("wastage"), field("wastageKg")]
S2_REUSE = [field("reuse"), field("reuseKg")]
S2_LABOUR = [field("labourName"), field("labourNames"), field("labour")]
S2_PICKED_QUANTITY = [field("pickedQuantity"), field("picked_quantity"), field("quantity")]
S2_TAPE_COLOR = [field("tapeColor"), field("tape_color")]
S2_TAPE_QUANTITY = [field("tapeQuantity"), field("tape_quantity")]

S2_SUMMARY_LABOUR_GROUPS = [field("labourAssignments")]
S2_SUMMARY_LABOUR_PRICES = [field("labourPrices")]
LABOUR_GROUP_NAME = [field("labour")]
LABOUR_GROUP_ENTRIES = [field("assignments")]
LABOUR_ENTRY_PRODUCT = [field("product")]
LABOUR_PRICE_NAME = [field("labourName"), field("labour")]
# totalAmount includes excess pay; a recorded zero is kept
LABOUR_PRICE_WAGE = [field("totalAmount"), field("labourWage")]


# =============================================================================
# Stage 3: delivery routing
# =============================================================================

S3_ITEMS = [field("products")]
S3_AIRPORT_GROUPS = [path("summaryData", "airportGroups")]
S3_DRIVER_ASSIGNMENTS = [path("summaryData", "driverAssignments")]
S3_PRODUCT = [field("product"), field("productName")]
S3_GROSS_WEIGHT = [field("grossWeight"), field("gross_weight")]
S3_LABOUR = [field("labour"), field("labourName")]
S3_CT = [field("ct"), field("CT")]
S3_PACKAGES = [field("noOfPkgs"), field("no_of_pkgs")]
S3_AIRPORT_NAME = [field("airportName"), field("airport_name")]
S3_AIRPORT_LOCATION = [field("airportLocation"), field("airport_location")]
S3_SELECTED_DRIVER = [field("selectedDriver"), field("selectedDriverId"), field("selected_driver_id")]
S3_PACKING_TYPE = [field("packingType"), field("packing_type")]
S3_STATUS = [field("status")]

AIRPORT_GROUP_PRODUCTS = [field("products")]
AIRPORT_PRODUCT_NAME = [field("product"), field("productName")]
AIRPORT_PRODUCT_DRIVER = [field("driver")]


# =============================================================================
# Stage 4: pricing
# =============================================================================

S4_ROWS = [path("reviewData", "productRows"), field("productRows")]
S4_PRODUCT = [field("product_name"), field("product"), field("productName")]
S4_PRICE = [field("finalPrice"), field("final_price"), field("price")]
S4_MARKET_PRICE = [field("marketPrice"), field("market_price")]
S4_NET_WEIGHT = [field("net_weight"), field("netWeight")]
S4_QUANTITY = [field("quantity")]
S4_ASSIGNED_TO = [field("assignedTo"), field("assigned_to")]


# =============================================================================
# Directory records
# =============================================================================

DRIVER_ID = [field("did"), field("id")]
DRIVER_CODE = [field("driver_id"), field("driverId")]
DRIVER_NAME = [field("driver_name"), field("driverName"), field("name")]
DRIVER_VEHICLE = [field("vehicle_number"), field("vehicleNumber")]
DRIVER_MOBILE = [field("mobile_number"), field("mobileNumber")]

ENTITY_ID = [field("fid"), field("sid"), field("tpid"), field("id")]
ENTITY_NAME = [field("farmer_name"), field("supplier_name"), field("third_party_name"), field("name")]
ENTITY_PHONE = [field("phone"), field("mobile_number")]


# =============================================================================
# Order records
# =============================================================================

ORDER_ID = [field("oid"), field("order_id"), field("orderId")]
ORDER_CUSTOMER = [field("customer_name"), field("customerName")]
ORDER_DATE = [field("order_received_date"), field("orderDate")]
ORDER_CREATED_AT = [field("createdAt"), field("created_at")]
ORDER_PAYMENT_STATUS = [field("payment_status"), field("paymentStatus")]
ORDER_ITEMS = [field("items")]
ORDER_ITEM_PRODUCT = [field("product_name"), field("productName"), field("product")]
ORDER_ITEM_TOTAL_PRICE = [field("total_price"), field("totalPrice")]
ORDER_ITEM_NET_WEIGHT = [field("net_weight"), field("netWeight"), field("quantity")]
ORDER_ITEM_BOXES = [field("num_boxes"), field("no_of_boxes")]
