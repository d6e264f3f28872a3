"""Driver grouping engine.

Places every Stage-3 routing line in a driver bucket. A line's driver is
taken from, in order:

1. the airport group entry for the product, when it names a driver
2. the directory name for the line's selected driver id
   ("Driver Not Found (ID: <id>)" when the id is unknown)
3. "Unassigned"

Buckets keep first-seen order; their 1-based index is used for report
numbering, so the order must not depend on dict iteration.
"""

from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from models.canonical import AirportGroup, Directory, Driver, Stage3Item, Stage4Item
from models.reports import UNASSIGNED_DRIVER_LABEL, DriverBucket, DriverLine
from reconciliation.pricing import compute_amount, to_money
from reconciliation.quantity import resolve_quantity
from stages.normalize import match_product


def driver_not_found_label(driver_id: str) -> str:
    return f"Driver Not Found (ID: {driver_id})"


class DriverBuckets:
    """Ordered collection of driver buckets keyed by driver name."""

    def __init__(self):
        self._buckets: List[DriverBucket] = []
        self._positions: Dict[str, int] = {}

    def bucket_for(self, driver_name: str, driver: Optional[Driver] = None) -> DriverBucket:
        """Return the bucket for driver_name, creating it at the end if new."""
        position = self._positions.get(driver_name)
        if position is not None:
            return self._buckets[position]
        bucket = DriverBucket(
            index=len(self._buckets) + 1,
            driver_name=driver_name,
            driver_id=driver.id if driver else None,
            vehicle_number=driver.vehicle_number if driver else None,
        )
        self._positions[driver_name] = len(self._buckets)
        self._buckets.append(bucket)
        return bucket

    def names(self) -> List[str]:
        return [b.driver_name for b in self._buckets]

    def to_list(self) -> List[DriverBucket]:
        return list(self._buckets)

    def __len__(self) -> int:
        return len(self._buckets)

    def __iter__(self) -> Iterator[DriverBucket]:
        return iter(list(self._buckets))

    def __contains__(self, driver_name: object) -> bool:
        return driver_name in self._positions

    def __getitem__(self, driver_name: str) -> DriverBucket:
        return self._buckets[self._positions[driver_name]]


# =============================================================================
# Driver Resolution
# =============================================================================

def airport_group_driver(product: str, airport_groups: Sequence[AirportGroup]) -> Optional[str]:
    """Driver named for the product by any airport group, if any."""
    for group in airport_groups:
        for entry in group.products:
            if match_product(product, entry.product) and entry.driver:
                return entry.driver
    return None


def resolve_driver(
    item: Stage3Item,
    airport_groups: Sequence[AirportGroup],
    directory: Optional[Directory],
) -> Tuple[str, Optional[Driver]]:
    """Resolve the display name (and directory record) of a line's driver."""
    directory = directory or Directory()

    name = airport_group_driver(item.product, airport_groups)
    if name:
        return name, directory.find_driver_by_name(name)

    if item.selected_driver_id:
        driver = directory.find_driver(item.selected_driver_id)
        if driver is not None:
            return driver.name, driver
        return driver_not_found_label(item.selected_driver_id), None

    return UNASSIGNED_DRIVER_LABEL, None


# =============================================================================
# Grouping
# =============================================================================

def group_by_driver(
    stage3_items: Sequence[Stage3Item],
    airport_groups: Sequence[AirportGroup],
    directory: Optional[Directory],
    stage4_items: Sequence[Stage4Item] = (),
    labour_map: Optional[Mapping[str, str]] = None,
) -> DriverBuckets:
    """Partition Stage-3 lines into driver buckets.

    Args:
        stage3_items: Parsed Stage-3 lines, in payload order
        airport_groups: Parsed airport groups
        directory: Driver directory (None behaves as empty)
        stage4_items: Stage-4 rows used to price each line
        labour_map: Stage-2 product -> labour fallback

    Returns:
        DriverBuckets in first-seen order
    """
    labour_map = labour_map or {}
    buckets = DriverBuckets()

    for item in stage3_items:
        driver_name, driver = resolve_driver(item, airport_groups, directory)
        bucket = buckets.bucket_for(driver_name, driver)

        # Stage-4 net weight when priced, otherwise this line's gross weight
        quantity = resolve_quantity(item.product, stage3_items=[item], stage4_items=stage4_items)
        price = compute_amount(item.product, quantity.quantity_kg, stage4_items)

        line = DriverLine(
            product=item.product,
            labour=item.labour or labour_map.get(item.product),
            gross_weight=item.gross_weight,
            weight_kg=item.gross_weight_kg,
            ct=item.ct,
            packages=item.no_of_pkgs,
            packing_type=item.packing_type,
            quantity_kg=quantity.quantity_kg,
            quantity_source=quantity.source,
            price_per_kg=price.price_per_kg,
            amount=price.amount,
            pricing_pending=price.pricing_pending,
            airport_name=item.airport_name,
            airport_location=item.airport_location,
            status=item.status,
        )
        bucket.lines.append(line)
        bucket.total_weight += item.gross_weight_kg
        bucket.total_packages += item.no_of_pkgs
        bucket.total_amount = to_money(bucket.total_amount + price.amount)
        if not bucket.airport_name and item.airport_name:
            bucket.airport_name = item.airport_name

    return buckets
