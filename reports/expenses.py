"""Driver expense sheet.

For one driver bucket: packaging material, labour, pickup, tape and
paper, and the driver's wage, set against the value of the vegetables
carried. The per-kg figure divides the grand total by the net weight,
estimated by taking box tare off the gross weight.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Mapping, Optional, Sequence

from models.canonical import parse_number
from models.reports import DriverBucket, DriverExpenseSheet
from reconciliation.pricing import to_money
from stages import accessors as acc
from stages.normalize import split_names

ZERO = Decimal("0")

# Tare per box in kg
TARE_10KG_BOX = Decimal("1.5")
TARE_5KG_BOX = Decimal("1.0")
TARE_THERMO_BOX = Decimal("0.5")

STOCK_NAME = [acc.field("product_name"), acc.field("item_name")]
STOCK_PRICE = [acc.field("average_price"), acc.field("unit_price"), acc.field("price")]
RATE_AMOUNT = [acc.field("amount")]
RATE_STATUS = [acc.field("status")]
LABOUR_RATE_TYPE = [acc.field("labourType"), acc.field("labour_type")]
DRIVER_RATE_DELIVERY_TYPE = [acc.field("deliveryType"), acc.field("delivery_type")]


@dataclass
class ExpenseRates:
    """Unit costs used by the expense sheet."""
    box_10kg: Decimal = Decimal("80")
    box_5kg: Decimal = Decimal("45")
    thermo_box: Decimal = Decimal("145")
    net_bag: Decimal = Decimal("0")
    labour_rate: Decimal = Decimal("0")
    pickup: Decimal = Decimal("0")
    tape: Decimal = Decimal("40")
    paper: Decimal = Decimal("390")
    driver_wage: Decimal = Decimal("0")

    @property
    def tape_and_paper(self) -> Decimal:
        return self.tape + self.paper

    @classmethod
    def from_catalog(
        cls,
        stock_items: Sequence[Mapping[str, Any]] = (),
        labour_rates: Sequence[Mapping[str, Any]] = (),
        driver_rates: Sequence[Mapping[str, Any]] = (),
    ) -> "ExpenseRates":
        """Derive rates from the inventory and rate catalogues.

        Stock prices are found by case-insensitive substring match on the
        item name; anything not found keeps its default.
        """
        defaults = cls()

        def stock_price(*queries: str) -> Decimal:
            for query in queries:
                for item in stock_items:
                    name = str(acc.first_present(item, STOCK_NAME, default="")).lower()
                    if query.lower() in name:
                        price = parse_number(acc.first_present(item, STOCK_PRICE))
                        if price > 0:
                            return price
                        break
            return ZERO

        return cls(
            box_10kg=stock_price("10 kg box", "10kg box") or defaults.box_10kg,
            box_5kg=stock_price("5 kg box") or defaults.box_5kg,
            thermo_box=stock_price("thermo") or defaults.thermo_box,
            net_bag=stock_price("net bag") or defaults.net_bag,
            labour_rate=_normal_labour_rate(labour_rates),
            pickup=stock_price("pickup") or defaults.pickup,
            tape=stock_price("tape") or defaults.tape,
            paper=stock_price("paper") or defaults.paper,
            driver_wage=_driver_wage(driver_rates),
        )


def _is_active(rate: Mapping[str, Any]) -> bool:
    return acc.first_present(rate, RATE_STATUS) == "Active"


def _normal_labour_rate(labour_rates: Sequence[Mapping[str, Any]]) -> Decimal:
    for rate in labour_rates:
        kind = str(acc.first_present(rate, LABOUR_RATE_TYPE, default="")).lower()
        if kind == "normal" and _is_active(rate):
            return parse_number(acc.first_present(rate, RATE_AMOUNT))
    return ZERO


def _driver_wage(driver_rates: Sequence[Mapping[str, Any]]) -> Decimal:
    """First active airport rate, else the first active rate."""
    active = [r for r in driver_rates if _is_active(r)]
    for rate in active:
        kind = str(acc.first_present(rate, DRIVER_RATE_DELIVERY_TYPE, default="")).lower()
        if "airport" in kind:
            return parse_number(acc.first_present(rate, RATE_AMOUNT))
    if active:
        return parse_number(acc.first_present(active[0], RATE_AMOUNT))
    return ZERO


# =============================================================================
# Packaging
# =============================================================================

def packaging_kind(product: str, packing_type: Optional[str]) -> str:
    """One of "5kg", "thermo", "bag" or "10kg"."""
    name = (product or "").lower()
    kind = (packing_type or "").lower()
    if any(marker in text for text in (kind, name) for marker in ("5kg", "5 kg")):
        return "5kg"
    if "thermo" in kind or "thermo" in name:
        return "thermo"
    if "bag" in kind or "bag" in name:
        return "bag"
    return "10kg"


def unique_labour(bucket: DriverBucket) -> List[str]:
    names: List[str] = []
    for line in bucket.lines:
        for name in split_names(line.labour):
            if name not in names:
                names.append(name)
    return names


# =============================================================================
# Expense Sheet
# =============================================================================

def build_driver_expenses(
    bucket: DriverBucket,
    rates: Optional[ExpenseRates] = None,
    labour_wages: Optional[Mapping[str, Decimal]] = None,
) -> DriverExpenseSheet:
    """Expense sheet for one driver bucket.

    Args:
        bucket: Driver bucket from the driver report
        rates: Unit costs (defaults when omitted)
        labour_wages: Per-labourer wages recorded in Stage 2; labourers
            not listed are paid the normal labour rate

    Returns:
        DriverExpenseSheet
    """
    rates = rates or ExpenseRates()
    labour_wages = labour_wages or {}

    counts: Dict[str, int] = {"5kg": 0, "thermo": 0, "bag": 0, "10kg": 0}
    for line in bucket.lines:
        counts[packaging_kind(line.product, line.packing_type)] += line.packages

    box_cost = (
        counts["10kg"] * rates.box_10kg
        + counts["5kg"] * rates.box_5kg
        + counts["thermo"] * rates.thermo_box
        + counts["bag"] * rates.net_bag
    )

    labour_names = unique_labour(bucket)
    labour_cost = sum((labour_wages.get(name, rates.labour_rate) for name in labour_names), ZERO)
    labour_rate = (
        (labour_cost / len(labour_names)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        if labour_names else rates.labour_rate
    )

    total_expenses = box_cost + labour_cost + rates.pickup + rates.tape_and_paper + rates.driver_wage
    veg_total = bucket.total_amount
    grand_total = veg_total + total_expenses

    tare = counts["10kg"] * TARE_10KG_BOX + counts["5kg"] * TARE_5KG_BOX + counts["thermo"] * TARE_THERMO_BOX
    net_weight = bucket.total_weight - tare
    per_kg = (
        (grand_total / net_weight).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        if net_weight > 0 else ZERO
    )

    return DriverExpenseSheet(
        driver_name=bucket.driver_name,
        vehicle_number=bucket.vehicle_number,
        box_5kg_count=counts["5kg"],
        thermo_box_count=counts["thermo"],
        net_bag_count=counts["bag"],
        box_10kg_count=counts["10kg"],
        box_cost=to_money(box_cost),
        labour_names=labour_names,
        labour_rate=to_money(labour_rate),
        labour_cost=to_money(labour_cost),
        pickup_cost=to_money(rates.pickup),
        tape_paper_cost=to_money(rates.tape_and_paper),
        driver_wage=to_money(rates.driver_wage),
        total_expenses=to_money(total_expenses),
        total_weight=bucket.total_weight,
        tare_weight=tare,
        net_weight=net_weight,
        veg_total=to_money(veg_total),
        grand_total=to_money(grand_total),
        grand_total_per_kg=per_kg,
    )
