"""Quantity resolution across stages.

Exposes:
- resolve_quantity(product, stage1, stage2, stage3, stage4) -> QuantityResolution

Priority (first positive value wins):
1. Stage-1 assigned kg for the product (boxes are never added to kg)
2. Stage-4 net weight, falling back to the row's quantity
3. Stage-3 gross weight with the unit suffix stripped
4. Stage-2 picked quantity
otherwise 0 with source "none".
"""

from decimal import Decimal
from typing import NamedTuple, Sequence

from models.canonical import Stage1Item, Stage2Item, Stage3Item, Stage4Item
from models.reports import QuantitySource
from stages.normalize import find_product, match_product

ZERO = Decimal("0")


class QuantityResolution(NamedTuple):
    quantity_kg: Decimal
    source: QuantitySource


# =============================================================================
# Per-stage Lookups
# =============================================================================

def stage1_quantity(product: str, items: Sequence[Stage1Item]) -> Decimal:
    """Sum of assigned kg over the matching Stage-1 lines."""
    total = ZERO
    for item in items:
        if match_product(product, item.product):
            total += item.assigned_qty
    return total


def stage4_quantity(product: str, items: Sequence[Stage4Item]) -> Decimal:
    row = find_product(product, items)
    if row is None:
        return ZERO
    return row.net_weight if row.net_weight > 0 else row.quantity


def stage3_quantity(product: str, items: Sequence[Stage3Item]) -> Decimal:
    row = find_product(product, items)
    return row.gross_weight_kg if row is not None else ZERO


def stage2_quantity(product: str, items: Sequence[Stage2Item]) -> Decimal:
    row = find_product(product, items)
    return row.picked_quantity if row is not None else ZERO


# =============================================================================
# Resolver
# =============================================================================

def resolve_quantity(
    product: str,
    stage1_items: Sequence[Stage1Item] = (),
    stage2_items: Sequence[Stage2Item] = (),
    stage3_items: Sequence[Stage3Item] = (),
    stage4_items: Sequence[Stage4Item] = (),
) -> QuantityResolution:
    """Resolve the canonical kg quantity for a product.

    Args:
        product: Product label, matched exactly against every stage
        stage1_items: Stage-1 lines in scope (pass a single line to
            resolve that line on its own)
        stage2_items: Parsed Stage-2 items
        stage3_items: Parsed Stage-3 items
        stage4_items: Parsed Stage-4 rows

    Returns:
        QuantityResolution(quantity_kg, source); never raises for
        missing data
    """
    chain = (
        (QuantitySource.STAGE1, lambda: stage1_quantity(product, stage1_items)),
        (QuantitySource.STAGE4, lambda: stage4_quantity(product, stage4_items)),
        (QuantitySource.STAGE3, lambda: stage3_quantity(product, stage3_items)),
        (QuantitySource.STAGE2, lambda: stage2_quantity(product, stage2_items)),
    )
    for source, lookup in chain:
        quantity = lookup()
        if quantity > 0:
            return QuantityResolution(quantity, source)
    return QuantityResolution(ZERO, QuantitySource.NONE)
