"""Stage-4 pricing and line amounts."""

from decimal import Decimal, ROUND_HALF_UP
from typing import NamedTuple, Optional, Sequence

from models.canonical import Stage4Item
from stages.normalize import find_product

ZERO = Decimal("0")
CENTS = Decimal("0.01")


class PriceResolution(NamedTuple):
    price_per_kg: Decimal
    amount: Decimal
    pricing_pending: bool


def to_money(value: Decimal) -> Decimal:
    """Round a monetary amount to 2 places, half up."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def price_for(product: str, stage4_items: Sequence[Stage4Item]) -> Optional[Decimal]:
    """Final price per kg from Stage 4, or None when the product is unpriced."""
    row = find_product(product, stage4_items)
    if row is None:
        return None
    return row.final_price


def compute_amount(
    product: str,
    resolved_quantity_kg: Decimal,
    stage4_items: Sequence[Stage4Item],
) -> PriceResolution:
    """Price a resolved quantity.

    A product with no Stage-4 row is pending pricing: price and amount are
    zero and reports show "Pending pricing" instead of an amount.
    """
    price = price_for(product, stage4_items)
    if price is None:
        return PriceResolution(ZERO, to_money(ZERO), True)
    return PriceResolution(price, to_money(price * resolved_quantity_kg), False)
