"""Order history of one supply entity.

Lists the entity's amount on every order it supplied, newest first,
optionally limited to a date window and a payment state.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Sequence, Union

from models.canonical import Directory, EntityType, OrderBundle
from models.reports import EntityHistory, PaymentFilter
from reconciliation.pricing import to_money
from reports.bills import newest_first
from reports.builder import build_entity_report, entity_display_name
from stages.parsers import parse_order_stages

ZERO = Decimal("0")


def _as_date(value: Union[date, datetime, None]) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value


def _as_datetime(value: Union[date, datetime, None]) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)


def _in_window(day: Optional[date], from_date: Optional[date], to_date: Optional[date]) -> bool:
    if from_date is None and to_date is None:
        return True
    if day is None:
        return False
    if from_date is not None and day < from_date:
        return False
    if to_date is not None and day > to_date:
        return False
    return True


def build_entity_history(
    entity_type: Union[EntityType, str],
    entity_id,
    bundles: Sequence[OrderBundle],
    directory: Optional[Directory] = None,
    from_date: Union[date, datetime, None] = None,
    to_date: Union[date, datetime, None] = None,
    payment: Union[PaymentFilter, str] = PaymentFilter.ALL,
) -> EntityHistory:
    """Per-order EntityAmounts for one entity.

    Args:
        entity_type: farmer, supplier or thirdParty
        entity_id: Entity identifier
        bundles: Orders with their stages
        directory: Directory for the entity display name
        from_date: Inclusive lower bound on the order date
        to_date: Inclusive upper bound on the order date
        payment: all, paid or unpaid

    Returns:
        EntityHistory with totals over the selected orders
    """
    parsed_type = EntityType.parse(entity_type)
    if parsed_type is None:
        raise ValueError(f"Unknown entity type: {entity_type!r}")
    parsed_id = str(entity_id)
    payment = PaymentFilter(payment)
    start, end = _as_date(from_date), _as_date(to_date)

    history = EntityHistory(
        entity_type=parsed_type,
        entity_id=parsed_id,
        from_date=_as_datetime(from_date),
        to_date=_as_datetime(to_date),
        payment_filter=payment,
    )

    written_name = None
    for bundle in newest_first(bundles):
        order = bundle.order
        if payment == PaymentFilter.PAID and not order.is_paid:
            continue
        if payment == PaymentFilter.UNPAID and order.is_paid:
            continue
        if not _in_window(_as_date(order.report_date), start, end):
            continue

        parsed = parse_order_stages(bundle.stages)
        for amount in build_entity_report(order.order_id, parsed, directory, order):
            if (amount.entity_type, amount.entity_id) != (parsed_type, parsed_id):
                continue
            history.entries.append(amount)
            if written_name is None and amount.entity_name:
                written_name = amount.entity_name

    history.entity_name = entity_display_name(parsed_type, parsed_id, written_name, directory)
    history.total_amount = to_money(sum((e.total_amount for e in history.entries), ZERO))
    history.paid_amount = to_money(sum((e.total_amount for e in history.entries if e.payment_status == "Paid"), ZERO))
    history.pending_amount = to_money(history.total_amount - history.paid_amount)
    return history
