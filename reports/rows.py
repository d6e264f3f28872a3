"""Export rows for spreadsheet and PDF renderers.

Every row is a dict of display strings keyed by column header, in column
order. Renderers only lay the cells out; no arithmetic happens there.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from models.reports import (
    PENDING_PRICING_LABEL,
    BillLine,
    DriverBucket,
    DriverExpenseSheet,
    EntityAmount,
)

Row = Dict[str, str]

ENTITY_COLUMNS = ["Order ID", "Entity ID", "Entity Name", "Products", "Date", "Amount", "Payment Status"]
DRIVER_COLUMNS = [
    "Driver No", "Driver", "Product", "Gross Weight(kg)", "Labour", "CT", "Packages",
    "Price/kg", "Amount", "Airport Name", "Airport Location", "Status",
]
BILL_COLUMNS = ["S.No", "Date", "Product", "Unit", "Quantity", "Price", "Amount", "Paid", "Outstanding", "Remarks"]
EXPENSE_COLUMNS = ["Item", "Quantity", "Rate", "Amount"]

EMPTY = "-"


def format_date(value: Optional[datetime]) -> str:
    """dd/mm/yyyy, or "-" when unknown."""
    return value.strftime("%d/%m/%Y") if value else EMPTY


def format_amount(value: Decimal) -> str:
    return f"{value:.2f}"


def format_quantity(value: Decimal) -> str:
    if value == value.to_integral_value():
        return str(value.quantize(Decimal("1")))
    return f"{value.normalize():f}"


def _text(value: Optional[str]) -> str:
    return value if value else EMPTY


# =============================================================================
# Entity Rows
# =============================================================================

def entity_rows(amounts: Iterable[EntityAmount]) -> List[Row]:
    rows = []
    for amount in amounts:
        rows.append({
            "Order ID": amount.order_id,
            "Entity ID": _text(amount.entity_id),
            "Entity Name": amount.entity_name,
            "Products": amount.products_display or EMPTY,
            "Date": format_date(amount.order_date),
            "Amount": PENDING_PRICING_LABEL if amount.pricing_pending and amount.total_amount == 0
            else format_amount(amount.total_amount),
            "Payment Status": amount.payment_status,
        })
    return rows


# =============================================================================
# Driver Rows
# =============================================================================

def driver_rows(buckets: Iterable[DriverBucket]) -> List[Row]:
    """One row per routing line, then a total row per driver."""
    rows = []
    for bucket in buckets:
        for line in bucket.lines:
            rows.append({
                "Driver No": str(bucket.index),
                "Driver": bucket.driver_name,
                "Product": line.product,
                "Gross Weight(kg)": format_quantity(line.weight_kg),
                "Labour": _text(line.labour),
                "CT": _text(line.ct),
                "Packages": str(line.packages),
                "Price/kg": PENDING_PRICING_LABEL if line.pricing_pending else format_amount(line.price_per_kg),
                "Amount": PENDING_PRICING_LABEL if line.pricing_pending else format_amount(line.amount),
                "Airport Name": _text(line.airport_name),
                "Airport Location": _text(line.airport_location),
                "Status": _text(line.status),
            })
        rows.append({
            "Driver No": str(bucket.index),
            "Driver": bucket.driver_name,
            "Product": "TOTAL",
            "Gross Weight(kg)": format_quantity(bucket.total_weight),
            "Labour": "",
            "CT": "",
            "Packages": str(bucket.total_packages),
            "Price/kg": "",
            "Amount": format_amount(bucket.total_amount),
            "Airport Name": _text(bucket.airport_name),
            "Airport Location": "",
            "Status": "",
        })
    return rows


# =============================================================================
# Bill Rows
# =============================================================================

def bill_rows(lines: Iterable[BillLine]) -> List[Row]:
    rows = []
    for line in lines:
        rows.append({
            "S.No": str(line.serial_no),
            "Date": format_date(line.date),
            "Product": line.product,
            "Unit": line.unit,
            "Quantity": format_quantity(line.quantity),
            "Price": format_amount(line.price),
            "Amount": format_amount(line.amount),
            "Paid": format_amount(line.paid_amount),
            "Outstanding": format_amount(line.outstanding_amount),
            "Remarks": line.remarks,
        })
    return rows


# =============================================================================
# Expense Rows
# =============================================================================

def expense_rows(sheet: DriverExpenseSheet, rates=None) -> List[Row]:
    """Expense sheet as Item / Quantity / Rate / Amount rows.

    Packaging rows are only emitted for box kinds that were used.
    """
    rows = []

    def add(item: str, quantity: str, rate: str, amount: Decimal):
        rows.append({"Item": item, "Quantity": quantity, "Rate": rate, "Amount": format_amount(amount)})

    if rates is not None:
        for label, count, rate in (
            ("10 KG BOX", sheet.box_10kg_count, rates.box_10kg),
            ("05 KG BOX", sheet.box_5kg_count, rates.box_5kg),
            ("THERMO BOX", sheet.thermo_box_count, rates.thermo_box),
            ("NET BAG", sheet.net_bag_count, rates.net_bag),
        ):
            if count > 0:
                add(label, str(count), format_amount(rate), count * rate)

    labour = "LABOUR"
    if sheet.labour_names:
        labour = f"LABOUR ({', '.join(sheet.labour_names)})"
    add(labour, str(len(sheet.labour_names)), format_amount(sheet.labour_rate), sheet.labour_cost)
    add("PICKUP", "", "", sheet.pickup_cost)
    add("TAPE & PAPER", "", "", sheet.tape_paper_cost)
    add("DRIVER WAGE", "", "", sheet.driver_wage)
    add("TOTAL EXPENSES", "", "", sheet.total_expenses)
    add("VEG TOTAL", format_quantity(sheet.total_weight), "", sheet.veg_total)
    add("GRAND TOTAL", "", "", sheet.grand_total)
    rows.append({
        "Item": f"GRAND TOTAL PER KG (NET {format_quantity(sheet.net_weight.quantize(Decimal('1')))}kg)",
        "Quantity": "",
        "Rate": "",
        "Amount": str(sheet.grand_total_per_kg),
    })
    return rows
