"""Report builders.

Entity and driver reports for one order, bills and order history for one
entity across orders, driver expense sheets, and the row layouts used by
the spreadsheet/PDF renderers.
"""

from reports.builder import (
    build_driver_report,
    build_entity_report,
    resolve_lines,
)
from reports.bills import build_bill_rows, build_bill_statement
from reports.history import build_entity_history
from reports.expenses import ExpenseRates, build_driver_expenses
from reports.rows import (
    BILL_COLUMNS,
    DRIVER_COLUMNS,
    ENTITY_COLUMNS,
    EXPENSE_COLUMNS,
    bill_rows,
    driver_rows,
    entity_rows,
    expense_rows,
)

__all__ = [
    "build_driver_report",
    "build_entity_report",
    "resolve_lines",
    "build_bill_rows",
    "build_bill_statement",
    "build_entity_history",
    "ExpenseRates",
    "build_driver_expenses",
    "BILL_COLUMNS",
    "DRIVER_COLUMNS",
    "ENTITY_COLUMNS",
    "EXPENSE_COLUMNS",
    "bill_rows",
    "driver_rows",
    "entity_rows",
    "expense_rows",
]
