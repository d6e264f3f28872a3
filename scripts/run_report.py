"""Build fulfillment reports from a JSON snapshot of the order store.

Commands:
    batch     Reconcile orders concurrently and write JSON artifacts
    entity    Order history of one farmer / supplier / third party
    bill      Bill statement of one entity across all its orders
    drivers   Driver report (and expense sheets) of one order

Examples:
    python scripts/run_report.py batch --snapshot snapshot.json --out artifacts
    python scripts/run_report.py bill --snapshot snapshot.json --type farmer --id 12
    python scripts/run_report.py drivers --snapshot snapshot.json --order ORD-1 --expenses
"""

import argparse
import asyncio
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Sequence

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from connectors.memory_store import InMemoryOrderStore
from connectors.order_store import (
    CATALOG_DRIVER_RATES,
    CATALOG_LABOUR_RATES,
    CATALOG_STOCK,
    load_bundles,
    load_catalogs,
    load_directory,
)
from core.config import ReportSettings
from core.observability.logging import configure_logging
from core.observability.metrics import get_metrics
from reports.bills import build_bill_statement
from reports.builder import build_driver_report
from reports.expenses import ExpenseRates, build_driver_expenses
from reports.history import build_entity_history
from reports.rows import (
    BILL_COLUMNS,
    DRIVER_COLUMNS,
    ENTITY_COLUMNS,
    EXPENSE_COLUMNS,
    bill_rows,
    driver_rows,
    entity_rows,
    expense_rows,
    format_amount,
)
from stages.parsers import parse_order_stages
from storage.artifacts import write_batch_artifacts
from workflows.report_batch import run_report_batch

REPO_ROOT = Path(__file__).resolve().parents[1]
ARTIFACTS_DIR = REPO_ROOT / "artifacts"


# =============================================================================
# Output
# =============================================================================

def print_rows(rows: List[Dict[str, str]], columns: Sequence[str], fmt: str) -> None:
    if fmt == "json":
        print(json.dumps(rows, indent=2, ensure_ascii=False))
        return
    widths = {c: max([len(c)] + [len(r.get(c, "")) for r in rows]) for c in columns}
    print("  ".join(c.ljust(widths[c]) for c in columns))
    print("  ".join("-" * widths[c] for c in columns))
    for row in rows:
        print("  ".join(row.get(c, "").ljust(widths[c]) for c in columns))


def _parse_date(value: str) -> datetime:
    return datetime.strptime(value, "%Y-%m-%d")


# =============================================================================
# Commands
# =============================================================================

async def cmd_batch(args, store: InMemoryOrderStore, settings: ReportSettings) -> int:
    order_ids = args.orders or [o.order_id for o in await store.list_orders()]
    result = await run_report_batch(order_ids, store, settings)
    refs = write_batch_artifacts(result, args.out)

    print("=" * 60)
    print(f"Batch {result.batch_id}")
    print("=" * 60)
    for outcome in result.outcomes:
        total = format_amount(outcome.report.grand_total) if outcome.report else "-"
        suffix = f"  ({outcome.error})" if outcome.error else ""
        print(f"  {outcome.order_id:<20} {outcome.status.value:<8} {total:>12}{suffix}")
    for order_id in result.cancelled:
        print(f"  {order_id:<20} cancelled")
    print(f"\nSummary: {result.summary()}")
    print(f"Artifacts: {refs.summary_ref.storage_uri if refs.summary_ref else '-'}")
    return 0 if not result.failed else 1


async def cmd_entity(args, store: InMemoryOrderStore, settings: ReportSettings) -> int:
    directory = await load_directory(store)
    bundles = await load_bundles(store)
    history = build_entity_history(
        args.type,
        args.id,
        bundles,
        directory,
        from_date=args.from_date,
        to_date=args.to_date,
        payment=args.payment,
    )
    if args.format != "json":
        print(f"{history.entity_name} ({history.entity_type.value} {history.entity_id})")
    print_rows(entity_rows(history.entries), ENTITY_COLUMNS, args.format)
    if args.format != "json":
        print(
            f"\nTotal {format_amount(history.total_amount)}  "
            f"Paid {format_amount(history.paid_amount)}  "
            f"Pending {format_amount(history.pending_amount)}"
        )
    return 0


async def cmd_bill(args, store: InMemoryOrderStore, settings: ReportSettings) -> int:
    directory = await load_directory(store)
    bundles = await load_bundles(store)
    statement = build_bill_statement(args.type, args.id, bundles, directory)
    if args.format != "json":
        print(f"{statement.entity_name}  BILLING COUNTS: {statement.billing_count}  "
              f"TOTAL: {format_amount(statement.total_amount)}")
    print_rows(bill_rows(statement.lines), BILL_COLUMNS, args.format)
    if args.format != "json":
        print(
            f"\nPaid {format_amount(statement.paid_amount)}  "
            f"Outstanding {format_amount(statement.outstanding_amount)}"
        )
    return 0


async def cmd_drivers(args, store: InMemoryOrderStore, settings: ReportSettings) -> int:
    directory = await load_directory(store)
    bundle = await store.get_bundle(args.order)
    parsed = parse_order_stages(bundle.stages)
    buckets = build_driver_report(args.order, parsed, directory)
    print_rows(driver_rows(buckets), DRIVER_COLUMNS, args.format)

    if args.expenses:
        catalogs = await load_catalogs(store)
        rates = ExpenseRates.from_catalog(
            catalogs[CATALOG_STOCK], catalogs[CATALOG_LABOUR_RATES], catalogs[CATALOG_DRIVER_RATES]
        )
        for bucket in buckets:
            sheet = build_driver_expenses(bucket, rates, parsed.stage2.labour_wages)
            print(f"\nExpenses: {sheet.driver_name} ({sheet.vehicle_number or '-'})")
            print_rows(expense_rows(sheet, rates), EXPENSE_COLUMNS, args.format)
    return 0


COMMANDS = {
    "batch": cmd_batch,
    "entity": cmd_entity,
    "bill": cmd_bill,
    "drivers": cmd_drivers,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Produce fulfillment reports from an order store snapshot")
    parser.add_argument("--snapshot", required=True, type=Path, help="JSON snapshot of the order store")
    parser.add_argument("--format", choices=["table", "json"], default="table", help="Row output format")
    sub = parser.add_subparsers(dest="command", required=True)

    batch = sub.add_parser("batch", help="Reconcile orders and write JSON artifacts")
    batch.add_argument("--orders", nargs="*", help="Order ids (default: every order in the snapshot)")
    batch.add_argument("--out", type=Path, default=ARTIFACTS_DIR, help="Artifact directory")
    batch.add_argument("--concurrency", type=int, default=None, help="Orders in flight at once")

    for name in ("entity", "bill"):
        cmd = sub.add_parser(name, help=f"{name.title()} report of one entity")
        cmd.add_argument("--type", required=True, choices=["farmer", "supplier", "thirdParty"])
        cmd.add_argument("--id", required=True, help="Entity id (fid / sid / tpid)")
        if name == "entity":
            cmd.add_argument("--from", dest="from_date", type=_parse_date, default=None, help="YYYY-MM-DD")
            cmd.add_argument("--to", dest="to_date", type=_parse_date, default=None, help="YYYY-MM-DD")
            cmd.add_argument("--payment", choices=["all", "paid", "unpaid"], default="all")

    drivers = sub.add_parser("drivers", help="Driver report of one order")
    drivers.add_argument("--order", required=True, help="Order id")
    drivers.add_argument("--expenses", action="store_true", help="Also print per-driver expense sheets")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    overrides = {}
    if getattr(args, "concurrency", None):
        overrides["max_concurrency"] = args.concurrency
    settings = ReportSettings.from_env(**overrides)
    configure_logging(level=settings.log_level_number, json_format=settings.log_json, force=True)

    store = InMemoryOrderStore.from_file(args.snapshot)
    code = asyncio.run(COMMANDS[args.command](args, store, settings))

    if args.command == "batch" and args.format != "json":
        orders = get_metrics().get_summary()["orders"]
        print(f"Metrics: {orders}")
    return code


if __name__ == "__main__":
    sys.exit(main())
