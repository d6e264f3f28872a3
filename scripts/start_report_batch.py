"""Start a ReportBatchWorkflow on Temporal.

Connects with the TEMPORAL_* settings, starts the workflow on the report
task queue, waits for it and prints the per-order outcome.
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core.config import ReportSettings
from core.observability.logging import configure_logging, get_logger
from temporal_client import get_temporal_client
from workflows.report_batch import new_batch_id
from workflows.report_batch_workflow import ReportBatchInput, ReportBatchWorkflow

logger = get_logger("scripts.start_report_batch")


async def start_report_batch(order_ids, settings: ReportSettings) -> dict:
    """Start the batch workflow and wait for its result."""
    batch_id = new_batch_id()
    client = await get_temporal_client(settings)
    logger.info(f"Connected to Temporal: {client.namespace}")

    logger.info(f"Starting ReportBatchWorkflow {batch_id} on task queue '{settings.task_queue}'...")
    handle = await client.start_workflow(
        ReportBatchWorkflow.run,
        ReportBatchInput(
            batch_id=batch_id,
            order_ids=list(order_ids),
            max_concurrency=settings.max_concurrency,
        ),
        id=f"report-{batch_id}",
        task_queue=settings.task_queue,
    )
    logger.info(f"Workflow started: {handle.id}")
    return await handle.result()


def main():
    parser = argparse.ArgumentParser(description="Start an order report batch on Temporal")
    parser.add_argument("order_ids", nargs="+", help="Orders to report on")
    args = parser.parse_args()

    settings = ReportSettings.from_env()
    configure_logging(level=settings.log_level_number, json_format=settings.log_json, force=True)

    result = asyncio.run(start_report_batch(args.order_ids, settings))

    print("=" * 60)
    print(f"Batch {result['batch_id']}")
    print("=" * 60)
    for outcome in result["outcomes"]:
        report = outcome.get("report") or {}
        print(f"  {outcome['order_id']:<20} {outcome['status']:<8} {report.get('grand_total', '-'):>12}")
    for order_id in result["cancelled"]:
        print(f"  {order_id:<20} cancelled")


if __name__ == "__main__":
    main()
