"""Worker for order report batches.

Polls the report task queue and runs ReportBatchWorkflow together with
its activities. The activities read from the HTTP order store configured
by ORDER_STORE_URL / ORDER_STORE_TOKEN, or from a JSON snapshot when
--snapshot is given (local development).

Run with --queue <name> to override REPORT_TASK_QUEUE.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from temporalio.worker import Worker

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from activities.report import build_order_report, configure_order_store, fetch_directory
from connectors.http_store import HttpOrderStore
from connectors.memory_store import InMemoryOrderStore
from core.config import ReportSettings
from core.observability.logging import configure_logging, get_logger
from core.observability.metrics import get_metrics
from temporal_client import get_temporal_client
from workflows.report_batch_workflow import ReportBatchWorkflow

logger = get_logger("workers.worker")

ACTIVITIES = [fetch_directory, build_order_report]
WORKFLOWS = [ReportBatchWorkflow]


async def run_worker(queue: Optional[str] = None, snapshot: Optional[str] = None):
    """Start a worker listening on the report task queue.

    Args:
        queue: Task queue to poll (default: REPORT_TASK_QUEUE)
        snapshot: Path to a JSON snapshot to serve instead of the HTTP store
    """
    settings = ReportSettings.from_env()
    configure_logging(level=settings.log_level_number, json_format=settings.log_json, force=True)

    if snapshot:
        store = InMemoryOrderStore.from_file(snapshot)
        logger.info(f"Serving orders from snapshot {snapshot}")
    else:
        store = HttpOrderStore.from_settings(settings)
        logger.info(f"Serving orders from {settings.store_url}")

    client = None
    try:
        await store.connect()
        configure_order_store(store)

        client = await get_temporal_client(settings)
        logger.info(f"Connected to Temporal: {client.namespace}")

        task_queue = queue or settings.task_queue
        worker = Worker(
            client,
            task_queue=task_queue,
            workflows=WORKFLOWS,
            activities=ACTIVITIES,
        )
        logger.info(
            f"Worker created for queue '{task_queue}': "
            f"{len(WORKFLOWS)} workflow(s), {len(ACTIVITIES)} activities"
        )
        logger.info("Worker running... (Ctrl+C to stop)")
        await worker.run()

    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    except Exception as e:
        logger.error(f"Worker error: {e}", exc_info=True)
        raise
    finally:
        configure_order_store(None)
        await store.disconnect()
        logger.info("Worker metrics", extra_fields=get_metrics().get_summary())


def main():
    """Entry point for worker with CLI args."""
    parser = argparse.ArgumentParser(description="Order report Temporal worker")
    parser.add_argument(
        "--queue", "-q",
        default=None,
        help="Task queue to poll (default: REPORT_TASK_QUEUE or fulfillment-reports)",
    )
    parser.add_argument(
        "--snapshot", "-s",
        default=None,
        help="Serve orders from a JSON snapshot instead of the HTTP order store",
    )

    args = parser.parse_args()
    asyncio.run(run_worker(queue=args.queue, snapshot=args.snapshot))


if __name__ == "__main__":
    main()
