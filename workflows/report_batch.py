"""Multi-order report runner.

Builds reports for many orders concurrently on one event loop:
- the directory is loaded once and shared read-only by every order
- at most `settings.max_concurrency` orders are in flight
- each order is fetched (with retry) and reconciled independently;
  a failed order becomes a "failed" outcome, never a failed batch
- setting `cancel_event` stops new fetches; unfinished orders are
  reported as cancelled and their partial work is discarded

Outcomes are returned in input order regardless of completion order.
"""

import asyncio
import time
import uuid
from typing import List, Optional, Sequence, Tuple

from activities.report import BatchCancelled, Sleep, process_order
from connectors.order_store import (
    OrderStore,
    RetryConfig,
    StoreUnavailableError,
    load_directory,
)
from core.config import ReportSettings
from core.observability.logging import get_logger, log_batch_event, with_correlation
from core.observability.metrics import record_order_cancelled, record_processing_time
from models.canonical import Directory
from models.reports import BatchResult, OrderOutcome

logger = get_logger(__name__)


def new_batch_id() -> str:
    return f"batch-{uuid.uuid4().hex[:12]}"


async def _load_directory(store: OrderStore, retry: RetryConfig, sleep: Sleep) -> Directory:
    """Directory lookup tables, retried like order fetches."""
    for attempt in range(retry.max_attempts):
        try:
            return await load_directory(store)
        except StoreUnavailableError as e:
            if attempt + 1 >= retry.max_attempts:
                raise
            delay = retry.get_delay(attempt)
            logger.warning(f"Loading directory failed ({e}), retrying in {delay:.1f}s")
            await sleep(delay)
    raise StoreUnavailableError("Loading directory failed")


async def run_report_batch(
    order_ids: Sequence[str],
    store: OrderStore,
    settings: Optional[ReportSettings] = None,
    cancel_event: Optional[asyncio.Event] = None,
    batch_id: Optional[str] = None,
    sleep: Sleep = asyncio.sleep,
) -> BatchResult:
    """Build reports for a batch of orders.

    Args:
        order_ids: Orders to report on (duplicates are processed twice)
        store: Order store to read from
        settings: Concurrency and retry settings (defaults when omitted)
        cancel_event: Set to stop the batch early
        batch_id: Identifier for logs and artifacts (generated when omitted)
        sleep: Backoff sleep (tests pass a no-op)

    Returns:
        BatchResult with one outcome per finished order, in input order,
        plus the ids of cancelled orders

    Raises:
        StoreUnavailableError: The directory could not be loaded
    """
    settings = settings or ReportSettings()
    batch_id = batch_id or new_batch_id()
    retry = RetryConfig.from_settings(settings)
    result = BatchResult(batch_id=batch_id)

    if not order_ids:
        return result

    with with_correlation(batch_id=batch_id):
        started = time.perf_counter()
        log_batch_event(
            f"Batch {batch_id} started: {len(order_ids)} order(s), concurrency {settings.max_concurrency}",
            order_count=len(order_ids),
        )

        directory = await _load_directory(store, retry, sleep)
        semaphore = asyncio.Semaphore(settings.max_concurrency)

        async def run_one(order_id: str) -> Tuple[str, Optional[OrderOutcome]]:
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    record_order_cancelled(order_id)
                    return order_id, None
                try:
                    outcome = await process_order(store, order_id, directory, retry, cancel_event, sleep)
                except BatchCancelled:
                    record_order_cancelled(order_id, started=True)
                    return order_id, None
                return order_id, outcome

        results: List[Tuple[str, Optional[OrderOutcome]]] = await asyncio.gather(
            *(run_one(str(order_id)) for order_id in order_ids)
        )

        for order_id, outcome in results:
            if outcome is None:
                result.cancelled.append(order_id)
            else:
                result.outcomes.append(outcome)

        duration_ms = (time.perf_counter() - started) * 1000
        record_processing_time("batch", duration_ms)
        counts = result.summary()
        log_batch_event(
            f"Batch {batch_id} finished: {counts['success']} success, {counts['partial']} partial, "
            f"{counts['failed']} failed, {counts['cancelled']} cancelled",
            duration_ms=round(duration_ms, 1),
            **counts,
        )
        return result
