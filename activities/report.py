"""Order report activities.

The per-order unit of work shared by the asyncio batch runner and the
Temporal workflow: fetch the order and its assignment record (retrying
transient store failures), then reconcile it into an OrderReport.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple

from temporalio import activity

from connectors.order_store import (
    OrderNotFoundError,
    OrderStore,
    OrderStoreError,
    RetriesExhaustedError,
    RetryConfig,
    StoreUnavailableError,
    load_directory,
)
from core.observability.logging import (
    get_logger,
    log_activity_complete,
    log_activity_start,
    with_correlation,
)
from core.observability.metrics import (
    record_fetch_exhausted,
    record_fetch_retry,
    record_order_finished,
    record_order_started,
    record_processing_time,
)
from models.canonical import Directory, OrderBundle
from models.reports import OrderOutcome, ReportStatus
from reconciliation.engine import reconcile_order

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class BatchCancelled(Exception):
    """The batch was cancelled before this order finished."""


# =============================================================================
# Fetch with Retry
# =============================================================================

async def _wait(delay: float, cancel_event: Optional[asyncio.Event], sleep: Sleep) -> None:
    """Back off for `delay` seconds, returning early if the batch is cancelled."""
    if cancel_event is None:
        await sleep(delay)
        return
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return
    raise BatchCancelled()


async def fetch_order_bundle(
    store: OrderStore,
    order_id: str,
    retry: Optional[RetryConfig] = None,
    cancel_event: Optional[asyncio.Event] = None,
    sleep: Sleep = asyncio.sleep,
) -> Tuple[OrderBundle, int]:
    """Fetch an order and its stage assignments.

    Transient failures are retried with exponential backoff; an unknown
    order is not.

    Returns:
        (bundle, number of attempts made)

    Raises:
        OrderNotFoundError: The order does not exist
        RetriesExhaustedError: Every attempt failed transiently
        BatchCancelled: cancel_event was set before the fetch finished
    """
    retry = retry or RetryConfig()
    last_error: Optional[Exception] = None

    for attempt in range(retry.max_attempts):
        if cancel_event is not None and cancel_event.is_set():
            raise BatchCancelled()
        try:
            return await store.get_bundle(order_id), attempt + 1
        except OrderNotFoundError:
            raise
        except StoreUnavailableError as e:
            last_error = e

        if attempt + 1 < retry.max_attempts:
            delay = retry.get_delay(attempt)
            logger.warning(
                f"Fetching order {order_id} failed ({last_error}), retrying in {delay:.1f}s "
                f"(attempt {attempt + 1}/{retry.max_attempts})",
                extra_fields={"order_id": order_id, "attempt": attempt + 1},
            )
            record_fetch_retry("order", attempt + 1, str(last_error))
            await _wait(delay, cancel_event, sleep)

    record_fetch_exhausted("order")
    raise RetriesExhaustedError(order_id, retry.max_attempts, last_error)


# =============================================================================
# Per-order Unit of Work
# =============================================================================

async def process_order(
    store: OrderStore,
    order_id: str,
    directory: Optional[Directory] = None,
    retry: Optional[RetryConfig] = None,
    cancel_event: Optional[asyncio.Event] = None,
    sleep: Sleep = asyncio.sleep,
) -> OrderOutcome:
    """Fetch and reconcile one order.

    Store failures become a "failed" outcome; only BatchCancelled
    propagates, so one bad order never stops a batch.
    """
    with with_correlation(order_id=order_id):
        started = time.perf_counter()
        record_order_started(order_id)

        attempts = 1
        try:
            bundle, attempts = await fetch_order_bundle(store, order_id, retry, cancel_event, sleep)
            report = reconcile_order(bundle.order, bundle.stages, directory)
        except BatchCancelled:
            raise
        except OrderNotFoundError as e:
            outcome = OrderOutcome(order_id=order_id, status=ReportStatus.FAILED, error=str(e), attempts=attempts)
        except RetriesExhaustedError as e:
            outcome = OrderOutcome(order_id=order_id, status=ReportStatus.FAILED, error=str(e), attempts=e.attempts)
        except OrderStoreError as e:
            outcome = OrderOutcome(order_id=order_id, status=ReportStatus.FAILED, error=str(e), attempts=attempts)
        except Exception as e:
            logger.exception(f"Unexpected error building report for {order_id}: {e}")
            outcome = OrderOutcome(
                order_id=order_id,
                status=ReportStatus.FAILED,
                error=f"{type(e).__name__}: {e}",
                attempts=attempts,
            )
        else:
            outcome = OrderOutcome(order_id=order_id, status=report.status, report=report, attempts=attempts)

        duration_ms = (time.perf_counter() - started) * 1000
        record_order_finished(order_id, outcome.status.value, duration_ms)
        record_processing_time("process_order", duration_ms)

        if outcome.status == ReportStatus.FAILED:
            logger.error(f"Order {order_id} failed: {outcome.error}", extra_fields={"order_id": order_id})
        return outcome


# =============================================================================
# Temporal Activities
# =============================================================================

_store: Optional[OrderStore] = None


def configure_order_store(store: Optional[OrderStore]) -> None:
    """Set the store used by the Temporal activities in this process."""
    global _store
    _store = store


def get_order_store() -> OrderStore:
    if _store is None:
        raise RuntimeError("Order store not configured; call configure_order_store() first")
    return _store


@dataclass
class FetchDirectoryInput:
    batch_id: str


@dataclass
class BuildOrderReportInput:
    """Input for build_order_report activity.

    Attributes:
        order_id: Order to reconcile
        directory: Serialized Directory (from fetch_directory)
        batch_id: Batch the order belongs to, for log correlation
    """
    order_id: str
    directory: dict
    batch_id: Optional[str] = None


@dataclass
class BuildOrderReportOutput:
    """Output from build_order_report activity.

    Attributes:
        order_id: Order that was reconciled
        status: success or partial
        report: Serialized OrderReport
    """
    order_id: str
    status: str
    report: dict


@activity.defn
async def fetch_directory(input: FetchDirectoryInput) -> dict:
    """Load driver and entity lookup tables once per batch."""
    log_activity_start("fetch_directory", batch_id=input.batch_id)
    started = time.perf_counter()

    directory = await load_directory(get_order_store())

    log_activity_complete(
        "fetch_directory",
        duration_ms=(time.perf_counter() - started) * 1000,
        drivers=len(directory.drivers),
    )
    return directory.model_dump(mode="json")


@activity.defn
async def build_order_report(input: BuildOrderReportInput) -> BuildOrderReportOutput:
    """Fetch and reconcile one order.

    A single fetch attempt is made; retries come from the activity retry
    policy. OrderNotFoundError is raised as-is so the policy can mark it
    non-retryable by type name.
    """
    info = activity.info()
    with with_correlation(
        batch_id=input.batch_id,
        order_id=input.order_id,
        activity_id=info.activity_id,
        activity_name=info.activity_type,
        workflow_id=info.workflow_id,
    ):
        activity.logger.info(f"Building report for order {input.order_id} (attempt {info.attempt})")
        started = time.perf_counter()

        directory = Directory.model_validate(input.directory)
        bundle = await get_order_store().get_bundle(input.order_id)
        report = reconcile_order(bundle.order, bundle.stages, directory)

        duration_ms = (time.perf_counter() - started) * 1000
        record_processing_time("build_order_report", duration_ms)
        log_activity_complete("build_order_report", duration_ms=duration_ms, status=report.status.value)

        return BuildOrderReportOutput(
            order_id=input.order_id,
            status=report.status.value,
            report=report.model_dump(mode="json"),
        )
