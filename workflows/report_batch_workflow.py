"""Report Batch Workflow.

Durable counterpart of workflows/report_batch.py: loads the directory
once, then runs one build_order_report activity per order, at most
`max_concurrency` at a time. Store retries come from the activity retry
policy; an unknown order is not retried.
"""

import asyncio
from dataclasses import dataclass
from datetime import timedelta
from typing import List

from temporalio import workflow
from temporalio.common import RetryPolicy
from temporalio.exceptions import ActivityError

with workflow.unsafe.imports_passed_through():
    from activities.report import (
        build_order_report,
        fetch_directory,
        BuildOrderReportInput,
        FetchDirectoryInput,
    )
    from core.config import DEFAULT_TASK_QUEUE
    from models.reports import BatchResult, OrderOutcome, OrderReport, ReportStatus


TASK_QUEUE = DEFAULT_TASK_QUEUE

ORDER_RETRY_POLICY = RetryPolicy(
    maximum_attempts=3,
    initial_interval=timedelta(seconds=1),
    maximum_interval=timedelta(minutes=1),
    backoff_coefficient=2.0,
    # An unknown order will not appear on retry
    non_retryable_error_types=["OrderNotFoundError"],
)


@dataclass
class ReportBatchInput:
    """Input for Report Batch Workflow.

    Attributes:
        batch_id: Identifier for logs and artifacts
        order_ids: Orders to report on
        max_concurrency: Orders reconciled at the same time
    """
    batch_id: str
    order_ids: List[str]
    max_concurrency: int = 8


@workflow.defn
class ReportBatchWorkflow:
    """Builds order reports for a batch of orders.

    Send the `cancel` signal to stop starting new orders; orders not yet
    started are returned as cancelled.
    """

    def __init__(self):
        self._cancel_requested = False
        self._finished = 0
        self._total = 0

    @workflow.signal
    def cancel(self) -> None:
        self._cancel_requested = True

    @workflow.query
    def progress(self) -> dict:
        return {
            "finished": self._finished,
            "total": self._total,
            "cancel_requested": self._cancel_requested,
        }

    async def _build(self, order_id: str, directory: dict, batch_id: str) -> OrderOutcome:
        try:
            output = await workflow.execute_activity(
                build_order_report,
                BuildOrderReportInput(order_id=order_id, directory=directory, batch_id=batch_id),
                start_to_close_timeout=timedelta(minutes=2),
                retry_policy=ORDER_RETRY_POLICY,
            )
        except ActivityError as e:
            cause = e.cause or e
            workflow.logger.warning(f"Order {order_id} failed: {cause}")
            return OrderOutcome(order_id=order_id, status=ReportStatus.FAILED, error=str(cause))
        finally:
            self._finished += 1

        return OrderOutcome(
            order_id=order_id,
            status=ReportStatus(output.status),
            report=OrderReport.model_validate(output.report),
        )

    @workflow.run
    async def run(self, input: ReportBatchInput) -> dict:
        """Execute the batch.

        Args:
            input: ReportBatchInput with the orders to process

        Returns:
            Serialized BatchResult
        """
        workflow.logger.info(f"Starting report batch {input.batch_id}: {len(input.order_ids)} order(s)")
        self._total = len(input.order_ids)
        result = BatchResult(batch_id=input.batch_id)

        if not input.order_ids:
            return result.model_dump(mode="json")

        directory = await workflow.execute_activity(
            fetch_directory,
            FetchDirectoryInput(batch_id=input.batch_id),
            start_to_close_timeout=timedelta(minutes=1),
            retry_policy=RetryPolicy(maximum_attempts=3, backoff_coefficient=2.0),
        )

        size = max(1, input.max_concurrency)
        order_ids = list(input.order_ids)
        for start in range(0, len(order_ids), size):
            if self._cancel_requested:
                result.cancelled.extend(order_ids[start:])
                workflow.logger.info(f"Batch {input.batch_id} cancelled, {len(order_ids) - start} order(s) skipped")
                break
            chunk = order_ids[start:start + size]
            outcomes: List[OrderOutcome] = await asyncio.gather(
                *(self._build(order_id, directory, input.batch_id) for order_id in chunk)
            )
            result.outcomes.extend(outcomes)

        workflow.logger.info(f"Report batch {input.batch_id} finished: {result.summary()}")
        return result.model_dump(mode="json")
