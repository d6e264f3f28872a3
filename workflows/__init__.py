"""Workflow definitions module."""

from workflows.report_batch import run_report_batch
from workflows.report_batch_workflow import ReportBatchWorkflow, ReportBatchInput

__all__ = ["run_report_batch", "ReportBatchWorkflow", "ReportBatchInput"]
