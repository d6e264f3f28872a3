"""Activity definitions module."""

from activities.report import (
    BatchCancelled,
    fetch_order_bundle,
    process_order,
    configure_order_store,
    fetch_directory,
    build_order_report,
    FetchDirectoryInput,
    BuildOrderReportInput,
    BuildOrderReportOutput,
)

__all__ = [
    # Per-order unit of work
    "BatchCancelled",
    "fetch_order_bundle",
    "process_order",
    # Temporal activities
    "configure_order_store",
    "fetch_directory",
    "build_order_report",
    "FetchDirectoryInput",
    "BuildOrderReportInput",
    "BuildOrderReportOutput",
]
