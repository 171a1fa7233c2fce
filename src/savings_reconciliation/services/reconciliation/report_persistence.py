"""Bookkeeping for controller report uploads.

A run opens its report record in the pending state before any ledger write
and closes it once every row has been attempted, so a crash mid-run still
leaves a record that blocks re-upload of the period.
"""

import logging
from datetime import datetime, timezone

from savings_reconciliation.errors import DuplicateReportError
from savings_reconciliation.models import ReportStatus, ReportUploadRecord
from savings_reconciliation.repositories.controller_reports import (
    DuplicatePeriodError,
    insert_report,
    update_report_status,
)
from savings_reconciliation.utils.periods import period_label

logger = logging.getLogger(__name__)


def duplicate_report_message(month: int, year: int) -> str:
    return (
        f"A report for {period_label(month, year)} already exists. Please delete "
        "the existing report first or choose a different month."
    )


def record_upload(
    month: int,
    year: int,
    filename: str,
    uploader_id: str,
    status: ReportStatus,
) -> ReportUploadRecord:
    """Insert a report record in a single step with its final status."""
    processed_at = None
    if status is not ReportStatus.PENDING:
        processed_at = datetime.now(timezone.utc)
    try:
        return insert_report(
            month=month,
            year=year,
            filename=filename,
            uploader_id=uploader_id,
            status=status,
            processed_at=processed_at,
        )
    except DuplicatePeriodError as exc:
        raise DuplicateReportError(month, year, duplicate_report_message(month, year)) from exc


def open_report(
    month: int, year: int, filename: str, uploader_id: str
) -> ReportUploadRecord:
    report = record_upload(month, year, filename, uploader_id, ReportStatus.PENDING)
    logger.info("Opened controller report %s for %s", report.id, period_label(month, year))
    return report


def finalize_report(report_id: str, status: ReportStatus) -> ReportUploadRecord:
    report = update_report_status(report_id, status, datetime.now(timezone.utc))
    logger.info("Controller report %s finalized as %s", report_id, status.value)
    return report
