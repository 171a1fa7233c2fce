"""Orchestrator for controller report reconciliation."""

import logging
import os
from decimal import Decimal

from savings_reconciliation.config import settings
from savings_reconciliation.errors import (
    DuplicateReportError,
    PersistenceError,
    ValidationError,
)
from savings_reconciliation.models import (
    LedgerTransaction,
    MatchedTeacherSummary,
    ProcessingResult,
    RawDeductionRecord,
    TeacherRecord,
    UnmatchedTeacherSummary,
)
from savings_reconciliation.repositories.controller_reports import find_report
from savings_reconciliation.repositories.teachers import list_teachers
from savings_reconciliation.repositories.transactions import insert_transaction
from savings_reconciliation.repositories.users import fetch_admin_ids
from savings_reconciliation.services.notifications import (
    notify_deduction_posted,
    notify_upload_processed,
)
from savings_reconciliation.services.reconciliation import (
    matcher,
    spreadsheet_parser,
    teacher_index,
)
from savings_reconciliation.services.reconciliation.report_persistence import (
    duplicate_report_message,
    finalize_report,
    open_report,
)
from savings_reconciliation.utils.periods import (
    controller_reference_id,
    first_day_of_period,
    period_label,
)

logger = logging.getLogger(__name__)

CONTROLLER_TYPE = "controller"
UNMATCHED_REASON = "No matching teacher found in database"

EXTENSION_TYPES = {
    ".csv": "text/csv",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def _parse_int(value: object, field_name: str) -> int:
    if value is None or str(value).strip() == "":
        raise ValidationError("Month and year are required")
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise ValidationError(f"{field_name} must be numeric, got '{value}'") from exc


def resolve_content_type(content_type: str | None, filename: str | None) -> str:
    """Use the declared type, or infer it from the extension when it is generic."""
    declared = (content_type or "").split(";")[0].strip().lower()
    if declared and declared != "application/octet-stream":
        return declared
    extension = os.path.splitext(filename or "")[1].lower()
    return EXTENSION_TYPES.get(extension, declared)


def validate_upload(
    file_bytes: bytes | None,
    month: object,
    year: object,
    filename: str | None = None,
    content_type: str | None = None,
) -> tuple[int, int]:
    """Check the upload request and return the period as integers."""
    if file_bytes is None:
        raise ValidationError("No file provided")

    month_value = _parse_int(month, "Month")
    year_value = _parse_int(year, "Year")
    if not 1 <= month_value <= 12:
        raise ValidationError(f"Month must be between 1 and 12, got {month_value}")
    if not 1000 <= year_value <= 9999:
        raise ValidationError(f"Year must be a 4-digit number, got {year_value}")

    if resolve_content_type(content_type, filename) not in settings.accepted_upload_types:
        raise ValidationError("Only CSV and Excel files are supported")
    if not file_bytes:
        raise ValidationError("Uploaded file is empty")
    if len(file_bytes) > settings.max_upload_bytes:
        limit_mb = settings.max_upload_bytes // (1024 * 1024)
        raise ValidationError(f"File size must be less than {limit_mb}MB")

    return month_value, year_value


def ledger_key(teacher: TeacherRecord) -> str:
    """Employee id used in reference ids; teachers without one fall back to their user id."""
    return teacher.employee_id.strip() or teacher.id


def build_transaction(
    record: RawDeductionRecord, teacher: TeacherRecord, month: int, year: int
) -> LedgerTransaction:
    return LedgerTransaction(
        user_id=teacher.id,
        transaction_type=CONTROLLER_TYPE,
        amount=record.monthly_deduction,
        description=f"Controller deduction for {period_label(month, year)}",
        transaction_date=first_day_of_period(month, year),
        reference_id=controller_reference_id(month, year, ledger_key(teacher)),
        status="completed",
        payment_method=CONTROLLER_TYPE,
    )


def _error_message(exc: Exception) -> str:
    return getattr(exc, "message", None) or str(exc)


def process_record(
    record: RawDeductionRecord,
    index: teacher_index.TeacherIndex,
    month: int,
    year: int,
    result: ProcessingResult,
    scorer: matcher.FuzzyScorer,
    posted: list[tuple[str, Decimal]],
) -> None:
    """Match one row and post its transaction, recording the outcome on result."""
    unit = record.management_unit or ""
    outcome = matcher.match(record, index.teachers, index, scorer)

    if not outcome.matched:
        result.unmatched_records += 1
        result.unmatched_teachers.append(
            UnmatchedTeacherSummary(
                name=record.employee_name,
                amount=record.monthly_deduction,
                management_unit=unit,
                reason=UNMATCHED_REASON,
            )
        )
        result.warnings.append(f"Could not match teacher: {record.employee_name} ({unit})")
        logger.info("No match for row %s (%s)", record.row_number, record.employee_name)
        return

    teacher = outcome.matched_teacher
    logger.debug(
        "Row %s matched %s via %s (score %.3f)",
        record.row_number,
        teacher.id,
        outcome.match_method.value,
        outcome.score,
    )
    transaction = build_transaction(record, teacher, month, year)
    try:
        insert_transaction(transaction)
    except Exception as exc:
        logger.warning(
            "Ledger write failed for %s (%s): %s",
            record.employee_name,
            transaction.reference_id,
            exc,
        )
        result.errors.append(
            f"Failed to create transaction for {record.employee_name}: {_error_message(exc)}"
        )
        return

    result.matched_records += 1
    result.processed_transactions += 1
    result.matched_teachers.append(
        MatchedTeacherSummary(
            name=record.employee_name,
            amount=record.monthly_deduction,
            management_unit=unit,
            teacher_id=teacher.id,
        )
    )
    posted.append((teacher.id, record.monthly_deduction))


def _send_notifications(
    posted: list[tuple[str, Decimal]],
    month: int,
    year: int,
    report_id: str | None,
    uploader_id: str,
) -> None:
    if not settings.notifications_enabled or not posted:
        return
    label = period_label(month, year)
    for teacher_id, amount in posted:
        notify_deduction_posted(teacher_id, label, amount, report_id, created_by=uploader_id)

    try:
        admin_ids = fetch_admin_ids()
    except Exception as exc:
        logger.warning("Could not load admins for upload notification: %s", exc)
        return
    for admin_id in admin_ids:
        notify_upload_processed(admin_id, label, len(posted), report_id, created_by=uploader_id)


def process_report(
    file_bytes: bytes | None,
    month: object,
    year: object,
    uploader_id: str,
    *,
    filename: str = "controller-report",
    content_type: str | None = None,
) -> ProcessingResult:
    """
    Reconcile an uploaded controller report and post the matched deductions.

    Args:
        file_bytes: Raw bytes of the CSV/XLS/XLSX upload.
        month: Reported month, 1-12.
        year: Reported four-digit year.
        uploader_id: ID of the admin performing the upload.
        filename: Original filename, stored on the report record.
        content_type: MIME type declared by the client.

    Returns:
        ProcessingResult with per-row outcomes and the report record id.

    Raises:
        ValidationError: the request inputs are malformed.
        DuplicateReportError: a report for the period already exists.
        ParseError: the spreadsheet could not be understood.
        PersistenceError: storage could not be read, or the report record
            could not be opened; no transactions were posted.
    """
    month_value, year_value = validate_upload(
        file_bytes, month, year, filename=filename, content_type=content_type
    )
    label = period_label(month_value, year_value)

    try:
        existing = find_report(month_value, year_value)
    except Exception as exc:
        logger.exception("Duplicate check failed for %s", label)
        raise PersistenceError("Failed to check for an existing report") from exc
    if existing:
        raise DuplicateReportError(
            month_value, year_value, duplicate_report_message(month_value, year_value)
        )

    parsed = spreadsheet_parser.parse(file_bytes)
    try:
        roster = list_teachers(role="teacher")
    except Exception as exc:
        logger.exception("Roster fetch failed for %s", label)
        raise PersistenceError("Failed to fetch teachers for matching") from exc
    index = teacher_index.build(roster)
    logger.info(
        "Reconciling %s rows for %s against %s teachers",
        len(parsed.records),
        label,
        len(index),
    )

    report = open_report(month_value, year_value, filename, uploader_id)

    result = ProcessingResult(report_id=report.id)
    for skipped in parsed.skipped_rows:
        result.warnings.append(f"Skipped row {skipped.row_number}: {skipped.reason}")

    scorer = matcher.FuzzyScorer()
    posted: list[tuple[str, Decimal]] = []
    for record in parsed.records:
        result.attempted_records += 1
        try:
            process_record(record, index, month_value, year_value, result, scorer, posted)
        except Exception as exc:
            logger.exception("Unexpected failure on row %s", record.row_number)
            result.errors.append(f"Error processing {record.employee_name}: {exc}")

    try:
        finalize_report(report.id, result.status)
    except PersistenceError:
        logger.exception("Could not finalize controller report %s", report.id)
        result.warnings.append(
            f"Report record {report.id} could not be finalized and remains pending"
        )

    _send_notifications(posted, month_value, year_value, report.id, uploader_id)

    logger.info(
        "Controller report %s for %s: %s matched, %s unmatched, %s errors",
        report.id,
        label,
        result.matched_records,
        result.unmatched_records,
        len(result.errors),
    )
    return result
