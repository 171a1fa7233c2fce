"""Repository for controller report upload records."""

from datetime import datetime, timezone

from postgrest.exceptions import APIError

from savings_reconciliation.errors import PersistenceError
from savings_reconciliation.models import ReportStatus, ReportUploadRecord
from savings_reconciliation.services.supabase_client import get_supabase

REPORTS_TABLE = "controller_reports"
REPORT_COLUMNS = (
    "id, report_month, report_year, file_name, file_url, uploaded_by, "
    "status, processed_at, created_at"
)
UNIQUE_VIOLATION = "23505"


class DuplicatePeriodError(PersistenceError):
    """Storage rejected a second report for the same month and year."""


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _build_report(row: dict) -> ReportUploadRecord:
    return ReportUploadRecord(
        id=str(row["id"]),
        report_month=int(row["report_month"]),
        report_year=int(row["report_year"]),
        file_name=row.get("file_name") or "",
        file_url=row.get("file_url") or "",
        uploaded_by=str(row.get("uploaded_by") or ""),
        status=ReportStatus(row.get("status") or ReportStatus.PENDING.value),
        processed_at=_parse_timestamp(row.get("processed_at")),
        created_at=_parse_timestamp(row.get("created_at")),
    )


def build_file_url(month: int, year: int, filename: str) -> str:
    return f"uploads/controller-reports/{year}/{month}/{filename}"


def find_report(month: int, year: int) -> ReportUploadRecord | None:
    supabase = get_supabase()
    response = (
        supabase.table(REPORTS_TABLE)
        .select(REPORT_COLUMNS)
        .eq("report_month", month)
        .eq("report_year", year)
        .limit(1)
        .execute()
    )
    rows = response.data or []
    if not rows:
        return None
    return _build_report(rows[0])


def insert_report(
    *,
    month: int,
    year: int,
    filename: str,
    uploader_id: str,
    status: ReportStatus,
    processed_at: datetime | None = None,
) -> ReportUploadRecord:
    payload = {
        "report_month": month,
        "report_year": year,
        "file_name": filename,
        "file_url": build_file_url(month, year, filename),
        "uploaded_by": uploader_id,
        "status": status.value,
        "processed_at": processed_at.isoformat() if processed_at else None,
    }
    supabase = get_supabase()
    try:
        response = supabase.table(REPORTS_TABLE).insert(payload).execute()
    except APIError as exc:
        if exc.code == UNIQUE_VIOLATION:
            raise DuplicatePeriodError(
                f"Report for {month}/{year} already exists"
            ) from exc
        raise PersistenceError(f"Failed to record controller report: {exc.message}") from exc

    rows = response.data or []
    if not rows:
        raise PersistenceError("Controller report insert returned no row")
    return _build_report(rows[0])


def update_report_status(
    report_id: str, status: ReportStatus, processed_at: datetime | None = None
) -> ReportUploadRecord:
    processed_at = processed_at or datetime.now(timezone.utc)
    supabase = get_supabase()
    try:
        response = (
            supabase.table(REPORTS_TABLE)
            .update(
                {
                    "status": status.value,
                    "processed_at": processed_at.isoformat(),
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                }
            )
            .eq("id", report_id)
            .execute()
        )
    except APIError as exc:
        raise PersistenceError(f"Failed to finalize controller report: {exc.message}") from exc

    rows = response.data or []
    if not rows:
        raise PersistenceError(f"Controller report {report_id} not found")
    return _build_report(rows[0])


def delete_report(report_id: str) -> None:
    supabase = get_supabase()
    supabase.table(REPORTS_TABLE).delete().eq("id", report_id).execute()
