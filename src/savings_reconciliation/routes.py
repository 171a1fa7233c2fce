from fastapi import APIRouter, File, Form, Header, HTTPException, UploadFile

from savings_reconciliation.config import settings
from savings_reconciliation.errors import (
    AuthorizationError,
    DuplicateReportError,
    ParseError,
    PersistenceError,
    ValidationError,
)
from savings_reconciliation.models import ProcessingResult, ReportUploadRecord, UserProfile
from savings_reconciliation.repositories.controller_reports import delete_report, find_report
from savings_reconciliation.services.reconciliation.orchestrator import process_report
from savings_reconciliation.services.supabase_auth import get_current_user, require_admin
from savings_reconciliation.utils.periods import period_label

router = APIRouter()


def _extract_bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid Authorization header")
    return authorization.split(" ", 1)[1]


def _require_admin_user(authorization: str | None) -> UserProfile:
    access_token = _extract_bearer_token(authorization)
    try:
        return require_admin(get_current_user(access_token))
    except AuthorizationError as exc:
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc


def serialize_result(result: ProcessingResult) -> dict:
    return {
        "totalRecords": result.total_records,
        "attemptedRecords": result.attempted_records,
        "matchedRecords": result.matched_records,
        "unmatchedRecords": result.unmatched_records,
        "processedTransactions": result.processed_transactions,
        "errors": list(result.errors),
        "warnings": list(result.warnings),
        "matchedTeachers": [
            {
                "name": item.name,
                "amount": float(item.amount),
                "managementUnit": item.management_unit,
            }
            for item in result.matched_teachers
        ],
        "unmatchedTeachers": [
            {
                "name": item.name,
                "amount": float(item.amount),
                "managementUnit": item.management_unit,
                "reason": item.reason,
            }
            for item in result.unmatched_teachers
        ],
    }


def serialize_report(report: ReportUploadRecord) -> dict:
    return {
        "id": report.id,
        "reportMonth": report.report_month,
        "reportYear": report.report_year,
        "fileName": report.file_name,
        "fileUrl": report.file_url,
        "uploadedBy": report.uploaded_by,
        "status": report.status.value,
        "processedAt": report.processed_at.isoformat() if report.processed_at else None,
    }


@router.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


@router.post("/v1/admin/controller-reports")
async def upload_controller_report(
    file: UploadFile | None = File(default=None),
    month: str | None = Form(default=None),
    year: str | None = Form(default=None),
    authorization: str | None = Header(default=None),
) -> dict:
    """
    Upload a controller (payroll deduction) report for one month.

    Matches every row to a teacher, posts a controller transaction for each
    match and returns which rows were paid and which need manual follow-up.
    """
    user = _require_admin_user(authorization)
    if file is not None and file.size is not None and file.size > settings.max_upload_bytes:
        limit_mb = settings.max_upload_bytes // (1024 * 1024)
        raise HTTPException(status_code=400, detail=f"File size must be less than {limit_mb}MB")
    file_bytes = await file.read() if file is not None else None

    try:
        result = process_report(
            file_bytes,
            month,
            year,
            user.id,
            filename=(file.filename if file is not None else None) or "controller-report",
            content_type=file.content_type if file is not None else None,
        )
    except (ValidationError, ParseError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except DuplicateReportError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    return {
        "success": True,
        "message": (
            "Successfully processed controller report for "
            f"{period_label(int(month), int(year))}"
        ),
        "result": serialize_result(result),
        "reportId": result.report_id,
    }


@router.get("/v1/admin/controller-reports/{year}/{month}")
def get_controller_report(
    year: int, month: int, authorization: str | None = Header(default=None)
) -> dict:
    _require_admin_user(authorization)
    report = find_report(month, year)
    if not report:
        raise HTTPException(status_code=404, detail="Controller report not found")
    return serialize_report(report)


@router.delete("/v1/admin/controller-reports/{year}/{month}")
def delete_controller_report(
    year: int, month: int, authorization: str | None = Header(default=None)
) -> dict:
    """Remove the report record for a period so it can be uploaded again.

    Posted ledger transactions are left alone; re-posting the same rows is
    rejected by the ledger through their reference ids.
    """
    _require_admin_user(authorization)
    report = find_report(month, year)
    if not report:
        raise HTTPException(status_code=404, detail="Controller report not found")
    delete_report(report.id)
    return {"status": "deleted", "id": report.id}
