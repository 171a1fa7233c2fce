"""Unit tests for controller report bookkeeping."""

from unittest.mock import MagicMock, patch

import pytest
from postgrest.exceptions import APIError

from savings_reconciliation.errors import DuplicateReportError, PersistenceError
from savings_reconciliation.models import ReportStatus
from savings_reconciliation.repositories.controller_reports import build_file_url
from savings_reconciliation.services.reconciliation.report_persistence import (
    finalize_report,
    open_report,
    record_upload,
)

REPOSITORY = "savings_reconciliation.repositories.controller_reports"

ROW = {
    "id": "report-1",
    "report_month": 3,
    "report_year": 2024,
    "file_name": "march.csv",
    "file_url": "uploads/controller-reports/2024/3/march.csv",
    "uploaded_by": "admin-1",
    "status": "pending",
    "processed_at": None,
    "created_at": "2024-03-05T10:00:00Z",
}


def _supabase(data=None, error=None):
    supabase = MagicMock()
    table = supabase.table.return_value
    execute = table.insert.return_value.execute
    update_execute = table.update.return_value.eq.return_value.execute
    if error:
        execute.side_effect = error
        update_execute.side_effect = error
    else:
        execute.return_value = MagicMock(data=data)
        update_execute.return_value = MagicMock(data=data)
    return supabase


def _api_error(code):
    return APIError({"message": "boom", "code": code, "hint": None, "details": None})


class TestRecordUpload:
    def test_open_report_inserts_pending_row(self):
        supabase = _supabase(data=[ROW])
        with patch(f"{REPOSITORY}.get_supabase", return_value=supabase):
            report = open_report(3, 2024, "march.csv", "admin-1")

        payload = supabase.table.return_value.insert.call_args.args[0]
        assert payload["status"] == "pending"
        assert payload["processed_at"] is None
        assert payload["file_url"] == build_file_url(3, 2024, "march.csv")
        assert report.id == "report-1"
        assert report.status is ReportStatus.PENDING
        assert report.created_at.year == 2024

    def test_final_status_sets_processed_at(self):
        supabase = _supabase(data=[{**ROW, "status": "processed"}])
        with patch(f"{REPOSITORY}.get_supabase", return_value=supabase):
            record_upload(3, 2024, "march.csv", "admin-1", ReportStatus.PROCESSED)

        payload = supabase.table.return_value.insert.call_args.args[0]
        assert payload["status"] == "processed"
        assert payload["processed_at"] is not None

    def test_unique_violation_is_a_duplicate_report(self):
        supabase = _supabase(error=_api_error("23505"))
        with patch(f"{REPOSITORY}.get_supabase", return_value=supabase):
            with pytest.raises(DuplicateReportError, match="March 2024"):
                open_report(3, 2024, "march.csv", "admin-1")

    def test_other_storage_errors_are_persistence_errors(self):
        supabase = _supabase(error=_api_error("08006"))
        with patch(f"{REPOSITORY}.get_supabase", return_value=supabase):
            with pytest.raises(PersistenceError):
                open_report(3, 2024, "march.csv", "admin-1")


class TestFinalizeReport:
    def test_updates_status(self):
        supabase = _supabase(data=[{**ROW, "status": "failed", "processed_at": "2024-03-05T10:01:00+00:00"}])
        with patch(f"{REPOSITORY}.get_supabase", return_value=supabase):
            report = finalize_report("report-1", ReportStatus.FAILED)

        update = supabase.table.return_value.update.call_args.args[0]
        assert update["status"] == "failed"
        assert report.status is ReportStatus.FAILED
        assert report.processed_at is not None

    def test_missing_row_raises(self):
        supabase = _supabase(data=[])
        with patch(f"{REPOSITORY}.get_supabase", return_value=supabase):
            with pytest.raises(PersistenceError, match="not found"):
                finalize_report("report-1", ReportStatus.PROCESSED)
