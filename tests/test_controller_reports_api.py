"""Integration tests for the controller report API endpoints."""

from decimal import Decimal
from unittest.mock import patch

from fastapi.testclient import TestClient

from savings_reconciliation.config import settings
from savings_reconciliation.errors import (
    AuthorizationError,
    DuplicateReportError,
    ParseError,
    PersistenceError,
    ValidationError,
)
from savings_reconciliation.main import app
from savings_reconciliation.models import (
    MatchedTeacherSummary,
    ProcessingResult,
    ReportStatus,
    ReportUploadRecord,
    UnmatchedTeacherSummary,
    UserProfile,
)

client = TestClient(app)

ADMIN = UserProfile(id="admin-1", email="admin@example.com", role="admin")
TEACHER = UserProfile(id="teacher-1", email="teacher@example.com", role="teacher")
AUTH = {"Authorization": "Bearer token-123"}
UPLOAD = {
    "files": {"file": ("march.csv", b"Name of Employee,Amount\nAma Owusu,10\n", "text/csv")},
    "data": {"month": "3", "year": "2024"},
}


def _report():
    return ReportUploadRecord(
        id="report-1",
        report_month=3,
        report_year=2024,
        file_name="march.csv",
        file_url="uploads/controller-reports/2024/3/march.csv",
        uploaded_by="admin-1",
        status=ReportStatus.PROCESSED,
    )


class TestUploadControllerReport:
    def test_missing_authorization(self):
        response = client.post("/v1/admin/controller-reports", **UPLOAD)
        assert response.status_code == 401

    def test_malformed_authorization(self):
        response = client.post(
            "/v1/admin/controller-reports", headers={"Authorization": "Token abc"}, **UPLOAD
        )
        assert response.status_code == 401

    @patch("savings_reconciliation.routes.get_current_user")
    def test_invalid_token(self, mock_user):
        mock_user.side_effect = AuthorizationError("Invalid token")
        response = client.post("/v1/admin/controller-reports", headers=AUTH, **UPLOAD)
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token"

    @patch("savings_reconciliation.routes.process_report")
    @patch("savings_reconciliation.routes.get_current_user")
    def test_non_admin_forbidden(self, mock_user, mock_process):
        mock_user.return_value = TEACHER
        response = client.post("/v1/admin/controller-reports", headers=AUTH, **UPLOAD)
        assert response.status_code == 403
        mock_process.assert_not_called()

    @patch("savings_reconciliation.routes.process_report")
    @patch("savings_reconciliation.routes.get_current_user")
    def test_upload_success(self, mock_user, mock_process):
        mock_user.return_value = ADMIN
        mock_process.return_value = ProcessingResult(
            attempted_records=2,
            matched_records=1,
            unmatched_records=1,
            processed_transactions=1,
            warnings=["Could not match teacher: Unknown Person (Nowhere)"],
            matched_teachers=[
                MatchedTeacherSummary(name="Ama Owusu", amount=Decimal("10.00"), management_unit="Accra")
            ],
            unmatched_teachers=[
                UnmatchedTeacherSummary(
                    name="Unknown Person",
                    amount=Decimal("20.00"),
                    management_unit="Nowhere",
                    reason="No matching teacher found in database",
                )
            ],
            report_id="report-1",
        )

        response = client.post("/v1/admin/controller-reports", headers=AUTH, **UPLOAD)

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Successfully processed controller report for March 2024"
        assert data["reportId"] == "report-1"
        assert data["result"]["totalRecords"] == 2
        assert data["result"]["matchedRecords"] == 1
        assert data["result"]["matchedTeachers"][0] == {
            "name": "Ama Owusu",
            "amount": 10.0,
            "managementUnit": "Accra",
        }
        assert data["result"]["unmatchedTeachers"][0]["reason"] == (
            "No matching teacher found in database"
        )

        args, kwargs = mock_process.call_args
        assert args[0].startswith(b"Name of Employee")
        assert args[1:] == ("3", "2024", "admin-1")
        assert kwargs == {"filename": "march.csv", "content_type": "text/csv"}

    @patch("savings_reconciliation.routes.process_report")
    @patch("savings_reconciliation.routes.get_current_user")
    def test_validation_error(self, mock_user, mock_process):
        mock_user.return_value = ADMIN
        mock_process.side_effect = ValidationError("Only CSV and Excel files are supported")
        response = client.post("/v1/admin/controller-reports", headers=AUTH, **UPLOAD)
        assert response.status_code == 400
        assert "CSV and Excel" in response.json()["detail"]

    @patch("savings_reconciliation.routes.process_report")
    @patch("savings_reconciliation.routes.get_current_user")
    def test_parse_error(self, mock_user, mock_process):
        mock_user.return_value = ADMIN
        mock_process.side_effect = ParseError("No valid data found in the file")
        response = client.post("/v1/admin/controller-reports", headers=AUTH, **UPLOAD)
        assert response.status_code == 400

    @patch("savings_reconciliation.routes.process_report")
    @patch("savings_reconciliation.routes.get_current_user")
    def test_duplicate_period(self, mock_user, mock_process):
        mock_user.return_value = ADMIN
        mock_process.side_effect = DuplicateReportError(3, 2024, "A report for March 2024 already exists.")
        response = client.post("/v1/admin/controller-reports", headers=AUTH, **UPLOAD)
        assert response.status_code == 409
        assert "already exists" in response.json()["detail"]

    @patch("savings_reconciliation.routes.process_report")
    @patch("savings_reconciliation.routes.get_current_user")
    def test_oversized_upload_rejected_before_processing(self, mock_user, mock_process, monkeypatch):
        monkeypatch.setattr(settings, "max_upload_bytes", 8)
        mock_user.return_value = ADMIN
        response = client.post("/v1/admin/controller-reports", headers=AUTH, **UPLOAD)
        assert response.status_code == 400
        assert "File size" in response.json()["detail"]
        mock_process.assert_not_called()

    @patch("savings_reconciliation.routes.process_report")
    @patch("savings_reconciliation.routes.get_current_user")
    def test_storage_failure_returns_json_error(self, mock_user, mock_process):
        mock_user.return_value = ADMIN
        mock_process.side_effect = PersistenceError("Failed to fetch teachers for matching")
        response = client.post("/v1/admin/controller-reports", headers=AUTH, **UPLOAD)
        assert response.status_code == 500
        assert response.json() == {"detail": "Failed to fetch teachers for matching"}


class TestControllerReportRecord:
    @patch("savings_reconciliation.routes.find_report")
    @patch("savings_reconciliation.routes.get_current_user")
    def test_get_report(self, mock_user, mock_find):
        mock_user.return_value = ADMIN
        mock_find.return_value = _report()
        response = client.get("/v1/admin/controller-reports/2024/3", headers=AUTH)
        assert response.status_code == 200
        assert response.json()["status"] == "processed"
        mock_find.assert_called_once_with(3, 2024)

    @patch("savings_reconciliation.routes.find_report")
    @patch("savings_reconciliation.routes.get_current_user")
    def test_get_missing_report(self, mock_user, mock_find):
        mock_user.return_value = ADMIN
        mock_find.return_value = None
        response = client.get("/v1/admin/controller-reports/2024/3", headers=AUTH)
        assert response.status_code == 404

    @patch("savings_reconciliation.routes.delete_report")
    @patch("savings_reconciliation.routes.find_report")
    @patch("savings_reconciliation.routes.get_current_user")
    def test_delete_report(self, mock_user, mock_find, mock_delete):
        mock_user.return_value = ADMIN
        mock_find.return_value = _report()
        response = client.delete("/v1/admin/controller-reports/2024/3", headers=AUTH)
        assert response.status_code == 200
        mock_delete.assert_called_once_with("report-1")


def test_healthz():
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
