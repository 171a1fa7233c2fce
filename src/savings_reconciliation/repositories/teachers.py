"""Repository for the teacher roster held in the users table."""

from savings_reconciliation.models import TeacherRecord
from savings_reconciliation.services.supabase_client import get_supabase

USERS_TABLE = "users"


def _build_teacher(row: dict) -> TeacherRecord:
    return TeacherRecord(
        id=str(row["id"]),
        full_name=row.get("full_name") or "",
        employee_id=row.get("employee_id") or "",
        management_unit=row.get("management_unit") or "",
    )


def list_teachers(role: str = "teacher") -> list[TeacherRecord]:
    supabase = get_supabase()
    response = (
        supabase.table(USERS_TABLE)
        .select("id, full_name, management_unit, employee_id")
        .eq("role", role)
        .execute()
    )
    rows = response.data or []
    return [_build_teacher(row) for row in rows]
