from savings_reconciliation.models import UserProfile
from savings_reconciliation.services.supabase_client import get_supabase

USERS_TABLE = "users"


def fetch_user_by_email(email: str) -> UserProfile | None:
    supabase = get_supabase()
    response = (
        supabase.table(USERS_TABLE)
        .select("id, email, role, full_name")
        .eq("email", email)
        .limit(1)
        .execute()
    )
    rows = response.data or []
    if not rows:
        return None
    row = rows[0]
    return UserProfile(
        id=str(row["id"]),
        email=row.get("email") or email,
        role=row.get("role") or "",
        full_name=row.get("full_name"),
    )


def fetch_admin_ids() -> list[str]:
    supabase = get_supabase()
    response = supabase.table(USERS_TABLE).select("id").eq("role", "admin").execute()
    rows = response.data or []
    return [str(row["id"]) for row in rows]
