from typing import Any

from savings_reconciliation.errors import AuthorizationError
from savings_reconciliation.models import UserProfile
from savings_reconciliation.repositories.users import fetch_user_by_email
from savings_reconciliation.services.supabase_client import get_supabase


def _extract_email(result: Any) -> str | None:
    if hasattr(result, "user"):
        user = result.user
        if hasattr(user, "email"):
            return user.email
        if isinstance(user, dict):
            return user.get("email")
    if isinstance(result, dict):
        user = result.get("user") or result.get("data", {}).get("user")
        if isinstance(user, dict):
            return user.get("email")
    return None


def get_email_from_token(access_token: str) -> str:
    supabase = get_supabase()
    try:
        result = supabase.auth.get_user(access_token)
    except Exception as exc:
        raise AuthorizationError("Token verification failed") from exc
    email = _extract_email(result)
    if not email:
        raise AuthorizationError("Invalid token")
    return email


def get_current_user(access_token: str) -> UserProfile:
    email = get_email_from_token(access_token)
    profile = fetch_user_by_email(email)
    if not profile:
        raise AuthorizationError("User profile not found", status_code=404)
    return profile


def require_admin(profile: UserProfile) -> UserProfile:
    if not profile.is_admin:
        raise AuthorizationError("Access denied. Admin role required.", status_code=403)
    return profile
