import logging
from decimal import Decimal

from savings_reconciliation.config import settings
from savings_reconciliation.services.supabase_client import get_supabase

logger = logging.getLogger(__name__)

CONTROLLER_REPORT_TYPE = "controller_report"
DEDUCTION_TEMPLATE = "controller_deduction"
UPLOAD_SUCCESS_TEMPLATE = "controller_upload_success"


def send_template_notification(
    user_id: str,
    template_name: str,
    variables: dict[str, str],
    created_by: str | None = None,
    notification_type: str = CONTROLLER_REPORT_TYPE,
) -> str | None:
    """Create an in-app notification from a stored template.

    Fire-and-forget: failures are logged and None is returned.
    """
    if not settings.notifications_enabled:
        return None
    try:
        supabase = get_supabase()
        response = supabase.rpc(
            "create_notification_from_template",
            {
                "p_user_id": user_id,
                "p_type": notification_type,
                "p_template_name": template_name,
                "p_variables": variables,
                "p_priority": "normal",
                "p_created_by": created_by,
                "p_expires_at": None,
            },
        ).execute()
    except Exception as exc:
        logger.warning(
            "Failed to send %s notification to %s: %s", template_name, user_id, exc
        )
        return None
    return str(response.data) if response.data else None


def notify_deduction_posted(
    teacher_id: str,
    report_period: str,
    amount: Decimal,
    report_id: str | None,
    created_by: str | None = None,
) -> str | None:
    return send_template_notification(
        teacher_id,
        DEDUCTION_TEMPLATE,
        {
            "report_period": report_period,
            "report_id": report_id or "",
            "deduction_amount": f"{amount:.2f}",
        },
        created_by=created_by,
    )


def notify_upload_processed(
    admin_id: str,
    report_period: str,
    affected_teachers: int,
    report_id: str | None,
    created_by: str | None = None,
) -> str | None:
    return send_template_notification(
        admin_id,
        UPLOAD_SUCCESS_TEMPLATE,
        {
            "report_period": report_period,
            "affected_teachers": str(affected_teachers),
            "report_id": report_id or "",
        },
        created_by=created_by,
    )
