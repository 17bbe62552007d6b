"""
Notification Service

Creates in-app notifications for air quality alerts, prolonged critical
conditions and devices going offline.

Recipients are every profile with a role in NOTIFIED_ROLES
(admin, super_admin, supervisor).
"""

import logging
from typing import Optional
from uuid import uuid4

from supabase import Client

from ..dependencies.auth import NOTIFIED_ROLES

logger = logging.getLogger(__name__)


# Map alert severity to notification type (drives badge colour in the UI)
SEVERITY_TO_TYPE = {
    "critical": "error",
    "high": "warning",
    "medium": "warning",
    "low": "info"
}


def get_notified_user_ids(supabase: Client) -> list[str]:
    """Profile ids of every user who receives operational notifications."""
    result = supabase.table("profiles").select(
        "id"
    ).in_("role", NOTIFIED_ROLES).execute()

    return list(dict.fromkeys(row["id"] for row in (result.data or [])))


def create_notifications(
    supabase: Client,
    title: str,
    message: str,
    notification_type: str = "info",
    alert_id: Optional[str] = None,
) -> int:
    """
    Insert one notification per notified user.

    Failures are logged, never raised: a notification must not break the
    ingest or background task that triggered it.

    Returns:
        Number of notifications created
    """
    try:
        user_ids = get_notified_user_ids(supabase)
        if not user_ids:
            return 0

        notifications_to_create = [
            {
                "id": str(uuid4()),
                "user_id": user_id,
                "title": title,
                "message": message,
                "type": notification_type,
                "alert_id": alert_id,
                "is_read": False
            }
            for user_id in user_ids
        ]

        supabase.table("notifications").insert(notifications_to_create).execute()
        return len(notifications_to_create)

    except Exception as e:
        logger.error(f"Error creating notifications '{title}': {e}")
        return 0


def create_alert_notifications(supabase: Client, alert: dict) -> int:
    """Notify about a newly created threshold alert."""
    severity = alert.get("severity", "medium")
    return create_notifications(
        supabase,
        title=f"New {severity.capitalize()} Air Quality Alert",
        message=alert.get("message", ""),
        notification_type=SEVERITY_TO_TYPE.get(severity, "info"),
        alert_id=alert.get("id"),
    )


def create_prolonged_alert_notifications(
    supabase: Client,
    prolonged: list[dict],
    threshold_hours: float,
) -> int:
    """Notify about sensors that stayed at hazardous levels for too long."""
    message = (
        f"{len(prolonged)} sensor(s) have been in critical range for over "
        f"{threshold_hours:g} hour(s). Immediate attention required."
    )
    return create_notifications(
        supabase,
        title="Prolonged Critical Air Quality Alert",
        message=message,
        notification_type="error",
    )


def create_device_offline_notification(supabase: Client, device: dict) -> int:
    """Notify that a device stopped reporting."""
    return create_notifications(
        supabase,
        title="Device Offline",
        message=f"Device {device.get('name') or device.get('id')} has gone offline",
        notification_type="warning",
    )
