"""
Alert Service

Statistics over the alerts table and detection of prolonged critical
conditions: sensors whose readings stay at or above the hazardous limit
for longer than the configured number of hours.
"""

import logging
from collections import defaultdict
from datetime import timedelta
from typing import Optional

from supabase import Client

from .email_service import send_email
from .email_templates import format_prolonged_alert_email
from .notifications import create_prolonged_alert_notifications
from .supabase import get_settings
from .timestamp import parse_timestamp, utc_now

logger = logging.getLogger(__name__)

SEVERITIES = ("low", "medium", "high", "critical")

DEFAULT_ALERT_THRESHOLD_HOURS = 1.0

# Readings are fetched over this multiple of alert_threshold_hours
LOOKBACK_FACTOR = 2


def get_email_settings(supabase: Client) -> dict[str, str]:
    """email_settings rows as {setting_key: setting_value}."""
    result = supabase.table("email_settings").select("setting_key, setting_value").execute()
    return {
        row["setting_key"]: row["setting_value"]
        for row in (result.data or [])
        if row.get("setting_key")
    }


def alert_threshold_hours(email_settings: dict[str, str]) -> float:
    raw = email_settings.get("alert_threshold_hours")
    try:
        hours = float(raw) if raw not in (None, "") else DEFAULT_ALERT_THRESHOLD_HOURS
    except ValueError:
        logger.warning(f"Invalid alert_threshold_hours '{raw}', using default")
        hours = DEFAULT_ALERT_THRESHOLD_HOURS
    return hours if hours > 0 else DEFAULT_ALERT_THRESHOLD_HOURS


def alert_stats(alerts: list[dict]) -> dict:
    """Totals and per-severity counts."""
    by_severity = {severity: 0 for severity in SEVERITIES}
    for alert in alerts:
        severity = alert.get("severity")
        if severity in by_severity:
            by_severity[severity] += 1

    unresolved = sum(1 for alert in alerts if not alert.get("is_resolved"))
    return {
        "total": len(alerts),
        "unresolved": unresolved,
        "resolved": len(alerts) - unresolved,
        "by_severity": by_severity,
    }


def find_prolonged_alerts(
    readings: list[dict],
    thresholds: list[dict],
    threshold_hours: float,
    device_names: Optional[dict[str, str]] = None,
) -> list[dict]:
    """
    Find (device, sensor) groups that stayed hazardous for threshold_hours.

    A group is prolonged when its readings at or above hazardous_min span at
    least threshold_hours, from the oldest such reading to the newest.
    """
    device_names = device_names or {}
    hazardous = {
        t["sensor_type"]: t["hazardous_min"]
        for t in thresholds
        if t.get("sensor_type") and t.get("hazardous_min")
    }

    groups: dict[tuple[str, str], list[dict]] = defaultdict(list)
    for reading in readings:
        limit = hazardous.get(reading.get("sensor_type"))
        if limit is None or float(reading["value"]) < limit:
            continue
        groups[(reading["device_id"], reading["sensor_type"])].append(reading)

    prolonged = []
    for (device_id, sensor_type), critical in groups.items():
        critical.sort(key=lambda r: parse_timestamp(r["timestamp"]))
        oldest, newest = critical[0], critical[-1]
        hours = (
            parse_timestamp(newest["timestamp"]) - parse_timestamp(oldest["timestamp"])
        ).total_seconds() / 3600

        if hours >= threshold_hours:
            prolonged.append({
                "device_id": device_id,
                "device_name": device_names.get(device_id, device_id),
                "sensor_type": sensor_type,
                "value": float(newest["value"]),
                "max_value": max(float(r["value"]) for r in critical),
                "threshold": hazardous[sensor_type],
                "unit": newest.get("unit"),
                "first_seen": oldest["timestamp"],
                "last_seen": newest["timestamp"],
                "duration_hours": round(hours, 2),
            })

    return prolonged


async def check_prolonged_alerts(supabase: Client) -> dict:
    """
    Detect prolonged critical readings and escalate them.

    In-app notifications go to notified roles; emails go to admin_email and
    supervisor_email. Without any configured recipient the check is skipped.
    """
    email_settings = get_email_settings(supabase)
    recipients = [
        email for email in (
            email_settings.get("admin_email"),
            email_settings.get("supervisor_email"),
        )
        if email
    ]

    if not recipients:
        logger.info("No email addresses configured for alerts, skipping prolonged check")
        return {
            "success": True,
            "skipped": True,
            "prolonged_alerts": 0,
            "message": "No email addresses configured",
        }

    threshold_hours = alert_threshold_hours(email_settings)
    # The window must be wider than the threshold for a span to reach it
    since = utc_now() - timedelta(hours=threshold_hours * LOOKBACK_FACTOR)

    thresholds = supabase.table("air_quality_thresholds").select(
        "sensor_type, hazardous_min"
    ).execute()

    readings = supabase.table("sensor_readings").select(
        "device_id, sensor_type, value, unit, timestamp"
    ).gte("timestamp", since.isoformat()).order("timestamp", desc=True).execute()

    device_ids = list({r["device_id"] for r in (readings.data or [])})
    device_names: dict[str, str] = {}
    if device_ids:
        devices = supabase.table("devices").select("id, name").in_("id", device_ids).execute()
        device_names = {d["id"]: d.get("name") or d["id"] for d in (devices.data or [])}

    prolonged = find_prolonged_alerts(
        readings.data or [],
        thresholds.data or [],
        threshold_hours,
        device_names,
    )

    logger.info(f"Found {len(prolonged)} prolonged alerts")

    emails_sent = 0
    notifications = 0
    if prolonged:
        notifications = create_prolonged_alert_notifications(supabase, prolonged, threshold_hours)

        subject, html = format_prolonged_alert_email(
            prolonged,
            threshold_hours,
            timezone=get_settings().campus_timezone,
        )
        for email in dict.fromkeys(recipients):
            result = await send_email(to=email, subject=subject, html=html)
            if result.get("id"):
                emails_sent += 1

    return {
        "success": True,
        "skipped": False,
        "prolonged_alerts": len(prolonged),
        "alerts": prolonged,
        "notifications_created": notifications,
        "emails_sent": emails_sent,
        "message": f"Found {len(prolonged)} prolonged critical alerts",
    }
