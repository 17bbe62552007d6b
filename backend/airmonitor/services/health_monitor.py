"""
Device Health Monitor

Flips device status between online and offline based on whether readings
arrived within the offline window, and purges readings past retention.
"""

import logging
from datetime import timedelta

from supabase import Client

from .notifications import create_device_offline_notification
from .timestamp import utc_now

logger = logging.getLogger(__name__)

# Statuses set by staff; the monitor never overrides them
MANUAL_STATUSES = ("maintenance", "error")


def classify_devices(devices: list[dict], recent_device_ids: set[str]) -> tuple[list[dict], list[dict]]:
    """
    Split devices into those going offline and those coming back online.

    Returns:
        Tuple of (going_offline, coming_online)
    """
    going_offline = []
    coming_online = []

    for device in devices:
        status = device.get("status")
        if status in MANUAL_STATUSES:
            continue

        has_recent_data = device["id"] in recent_device_ids
        if not has_recent_data and status == "online":
            going_offline.append(device)
        elif has_recent_data and status == "offline":
            coming_online.append(device)

    return going_offline, coming_online


def _set_status(supabase: Client, device_ids: list[str], status: str) -> bool:
    try:
        supabase.table("devices").update({
            "status": status,
            "updated_at": utc_now().isoformat()
        }).in_("id", device_ids).execute()
        return True
    except Exception as e:
        logger.error(f"Error updating {len(device_ids)} devices to {status}: {e}")
        return False


def run_health_check(supabase: Client, offline_threshold_minutes: int = 5) -> dict:
    """
    Single health check cycle.

    Returns:
        Health report with device totals and status transitions
    """
    since = utc_now() - timedelta(minutes=offline_threshold_minutes)

    recent = supabase.table("sensor_readings").select(
        "device_id"
    ).gte("created_at", since.isoformat()).execute()
    recent_rows = recent.data or []
    recent_device_ids = {row["device_id"] for row in recent_rows}

    devices = supabase.table("devices").select("id, name, status").execute()
    all_devices = devices.data or []

    going_offline, coming_online = classify_devices(all_devices, recent_device_ids)

    if going_offline and _set_status(supabase, [d["id"] for d in going_offline], "offline"):
        logger.info(f"Updated {len(going_offline)} devices to offline")
        for device in going_offline:
            create_device_offline_notification(supabase, device)

    if coming_online and _set_status(supabase, [d["id"] for d in coming_online], "online"):
        logger.info(f"Updated {len(coming_online)} devices to online")

    online = sum(1 for d in all_devices if d["id"] in recent_device_ids)

    report = {
        "timestamp": utc_now().isoformat(),
        "total_devices": len(all_devices),
        "online_devices": online,
        "offline_devices": len(all_devices) - online,
        "devices_went_offline": len(going_offline),
        "devices_came_online": len(coming_online),
        "data_points_last_window": len(recent_rows),
    }
    logger.debug("Health report", extra={"report": report})
    return report


def purge_old_readings(supabase: Client, retention_days: int) -> int:
    """
    Delete sensor readings older than the retention window.

    Returns:
        Number of rows deleted (as reported by Supabase)
    """
    if retention_days <= 0:
        return 0

    cutoff = utc_now() - timedelta(days=retention_days)
    result = supabase.table("sensor_readings").delete().lt(
        "timestamp", cutoff.isoformat()
    ).execute()

    deleted = len(result.data or [])
    if deleted:
        logger.info(f"Purged {deleted} readings older than {retention_days} days")
    return deleted
