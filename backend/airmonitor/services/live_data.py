"""
Live and Historical Sensor Data

Builds per-device snapshots from the newest reading of each sensor type,
averages history into chart buckets, and summarizes the campus for the
dashboard.
"""

import logging
from collections import defaultdict
from datetime import timedelta
from typing import Optional

from supabase import Client

from . import aqi
from .timestamp import align_timestamp, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

# Enough rows to cover every sensor type of one payload
LATEST_READINGS_LIMIT = 50

# period → (lookback, bucket size in seconds)
HISTORY_PERIODS = {
    "1h": (timedelta(hours=1), 5 * 60),
    "24h": (timedelta(hours=24), 60 * 60),
    "7d": (timedelta(days=7), 6 * 60 * 60),
    "30d": (timedelta(days=30), 24 * 60 * 60),
}

DEVICE_STATUSES = ("online", "offline", "maintenance", "error")


def latest_readings_per_device(readings: list[dict]) -> dict[str, dict[str, dict]]:
    """
    Keep the newest reading for each (device, sensor type).

    Returns:
        {device_id: {sensor_type: reading}}
    """
    latest: dict[str, dict[str, dict]] = defaultdict(dict)

    for reading in readings:
        device_id = reading["device_id"]
        sensor_type = reading["sensor_type"]
        current = latest[device_id].get(sensor_type)
        if current is None or parse_timestamp(reading["timestamp"]) > parse_timestamp(current["timestamp"]):
            latest[device_id][sensor_type] = reading

    return dict(latest)


def build_snapshot(device: dict, latest: dict[str, dict]) -> dict:
    """Snapshot of one device from its newest reading per sensor type."""
    values = {
        sensor_type: reading["value"]
        for sensor_type, reading in latest.items()
        if sensor_type != "dominant_pollutant"
    }

    # Gateway-computed AQI wins; fall back to PM2.5
    pm25 = values.get("pm25") or 0
    device_aqi = values.get("aqi_overall")
    if device_aqi is None and pm25 > 0:
        device_aqi = aqi.pm25_aqi(pm25)

    overall = aqi.overall_aqi(values)

    if latest:
        newest = max((reading["timestamp"] for reading in latest.values()), key=parse_timestamp)
        last_updated = parse_timestamp(newest).isoformat()
    else:
        last_updated = utc_now().isoformat()

    return {
        "device_id": device["id"],
        "device_name": device.get("name"),
        "floor_id": device.get("floor_id"),
        "status": device.get("status"),
        **values,
        "aqi": device_aqi,
        "overall_aqi": overall,
        "dominant_pollutant": aqi.dominant_pollutant(values),
        "aqi_category": aqi.aqi_category(overall),
        "last_updated": last_updated,
    }


def fetch_device_snapshot(supabase: Client, device: dict) -> dict:
    result = supabase.table("sensor_readings").select(
        "device_id, sensor_type, value, unit, timestamp"
    ).eq("device_id", device["id"]).order(
        "timestamp", desc=True
    ).limit(LATEST_READINGS_LIMIT).execute()

    latest = latest_readings_per_device(result.data or [])
    return build_snapshot(device, latest.get(device["id"], {}))


def get_live_snapshots(supabase: Client) -> list[dict]:
    """One snapshot per device."""
    devices = supabase.table("devices").select("id, name, status, floor_id").execute()
    return [fetch_device_snapshot(supabase, device) for device in (devices.data or [])]


def bucket_readings(readings: list[dict], bucket_seconds: int) -> list[dict]:
    """
    Average readings into fixed-width time buckets.

    Each bucket carries the mean of every sensor type seen in it plus the
    AQI of each pollutant computed from those means.
    """
    sums: dict = defaultdict(lambda: defaultdict(float))
    counts: dict = defaultdict(lambda: defaultdict(int))

    for reading in readings:
        if reading["sensor_type"] == "dominant_pollutant":
            continue
        bucket = align_timestamp(parse_timestamp(reading["timestamp"]), bucket_seconds)
        sums[bucket][reading["sensor_type"]] += float(reading["value"])
        counts[bucket][reading["sensor_type"]] += 1

    points = []
    for bucket in sorted(sums):
        means = {
            sensor_type: round(total / counts[bucket][sensor_type], 2)
            for sensor_type, total in sums[bucket].items()
        }
        points.append({
            "timestamp": bucket.isoformat(),
            **means,
            "aqi": aqi.pollutant_aqis(means),
            "overall_aqi": aqi.overall_aqi(means),
        })

    return points


def get_history(supabase: Client, device_id: str, period: str) -> dict:
    """Bucketed history for one device over a named period."""
    lookback, bucket_seconds = HISTORY_PERIODS[period]
    start = utc_now() - lookback

    result = supabase.table("sensor_readings").select(
        "device_id, sensor_type, value, timestamp"
    ).eq("device_id", device_id).gte(
        "timestamp", start.isoformat()
    ).order("timestamp").execute()

    return {
        "device_id": device_id,
        "period": period,
        "bucket_seconds": bucket_seconds,
        "start": start.isoformat(),
        "points": bucket_readings(result.data or [], bucket_seconds),
    }


def summarize_dashboard(snapshots: list[dict], active_alerts: int) -> dict:
    """Campus-wide summary from live snapshots."""
    status_counts = {status: 0 for status in DEVICE_STATUSES}
    for snapshot in snapshots:
        status = snapshot.get("status") or "offline"
        status_counts[status] = status_counts.get(status, 0) + 1

    online = [
        s for s in snapshots
        if s.get("status") == "online" and s.get("overall_aqi") is not None
    ]
    average: Optional[float] = aqi.average_aqi([s["overall_aqi"] for s in online])

    worst = max(online, key=lambda s: s["overall_aqi"], default=None)

    return {
        "total_devices": len(snapshots),
        "devices_by_status": status_counts,
        "active_alerts": active_alerts,
        "average_aqi": round(average, 1) if average is not None else None,
        "aqi_category": aqi.aqi_category(average),
        "worst_device": {
            "device_id": worst["device_id"],
            "device_name": worst["device_name"],
            "overall_aqi": worst["overall_aqi"],
            "dominant_pollutant": worst["dominant_pollutant"],
        } if worst else None,
        "timestamp": utc_now().isoformat(),
    }


def get_dashboard(supabase: Client) -> dict:
    snapshots = get_live_snapshots(supabase)

    alerts = supabase.table("alerts").select(
        "id", count="exact"
    ).eq("is_resolved", False).execute()
    active_alerts = alerts.count if alerts.count is not None else len(alerts.data or [])

    return summarize_dashboard(snapshots, active_alerts)
