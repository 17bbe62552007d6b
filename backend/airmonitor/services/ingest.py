"""
Sensor Ingestion Service

Stores one payload from a sensor gateway:
1. Resolve the device (explicit id, MAC lookup, or auto-registration)
2. Write one sensor_readings row per measured value
3. Mark the device online
4. Raise threshold alerts for PM10, PM2.5 and CO2
"""

import logging
from typing import Any, Optional

from supabase import Client

from ..exceptions import IngestError
from ..logging_setup import LogContext, log_alert
from .notifications import create_alert_notifications
from .timestamp import utc_now

logger = logging.getLogger(__name__)


# Unit stored with each sensor type
SENSOR_UNITS = {
    "pm03": "µg/m³",
    "pm05": "µg/m³",
    "pm1": "µg/m³",
    "pm25": "µg/m³",
    "pm5": "µg/m³",
    "pm10": "µg/m³",
    "co2": "ppm",
    "temperature": "°C",
    "humidity": "%",
    "voc": "ppb",
    "nox": "ppb",
    "hcho": "µg/m³",
    "pc03": "particles/cm³",
    "pc05": "particles/cm³",
    "pc1": "particles/cm³",
    "pc25": "particles/cm³",
    "pc5": "particles/cm³",
    "aqi_overall": "index",
}

SENSOR_TYPES = tuple(SENSOR_UNITS)

# Sensors checked against air_quality_thresholds on ingest
ALERT_SENSORS = {
    "pm10": "PM10",
    "pm25": "PM2.5",
    "co2": "CO2",
}

AUTO_DEVICE_PREFIX = "Device "
AUTO_DEVICE_TYPE = "air_quality_sensor"


def auto_device_name(mac_address: str) -> str:
    """Name given to auto-registered devices: "Device " + last 6 MAC chars."""
    return f"{AUTO_DEVICE_PREFIX}{mac_address[-6:]}"


def resolve_device(
    supabase: Client,
    device_id: Optional[str],
    mac_address: Optional[str],
) -> dict:
    """
    Find the device a payload belongs to, registering it if unknown.

    Raises:
        IngestError: If no device can be identified or registered
    """
    if device_id:
        return {"id": device_id, "auto_registered": False}

    if not mac_address:
        raise IngestError("Payload has neither device_id nor mac_address")

    existing = supabase.table("devices").select(
        "id, name"
    ).eq("mac_address", mac_address).limit(1).execute()

    if existing.data:
        return {**existing.data[0], "auto_registered": False}

    floor_result = supabase.table("floors").select("id").limit(1).execute()
    if not floor_result.data:
        raise IngestError(
            "Cannot auto-register device: no floors exist",
            mac_address=mac_address,
        )

    new_device = {
        "name": auto_device_name(mac_address),
        "mac_address": mac_address,
        "device_type": AUTO_DEVICE_TYPE,
        "status": "online",
        "floor_id": floor_result.data[0]["id"],
    }
    created = supabase.table("devices").insert(new_device).execute()

    if not created.data:
        raise IngestError("Failed to register device", mac_address=mac_address)

    logger.info(f"Auto-registered new device {created.data[0]['id']} for MAC {mac_address}")
    return {**created.data[0], "auto_registered": True}


def build_reading_rows(
    device_id: str,
    values: dict[str, Any],
    timestamp: str,
    dominant_pollutant: Optional[str] = None,
) -> list[dict]:
    """One sensor_readings row per present value."""
    rows = [
        {
            "device_id": device_id,
            "sensor_type": sensor_type,
            "value": values[sensor_type],
            "unit": SENSOR_UNITS[sensor_type],
            "timestamp": timestamp,
        }
        for sensor_type in SENSOR_TYPES
        if values.get(sensor_type) is not None
    ]

    # Stored as a marker row; the pollutant name itself is not numeric
    if dominant_pollutant is not None:
        rows.append({
            "device_id": device_id,
            "sensor_type": "dominant_pollutant",
            "value": 0,
            "unit": "text",
            "timestamp": timestamp,
        })

    return rows


def evaluate_thresholds(
    device_id: str,
    values: dict[str, Any],
    thresholds: list[dict],
) -> list[dict]:
    """
    Build alert rows for values above their unhealthy limit.

    Severity is critical above hazardous_min, high otherwise.
    """
    by_sensor = {t.get("sensor_type"): t for t in thresholds}
    alerts = []

    for sensor_type, label in ALERT_SENSORS.items():
        value = values.get(sensor_type)
        threshold = by_sensor.get(sensor_type)
        if not value or not threshold or threshold.get("unhealthy_max") is None:
            continue

        unhealthy_max = threshold["unhealthy_max"]
        if value <= unhealthy_max:
            continue

        hazardous_min = threshold.get("hazardous_min")
        severity = "critical" if hazardous_min is not None and value > hazardous_min else "high"

        alerts.append({
            "device_id": device_id,
            "sensor_type": sensor_type,
            "value": value,
            "threshold_value": unhealthy_max,
            "severity": severity,
            "message": f"{label} level ({value} {SENSOR_UNITS[sensor_type]}) exceeds safe threshold",
        })

    return alerts


def check_for_alerts(supabase: Client, device_id: str, values: dict[str, Any]) -> list[dict]:
    """Insert threshold alerts for a payload and notify staff."""
    thresholds = supabase.table("air_quality_thresholds").select("*").execute()
    alerts = evaluate_thresholds(device_id, values, thresholds.data or [])
    if not alerts:
        return []

    result = supabase.table("alerts").insert(alerts).execute()
    created = result.data or alerts

    for alert in created:
        log_alert(
            logger,
            device_id,
            alert["sensor_type"],
            alert["severity"],
            alert["value"],
            alert["threshold_value"],
        )
        create_alert_notifications(supabase, alert)

    return created


def ingest_payload(supabase: Client, payload: dict[str, Any]) -> dict:
    """
    Store a sensor payload.

    Args:
        supabase: Supabase client instance
        payload: Gateway payload (device_id / mac_address, sensor values,
            optional dominant_pollutant, timestamp)

    Returns:
        dict with device_id, readings_processed, alerts_created

    Raises:
        IngestError: If the device cannot be resolved or registered
    """
    device = resolve_device(supabase, payload.get("device_id"), payload.get("mac_address"))
    device_id = device["id"]

    with LogContext(device_id=device_id):
        timestamp = payload.get("timestamp") or utc_now().isoformat()
        rows = build_reading_rows(
            device_id,
            payload,
            timestamp,
            payload.get("dominant_pollutant"),
        )

        if rows:
            supabase.table("sensor_readings").insert(rows).execute()

            try:
                supabase.table("devices").update({
                    "status": "online",
                    "updated_at": utc_now().isoformat()
                }).eq("id", device_id).execute()
            except Exception as e:
                logger.error(f"Error updating device status: {e}")

        logger.info(f"Stored {len(rows)} readings")

    # log_alert carries device_id itself; a LogContext record would clash with it
    alerts = check_for_alerts(supabase, device_id, payload) if rows else []

    return {
        "success": True,
        "device_id": device_id,
        "auto_registered": device.get("auto_registered", False),
        "readings_processed": len(rows),
        "alerts_created": len(alerts),
    }
