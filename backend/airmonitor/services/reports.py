"""
Report Builders

Summary reports over a date range, per-classroom performance reports, and
the consolidated campus summary built from them.

Builders are pure: they take rows already fetched from Supabase. The fetch_*
helpers at the bottom run the queries for the routers.
"""

import calendar
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Optional

from supabase import Client

from ..exceptions import ReportDataError
from . import aqi
from . import classroom_scoring as scoring
from .occupancy import OccupancyReading, enhanced_occupancy_pct
from .timestamp import parse_timestamp, to_campus_time, is_operating_hour, utc_now

logger = logging.getLogger(__name__)

DEFAULT_CO2 = 400.0
DEFAULT_TEMPERATURE = 22.0

# Seats assumed per classroom when estimating occupancy
DEFAULT_ROOM_CAPACITY = 30

# Marker rows carry no measurement
NON_NUMERIC_SENSORS = ("dominant_pollutant",)


# ============================================
# HELPERS
# ============================================

def _values(readings: list[dict], sensor_type: str) -> list[float]:
    return [float(r["value"]) for r in readings if r.get("sensor_type") == sensor_type]


def _peak_event(readings: list[dict], device_names: Optional[dict[str, str]] = None) -> Optional[dict]:
    measured = [r for r in readings if r.get("sensor_type") not in NON_NUMERIC_SENSORS]
    if not measured:
        return None
    peak = max(measured, key=lambda r: float(r["value"]))
    return {
        "value": float(peak["value"]),
        "sensor_type": peak["sensor_type"],
        "unit": peak.get("unit"),
        "timestamp": peak.get("timestamp"),
        "device_id": peak.get("device_id"),
        "device_name": (device_names or {}).get(peak.get("device_id")),
    }


def previous_month_range(now: Optional[datetime] = None) -> tuple[datetime, datetime, str]:
    """
    First and last instant of the previous calendar month.

    Returns:
        Tuple of (start, end, label) e.g. "September 2026"
    """
    now = now or utc_now()
    first_this_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    end = first_this_month - timedelta(microseconds=1)
    start = end.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    label = f"{calendar.month_name[start.month]} {start.year}"
    return start, end, label


# ============================================
# SUMMARY REPORT
# ============================================

def summary_text(report: dict) -> str:
    """Deterministic one-paragraph summary of a report."""
    parts = [f"{report['total_readings']} readings were recorded"]

    if report["average_aqi"] is not None:
        parts.append(
            f"the average AQI was {report['average_aqi']} ({report['aqi_category']})"
        )
    else:
        parts.append("no PM2.5 data was available to compute an AQI")

    parts.append(f"{report['alert_count']} alert(s) were raised")
    text = ", ".join(parts[:-1]) + f" and {parts[-1]}."

    peak = report.get("peak_event")
    if peak:
        text += (
            f" The peak reading was {peak['sensor_type']} at {peak['value']:g}"
            f" {peak.get('unit') or ''}".rstrip() + "."
        )
    return text


def build_summary_report(
    readings: list[dict],
    alerts: list[dict],
    period: dict,
    device_names: Optional[dict[str, str]] = None,
) -> dict:
    """
    Summarize readings and alerts for a period.

    Raises:
        ReportDataError: If there are no readings in the period
    """
    if not readings:
        raise ReportDataError(
            "No data available for the requested period",
            period=period.get("label"),
        )

    pm25 = _values(readings, "pm25")
    average_pm25 = scoring.mean(pm25) if pm25 else None
    average_aqi = aqi.pm25_aqi(average_pm25) if average_pm25 is not None else None

    by_sensor: dict[str, list[float]] = defaultdict(list)
    for reading in readings:
        if reading.get("sensor_type") in NON_NUMERIC_SENSORS:
            continue
        by_sensor[reading["sensor_type"]].append(float(reading["value"]))

    sensors = {
        sensor_type: {
            "average": round(scoring.mean(values), 2),
            "min": min(values),
            "max": max(values),
            "count": len(values),
        }
        for sensor_type, values in by_sensor.items()
    }

    report = {
        "period": period,
        "total_readings": len(readings),
        "average_pm25": round(average_pm25, 2) if average_pm25 is not None else None,
        "average_aqi": average_aqi,
        "aqi_category": aqi.aqi_category(average_aqi),
        "peak_event": _peak_event(readings, device_names),
        "alert_count": len(alerts),
        "sensors": sensors,
        "generated_at": utc_now().isoformat(),
    }
    report["summary"] = summary_text(report)
    return report


# ============================================
# CLASSROOM REPORTS
# ============================================

def build_classroom_report(
    device: dict,
    readings: list[dict],
    alert_count: int,
    tz_name: str,
    start_hour: int,
    end_hour: int,
) -> dict:
    """Performance report for one classroom device."""
    operating = []
    after_hours = []
    for reading in readings:
        hour = to_campus_time(reading["timestamp"], tz_name).hour
        (operating if is_operating_hour(hour, start_hour, end_hour) else after_hours).append(reading)

    co2 = _values(readings, "co2")
    pm25 = _values(readings, "pm25")
    temps = _values(readings, "temperature")

    avg_co2 = scoring.mean(co2, DEFAULT_CO2)
    avg_pm25 = scoring.mean(pm25, 0.0)
    avg_temp = scoring.mean(temps, DEFAULT_TEMPERATURE)

    operating_co2 = scoring.mean(_values(operating, "co2"), avg_co2)
    operating_pm25 = scoring.mean(_values(operating, "pm25"), avg_pm25)
    operating_temp = scoring.mean(_values(operating, "temperature"), avg_temp)

    after_co2 = scoring.mean(_values(after_hours, "co2"), DEFAULT_CO2)
    after_pm25 = scoring.mean(_values(after_hours, "pm25"), avg_pm25)
    after_temp = scoring.mean(_values(after_hours, "temperature"), avg_temp)

    stability = scoring.temperature_stability(temps)

    co2_by_hour: dict[int, list[float]] = defaultdict(list)
    for reading in operating:
        if reading.get("sensor_type") == "co2":
            co2_by_hour[to_campus_time(reading["timestamp"], tz_name).hour].append(float(reading["value"]))

    usage_hours = scoring.room_usage_hours(co2_by_hour, start_hour, end_hour)
    efficiency = scoring.efficiency_score(usage_hours, start_hour, end_hour)
    ventilation = scoring.ventilation_score(max(co2, default=DEFAULT_CO2))

    occupancy = enhanced_occupancy_pct(
        [
            OccupancyReading(parse_timestamp(r["timestamp"]), float(r["value"]))
            for r in readings
            if r.get("sensor_type") == "co2"
        ],
        DEFAULT_ROOM_CAPACITY,
        tz_name,
        (start_hour, end_hour),
    )

    average_aqi = aqi.pm25_aqi(avg_pm25) if pm25 else None
    operating_aqi = aqi.pm25_aqi(operating_pm25) if operating_pm25 > 0 else (average_aqi or 0)
    after_aqi = aqi.pm25_aqi(after_pm25) if after_pm25 > 0 else (average_aqi or 0)

    floor = device.get("floors") or {}

    return {
        "classroom_id": device["id"],
        "classroom_name": device.get("name"),
        "floor_id": device.get("floor_id"),
        "floor": floor["floor_number"] if floor.get("floor_number") is not None else 1,
        "total_readings": len(readings),
        "average_aqi": average_aqi,
        "operating_hours_aqi": operating_aqi,
        "after_hours_aqi": after_aqi,
        "average_co2": round(avg_co2, 1),
        "operating_hours_co2": round(operating_co2, 1),
        "after_hours_co2": round(after_co2, 1),
        "average_temperature": round(avg_temp, 1),
        "operating_hours_temp": round(operating_temp, 1),
        "after_hours_temp": round(after_temp, 1),
        "temperature_stability": round(stability, 2),
        "room_usage_hours": round(usage_hours, 2),
        "room_efficiency_score": round(efficiency, 1),
        "occupancy_pct": round(occupancy, 1),
        "ventilation_score": round(ventilation),
        "hvac_efficiency_rating": scoring.hvac_rating(ventilation),
        "alert_count": alert_count,
        "status": scoring.classroom_status(efficiency, ventilation, alert_count),
        "recommendations": scoring.recommendations(
            efficiency=efficiency,
            ventilation=ventilation,
            operating_co2=operating_co2,
            after_hours_co2=after_co2,
            operating_temp=operating_temp,
            after_hours_temp=after_temp,
            temp_stability=stability,
            alert_count=alert_count,
        ),
        "peak_pollution": _peak_event(readings),
    }


def build_classroom_reports(
    devices: list[dict],
    readings: list[dict],
    alerts: list[dict],
    tz_name: str,
    start_hour: int = 8,
    end_hour: int = 18,
) -> list[dict]:
    """One report per device that has readings in the range."""
    readings_by_device: dict[str, list[dict]] = defaultdict(list)
    for reading in readings:
        readings_by_device[reading["device_id"]].append(reading)

    alerts_by_device: dict[str, int] = defaultdict(int)
    for alert in alerts:
        alerts_by_device[alert["device_id"]] += 1

    return [
        build_classroom_report(
            device,
            readings_by_device[device["id"]],
            alerts_by_device[device["id"]],
            tz_name,
            start_hour,
            end_hour,
        )
        for device in devices
        if readings_by_device.get(device["id"])
    ]


def build_consolidated_summary(classrooms: list[dict]) -> dict:
    """
    Campus-wide roll-up of classroom reports.

    Raises:
        ReportDataError: If there are no classroom reports
    """
    if not classrooms:
        raise ReportDataError("No classroom data available for report generation")

    total = len(classrooms)
    top = max(classrooms, key=lambda c: c["room_efficiency_score"])
    bottom = min(classrooms, key=lambda c: c["room_efficiency_score"])

    avg_operating_temp = scoring.mean([c["operating_hours_temp"] for c in classrooms])
    avg_after_temp = scoring.mean([c["after_hours_temp"] for c in classrooms])
    max_variation = max(abs(c["operating_hours_temp"] - c["after_hours_temp"]) for c in classrooms)

    return {
        "total_classrooms": total,
        "average_efficiency": round(scoring.mean([c["room_efficiency_score"] for c in classrooms]), 1),
        "excellent_classrooms": sum(1 for c in classrooms if c["status"] == "excellent"),
        "needs_attention_classrooms": sum(
            1 for c in classrooms if c["status"] in ("needs_attention", "critical")
        ),
        "total_alerts": sum(c["alert_count"] for c in classrooms),
        "top_performer": {
            "name": top["classroom_name"],
            "efficiency": top["room_efficiency_score"],
            "ventilation": top["ventilation_score"],
        },
        "bottom_performer": {
            "name": bottom["classroom_name"],
            "efficiency": bottom["room_efficiency_score"],
            "issues": "; ".join(bottom["recommendations"]),
        },
        "temperature_insights": {
            "avg_operating_temp": round(avg_operating_temp, 1),
            "avg_after_hours_temp": round(avg_after_temp, 1),
            "max_temp_variation": round(max_variation, 1),
            "energy_saving_opportunity": "High" if max_variation < 2 else "Moderate",
        },
        "generated_at": utc_now().isoformat(),
    }


# ============================================
# QUERIES
# ============================================

def fetch_readings(
    supabase: Client,
    start: datetime,
    end: datetime,
    device_ids: Optional[list[str]] = None,
) -> list[dict]:
    query = supabase.table("sensor_readings").select(
        "device_id, sensor_type, value, unit, timestamp"
    )
    if device_ids is not None:
        query = query.in_("device_id", device_ids)
    result = query.gte(
        "timestamp", start.isoformat()
    ).lte(
        "timestamp", end.isoformat()
    ).order("timestamp").execute()
    return result.data or []


def fetch_alerts(
    supabase: Client,
    start: datetime,
    end: datetime,
    device_ids: Optional[list[str]] = None,
) -> list[dict]:
    query = supabase.table("alerts").select("id, device_id, severity, sensor_type")
    if device_ids is not None:
        query = query.in_("device_id", device_ids)
    result = query.gte(
        "created_at", start.isoformat()
    ).lte(
        "created_at", end.isoformat()
    ).execute()
    return result.data or []


def fetch_device_names(supabase: Client) -> dict[str, str]:
    result = supabase.table("devices").select("id, name").execute()
    return {d["id"]: d.get("name") for d in (result.data or [])}


def generate_summary_report(
    supabase: Client,
    start: datetime,
    end: datetime,
    label: Optional[str] = None,
) -> dict:
    """Fetch and summarize readings and alerts for a range."""
    start = parse_timestamp(start)
    end = parse_timestamp(end)
    period = {
        "start": start.isoformat(),
        "end": end.isoformat(),
        "label": label or f"{start.date()} to {end.date()}",
    }
    return build_summary_report(
        fetch_readings(supabase, start, end),
        fetch_alerts(supabase, start, end),
        period,
        fetch_device_names(supabase),
    )


def generate_classroom_reports(
    supabase: Client,
    start: datetime,
    end: datetime,
    tz_name: str,
    start_hour: int,
    end_hour: int,
) -> list[dict]:
    devices = supabase.table("devices").select(
        "id, name, status, floor_id, floors(floor_number)"
    ).execute()
    device_rows = devices.data or []
    if not device_rows:
        return []

    device_ids = [d["id"] for d in device_rows]
    start = parse_timestamp(start)
    end = parse_timestamp(end)

    return build_classroom_reports(
        device_rows,
        fetch_readings(supabase, start, end, device_ids),
        fetch_alerts(supabase, start, end, device_ids),
        tz_name,
        start_hour,
        end_hour,
    )
