"""
Sensor ingestion: device resolution, reading rows, threshold alerts.
"""

import pytest

from airmonitor.exceptions import IngestError
from airmonitor.services.ingest import (
    auto_device_name,
    build_reading_rows,
    evaluate_thresholds,
    ingest_payload,
    resolve_device,
)

from conftest import DEVICE_SECRET

PM25_THRESHOLD = {
    "sensor_type": "pm25",
    "good_max": 12,
    "moderate_max": 35.4,
    "unhealthy_sensitive_max": 55.4,
    "unhealthy_max": 150.4,
    "very_unhealthy_max": 250.4,
    "hazardous_min": 250.5,
}
CO2_THRESHOLD = {
    "sensor_type": "co2",
    "unhealthy_max": 1500,
    "hazardous_min": 2500,
}


def headers():
    return {"X-Device-Secret": DEVICE_SECRET}


# ============================================
# PURE HELPERS
# ============================================

def test_auto_device_name_uses_last_six_chars():
    assert auto_device_name("AABBCCDDEEFF") == "Device DDEEFF"
    assert auto_device_name("aa:bb:cc:dd:ee:ff") == "Device :ee:ff"


def test_build_reading_rows_skips_missing_values():
    rows = build_reading_rows(
        "dev-1",
        {"pm25": 10.5, "co2": 800, "temperature": None, "voc": 0},
        "2026-03-10T10:00:00Z",
        dominant_pollutant="pm25",
    )
    by_type = {row["sensor_type"]: row for row in rows}

    assert set(by_type) == {"pm25", "co2", "voc", "dominant_pollutant"}
    assert by_type["pm25"]["unit"] == "µg/m³"
    assert by_type["co2"]["unit"] == "ppm"
    assert by_type["dominant_pollutant"] == {
        "device_id": "dev-1",
        "sensor_type": "dominant_pollutant",
        "value": 0,
        "unit": "text",
        "timestamp": "2026-03-10T10:00:00Z",
    }


def test_evaluate_thresholds_severity():
    alerts = evaluate_thresholds(
        "dev-1",
        {"pm25": 300, "co2": 1600, "pm10": 80},
        [PM25_THRESHOLD, CO2_THRESHOLD],
    )
    by_type = {a["sensor_type"]: a for a in alerts}

    assert set(by_type) == {"pm25", "co2"}
    assert by_type["pm25"]["severity"] == "critical"
    assert by_type["pm25"]["threshold_value"] == 150.4
    assert by_type["co2"]["severity"] == "high"
    assert by_type["co2"]["message"] == "CO2 level (1600 ppm) exceeds safe threshold"


def test_evaluate_thresholds_at_limit_is_not_alert():
    assert evaluate_thresholds("dev-1", {"pm25": 150.4}, [PM25_THRESHOLD]) == []


def test_resolve_device_prefers_explicit_id(db):
    assert resolve_device(db, "dev-1", "AABBCCDDEEFF") == {"id": "dev-1", "auto_registered": False}
    assert db.rows("devices") == []


def test_resolve_device_by_mac(db):
    device, = db.seed("devices", {"name": "Room 101 Sensor", "mac_address": "AABBCCDDEEFF"})
    resolved = resolve_device(db, None, "AABBCCDDEEFF")
    assert resolved["id"] == device["id"]
    assert resolved["auto_registered"] is False


def test_resolve_device_auto_registers_on_first_floor(db, campus):
    resolved = resolve_device(db, None, "112233445566")

    assert resolved["auto_registered"] is True
    stored = db.rows("devices")[0]
    assert stored["name"] == "Device 445566"
    assert stored["status"] == "online"
    assert stored["device_type"] == "air_quality_sensor"
    assert stored["floor_id"] == campus.ground["id"]


def test_resolve_device_without_floors(db):
    with pytest.raises(IngestError):
        resolve_device(db, None, "112233445566")


def test_ingest_payload_writes_rows_and_alerts(db, campus):
    db.seed("air_quality_thresholds", PM25_THRESHOLD)
    admin, = db.seed("profiles", {"email": "a@campus.edu", "role": "admin"})
    db.seed("profiles", {"email": "v@campus.edu", "role": "viewer"})
    device, = db.seed("devices", {"name": "Sensor", "status": "offline", "floor_id": campus.first["id"]})

    result = ingest_payload(db, {
        "device_id": device["id"],
        "pm25": 300,
        "co2": 700,
        "timestamp": "2026-03-10T10:00:00Z",
    })

    assert result["readings_processed"] == 2
    assert result["alerts_created"] == 1
    assert db.rows("devices")[0]["status"] == "online"

    alert = db.rows("alerts")[0]
    assert alert["severity"] == "critical"

    notifications = db.rows("notifications")
    assert len(notifications) == 1
    assert notifications[0]["user_id"] == admin["id"]
    assert notifications[0]["type"] == "error"
    assert notifications[0]["alert_id"] == alert["id"]


# ============================================
# ENDPOINT
# ============================================

def test_ingest_requires_device_secret(client, campus):
    response = client.post("/api/readings/ingest", json={"mac_address": "AABBCCDDEEFF", "pm25": 10})
    assert response.status_code == 401

    response = client.post(
        "/api/readings/ingest",
        json={"mac_address": "AABBCCDDEEFF", "pm25": 10},
        headers={"X-Device-Secret": "wrong"},
    )
    assert response.status_code == 401


def test_ingest_auto_registers(client, db, campus):
    response = client.post(
        "/api/readings/ingest",
        json={
            "mac_address": "AABBCCDDEEFF",
            "pm25": 10.2,
            "pm10": 20,
            "co2": 650,
            "temperature": 23.4,
            "humidity": 48,
            "dominant_pollutant": "pm25",
            "timestamp": "2026-03-10T10:00:00Z",
        },
        headers=headers(),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["auto_registered"] is True
    assert body["readings_processed"] == 6
    assert body["alerts_created"] == 0

    assert db.rows("devices")[0]["name"] == "Device DDEEFF"
    assert len(db.rows("sensor_readings")) == 6


def test_ingest_without_floors_is_unprocessable(client):
    response = client.post(
        "/api/readings/ingest",
        json={"mac_address": "AABBCCDDEEFF", "pm25": 10},
        headers=headers(),
    )
    assert response.status_code == 422
    assert "no floors" in response.json()["detail"]


def test_ingest_needs_device_identity(client):
    response = client.post("/api/readings/ingest", json={"pm25": 10}, headers=headers())
    assert response.status_code == 422


def test_ingest_is_not_audited(client, campus, db):
    client.post(
        "/api/readings/ingest",
        json={"mac_address": "AABBCCDDEEFF", "pm25": 10},
        headers=headers(),
    )
    assert db.rows("audit_logs") == []
