"""
Live snapshots, bucketed history and the dashboard summary.
"""

from datetime import timedelta

from airmonitor.services.live_data import (
    bucket_readings,
    latest_readings_per_device,
    summarize_dashboard,
)
from airmonitor.services.timestamp import utc_now


def reading(device_id, sensor_type, value, timestamp):
    return {
        "device_id": device_id,
        "sensor_type": sensor_type,
        "value": value,
        "unit": "",
        "timestamp": timestamp,
    }


def test_latest_reading_wins():
    latest = latest_readings_per_device([
        reading("d1", "co2", 500, "2026-03-10T10:00:00Z"),
        reading("d1", "co2", 900, "2026-03-10T10:05:00Z"),
        reading("d1", "pm25", 12, "2026-03-10T09:00:00+00:00"),
        reading("d2", "co2", 450, "2026-03-10T10:00:00Z"),
    ])
    assert latest["d1"]["co2"]["value"] == 900
    assert latest["d1"]["pm25"]["value"] == 12
    assert latest["d2"]["co2"]["value"] == 450


def test_bucket_readings_averages_per_bucket():
    points = bucket_readings([
        reading("d1", "pm25", 10, "2026-03-10T10:01:00Z"),
        reading("d1", "pm25", 14, "2026-03-10T10:04:59Z"),
        reading("d1", "pm25", 40, "2026-03-10T10:06:00Z"),
        reading("d1", "dominant_pollutant", 0, "2026-03-10T10:06:00Z"),
    ], 300)

    assert [p["timestamp"] for p in points] == [
        "2026-03-10T10:00:00+00:00",
        "2026-03-10T10:05:00+00:00",
    ]
    assert points[0]["pm25"] == 12
    assert points[0]["aqi"] == {"pm25": 50}
    assert "dominant_pollutant" not in points[1]


def test_summarize_dashboard_uses_online_devices():
    snapshots = [
        {"device_id": "a", "device_name": "A", "status": "online", "overall_aqi": 50, "dominant_pollutant": "pm25"},
        {"device_id": "b", "device_name": "B", "status": "online", "overall_aqi": 150, "dominant_pollutant": "pm10"},
        {"device_id": "c", "device_name": "C", "status": "offline", "overall_aqi": 400, "dominant_pollutant": "pm25"},
    ]
    summary = summarize_dashboard(snapshots, active_alerts=3)

    assert summary["total_devices"] == 3
    assert summary["devices_by_status"]["online"] == 2
    assert summary["devices_by_status"]["offline"] == 1
    assert summary["average_aqi"] == 100
    assert summary["aqi_category"] == "Moderate"
    assert summary["worst_device"]["device_id"] == "b"
    assert summary["active_alerts"] == 3


def test_summarize_dashboard_without_data():
    summary = summarize_dashboard([], active_alerts=0)
    assert summary["average_aqi"] is None
    assert summary["worst_device"] is None


# ============================================
# ENDPOINTS
# ============================================

def test_live_endpoint(client, db, campus):
    device, = db.seed("devices", {"name": "Room 101", "status": "online", "floor_id": campus.first["id"]})
    now = utc_now()
    db.seed(
        "sensor_readings",
        reading(device["id"], "pm25", 24, (now - timedelta(minutes=1)).isoformat()),
        reading(device["id"], "co2", 800, now.isoformat()),
        reading(device["id"], "pm25", 5, (now - timedelta(hours=1)).isoformat()),
    )

    response = client.get("/api/readings/live")
    assert response.status_code == 200
    snapshot, = response.json()
    assert snapshot["device_name"] == "Room 101"
    assert snapshot["pm25"] == 24
    assert snapshot["co2"] == 800
    assert snapshot["aqi"] == 76
    assert snapshot["overall_aqi"] == 76
    assert snapshot["dominant_pollutant"] == "pm25"
    assert snapshot["aqi_category"] == "Moderate"


def test_live_device_not_found(client):
    response = client.get("/api/readings/live/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404


def test_history_endpoint(client, db):
    device_id = "11111111-1111-1111-1111-111111111111"
    now = utc_now()
    db.seed(
        "sensor_readings",
        reading(device_id, "co2", 600, (now - timedelta(minutes=20)).isoformat()),
        reading(device_id, "co2", 700, (now - timedelta(hours=3)).isoformat()),
    )

    response = client.get(f"/api/readings/history/{device_id}", params={"period": "1h"})
    assert response.status_code == 200
    body = response.json()
    assert body["bucket_seconds"] == 300
    assert [p["co2"] for p in body["points"]] == [600]

    response = client.get(f"/api/readings/history/{device_id}")
    assert response.json()["period"] == "24h"
    assert len(response.json()["points"]) == 2


def test_history_rejects_unknown_period(client):
    response = client.get(
        "/api/readings/history/11111111-1111-1111-1111-111111111111",
        params={"period": "2w"},
    )
    assert response.status_code == 422


def test_dashboard_endpoint(client, db):
    db.seed("devices", {"name": "A", "status": "online"}, {"name": "B", "status": "maintenance"})
    db.seed("alerts", {"is_resolved": False}, {"is_resolved": True})

    response = client.get("/api/readings/dashboard")
    assert response.status_code == 200
    body = response.json()
    assert body["total_devices"] == 2
    assert body["devices_by_status"]["maintenance"] == 1
    assert body["active_alerts"] == 1


def test_readings_need_login(anonymous_client):
    assert anonymous_client.get("/api/readings/live").status_code == 401
