"""
Device online/offline detection and reading retention.
"""

from datetime import timedelta

from airmonitor.services.health_monitor import (
    classify_devices,
    purge_old_readings,
    run_health_check,
)
from airmonitor.services.timestamp import utc_now


def test_classify_devices():
    devices = [
        {"id": "a", "status": "online"},
        {"id": "b", "status": "online"},
        {"id": "c", "status": "offline"},
        {"id": "d", "status": "maintenance"},
        {"id": "e", "status": "error"},
    ]
    going_offline, coming_online = classify_devices(devices, {"a", "c", "e"})

    assert [d["id"] for d in going_offline] == ["b"]
    assert [d["id"] for d in coming_online] == ["c"]


def test_run_health_check_flips_status(db):
    db.seed("profiles", {"email": "s@campus.edu", "role": "supervisor"})
    quiet, talking, fixing = db.seed(
        "devices",
        {"name": "Quiet", "status": "online"},
        {"name": "Talking", "status": "offline"},
        {"name": "Fixing", "status": "maintenance"},
    )
    now = utc_now()
    db.seed(
        "sensor_readings",
        {"device_id": talking["id"], "sensor_type": "co2", "value": 600, "created_at": now.isoformat()},
        {"device_id": quiet["id"], "sensor_type": "co2", "value": 600,
         "created_at": (now - timedelta(minutes=30)).isoformat()},
    )

    report = run_health_check(db, offline_threshold_minutes=5)

    statuses = {d["name"]: d["status"] for d in db.rows("devices")}
    assert statuses == {"Quiet": "offline", "Talking": "online", "Fixing": "maintenance"}

    assert report["total_devices"] == 3
    assert report["online_devices"] == 1
    assert report["devices_went_offline"] == 1
    assert report["devices_came_online"] == 1
    assert report["data_points_last_window"] == 1

    notification, = db.rows("notifications")
    assert notification["title"] == "Device Offline"
    assert "Quiet" in notification["message"]


def test_purge_old_readings(db):
    now = utc_now()
    db.seed(
        "sensor_readings",
        {"device_id": "d", "sensor_type": "co2", "value": 1, "timestamp": (now - timedelta(days=100)).isoformat()},
        {"device_id": "d", "sensor_type": "co2", "value": 2, "timestamp": (now - timedelta(days=1)).isoformat()},
    )

    assert purge_old_readings(db, retention_days=90) == 1
    assert [r["value"] for r in db.rows("sensor_readings")] == [2]


def test_purge_disabled(db):
    db.seed("sensor_readings", {"device_id": "d", "timestamp": "2000-01-01T00:00:00Z"})
    assert purge_old_readings(db, retention_days=0) == 0
    assert len(db.rows("sensor_readings")) == 1


def test_health_check_endpoint(client, db):
    db.seed("devices", {"name": "Quiet", "status": "online"})
    response = client.post("/api/devices/health-check")
    assert response.status_code == 200
    assert response.json()["devices_went_offline"] == 1


def test_health_check_needs_admin(client, user):
    user.role = "supervisor"
    assert client.post("/api/devices/health-check").status_code == 403
