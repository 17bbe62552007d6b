"""
Device management: CRUD, pending devices, rename and allocation.
"""

from uuid import uuid4

import pytest

from airmonitor.routers.devices import is_pending_name


@pytest.mark.parametrize("name, pending", [
    ("Device DDEEFF", True),
    ("Device :ee:ff", True),
    ("Device 12ab34", True),
    ("Device Room 101", False),
    ("Room 101 Sensor", False),
    ("Device DDEEFF2", False),
    (None, False),
])
def test_is_pending_name(name, pending):
    assert is_pending_name(name) is pending


def test_create_device(client, campus):
    response = client.post("/api/devices/", json={
        "name": "Room 101 Sensor",
        "floor_id": campus.first["id"],
        "mac_address": "AA:BB:CC:DD:EE:FF",
        "installation_date": "2026-01-15",
        "battery_level": 87,
    })
    assert response.status_code == 201
    device = response.json()
    assert device["status"] == "offline"
    assert device["device_type"] == "air_quality_sensor"
    assert device["installation_date"] == "2026-01-15"


def test_create_device_duplicate_mac(client, campus, db):
    db.seed("devices", {"name": "Existing", "mac_address": "AA:BB:CC:DD:EE:FF"})
    response = client.post("/api/devices/", json={
        "name": "Copy",
        "floor_id": campus.first["id"],
        "mac_address": "AA:BB:CC:DD:EE:FF",
    })
    assert response.status_code == 409


def test_create_device_unknown_floor(client):
    response = client.post("/api/devices/", json={"name": "Lost", "floor_id": str(uuid4())})
    assert response.status_code == 404


@pytest.mark.parametrize("field, value", [
    ("battery_level", 101),
    ("signal_strength", 5),
    ("status", "sleeping"),
    ("name", ""),
])
def test_create_device_validation(client, campus, field, value):
    payload = {"name": "Sensor", "floor_id": campus.first["id"], field: value}
    assert client.post("/api/devices/", json=payload).status_code == 422


def test_list_devices_filters(client, db, campus):
    db.seed(
        "devices",
        {"name": "B", "status": "online", "floor_id": campus.first["id"]},
        {"name": "A", "status": "offline", "floor_id": campus.first["id"]},
        {"name": "C", "status": "online", "floor_id": campus.ground["id"]},
    )

    response = client.get("/api/devices/", params={"status": "online"})
    assert [d["name"] for d in response.json()] == ["B", "C"]

    response = client.get("/api/devices/", params={"floor_id": campus.first["id"]})
    assert [d["name"] for d in response.json()] == ["A", "B"]

    response = client.get("/api/devices/", params={"skip": 1, "limit": 1})
    assert [d["name"] for d in response.json()] == ["B"]


def test_pending_devices(client, db):
    db.seed(
        "devices",
        {"name": "Device DDEEFF", "status": "online", "created_at": "2026-03-10T10:00:00+00:00"},
        {"name": "Library Sensor", "status": "online", "created_at": "2026-03-10T11:00:00+00:00"},
    )
    response = client.get("/api/devices/pending")
    assert [d["name"] for d in response.json()] == ["Device DDEEFF"]


def test_rename_device(client, db, user):
    device, = db.seed("devices", {"name": "Device DDEEFF", "status": "online"})
    user.role = "supervisor"

    response = client.patch(f"/api/devices/{device['id']}/name", json={"name": "  Room 204  "})
    assert response.status_code == 200
    assert response.json()["name"] == "Room 204"
    assert response.json()["updated_at"]

    user.role = "viewer"
    response = client.patch(f"/api/devices/{device['id']}/name", json={"name": "Nope"})
    assert response.status_code == 403


def test_allocate_device(client, db, campus):
    device, = db.seed("devices", {"name": "Device DDEEFF", "status": "online", "floor_id": campus.ground["id"]})

    response = client.post(
        f"/api/devices/{device['id']}/allocate",
        json={"floor_id": campus.first["id"], "name": "Room 101"},
    )
    assert response.status_code == 200
    assert response.json()["floor_id"] == campus.first["id"]
    assert response.json()["name"] == "Room 101"

    response = client.post(f"/api/devices/{device['id']}/allocate", json={"floor_id": str(uuid4())})
    assert response.status_code == 404


def test_update_device(client, db):
    device, = db.seed("devices", {"name": "Sensor", "status": "online"})

    response = client.patch(f"/api/devices/{device['id']}", json={"status": "maintenance"})
    assert response.json()["status"] == "maintenance"

    response = client.patch(f"/api/devices/{device['id']}", json={})
    assert response.json()["status"] == "maintenance"


def test_delete_device(client, db):
    device, = db.seed("devices", {"name": "Sensor"})
    assert client.delete(f"/api/devices/{device['id']}").status_code == 204
    assert db.rows("devices") == []
    assert client.get(f"/api/devices/{device['id']}").status_code == 404
