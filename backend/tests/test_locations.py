"""
Location hierarchy CRUD and the nested tree.
"""

from uuid import uuid4

from airmonitor.services.locations import build_location_tree


def test_build_location_tree(campus, db):
    db.seed("devices", {"floor_id": campus.first["id"]}, {"floor_id": campus.first["id"]})

    tree = build_location_tree(
        sites=db.rows("sites"),
        buildings=db.rows("buildings"),
        blocks=db.rows("blocks"),
        floors=db.rows("floors"),
        rooms=db.rows("rooms"),
        devices=db.rows("devices"),
    )

    site, = tree
    building, = site["buildings"]
    assert [f["name"] for f in building["floors"]] == ["Ground"]
    assert building["floors"][0]["device_count"] == 0

    block, = building["blocks"]
    floor, = block["floors"]
    assert floor["device_count"] == 2
    assert [r["name"] for r in floor["rooms"]] == ["Room 101"]


def test_tree_endpoint(client, campus):
    response = client.get("/api/locations/tree")
    assert response.status_code == 200
    assert response.json()[0]["name"] == "Main Campus"


def test_site_crud(client, db):
    response = client.post("/api/locations/sites", json={"name": "  North Campus ", "latitude": 25.2})
    assert response.status_code == 201
    site = response.json()
    assert site["name"] == "North Campus"

    response = client.patch(f"/api/locations/sites/{site['id']}", json={"description": "Labs"})
    assert response.json()["description"] == "Labs"
    assert response.json()["name"] == "North Campus"

    response = client.get(f"/api/locations/sites/{site['id']}")
    assert response.json()["description"] == "Labs"

    assert client.delete(f"/api/locations/sites/{site['id']}").status_code == 204
    assert client.get(f"/api/locations/sites/{site['id']}").status_code == 404


def test_site_validation(client):
    assert client.post("/api/locations/sites", json={"name": "   "}).status_code == 422
    assert client.post("/api/locations/sites", json={"name": "x" * 101}).status_code == 422
    assert client.post("/api/locations/sites", json={"name": "Far", "latitude": 91}).status_code == 422


def test_empty_patch_returns_row_unchanged(client, campus):
    response = client.patch(f"/api/locations/sites/{campus.site['id']}", json={})
    assert response.status_code == 200
    assert response.json()["name"] == "Main Campus"


def test_building_needs_existing_site(client):
    response = client.post("/api/locations/buildings", json={"site_id": str(uuid4()), "name": "Ghost"})
    assert response.status_code == 404


def test_list_buildings_by_site(client, campus, db):
    db.seed("buildings", {"site_id": str(uuid4()), "name": "Elsewhere"})
    response = client.get("/api/locations/buildings", params={"site_id": campus.site["id"]})
    assert [b["name"] for b in response.json()] == ["Engineering"]


def test_floor_needs_a_parent(client):
    response = client.post("/api/locations/floors", json={"floor_number": 2})
    assert response.status_code == 422


def test_floor_from_block_fills_building(client, campus):
    response = client.post(
        "/api/locations/floors",
        json={"block_id": campus.block["id"], "floor_number": 2},
    )
    assert response.status_code == 201
    floor = response.json()
    assert floor["building_id"] == campus.building["id"]
    assert floor["name"] == "Floor 2"


def test_floor_number_range(client, campus):
    response = client.post(
        "/api/locations/floors",
        json={"building_id": campus.building["id"], "floor_number": 500},
    )
    assert response.status_code == 422


def test_floors_ordered_by_number(client, campus):
    client.post("/api/locations/floors", json={"building_id": campus.building["id"], "floor_number": -1})
    response = client.get("/api/locations/floors", params={"building_id": campus.building["id"]})
    assert [f["floor_number"] for f in response.json()] == [-1, 0, 1]


def test_room_create_and_filter(client, campus):
    response = client.post(
        "/api/locations/rooms",
        json={"floor_id": campus.ground["id"], "name": "Lab 1", "room_type": "lab", "capacity": 24},
    )
    assert response.status_code == 201

    response = client.get("/api/locations/rooms", params={"floor_id": campus.ground["id"]})
    assert [r["name"] for r in response.json()] == ["Lab 1"]

    response = client.post(
        "/api/locations/rooms",
        json={"floor_id": campus.ground["id"], "name": "Bad", "capacity": -1},
    )
    assert response.status_code == 422


def test_viewer_cannot_modify(client, user, campus):
    user.role = "viewer"
    assert client.get("/api/locations/sites").status_code == 200
    assert client.post("/api/locations/sites", json={"name": "Nope"}).status_code == 403
    assert client.delete(f"/api/locations/rooms/{campus.room['id']}").status_code == 403


def test_floor_block_must_belong_to_building(client, db, campus):
    other, = db.seed("buildings", {"site_id": campus.site["id"], "name": "Library", "floor_count": 2})

    response = client.post(
        "/api/locations/floors",
        json={"building_id": other["id"], "block_id": campus.block["id"], "floor_number": 2},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Block does not belong to the given building"

    response = client.post(
        "/api/locations/floors",
        json={"building_id": campus.building["id"], "block_id": campus.block["id"], "floor_number": 2},
    )
    assert response.status_code == 201
