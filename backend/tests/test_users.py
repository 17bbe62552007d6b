"""
Staff accounts, role restrictions and bearer-token authentication.
"""

import pytest


@pytest.fixture
def staff(db):
    viewer, admin = db.seed(
        "profiles",
        {"email": "viewer@campus.edu", "role": "viewer", "is_active": True, "created_at": "2026-01-01T00:00:00+00:00"},
        {"email": "other.admin@campus.edu", "role": "admin", "is_active": True, "created_at": "2026-02-01T00:00:00+00:00"},
    )
    return viewer, admin


# ============================================
# AUTHENTICATION
# ============================================

def test_bearer_token_resolves_profile(anonymous_client, db):
    profile, = db.seed("profiles", {"email": "sup@campus.edu", "role": "supervisor", "first_name": "Sam"})
    db.auth.tokens["good-token"] = profile["id"]

    response = anonymous_client.get("/api/users/me", headers={"Authorization": "Bearer good-token"})
    assert response.status_code == 200
    assert response.json()["role"] == "supervisor"
    assert response.json()["first_name"] == "Sam"


def test_missing_or_bad_token(anonymous_client):
    assert anonymous_client.get("/api/users/me").status_code == 401
    response = anonymous_client.get("/api/users/me", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401


def test_deactivated_user_is_forbidden(anonymous_client, db):
    profile, = db.seed("profiles", {"email": "gone@campus.edu", "role": "admin", "is_active": False})
    db.auth.tokens["old-token"] = profile["id"]
    response = anonymous_client.get("/api/users/me", headers={"Authorization": "Bearer old-token"})
    assert response.status_code == 403


# ============================================
# MANAGEMENT
# ============================================

def test_list_users_newest_first(client, staff):
    response = client.get("/api/users/")
    assert [u["email"] for u in response.json()] == ["other.admin@campus.edu", "viewer@campus.edu"]


def test_create_user(client, db):
    response = client.post("/api/users/", json={
        "email": "new.sup@campus.edu",
        "password": "correct-horse",
        "role": "supervisor",
        "first_name": "New",
    })
    assert response.status_code == 201
    created = response.json()
    assert created["role"] == "supervisor"
    assert db.auth.users[created["id"]] == "new.sup@campus.edu"


def test_admin_cannot_create_admin(client):
    response = client.post("/api/users/", json={
        "email": "boss@campus.edu",
        "password": "correct-horse",
        "role": "admin",
    })
    assert response.status_code == 403


def test_super_admin_can_create_admin(client, user):
    user.role = "super_admin"
    response = client.post("/api/users/", json={
        "email": "boss@campus.edu",
        "password": "correct-horse",
        "role": "admin",
    })
    assert response.status_code == 201


def test_create_user_rolls_back_auth_account(client, db, monkeypatch):
    original_table = db.table

    def failing_table(name):
        query = original_table(name)
        if name == "profiles":
            def boom():
                raise RuntimeError("duplicate key value")
            query.execute = boom
        return query

    monkeypatch.setattr(db, "table", failing_table)

    response = client.post("/api/users/", json={"email": "x@campus.edu", "password": "correct-horse"})
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to create user profile"
    assert len(db.auth.admin.deleted) == 1
    assert db.auth.users == {}


def test_create_user_validation(client):
    assert client.post("/api/users/", json={"email": "bad", "password": "correct-horse"}).status_code == 422
    assert client.post("/api/users/", json={"email": "a@campus.edu", "password": "short"}).status_code == 422


def test_update_user(client, staff):
    viewer, _ = staff
    response = client.patch(f"/api/users/{viewer['id']}", json={"role": "supervisor", "department": "Facilities"})
    assert response.status_code == 200
    assert response.json()["role"] == "supervisor"
    assert response.json()["department"] == "Facilities"


def test_update_user_needs_fields(client, staff):
    viewer, _ = staff
    response = client.patch(f"/api/users/{viewer['id']}", json={})
    assert response.status_code == 400


def test_admin_cannot_edit_other_admin(client, staff):
    _, other_admin = staff
    response = client.patch(f"/api/users/{other_admin['id']}", json={"phone": "555"})
    assert response.status_code == 403


def test_cannot_deactivate_self(client, db, user):
    db.seed("profiles", {"id": user.id, "email": user.email, "role": "admin"})
    user.role = "super_admin"
    response = client.patch(f"/api/users/{user.id}", json={"is_active": False})
    assert response.status_code == 400


def test_reset_password(client, db, staff):
    viewer, _ = staff
    response = client.post(f"/api/users/{viewer['id']}/reset-password", json={"password": "new-password"})
    assert response.status_code == 200
    assert db.auth.admin.password_updates == [(viewer["id"], {"password": "new-password"})]


def test_delete_user(client, db, staff):
    viewer, _ = staff
    response = client.delete(f"/api/users/{viewer['id']}")
    assert response.status_code == 200
    assert viewer["id"] in db.auth.admin.deleted
    assert [p["email"] for p in db.rows("profiles")] == ["other.admin@campus.edu"]


def test_cannot_delete_self(client, user):
    response = client.delete(f"/api/users/{user.id}")
    assert response.status_code == 400
    assert response.json()["detail"] == "Cannot delete your own account"


def test_unknown_user(client):
    assert client.get("/api/users/does-not-exist").status_code == 404


def test_viewer_cannot_manage_users(client, user):
    user.role = "viewer"
    assert client.get("/api/users/").status_code == 403
