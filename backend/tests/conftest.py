"""
Shared fixtures: an in-memory stand-in for the Supabase client and a
TestClient wired to it through dependency overrides.
"""

import copy
import os
from datetime import datetime, timezone
from types import SimpleNamespace
from uuid import uuid4

import pytest

# Settings are read once and cached; pin the test environment before import
os.environ.setdefault("BACKGROUND_TASKS_ENABLED", "false")
os.environ.setdefault("DEVICE_SECRET", "test-device-secret")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("SUPABASE_URL", "")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "")
os.environ.setdefault("RESEND_API_KEY", "")

from fastapi.testclient import TestClient  # noqa: E402

from airmonitor.dependencies.auth import CurrentUser, get_current_user  # noqa: E402
from airmonitor.main import app  # noqa: E402
from airmonitor.services.supabase import get_settings, get_supabase, supabase_service  # noqa: E402

DEVICE_SECRET = "test-device-secret"


# ============================================
# FAKE SUPABASE
# ============================================

def _comparable(value):
    """ISO timestamps compare as datetimes, everything else as-is."""
    if isinstance(value, str) and "T" in value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return value


class FakeResponse:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    """Chainable query mirroring the subset of postgrest-py the app uses."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.mode = "select"
        self.payload = None
        self.count_mode = None
        self.filters = []
        self.orders = []
        self.offset = 0
        self.row_limit = None

    # ---------- operations ----------

    def select(self, columns: str = "*", count=None):
        self.mode = "select"
        self.count_mode = count
        return self

    def insert(self, rows):
        self.mode = "insert"
        self.payload = rows
        return self

    def update(self, data: dict):
        self.mode = "update"
        self.payload = data
        return self

    def delete(self):
        self.mode = "delete"
        return self

    # ---------- filters ----------

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def is_(self, column, value):
        expected = None if value in (None, "null") else value
        self.filters.append(lambda row: row.get(column) is expected or row.get(column) == expected)
        return self

    def _compare(self, column, value, op):
        def check(row):
            current = row.get(column)
            if current is None:
                return False
            return op(_comparable(current), _comparable(value))
        self.filters.append(check)
        return self

    def gte(self, column, value):
        return self._compare(column, value, lambda a, b: a >= b)

    def lte(self, column, value):
        return self._compare(column, value, lambda a, b: a <= b)

    def lt(self, column, value):
        return self._compare(column, value, lambda a, b: a < b)

    def gt(self, column, value):
        return self._compare(column, value, lambda a, b: a > b)

    # ---------- modifiers ----------

    def order(self, column, desc: bool = False):
        self.orders.append((column, desc))
        return self

    def limit(self, n: int):
        self.row_limit = n
        return self

    def range(self, start: int, end: int):
        self.offset = start
        self.row_limit = end - start + 1
        return self

    # ---------- execution ----------

    def _matches(self, row) -> bool:
        return all(check(row) for check in self.filters)

    def execute(self) -> FakeResponse:
        rows = self.db.tables.setdefault(self.table_name, [])

        if self.mode == "insert":
            new_rows = self.payload if isinstance(self.payload, list) else [self.payload]
            inserted = []
            for row in new_rows:
                stored = {"id": str(uuid4()), "created_at": datetime.now(timezone.utc).isoformat(), **row}
                rows.append(stored)
                inserted.append(copy.deepcopy(stored))
            return FakeResponse(inserted)

        matched = [row for row in rows if self._matches(row)]

        if self.mode == "update":
            for row in matched:
                row.update(copy.deepcopy(self.payload))
            return FakeResponse(copy.deepcopy(matched))

        if self.mode == "delete":
            self.db.tables[self.table_name] = [row for row in rows if not self._matches(row)]
            return FakeResponse(copy.deepcopy(matched))

        for column, desc in reversed(self.orders):
            matched.sort(
                key=lambda r: (r.get(column) is None, _comparable(r.get(column)) if r.get(column) is not None else 0),
                reverse=desc,
            )

        total = len(matched)
        matched = matched[self.offset:]
        if self.row_limit is not None:
            matched = matched[:self.row_limit]

        count = total if self.count_mode == "exact" else None
        return FakeResponse(copy.deepcopy(matched), count)


class FakeAuthAdmin:
    def __init__(self, auth: "FakeAuth"):
        self.auth = auth
        self.deleted = []
        self.password_updates = []

    def create_user(self, attributes: dict):
        user_id = str(uuid4())
        self.auth.users[user_id] = attributes["email"]
        return SimpleNamespace(user=SimpleNamespace(id=user_id, email=attributes["email"]))

    def delete_user(self, user_id: str):
        self.deleted.append(user_id)
        self.auth.users.pop(user_id, None)

    def update_user_by_id(self, user_id: str, attributes: dict):
        self.password_updates.append((user_id, attributes))
        return SimpleNamespace(user=SimpleNamespace(id=user_id))


class FakeAuth:
    def __init__(self):
        self.users: dict[str, str] = {}
        self.tokens: dict[str, str] = {}
        self.admin = FakeAuthAdmin(self)

    def get_user(self, token: str):
        user_id = self.tokens.get(token)
        if user_id is None:
            return None
        return SimpleNamespace(user=SimpleNamespace(id=user_id))


class FakeSupabase:
    """In-memory Supabase client: tables are lists of dict rows."""

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.auth = FakeAuth()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def seed(self, table: str, *rows: dict) -> list[dict]:
        stored = []
        for row in rows:
            full = {"id": str(uuid4()), **row}
            self.tables.setdefault(table, []).append(full)
            stored.append(full)
        return stored

    def rows(self, table: str) -> list[dict]:
        return self.tables.get(table, [])


# ============================================
# FIXTURES
# ============================================

@pytest.fixture
def db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def settings():
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def user() -> CurrentUser:
    """The signed-in user; tests change .role as needed."""
    return CurrentUser(
        id=str(uuid4()),
        email="admin@campus.edu",
        role="admin",
        first_name="Campus",
        last_name="Admin",
    )


@pytest.fixture
def client(db, user, settings, monkeypatch):
    # Code outside request dependencies, like the audit middleware, uses the singleton
    monkeypatch.setattr(supabase_service, "_client", db)
    app.dependency_overrides[get_supabase] = lambda: db
    app.dependency_overrides[get_current_user] = lambda: user
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client(db, settings):
    """Client without the auth override: real bearer-token checks apply."""
    app.dependency_overrides[get_supabase] = lambda: db
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def campus(db):
    """A small campus: one site, building, block, two floors, one room."""
    site, = db.seed("sites", {"name": "Main Campus", "address": "1 University Road"})
    building, = db.seed("buildings", {"site_id": site["id"], "name": "Engineering", "floor_count": 3})
    block, = db.seed("blocks", {"building_id": building["id"], "name": "East Wing"})
    ground, = db.seed("floors", {"building_id": building["id"], "block_id": None, "floor_number": 0, "name": "Ground"})
    first, = db.seed("floors", {"building_id": building["id"], "block_id": block["id"], "floor_number": 1, "name": "First"})
    room, = db.seed("rooms", {"floor_id": first["id"], "name": "Room 101", "room_type": "classroom", "capacity": 30})
    return SimpleNamespace(site=site, building=building, block=block, ground=ground, first=first, room=room)
