"""
Shared fixtures: an isolated SQLite database per test, two tenants with users,
bearer tokens for each user, and a factory for posts.
"""

import uuid

import pytest
from fastapi.testclient import TestClient

from portal.auth_context import create_access_token
from portal.db import Database, get_database
from portal.models import Role
from portal.session import AgencySession, ClientSession


@pytest.fixture
def db(tmp_path):
    database = Database(url=f"sqlite:///{tmp_path / 'test.db'}")
    database.create_schema()
    yield database
    database.dispose()


@pytest.fixture
def seed(db):
    """
    Two tenants (A, B), an agency admin and an agency staff member, one client
    user per tenant, and an inactive client user. Returns ids, sessions and tokens.
    """
    with db.transaction() as store:
        client_a = store.create("clients", {"name": "Tenant A", "email": "a@example.com"})
        client_b = store.create("clients", {"name": "Tenant B", "email": "b@example.com"})
        agency = store.create("users", {"email": "admin@agency.com", "role": Role.AGENCY_ADMIN.value})
        staff = store.create("users", {"email": "staff@agency.com", "role": Role.AGENCY_STAFF.value})
        user_a = store.create(
            "users", {"email": "user@a.com", "role": Role.CLIENT_ADMIN.value, "client_id": client_a["id"]}
        )
        user_b = store.create(
            "users", {"email": "user@b.com", "role": Role.CLIENT_USER.value, "client_id": client_b["id"]}
        )
        inactive = store.create(
            "users",
            {"email": "gone@a.com", "role": Role.CLIENT_USER.value, "client_id": client_a["id"], "is_active": False},
        )

    return {
        "a": client_a["id"],
        "b": client_b["id"],
        "agency": AgencySession(user_id=agency["id"], role=Role.AGENCY_ADMIN),
        "staff": AgencySession(user_id=staff["id"], role=Role.AGENCY_STAFF),
        "client_a": ClientSession(user_id=user_a["id"], role=Role.CLIENT_ADMIN, tenant_id=client_a["id"]),
        "client_b": ClientSession(user_id=user_b["id"], role=Role.CLIENT_USER, tenant_id=client_b["id"]),
        "tokens": {
            "agency": create_access_token({"sub": agency["id"]}),
            "staff": create_access_token({"sub": staff["id"]}),
            "client_a": create_access_token({"sub": user_a["id"]}),
            "client_b": create_access_token({"sub": user_b["id"]}),
            "inactive": create_access_token({"sub": inactive["id"]}),
        },
    }


@pytest.fixture
def api(db):
    from portal.main import app

    app.dependency_overrides[get_database] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def add_post(db):
    """Factory inserting a blog or social post directly, bypassing the API."""

    def _add(table, client_id, status="pending_review", **extra):
        values = {"client_id": client_id, "status": status}
        if table == "blog_posts":
            values.update({"title": "Post", "content": "Body", "slug": f"post-{uuid.uuid4().hex[:8]}"})
        else:
            values.update({"platform": "instagram", "caption": "Caption"})
        values.update(extra)
        with db.transaction() as store:
            return store.create(table, values)

    return _add
