import itertools
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from docbox.config import Settings
from docbox.main import create_app

_counter = itertools.count(1)


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path}/test.db",
        storage_path=str(tmp_path / "files"),
        secret_key="test-secret",
        scheduler_enabled=False,
    )


@pytest.fixture()
def client(settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client


def run_in_app(client: TestClient, fn, *args, **kwargs):
    """Run ``fn(db, *args, **kwargs)`` on the app's event loop with a fresh session."""

    async def runner():
        async with client.app.state.session_factory() as db:
            return await fn(db, *args, **kwargs)

    return client.portal.call(runner)


def days_ago(days: int) -> str:
    return (date.today() - timedelta(days=days)).isoformat()


@pytest.fixture()
def register_user(client):
    """Register and log in a user; returns a dict with id, email and auth headers."""

    def _register(full_name: str = "Test User") -> dict:
        email = f"user{next(_counter)}@example.com"
        response = client.post(
            "/api/auth/register",
            json={"email": email, "password": "s3cret-pass", "full_name": full_name},
        )
        assert response.status_code == 201, response.text
        user_id = response.json()["data"]["id"]

        login = client.post("/api/auth/login", json={"email": email, "password": "s3cret-pass"})
        assert login.status_code == 200, login.text
        tokens = login.json()["data"]
        return {
            "id": user_id,
            "email": email,
            "tokens": tokens,
            "headers": {"Authorization": f"Bearer {tokens['access_token']}"},
        }

    return _register


@pytest.fixture()
def create_org(client):
    def _create(user: dict, name: str = "Siam Trading Co., Ltd.") -> dict:
        response = client.post("/api/organizations", json={"name": name}, headers=user["headers"])
        assert response.status_code == 201, response.text
        org = response.json()["data"]
        return org

    return _create


def org_headers(user: dict, org: dict) -> dict:
    return {**user["headers"], "X-Organization-Id": org["id"]}


@pytest.fixture()
def owner(register_user, create_org) -> dict:
    """An organization owner with headers already scoped to their organization."""
    user = register_user("Somchai Owner")
    org = create_org(user)
    return {**user, "org": org, "headers": org_headers(user, org)}


@pytest.fixture()
def add_member(client, register_user):
    """Add a new user to the owner's organization with the given role."""

    def _add(owner: dict, role: str, full_name: str = "Member") -> dict:
        user = register_user(full_name)
        response = client.post(
            "/api/organizations/current/members",
            json={"email": user["email"], "role": role},
            headers=owner["headers"],
        )
        assert response.status_code == 201, response.text
        return {**user, "org": owner["org"], "headers": org_headers(user, owner["org"])}

    return _add


@pytest.fixture()
def create_box(client):
    def _create(member: dict, **fields) -> dict:
        payload = {"amount": 1070.0, "title": "ค่าบริการทำความสะอาด"}
        payload.update(fields)
        response = client.post("/api/boxes", json=payload, headers=member["headers"])
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _create
