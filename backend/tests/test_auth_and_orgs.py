from conftest import org_headers


def test_health(client) -> None:
    response = client.get("/api/system/health")
    assert response.status_code == 200
    assert response.json() == {"data": {"status": "healthy"}}


def test_register_login_and_me(client, register_user) -> None:
    user = register_user("Malee Jaidee")

    response = client.get("/api/auth/me", headers=user["headers"])
    assert response.status_code == 200
    body = response.json()["data"]
    assert body["email"] == user["email"]
    assert body["full_name"] == "Malee Jaidee"
    assert "password_hash" not in body


def test_duplicate_email_conflicts(client, register_user) -> None:
    user = register_user()
    response = client.post(
        "/api/auth/register",
        json={"email": user["email"], "password": "another-pass", "full_name": "Someone"},
    )
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "CONFLICT"


def test_login_ignores_email_case(client, register_user) -> None:
    user = register_user()
    response = client.post(
        "/api/auth/login", json={"email": user["email"].upper(), "password": "s3cret-pass"}
    )
    assert response.status_code == 200
    tokens = response.json()["data"]
    assert tokens["token_type"] == "bearer"
    assert tokens["expires_in"] > 0


def test_wrong_password_is_rejected(client, register_user) -> None:
    user = register_user()
    response = client.post("/api/auth/login", json={"email": user["email"], "password": "wrong-pass"})
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_refresh_then_logout_revokes(client, register_user) -> None:
    user = register_user()
    refresh_token = user["tokens"]["refresh_token"]

    response = client.post("/api/auth/refresh", json={"refresh_token": refresh_token})
    assert response.status_code == 200
    rotated = response.json()["data"]
    assert rotated["access_token"]

    response = client.post(
        "/api/auth/logout",
        json={"refresh_token": rotated["refresh_token"]},
        headers={"Authorization": f"Bearer {rotated['access_token']}"},
    )
    assert response.status_code == 200

    response = client.post("/api/auth/refresh", json={"refresh_token": rotated["refresh_token"]})
    assert response.status_code == 422


def test_requests_without_token_are_refused(client) -> None:
    response = client.get("/api/auth/me")
    assert response.status_code in (401, 403)


def test_creator_becomes_owner(client, owner) -> None:
    response = client.get("/api/organizations", headers=owner["headers"])
    assert response.status_code == 200
    orgs = response.json()["data"]
    assert [o["id"] for o in orgs] == [owner["org"]["id"]]
    assert orgs[0]["role"] == "OWNER"
    assert owner["org"]["slug"]


def test_unknown_organization_looks_missing(client, owner, register_user, create_org) -> None:
    stranger = register_user("Stranger")
    other_org = create_org(stranger, "Other Co.")

    response = client.get("/api/organizations/current", headers=org_headers(owner, other_org))
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "ORGANIZATION_NOT_FOUND"


def test_member_management(client, owner, add_member) -> None:
    staff = add_member(owner, "STAFF", "Staff Member")

    response = client.get("/api/organizations/current", headers=staff["headers"])
    assert response.json()["data"]["role"] == "STAFF"

    response = client.get("/api/organizations/current/members", headers=owner["headers"])
    roles = sorted(m["role"] for m in response.json()["data"])
    assert roles == ["OWNER", "STAFF"]

    response = client.post(
        "/api/organizations/current/members",
        json={"email": staff["email"], "role": "ADMIN"},
        headers=owner["headers"],
    )
    assert response.status_code == 409

    response = client.put("/api/organizations/current", json={"name": "Renamed"}, headers=staff["headers"])
    assert response.status_code == 403


def test_admin_cannot_add_owner(client, owner, add_member, register_user) -> None:
    admin = add_member(owner, "ADMIN", "Admin")
    newcomer = register_user("Newcomer")

    response = client.post(
        "/api/organizations/current/members",
        json={"email": newcomer["email"], "role": "OWNER"},
        headers=admin["headers"],
    )
    assert response.status_code == 422


def test_last_owner_cannot_leave(client, owner) -> None:
    members = client.get("/api/organizations/current/members", headers=owner["headers"]).json()["data"]
    owner_member = members[0]

    response = client.delete(
        f"/api/organizations/current/members/{owner_member['id']}", headers=owner["headers"]
    )
    assert response.status_code == 422
