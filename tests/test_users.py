from __future__ import annotations

from conftest import add_member, register, upload


def test_create_and_list_users(client, admin_headers):
    add_member(client, admin_headers, "tech1@acme.io")
    add_member(client, admin_headers, "tech2@acme.io")
    add_member(client, admin_headers, "lead@acme.io", role="MANAGER")

    r = client.get("/api/users", headers=admin_headers, params={"limit": 2, "page": 1})
    assert r.status_code == 200
    body = r.json()
    assert len(body["data"]) == 2
    assert body["pagination"] == {"page": 1, "limit": 2, "total": 4, "totalPages": 2}

    r = client.get("/api/users", headers=admin_headers, params={"role": "MANAGER"})
    assert [u["email"] for u in r.json()["data"]] == ["lead@acme.io"]

    r = client.get("/api/users", headers=admin_headers, params={"search": "TECH2"})
    assert [u["email"] for u in r.json()["data"]] == ["tech2@acme.io"]


def test_create_user_duplicate_email(client, admin_headers):
    add_member(client, admin_headers, "tech@acme.io")
    r = client.post(
        "/api/users",
        headers=admin_headers,
        json={"email": "tech@acme.io", "password": "password123", "firstName": "A", "lastName": "B"},
    )
    assert r.status_code == 409


def test_manager_cannot_create_admin(client, admin_headers):
    manager_headers, _ = add_member(client, admin_headers, "lead@acme.io", role="MANAGER")
    r = client.post(
        "/api/users",
        headers=manager_headers,
        json={"email": "boss@acme.io", "password": "password123", "firstName": "A", "lastName": "B",
              "role": "ADMIN"},
    )
    assert r.status_code == 403

    r = client.post(
        "/api/users",
        headers=manager_headers,
        json={"email": "field@acme.io", "password": "password123", "firstName": "A", "lastName": "B"},
    )
    assert r.status_code == 201
    assert r.json()["data"]["role"] == "USER"


def test_user_cannot_create_users(client, admin_headers):
    user_headers, _ = add_member(client, admin_headers, "tech@acme.io")
    r = client.post(
        "/api/users",
        headers=user_headers,
        json={"email": "x@acme.io", "password": "password123", "firstName": "A", "lastName": "B"},
    )
    assert r.status_code == 403
    assert r.json()["error"]["message"] == "Insufficient permissions"


def test_user_edits_own_profile_only(client, admin_headers):
    user_headers, user = add_member(client, admin_headers, "tech@acme.io")
    _, other = add_member(client, admin_headers, "tech2@acme.io")

    r = client.patch(f"/api/users/{user['id']}", headers=user_headers, json={"firstName": "Tess"})
    assert r.status_code == 200
    assert r.json()["data"]["firstName"] == "Tess"

    r = client.patch(f"/api/users/{other['id']}", headers=user_headers, json={"firstName": "Nope"})
    assert r.status_code == 403

    r = client.patch(f"/api/users/{user['id']}", headers=user_headers, json={"role": "ADMIN"})
    assert r.status_code == 403


def test_role_change_rules(client, owner):
    admin_headers, data = owner
    _, member = add_member(client, admin_headers, "tech@acme.io")

    r = client.patch(f"/api/users/{member['id']}/role", headers=admin_headers, json={"role": "MANAGER"})
    assert r.status_code == 200
    assert r.json()["data"]["role"] == "MANAGER"

    r = client.patch(f"/api/users/{data['user']['id']}/role", headers=admin_headers, json={"role": "USER"})
    assert r.status_code == 403
    assert r.json()["error"]["message"] == "Cannot change your own role"


def test_soft_delete_keeps_user_row(client, owner):
    admin_headers, data = owner
    _, member = add_member(client, admin_headers, "tech@acme.io")

    r = client.delete(f"/api/users/{member['id']}", headers=admin_headers)
    assert r.status_code == 200

    r = client.get(f"/api/users/{member['id']}", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["data"]["isActive"] is False

    r = client.get("/api/users", headers=admin_headers, params={"isActive": "true"})
    assert [u["email"] for u in r.json()["data"]] == ["owner@acme.io"]

    r = client.delete(f"/api/users/{data['user']['id']}", headers=admin_headers)
    assert r.status_code == 403


def test_users_are_isolated_between_organizations(client, owner):
    admin_headers, data = owner
    other_headers, other = register(client, email="owner@other.io", organization="Other Co")

    r = client.get(f"/api/users/{data['user']['id']}", headers=other_headers)
    assert r.status_code == 404
    assert r.json()["error"]["message"] == "User not found"

    r = client.get("/api/users", headers=other_headers)
    assert [u["email"] for u in r.json()["data"]] == ["owner@other.io"]

    r = client.delete(f"/api/users/{other['user']['id']}", headers=admin_headers)
    assert r.status_code == 404

    assert client.get("/api/users/not-a-uuid", headers=admin_headers).status_code == 404


def test_user_stats(client, owner):
    admin_headers, data = owner
    assert upload(client, admin_headers).status_code == 201

    r = client.get(f"/api/users/{data['user']['id']}/stats", headers=admin_headers)
    assert r.status_code == 200
    stats = r.json()["data"]["stats"]
    assert stats["totalRecordings"] == 1
    assert stats["recentRecordings"] == 1
    assert stats["statusBreakdown"] == {"UPLOADED": 1}
