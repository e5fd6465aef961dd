from __future__ import annotations

import asyncio
import uuid
from datetime import timedelta

from sqlalchemy import update

from conftest import add_member, login, register
from fieldlink.core.database import AsyncSessionLocal, utcnow
from fieldlink.models.invitation import Invitation


def invite(client, headers, email="new@acme.io", role="USER"):
    return client.post("/api/invitations", headers=headers, json={"email": email, "role": role})


def expire(invitation_id):
    async def run():
        async with AsyncSessionLocal() as db:
            await db.execute(
                update(Invitation)
                .where(Invitation.id == uuid.UUID(invitation_id))
                .values(expires_at=utcnow() - timedelta(days=1))
            )
            await db.commit()

    asyncio.run(run())


def test_create_invitation_returns_token_in_development(client, owner):
    admin_headers, data = owner
    r = invite(client, admin_headers, email="New@Acme.io", role="MANAGER")
    assert r.status_code == 201, r.text
    invitation = r.json()["data"]
    assert invitation["email"] == "new@acme.io"
    assert invitation["role"] == "MANAGER"
    assert invitation["token"]
    assert invitation["acceptedAt"] is None
    assert invitation["invitedBy"]["email"] == "owner@acme.io"


def test_verify_and_accept_invitation(client, admin_headers):
    token = invite(client, admin_headers).json()["data"]["token"]

    r = client.get(f"/api/invitations/{token}/verify")
    assert r.status_code == 200
    details = r.json()["data"]
    assert details["email"] == "new@acme.io"
    assert details["organizationName"] == "Acme Field Co"
    assert details["role"] == "USER"

    r = client.post(f"/api/invitations/{token}/accept",
                    json={"firstName": "Nia", "lastName": "Newhire", "password": "password123"})
    assert r.status_code == 201, r.text
    payload = r.json()["data"]
    assert payload["token"]
    assert payload["user"]["role"] == "USER"
    assert payload["organization"]["name"] == "Acme Field Co"
    assert "access_token" in r.cookies
    client.cookies.clear()

    new_headers = login(client, "new@acme.io")
    me = client.get("/api/auth/me", headers=new_headers).json()["data"]
    assert me["user"]["organizationId"] == payload["organization"]["id"]

    # Accepted tokens cannot be reused
    assert client.get(f"/api/invitations/{token}/verify").status_code == 404
    r = client.post(f"/api/invitations/{token}/accept",
                    json={"firstName": "Nia", "lastName": "Again", "password": "password123"})
    assert r.status_code == 404


def test_unknown_token_is_not_found(client):
    r = client.get("/api/invitations/not-a-real-token/verify")
    assert r.status_code == 404
    assert r.json()["error"]["message"] == "Invalid or expired invitation"


def test_expired_invitation_cannot_be_accepted(client, admin_headers):
    invitation = invite(client, admin_headers).json()["data"]
    expire(invitation["id"])

    r = client.post(f"/api/invitations/{invitation['token']}/accept",
                    json={"firstName": "Nia", "lastName": "Newhire", "password": "password123"})
    assert r.status_code == 404


def test_manager_can_only_invite_users(client, admin_headers):
    manager_headers, _ = add_member(client, admin_headers, "lead@acme.io", role="MANAGER")

    r = invite(client, manager_headers, role="ADMIN")
    assert r.status_code == 403
    assert r.json()["error"]["message"] == "Only administrators can invite other administrators or managers"

    r = invite(client, manager_headers, role="USER")
    assert r.status_code == 201

    user_headers, _ = add_member(client, admin_headers, "tech@acme.io")
    assert invite(client, user_headers, email="other@acme.io").status_code == 403


def test_invitation_conflicts(client, admin_headers):
    add_member(client, admin_headers, "tech@acme.io")
    r = invite(client, admin_headers, email="tech@acme.io")
    assert r.status_code == 409
    assert r.json()["error"]["message"] == "User with this email is already a member of your organization"

    register(client, email="owner@other.io", organization="Other Co")
    r = invite(client, admin_headers, email="owner@other.io")
    assert r.status_code == 409
    assert r.json()["error"]["message"] == "An account with this email already exists"

    assert invite(client, admin_headers).status_code == 201
    r = invite(client, admin_headers)
    assert r.status_code == 409
    assert r.json()["error"]["message"] == "An active invitation for this email already exists"


def test_list_invitations_filters(client, admin_headers):
    pending = invite(client, admin_headers, email="pending@acme.io").json()["data"]
    stale = invite(client, admin_headers, email="stale@acme.io").json()["data"]
    accepted = invite(client, admin_headers, email="joined@acme.io").json()["data"]
    expire(stale["id"])
    client.post(f"/api/invitations/{accepted['token']}/accept",
                json={"firstName": "Jo", "lastName": "Joined", "password": "password123"})
    client.cookies.clear()

    r = client.get("/api/invitations", headers=admin_headers)
    assert r.status_code == 200
    assert [i["id"] for i in r.json()["data"]] == [pending["id"]]

    r = client.get("/api/invitations", headers=admin_headers,
                   params={"includeExpired": "true", "includeAccepted": "true"})
    assert {i["email"] for i in r.json()["data"]} == {"pending@acme.io", "stale@acme.io", "joined@acme.io"}


def test_resend_extends_expired_invitation(client, admin_headers):
    invitation = invite(client, admin_headers).json()["data"]
    expire(invitation["id"])

    r = client.post(f"/api/invitations/{invitation['id']}/resend", headers=admin_headers)
    assert r.status_code == 200
    assert client.get(f"/api/invitations/{invitation['token']}/verify").status_code == 200


def test_accepted_invitation_cannot_be_resent_or_cancelled(client, admin_headers):
    invitation = invite(client, admin_headers).json()["data"]
    client.post(f"/api/invitations/{invitation['token']}/accept",
                json={"firstName": "Nia", "lastName": "Newhire", "password": "password123"})
    client.cookies.clear()

    r = client.post(f"/api/invitations/{invitation['id']}/resend", headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "This invitation has already been accepted"

    r = client.delete(f"/api/invitations/{invitation['id']}", headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Cannot cancel an invitation that has already been accepted"


def test_cancel_invitation(client, admin_headers):
    invitation = invite(client, admin_headers).json()["data"]
    r = client.delete(f"/api/invitations/{invitation['id']}", headers=admin_headers)
    assert r.status_code == 200
    assert client.get(f"/api/invitations/{invitation['token']}/verify").status_code == 404

    other_headers, _ = register(client, email="owner@other.io", organization="Other Co")
    stranger = invite(client, admin_headers, email="again@acme.io").json()["data"]
    assert client.delete(f"/api/invitations/{stranger['id']}", headers=other_headers).status_code == 404
