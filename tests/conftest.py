from __future__ import annotations

import asyncio
import os
from typing import Dict, List, Tuple

import pytest
from fastapi.testclient import TestClient

# -----------------------------------------------------------------------------
# Environment defaults for tests
# -----------------------------------------------------------------------------

os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.abspath('.test.db')}"
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["ENVIRONMENT"] = "development"
os.environ["AUTO_TRANSCRIBE"] = "false"
for key in ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY", "GOOGLE_APPLICATION_CREDENTIALS",
            "GOOGLE_CLOUD_PROJECT", "OPENAI_API_KEY"):
    os.environ[key] = ""

from fieldlink.core.database import Base, engine  # noqa: E402
from fieldlink.core.dependencies import get_providers  # noqa: E402
from fieldlink.main import app  # noqa: E402
import fieldlink.models  # noqa: E402,F401
from fieldlink.services.analysis import KeywordAnalyzer  # noqa: E402
from fieldlink.services.providers import Providers  # noqa: E402
from fieldlink.services.speech import UnavailableSpeechProvider  # noqa: E402
from fieldlink.services.storage import StoredObject, build_key  # noqa: E402


# -----------------------------------------------------------------------------
# Fakes
# -----------------------------------------------------------------------------


class MemoryStorage:
    """In-memory object storage that records every delete."""

    def __init__(self):
        self.objects: Dict[str, Tuple[bytes, str]] = {}
        self.deleted: List[str] = []
        self.fail_deletes = False

    async def put(self, data: bytes, organization_id: str, filename: str, content_type: str) -> StoredObject:
        key = build_key(organization_id, filename)
        self.objects[key] = (data, content_type)
        return StoredObject(key=key, url=f"memory://{key}")

    async def get(self, key: str):
        return self.objects[key]

    async def delete(self, key: str) -> None:
        self.deleted.append(key)
        if self.fail_deletes:
            raise RuntimeError("storage offline")
        self.objects.pop(key, None)

    async def presign(self, key: str, expires_in: int = 3600) -> str:
        return f"memory://{key}?expires={expires_in}"


# -----------------------------------------------------------------------------
# DB schema setup/teardown
# -----------------------------------------------------------------------------


async def _reset_schema():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture(autouse=True)
def _schema():
    """Every test starts from empty tables."""
    asyncio.run(_reset_schema())
    yield


@pytest.fixture
def anyio_backend():
    return "asyncio"


# -----------------------------------------------------------------------------
# Test client + helpers
# -----------------------------------------------------------------------------


@pytest.fixture()
def storage():
    return MemoryStorage()


@pytest.fixture()
def providers(storage):
    return Providers(storage=storage, speech=UnavailableSpeechProvider(), analyzer=KeywordAnalyzer())


@pytest.fixture()
def client(providers):
    app.dependency_overrides[get_providers] = lambda: providers
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def register(client, email="owner@acme.io", password="password123", organization="Acme Field Co"):
    """Register an organization; returns (headers, payload data)."""
    r = client.post(
        "/api/auth/register",
        json={
            "email": email,
            "password": password,
            "firstName": "Olive",
            "lastName": "Owner",
            "organizationName": organization,
            "industry": "HVAC",
        },
    )
    assert r.status_code == 201, r.text
    client.cookies.clear()
    data = r.json()["data"]
    return {"Authorization": f"Bearer {data['token']}"}, data


def login(client, email, password="password123"):
    r = client.post("/api/auth/login", json={"email": email, "password": password})
    assert r.status_code == 200, r.text
    client.cookies.clear()
    return {"Authorization": f"Bearer {r.json()['data']['token']}"}


def add_member(client, admin_headers, email, role="USER", password="password123"):
    """Create a user in the admin's organization and log them in."""
    r = client.post(
        "/api/users",
        headers=admin_headers,
        json={"email": email, "password": password, "firstName": "Team", "lastName": role.title(), "role": role},
    )
    assert r.status_code == 201, r.text
    return login(client, email, password), r.json()["data"]


@pytest.fixture()
def owner(client):
    return register(client)


@pytest.fixture()
def admin_headers(owner):
    return owner[0]


def upload(client, headers, content=b"RIFF" + b"\x00" * 2048, filename="site-visit.wav",
           content_type="audio/wav", title=None):
    data = {"title": title} if title else {}
    return client.post(
        "/api/recordings/upload",
        headers=headers,
        files={"file": (filename, content, content_type)},
        data=data,
    )
