from __future__ import annotations


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_health_pings_database(client):
    for path in ("/health", "/api/health"):
        r = client.get(path)
        assert r.status_code == 200
        payload = r.json()
        assert payload["status"] == "ok"
        assert payload["database"] == "connected"
        assert payload["environment"] == "development"


def test_request_id_is_echoed(client):
    r = client.get("/healthz", headers={"X-Request-ID": "abc123"})
    assert r.headers["X-Request-ID"] == "abc123"
    assert client.get("/healthz").headers["X-Request-ID"]


def test_api_docs_json_and_markdown(client):
    r = client.get("/api/docs")
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["content"].startswith("# FieldLink API Reference")

    r = client.get("/api/docs", params={"format": "markdown"})
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("text/markdown")
    assert "## Recordings" in r.text


def test_route_table_is_generated(client):
    r = client.get("/api/routes")
    assert r.status_code == 200
    data = r.json()["data"]
    routes = data["routes"]
    assert data["total"] == len(routes) > 50
    upload = [route for route in routes if route["path"] == "/api/recordings/upload"]
    assert upload and upload[0]["methods"] == ["POST"]
    assert upload[0]["tags"] == ["recordings"]
    assert any(route["path"] == "/api/analytics/team" for route in routes)

    recording = [route for route in routes if route["path"] == "/api/recordings/{recording_id}"]
    assert [route["methods"] for route in recording] == [["DELETE"], ["GET"], ["PATCH"]]
    liveness = [route for route in routes if route["path"] == "/healthz"]
    assert liveness[0]["summary"] == "Liveness probe; does not touch the database"
    assert not [route for route in routes if route["path"].startswith("/api/v1/")]


def test_unknown_route_uses_error_envelope(client):
    r = client.get("/api/does-not-exist")
    assert r.status_code == 404
    body = r.json()
    assert body["success"] is False
    assert body["error"]["status"] == 404
