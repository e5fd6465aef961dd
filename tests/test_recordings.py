from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select

from conftest import add_member, register, upload
from fieldlink.core.config import settings
from fieldlink.core.database import AsyncSessionLocal
from fieldlink.models.analysis_result import AnalysisResult
from fieldlink.models.transcription import Transcription
from fieldlink.services.transcription import MOCK_NOTE


def child_rows(recording_id):
    """(transcriptions, analyses) stored for a recording"""
    async def run():
        async with AsyncSessionLocal() as db:
            counts = []
            for model in (Transcription, AnalysisResult):
                query = select(func.count()).select_from(model).where(model.recording_id == uuid.UUID(recording_id))
                counts.append((await db.execute(query)).scalar_one())
            return tuple(counts)

    return asyncio.run(run())


def test_upload_stores_blob_under_org_prefix(client, owner, storage):
    admin_headers, data = owner
    r = upload(client, admin_headers)
    assert r.status_code == 201, r.text
    recording = r.json()["data"]
    org_id = data["organization"]["id"]

    assert recording["title"] == "site-visit"
    assert recording["status"] == "UPLOADED"
    assert recording["fileSize"] == 2052
    assert recording["mimeType"] == "audio/wav"
    assert recording["storageKey"].startswith(f"recordings/{org_id}/")
    assert recording["storageKey"].endswith("-site-visit.wav")
    assert recording["storageKey"] in storage.objects
    assert recording["user"]["email"] == "owner@acme.io"


def test_upload_uses_given_title(client, admin_headers):
    r = upload(client, admin_headers, title="Furnace install walkthrough")
    assert r.status_code == 201
    assert r.json()["data"]["title"] == "Furnace install walkthrough"


def test_upload_rejects_non_audio(client, admin_headers, storage):
    r = upload(client, admin_headers, filename="notes.txt", content_type="text/plain")
    assert r.status_code == 400
    assert r.json()["error"]["message"].startswith("Invalid file type: text/plain")
    assert storage.objects == {}


def test_upload_rejects_empty_file(client, admin_headers):
    r = upload(client, admin_headers, content=b"")
    assert r.status_code == 400


def test_upload_auto_transcribes(client, admin_headers, monkeypatch):
    monkeypatch.setattr(settings, "AUTO_TRANSCRIBE", True)
    r = upload(client, admin_headers)
    assert r.status_code == 201
    recording_id = r.json()["data"]["id"]

    r = client.get(f"/api/recordings/{recording_id}", headers=admin_headers)
    detail = r.json()["data"]
    assert detail["status"] == "COMPLETED"
    assert detail["transcription"]["confidence"] == 0.5
    assert detail["transcription"]["text"].endswith(MOCK_NOTE)
    assert detail["duration"] == 30


def test_create_list_and_get_recordings(client, admin_headers):
    r = client.post(
        "/api/recordings",
        headers=admin_headers,
        json={"title": "Phone call", "duration": 95, "fileSize": 1000, "mimeType": "audio/mpeg"},
    )
    assert r.status_code == 201
    created = r.json()["data"]
    assert created["status"] == "UPLOADED"

    upload(client, admin_headers)

    r = client.get("/api/recordings", headers=admin_headers, params={"sortBy": "title", "order": "asc"})
    assert r.status_code == 200
    body = r.json()
    assert [rec["title"] for rec in body["data"]] == ["Phone call", "site-visit"]
    assert body["pagination"]["total"] == 2

    r = client.get(f"/api/recordings/{created['id']}", headers=admin_headers)
    detail = r.json()["data"]
    assert detail["title"] == "Phone call"
    assert detail["transcription"] is None
    assert detail["analysisResult"] is None

    r = client.get("/api/recordings", headers=admin_headers, params={"status": "COMPLETED"})
    assert r.json()["data"] == []


def test_list_recordings_filters_by_user(client, admin_headers):
    member_headers, member = add_member(client, admin_headers, "tech@acme.io")
    upload(client, admin_headers)
    upload(client, member_headers, title="Tech visit")

    r = client.get("/api/recordings", headers=admin_headers, params={"userId": member["id"]})
    assert [rec["title"] for rec in r.json()["data"]] == ["Tech visit"]


def test_update_recording(client, admin_headers):
    recording_id = upload(client, admin_headers).json()["data"]["id"]
    r = client.patch(f"/api/recordings/{recording_id}", headers=admin_headers, json={"title": "Renamed"})
    assert r.status_code == 200
    assert r.json()["data"]["title"] == "Renamed"
    assert r.json()["data"]["user"]["email"] == "owner@acme.io"


def test_delete_removes_blob_once(client, admin_headers, storage):
    recording = upload(client, admin_headers).json()["data"]
    client.post(f"/api/recordings/{recording['id']}/transcription", headers=admin_headers,
                json={"text": "Customer asked about price."})
    assert client.post(f"/api/recordings/{recording['id']}/analysis", headers=admin_headers).status_code == 201
    assert child_rows(recording["id"]) == (1, 1)

    r = client.delete(f"/api/recordings/{recording['id']}", headers=admin_headers)
    assert r.status_code == 200
    assert storage.deleted == [recording["storageKey"]]
    assert client.get(f"/api/recordings/{recording['id']}", headers=admin_headers).status_code == 404
    assert child_rows(recording["id"]) == (0, 0)


def test_status_only_moves_forward(client, admin_headers):
    recording_id = upload(client, admin_headers).json()["data"]["id"]
    url = f"/api/recordings/{recording_id}"

    r = client.patch(url, headers=admin_headers, json={"status": "COMPLETED"})
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Cannot change status from UPLOADED to COMPLETED"

    assert client.patch(url, headers=admin_headers, json={"status": "UPLOADED"}).status_code == 200
    assert client.patch(url, headers=admin_headers, json={"status": "TRANSCRIBING"}).status_code == 200
    assert client.patch(url, headers=admin_headers, json={"status": "FAILED"}).status_code == 200

    r = client.patch(url, headers=admin_headers, json={"status": "UPLOADED"})
    assert r.status_code == 400
    assert client.get(url, headers=admin_headers).json()["data"]["status"] == "FAILED"


def test_delete_succeeds_when_storage_fails(client, admin_headers, storage):
    recording = upload(client, admin_headers).json()["data"]
    storage.fail_deletes = True

    r = client.delete(f"/api/recordings/{recording['id']}", headers=admin_headers)
    assert r.status_code == 200
    assert storage.deleted == [recording["storageKey"]]
    assert client.get(f"/api/recordings/{recording['id']}", headers=admin_headers).status_code == 404


def test_playback_url(client, admin_headers):
    recording = upload(client, admin_headers).json()["data"]
    r = client.get(f"/api/recordings/{recording['id']}/playback-url", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["data"] == {
        "url": f"memory://{recording['storageKey']}?expires=3600",
        "expiresIn": 3600,
    }

    bare = client.post("/api/recordings", headers=admin_headers, json={"title": "No audio"}).json()["data"]
    r = client.get(f"/api/recordings/{bare['id']}/playback-url", headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["error"]["message"] == "Recording has no stored audio"


def test_transcribe_without_speech_provider_uses_mock(client, admin_headers):
    recording_id = upload(client, admin_headers).json()["data"]["id"]
    r = client.post(f"/api/recordings/{recording_id}/transcribe", headers=admin_headers)
    assert r.status_code == 200, r.text
    result = r.json()["data"]
    assert result["confidence"] == 0.5
    assert result["text"].endswith(MOCK_NOTE)
    assert result["speakerCount"] == 2
    assert result["duration"] == 30.0
    assert result["wordCount"] >= 75
    assert {segment["speaker"] for segment in result["speakerSegments"]} <= {"Speaker 1", "Speaker 2"}

    r = client.get(f"/api/recordings/{recording_id}/transcription", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["data"]["text"] == result["text"]

    r = client.get(f"/api/recordings/{recording_id}", headers=admin_headers)
    assert r.json()["data"]["status"] == "COMPLETED"


def test_transcribe_requires_stored_audio(client, admin_headers):
    bare = client.post("/api/recordings", headers=admin_headers, json={"title": "No audio"}).json()["data"]
    r = client.post(f"/api/recordings/{bare['id']}/transcribe", headers=admin_headers)
    assert r.status_code == 400


def test_manual_transcription_create_then_update(client, admin_headers):
    recording_id = upload(client, admin_headers).json()["data"]["id"]

    r = client.get(f"/api/recordings/{recording_id}/transcription", headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["error"]["message"] == "Transcription not found"

    r = client.post(f"/api/recordings/{recording_id}/transcription", headers=admin_headers,
                    json={"content": "First draft of the call."})
    assert r.status_code == 201
    assert r.json()["data"]["text"] == "First draft of the call."
    assert r.json()["data"]["confidence"] == 1.0

    r = client.post(
        f"/api/recordings/{recording_id}/transcription",
        headers=admin_headers,
        json={
            "text": "Corrected call transcript.",
            "confidence": 0.9,
            "speakerSegments": [{"text": "Corrected call transcript.", "startTime": 0, "endTime": 2.5}],
        },
    )
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["text"] == "Corrected call transcript."
    assert data["speakerSegments"][0]["speaker"] == "Speaker 1"

    r = client.get(f"/api/recordings/{recording_id}", headers=admin_headers)
    assert r.json()["data"]["status"] == "COMPLETED"


def test_analysis_requires_transcription(client, admin_headers):
    recording_id = upload(client, admin_headers).json()["data"]["id"]
    r = client.post(f"/api/recordings/{recording_id}/analysis", headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Recording must be transcribed before analysis"

    r = client.get(f"/api/recordings/{recording_id}", headers=admin_headers)
    assert r.json()["data"]["status"] == "UPLOADED"

    r = client.get(f"/api/recordings/{recording_id}/analysis", headers=admin_headers)
    assert r.status_code == 404


def test_analysis_with_keyword_analyzer(client, admin_headers):
    recording_id = upload(client, admin_headers).json()["data"]["id"]
    client.post(
        f"/api/recordings/{recording_id}/transcription",
        headers=admin_headers,
        json={"text": "The customer asked about the price. We will follow up next week."},
    )

    r = client.post(f"/api/recordings/{recording_id}/analysis", headers=admin_headers)
    assert r.status_code == 201, r.text
    analysis = r.json()["data"]
    assert {o["type"] for o in analysis["salesOpportunities"]} == {"upsell", "follow-up"}
    assert analysis["sentiment"]["overall"] == "neutral"
    assert analysis["actionItems"][0]["title"] == "Review conversation"
    assert analysis["processScore"] == {}

    # Re-running replaces the existing analysis
    r = client.post(f"/api/recordings/{recording_id}/analysis", headers=admin_headers)
    assert r.status_code == 201
    assert r.json()["data"]["id"] == analysis["id"]

    detail = client.get(f"/api/recordings/{recording_id}", headers=admin_headers).json()["data"]
    assert detail["status"] == "COMPLETED"
    assert detail["analysisResult"]["id"] == analysis["id"]


def test_analysis_scores_default_template(client, admin_headers):
    r = client.post(
        "/api/process-templates",
        headers=admin_headers,
        json={
            "name": "Service call",
            "isDefault": True,
            "steps": [
                {"name": "Greeting", "order": 1, "keywords": ["hello", "thanks for having"]},
                {"name": "Pricing", "order": 2, "keywords": ["price", "quote"]},
            ],
        },
    )
    assert r.status_code == 201, r.text
    template_id = r.json()["data"]["id"]

    recording_id = upload(client, admin_headers).json()["data"]["id"]
    client.post(f"/api/recordings/{recording_id}/transcription", headers=admin_headers,
                json={"text": "We went over the price of the new unit."})
    analysis = client.post(f"/api/recordings/{recording_id}/analysis", headers=admin_headers).json()["data"]

    score = analysis["processScore"]
    assert score["templateId"] == template_id
    assert score["totalSteps"] == 2
    assert score["completedSteps"] == 1
    assert score["missedSteps"] == ["Greeting"]
    assert score["overallScore"] == 25
    assert score["recommendations"] == ['Ensure to cover the "Greeting" step in future conversations']

    template = client.get(f"/api/process-templates/{template_id}", headers=admin_headers).json()["data"]
    assert template["usageCount"] == 1


def test_recordings_are_isolated_between_organizations(client, admin_headers):
    recording_id = upload(client, admin_headers).json()["data"]["id"]
    other_headers, _ = register(client, email="owner@other.io", organization="Other Co")

    for method, path in (
        ("get", f"/api/recordings/{recording_id}"),
        ("delete", f"/api/recordings/{recording_id}"),
        ("get", f"/api/recordings/{recording_id}/playback-url"),
        ("post", f"/api/recordings/{recording_id}/transcribe"),
    ):
        r = client.request(method.upper(), path, headers=other_headers)
        assert r.status_code == 404, path
        assert r.json()["error"]["message"] == "Recording not found"

    assert client.get("/api/recordings", headers=other_headers).json()["data"] == []
    assert client.get(f"/api/recordings/{recording_id}", headers=admin_headers).status_code == 200


def test_recording_stats(client, admin_headers):
    upload(client, admin_headers)
    client.post("/api/recordings", headers=admin_headers, json={"title": "Call", "duration": 90})

    r = client.get("/api/recordings/stats", headers=admin_headers)
    assert r.status_code == 200
    stats = r.json()["data"]
    assert stats["totalRecordings"] == 2
    assert stats["byStatus"] == {"UPLOADED": 2}
    assert stats["totalStorage"] == 2052
    assert stats["totalDuration"] == 90
    assert stats["averageDuration"] == 45.0
    today = datetime.now(timezone.utc).date().isoformat()
    assert stats["byDate"] == [{"date": today, "count": 2}]


def test_recordings_by_date_range(client, admin_headers):
    upload(client, admin_headers)
    today = datetime.now(timezone.utc).date()

    r = client.get("/api/recordings/date-range", headers=admin_headers,
                   params={"startDate": today.isoformat(), "endDate": today.isoformat()})
    assert r.status_code == 200
    assert r.json()["pagination"]["total"] == 1

    yesterday = today - timedelta(days=1)
    r = client.get("/api/recordings/date-range", headers=admin_headers,
                   params={"startDate": (yesterday - timedelta(days=5)).isoformat(), "endDate": yesterday.isoformat()})
    assert r.json()["data"] == []

    r = client.get("/api/recordings/date-range", headers=admin_headers,
                   params={"startDate": today.isoformat(), "endDate": yesterday.isoformat()})
    assert r.status_code == 400


def test_search_transcriptions(client, admin_headers):
    first = upload(client, admin_headers, title="First").json()["data"]["id"]
    second = upload(client, admin_headers, title="Second").json()["data"]["id"]
    client.post(f"/api/recordings/{first}/transcription", headers=admin_headers,
                json={"text": "Price came up early. The price was fine. PRICE again at the end."})
    client.post(f"/api/recordings/{second}/transcription", headers=admin_headers,
                json={"text": "Nothing about money here."})

    r = client.get("/api/transcriptions/search", headers=admin_headers, params={"query": "price"})
    assert r.status_code == 200
    body = r.json()
    assert body["pagination"]["total"] == 1
    hit = body["data"][0]
    assert hit["recordingId"] == first
    assert hit["recording"]["title"] == "First"
    assert hit["matchCount"] == 3
    assert "<mark>Price</mark>" in hit["snippets"][0]
    assert "<mark>PRICE</mark>" in hit["snippets"][0]

    other_headers, _ = register(client, email="owner@other.io", organization="Other Co")
    r = client.get("/api/transcriptions/search", headers=other_headers, params={"query": "price"})
    assert r.json()["data"] == []

    r = client.get("/api/transcriptions/search", headers=admin_headers, params={"query": ""})
    assert r.status_code == 400
