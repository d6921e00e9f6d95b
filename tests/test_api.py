import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from app.services.hashing_service import HashVerifier
from app.models.participant import Participant
from conftest import participant

API = "/api/trusted-participants"


@pytest.fixture
def client(settings, recorder):
    app = create_app(settings, http_client=recorder.client())
    with TestClient(app) as client:
        yield client


def notify(client, role, assets, source=None, sink=None):
    body = {
        "dataSource": (source or participant("provider")).model_dump(),
        "dataSink": (sink or participant("consumer")).model_dump(),
        "assets": assets,
        "senderRole": role,
    }
    return client.post(f"{API}/notify", json=body)


def test_health(client):
    response = client.get(f"{API}/health")
    assert response.status_code == 200
    assert "ready for requests" in response.json()["response"]


def test_whitelist_lifecycle(client):
    trustee = {"name": "trustee", "url": "http://trustee:9191/api/trusted-participants"}

    assert client.post(f"{API}/add", json=trustee).json() == {"response": "Participant added successfully"}
    assert client.post(f"{API}/add", json=trustee).json() == {"response": "Participant already exists"}

    listing = client.get(f"{API}/list").json()
    assert [p["name"] for p in listing["participants"]] == ["trustee"]
    assert listing["fingerprint"] == HashVerifier().fingerprint([Participant(**trustee)])

    removed = client.request("DELETE", f"{API}/remove", json=trustee).json()
    assert removed == {"response": "Participant removed successfully"}
    assert client.get(f"{API}/list").json()["participants"] == []


def test_notifications_correlate_into_one_entry(client):
    first = notify(client, "provider", ["a1", "a2"])
    second = notify(client, "consumer", ["a2", "a1"])

    assert first.status_code == 200
    assert first.json()["entryId"] == second.json()["entryId"]

    entries = client.get(f"{API}/data-exchange-entries").json()
    assert len(entries) == 1
    assert entries[0]["state"] == "READY"
    assert entries[0]["provider"]["name"] == "provider"
    assert "createdAt" in entries[0]

    entry_id = first.json()["entryId"]
    context = client.get(f"/api/context/{entry_id}::a1").json()
    assert context == {"provider": "http://provider:9191", "consumer": "http://consumer:9191"}


def test_notification_with_bad_role_is_rejected(client):
    response = notify(client, "broker", ["a1"])
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid sender type"}


def test_completing_an_entry_removes_it(client):
    entry_id = notify(client, "provider", ["a1"]).json()["entryId"]
    notify(client, "consumer", ["a1"])

    response = client.post(f"{API}/update-entry-state", params={"entryId": entry_id, "newState": "COMPLETED"})
    assert response.status_code == 200
    assert client.get(f"{API}/data-exchange-entries").json() == []


def test_update_entry_state_errors(client):
    entry_id = notify(client, "provider", ["a1"]).json()["entryId"]

    not_ready = client.post(f"{API}/update-entry-state", params={"entryId": entry_id, "newState": "COMPLETED"})
    assert not_ready.status_code == 400
    assert not_ready.json() == {"error": "Transition not allowed from the entry's current state."}
    assert client.get(f"{API}/data-exchange-entries").json()[0]["state"] == "NOT_READY"

    unknown = client.post(f"{API}/update-entry-state", params={"entryId": entry_id, "newState": "DONE"})
    assert unknown.status_code == 400
    assert unknown.json() == {"error": "Invalid state value."}

    not_settable = client.post(f"{API}/update-entry-state", params={"entryId": entry_id, "newState": "READY"})
    assert not_settable.status_code == 400
    assert "Only IN_PROGRESS, COMPLETED or FAILED" in not_settable.json()["error"]

    missing = client.post(f"{API}/update-entry-state", params={"entryId": "missing", "newState": "COMPLETED"})
    assert missing.status_code == 404
    assert missing.json() == {"error": "Entry not found."}


def test_receive_negotiation_detects_tampering(client):
    body = {
        "dataSource": participant("provider").model_dump(),
        "dataSink": participant("consumer").model_dump(),
        "trustedParticipants": [participant("trustee").model_dump()],
        "assets": ["a1"],
        "fingerprint": HashVerifier().fingerprint([participant("other")]),
    }
    response = client.post(f"{API}/receive-negotiation", json=body)
    assert response.status_code == 400
    assert "Hash mismatch" in response.json()["error"]


def test_receive_negotiation_without_common_trustee(client):
    trusted = [participant("trustee")]
    body = {
        "dataSource": participant("provider").model_dump(),
        "dataSink": participant("consumer").model_dump(),
        "trustedParticipants": [p.model_dump() for p in trusted],
        "assets": ["a1"],
        "fingerprint": HashVerifier().fingerprint(trusted),
    }
    response = client.post(f"{API}/receive-negotiation", json=body)
    assert response.status_code == 200
    assert response.json()["message"] == "No commonly trusted data trustee found"
    assert response.json()["chosenTrustee"] is None


def test_receive_negotiation_answers_with_chosen_trustee(client):
    trustee = participant("trustee")
    client.post(f"{API}/add", json=trustee.model_dump())
    offered = [participant("other"), trustee]
    body = {
        "dataSource": participant("provider").model_dump(),
        "dataSink": participant("consumer").model_dump(),
        "trustedParticipants": [p.model_dump() for p in offered],
        "assets": ["a1"],
        "fingerprint": HashVerifier().fingerprint(offered),
    }
    response = client.post(f"{API}/receive-negotiation", json=body)
    assert response.status_code == 200
    assert response.json()["chosenTrustee"]["name"] == "trustee"
    assert response.json()["message"] is None


def test_negotiate_requires_data_source(client):
    response = client.post(f"{API}/negotiate", json={"dataSink": participant("consumer").model_dump(), "assets": []})
    assert response.status_code == 400
    assert "dataSource" in response.json()["error"]


def test_notify_completion_is_acknowledged(client):
    response = client.post(f"{API}/notify-completion", json={"message": "done", "role": "consumer"})
    assert response.json() == {"message": "Completion notification received."}

    logs = client.get(f"{API}/logs", params={"level": "INFO"}).json()
    assert any("Received completion notification for role: consumer" in e["message"] for e in logs)


def test_asset_binary_roundtrip(client):
    assert client.post("/api/assets/a1/binary", content=b"\x00\x01raw").status_code == 201
    response = client.get("/api/assets/a1/binary")
    assert response.content == b"\x00\x01raw"
    assert response.headers["content-type"] == "application/octet-stream"

    missing = client.get("/api/assets/nope/binary")
    assert missing.status_code == 404
    assert "error" in missing.json()


def test_service_catalog(client):
    assert [s["id"] for s in client.get("/api/services").json()] == ["mask-title"]
    blank = client.post("/api/services", json={"id": " ", "name": "blank"})
    assert blank.status_code == 400
    assert blank.json() == {"error": "id required"}

    created = client.post("/api/services", json={"id": "anonymize", "name": "Anonymize"})
    assert created.status_code == 201
    assert client.get("/api/services/anonymize").json()["name"] == "Anonymize"

    assert client.delete("/api/services/anonymize").status_code == 204
    gone = client.get("/api/services/anonymize")
    assert gone.status_code == 404
    assert gone.json() == {"error": "Service anonymize not found"}
    assert client.delete("/api/services/anonymize").status_code == 404


def test_context_registration(client):
    unknown = client.get("/api/context/a1")
    assert unknown.status_code == 404
    assert unknown.json() == {"error": "Unknown asset a1"}
    incomplete = client.post("/api/context/a1", json={"provider": "http://p:9191"})
    assert incomplete.status_code == 400
    assert incomplete.json() == {"error": "provider and consumer required"}

    response = client.post("/api/context/a1", json={"provider": "http://p:9191", "consumer": "http://c:9191"})
    assert response.status_code == 204
    assert client.get("/api/context/a1").json() == {"provider": "http://p:9191", "consumer": "http://c:9191"}


def test_transfer_endpoints(client):
    assert client.get("/api/transfers/status/unknown").json() == {"state": "UNKNOWN"}

    missing = client.post("/api/transfers/push", json={"assetId": "nope", "targetUrl": "http://trustee:9191"})
    assert missing.status_code == 404
    assert missing.json() == {"error": "asset not found"}

    no_context = client.post("/api/transfers/pull-transfer", params={"assetId": "a1"})
    assert no_context.status_code == 404
    assert "No exchange context found for asset a1" in no_context.json()["error"]

    client.post("/api/context/a1", json={"provider": "http://p:9191", "consumer": "http://c:9191"})
    unknown_service = client.post("/api/transfers/pull-transfer", params={"assetId": "a1", "serviceId": "nope"})
    assert unknown_service.status_code == 404


def test_push_and_merge(client):
    client.post("/api/assets/a1/binary", content=b'{"title": "t"}')

    accepted = client.post("/api/transfers/push", json={"assetId": "a1", "targetUrl": "http://trustee:9191"})
    assert accepted.status_code == 202
    assert "transferId" in accepted.json()

    client.post("/api/context/e1::a1", json={"provider": "http://p:9191", "consumer": "http://c:9191"})
    merged = client.post("/api/transfers/merge", params={"entryId": "e1", "mode": "object", "serviceId": "mask-title"})
    assert merged.status_code == 200
    assert merged.json() == {"a1": {"title": "xxx"}}
