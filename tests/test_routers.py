import hashlib
import hmac
import json

import pytest
from starlette.testclient import TestClient

from butler.__version__ import __version__
from butler.config import Settings
from butler.container import build_services
from butler.main import app
from butler.rate_limit import get_client_ip, limiter

STAFF = {"X-Staff-Id": "staff_1"}


@pytest.fixture
def client(services):
    app.state.services = services
    limiter.reset()
    with TestClient(app) as test_client:
        yield test_client
    app.state.services = None


def _webchat(client, content, session_id="sess-1"):
    return client.post("/api/webhooks/webchat", json={"session_id": session_id, "content": content})


def test_health_and_version(client):
    assert client.get("/api/health").json() == {"status": "ok"}
    assert client.get("/api/version").json()["version"] == __version__


def test_get_client_ip_prefers_forwarded_header():
    class _Req:
        headers = {"X-Forwarded-For": "203.0.113.5, 10.0.0.1"}
        client = None

    assert get_client_ip(_Req()) == "203.0.113.5"


def test_webchat_webhook_returns_reply(client):
    resp = _webchat(client, "Hello")
    assert resp.status_code == 200
    body = resp.json()
    assert body["processed_messages"] == 1
    reply = body["responses"][0]
    assert reply["to"] == "sess-1"
    assert reply["content"] == "Hello! How can I help?"
    assert reply["conversation_id"].startswith("conv_")
    assert resp.headers["X-Request-Id"]


def test_webhook_without_messages_is_accepted(client):
    assert _webchat(client, "").status_code == 202


def test_webhook_unknown_channel_and_bad_json(client):
    assert client.post("/api/webhooks/pigeon", json={}).status_code == 404
    resp = client.post(
        "/api/webhooks/webchat", content=b"{nope", headers={"Content-Type": "application/json"}
    )
    assert resp.status_code == 400


def test_webhook_rejects_undecodable_form_body(client):
    resp = client.post(
        "/api/webhooks/sms",
        content=b"From=%2B1555&Body=\xff\xfe",
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    assert resp.status_code == 400
    assert "Invalid form payload" in resp.json()["detail"]


def test_sms_form_webhook(client):
    resp = client.post(
        "/api/webhooks/sms",
        data={"From": "+15557654321", "Body": "Hello", "MessageSid": "SM1", "NumMedia": "0"},
    )
    assert resp.status_code == 200
    assert resp.json()["responses"][0]["to"] == "+15557654321"


def test_whatsapp_signature_is_enforced(responder):
    services = build_services(Settings(whatsapp_app_secret="s3cret"), responder=responder)
    app.state.services = services
    limiter.reset()
    body = json.dumps(
        {"entry": [{"changes": [{"value": {"messages": [
            {"from": "15551230000", "id": "wamid.1", "type": "text", "text": {"body": "Hello"}}
        ]}}]}]}
    ).encode()
    digest = hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()
    try:
        with TestClient(app) as client:
            bad = client.post(
                "/api/webhooks/whatsapp",
                content=body,
                headers={"Content-Type": "application/json", "X-Hub-Signature-256": "sha256=0"},
            )
            good = client.post(
                "/api/webhooks/whatsapp",
                content=body,
                headers={"Content-Type": "application/json", "X-Hub-Signature-256": f"sha256={digest}"},
            )
    finally:
        app.state.services = None

    assert bad.status_code == 401
    assert good.status_code == 200
    assert good.json()["responses"][0]["text"]["body"] == "Hello! How can I help?"


def test_approval_endpoints(client, responder):
    responder.reply("Checkout is at 11am.", "inquiry.checkout", 0.65)
    reply = _webchat(client, "when is checkout").json()["responses"][0]
    approval_id = reply["metadata"]["approval_id"]

    listing = client.get("/api/approvals").json()
    assert listing["total"] == 1
    assert listing["items"][0]["id"] == approval_id
    assert client.get(f"/api/approvals/{approval_id}").json()["type"] == "response"
    assert client.get("/api/approvals/apv_missing").status_code == 404

    assert client.post(f"/api/approvals/{approval_id}/approve").status_code == 400
    approved = client.post(f"/api/approvals/{approval_id}/approve", headers=STAFF)
    assert approved.status_code == 200
    assert approved.json()["status"] == "approved"
    assert approved.json()["decided_by"] == "staff_1"

    again = client.post(f"/api/approvals/{approval_id}/reject", headers=STAFF, json={"reason": "late"})
    assert again.status_code == 400
    assert "Cannot reject item with status: approved" in again.json()["detail"]

    detail = client.get(f"/api/conversations/{reply['conversation_id']}").json()
    assert detail["messages"][-1]["content"] == "Checkout is at 11am."


def test_held_reply_is_not_exposed_to_guest(client, responder):
    responder.reply("The spa is on floor 3.", "inquiry.amenity", 0.65)

    resp = _webchat(client, "where is the spa")

    assert resp.status_code == 200
    assert "The spa is on floor 3." not in resp.text
    reply = resp.json()["responses"][0]
    assert reply["metadata"] == {
        "pending_approval": True,
        "approval_id": reply["metadata"]["approval_id"],
    }
    item = client.get(f"/api/approvals/{reply['metadata']['approval_id']}").json()
    assert item["action_data"]["content"] == "The spa is on floor 3."


def test_reject_endpoint(client, responder):
    responder.reply("Maybe?", None, 0.4)
    approval_id = _webchat(client, "hmm").json()["responses"][0]["metadata"]["approval_id"]

    resp = client.post(f"/api/approvals/{approval_id}/reject", headers=STAFF, json={"reason": "Off tone"})
    assert resp.status_code == 200
    assert resp.json()["rejection_reason"] == "Off tone"
    assert client.get("/api/approvals").json()["total"] == 0
    assert client.get("/api/approvals", params={"status": "rejected"}).json()["total"] == 1


def test_autonomy_endpoints(client):
    settings = client.get("/api/autonomy").json()
    assert settings["default_level"] == "L2"
    assert settings["actions"]["issueRefund"]["level"] == "L1"

    settings["actions"]["respondToGuest"]["level"] = "L1"
    updated = client.put("/api/autonomy", json=settings)
    assert updated.status_code == 200
    assert client.get("/api/autonomy").json()["actions"]["respondToGuest"]["level"] == "L1"

    reply = _webchat(client, "Hello").json()["responses"][0]
    assert reply["metadata"]["pending_approval"] is True

    settings["default_level"] = "L9"
    assert client.put("/api/autonomy", json=settings).status_code == 422
    assert client.get("/api/autonomy/levels").json()["L1"].startswith("Approval Required")


def test_task_endpoints(client, responder):
    responder.reply("On it!", "request.housekeeping.towels", 0.9)
    _webchat(client, "I need more towels")

    tasks = client.get("/api/tasks", params={"status": "pending"}).json()
    assert tasks["total"] == 1
    task_id = tasks["items"][0]["id"]

    claimed = client.post(f"/api/tasks/{task_id}/claim", headers=STAFF)
    assert claimed.json()["status"] == "assigned"
    assert client.post(f"/api/tasks/{task_id}/claim", headers=STAFF).status_code == 400

    completed = client.post(f"/api/tasks/{task_id}/complete", headers=STAFF, json={"notes": "Done"})
    assert completed.json()["status"] == "completed"
    assert completed.json()["completion_notes"] == "Done"
    assert client.post("/api/tasks/task_missing/claim", headers=STAFF).status_code == 404


def test_conversation_endpoints(client, responder):
    responder.reply("Of course.", "greeting", 0.9)
    reply = _webchat(client, "I want to speak to a human").json()["responses"][0]
    conversation_id = reply["conversation_id"]

    detail = client.get(f"/api/conversations/{conversation_id}").json()
    assert detail["state"] == "escalated"
    assert [m["sender_type"] for m in detail["messages"]] == ["guest", "ai"]

    resolved = client.post(f"/api/conversations/{conversation_id}/resolve", headers=STAFF)
    assert resolved.status_code == 200
    assert resolved.json()["state"] == "active"
    again = client.post(f"/api/conversations/{conversation_id}/resolve", headers=STAFF)
    assert again.status_code == 400

    closed = client.post(f"/api/conversations/{conversation_id}/close")
    assert closed.json()["state"] == "resolved"
    assert client.get("/api/conversations/conv_missing").status_code == 404
