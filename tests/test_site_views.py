from django.core import mail
from django.test import Client

from dashboard.models import TRANSCRIPT_TEMPLATE_DEFAULT


def _post(client, url, payload=None):
    return client.post(url, payload or {}, content_type="application/json")


VISITOR = {"name": "Rudi", "phone": "0812", "email": "rudi@contoh.id", "company": "CV Rudi"}


def _start(client, payload=VISITOR):
    resp = _post(client, "/api/site/chat/start", payload)
    assert resp.status_code == 200, resp.content
    return resp.json()["result"]["conversationId"]


def test_contact_form_creates_submission(client, backend):
    payload = {"name": "Sinta", "email": "sinta@contoh.id", "service": "AI", "message": "Butuh chatbot"}
    resp = _post(client, "/api/site/submissions", payload)
    assert resp.status_code == 200

    (row,) = backend.rows("form_submissions")
    assert row["id"] == resp.json()["result"]["id"]
    assert row["form_type"] == "contact"
    assert row["status"] == "new"
    assert row.get("company") is None


def test_contact_form_validation(client, backend):
    assert _post(client, "/api/site/submissions", {"name": "A", "email": "a@b.id"}).json()["errorCode"] == "missing_fields"
    bad = {"name": "A", "email": "bukan-email", "message": "Halo"}
    assert _post(client, "/api/site/submissions", bad).json()["errorCode"] == "invalid_email"
    assert backend.rows("form_submissions") == []


def test_contact_form_backend_failure(client, backend):
    backend.fail("insert", "form_submissions", "database offline")
    resp = _post(client, "/api/site/submissions", {"name": "A", "email": "a@b.id", "message": "Halo"})
    assert resp.status_code == 502
    assert resp.json()["error"]["message"] == "database offline"


def test_chat_start_opens_conversation_and_lead(client, backend, settings):
    settings.DASHBOARD_LEAD_OWNER_ID = "owner-1"
    conversation_id = _start(client)

    (conversation,) = backend.rows("chat_conversations")
    assert conversation["id"] == conversation_id
    assert conversation["status"] == "unassigned"
    assert conversation["platform"] == "website"
    assert conversation["last_message_content"] == "Percakapan dimulai"

    (welcome,) = backend.rows("chat_messages")
    assert welcome["sender_type"] == "system"
    assert welcome["message_content"].startswith("Halo Rudi! Selamat datang di PT Contoh Konsultan.")

    (lead,) = backend.rows("user_management")
    assert lead["admin_user_id"] == "owner-1"
    assert lead["lead_source"] == "Live Chat"
    assert lead["client_phone"] == "0812"


def test_chat_start_without_lead_owner_skips_lead(client, backend):
    _start(client)
    assert backend.rows("user_management") == []
    assert _post(client, "/api/site/chat/start", {"name": "Rudi"}).json()["errorCode"] == "missing_fields"


def test_visitor_messages_bump_unread(client, backend):
    conversation_id = _start(client)
    url = f"/api/site/chat/{conversation_id}/messages"
    _post(client, url, {"content": "Halo"})
    _post(client, url, {"content": "Ada orang?"})

    (conversation,) = backend.rows("chat_conversations")
    assert conversation["unread_count"] == 2
    assert conversation["status"] == "active"
    assert conversation["last_message_content"] == "Ada orang?"

    items = client.get(url).json()["result"]["items"]
    assert [m["sender_type"] for m in items] == ["system", "customer", "customer"]
    assert items[1]["sender_name"] == "Rudi"
    assert _post(client, url, {"content": " "}).json()["errorCode"] == "missing_fields"


def test_visitor_cannot_reach_other_conversations(client, backend):
    conversation_id = _start(client)
    stranger = Client()
    url = f"/api/site/chat/{conversation_id}/messages"
    assert stranger.get(url).status_code == 404
    assert _post(stranger, url, {"content": "Halo"}).status_code == 404
    assert _post(stranger, f"/api/site/chat/{conversation_id}/end").status_code == 404
    assert len(backend.rows("chat_messages")) == 1


def test_end_then_feedback_sends_transcript(client, backend):
    backend.insert("email_templates", dict(TRANSCRIPT_TEMPLATE_DEFAULT))
    conversation_id = _start(client)
    _post(client, f"/api/site/chat/{conversation_id}/messages", {"content": "Terima kasih"})

    assert _post(client, f"/api/site/chat/{conversation_id}/end").json()["result"]["status"] == "closed"
    closed = _post(client, f"/api/site/chat/{conversation_id}/messages", {"content": "Lagi"})
    assert closed.status_code == 409

    assert _post(client, f"/api/site/chat/{conversation_id}/feedback", {"rating": 9}).json()["errorCode"] == "invalid_rating"
    resp = _post(client, f"/api/site/chat/{conversation_id}/feedback", {"rating": 4, "feedback": "Cepat"})
    assert resp.json()["result"] == {"transcriptSent": True}

    (conversation,) = backend.rows("chat_conversations")
    assert conversation["chat_rating"] == 4
    assert conversation["chat_feedback"] == "Cepat"
    assert conversation["email_sent"] is True
    assert sorted(m.to[0] for m in mail.outbox) == ["admin@example.com", "rudi@contoh.id"]


def test_feedback_without_template_still_saves(client, backend):
    conversation_id = _start(client)
    resp = _post(client, f"/api/site/chat/{conversation_id}/feedback", {"rating": "5"})
    assert resp.json()["result"] == {"transcriptSent": False}
    assert backend.rows("chat_conversations")[0]["chat_rating"] == 5
    assert mail.outbox == []
