"""
Identity webhook tests.

Verifies:
- Signed user.created / user.updated events mirror the identity locally
- user.deleted deactivates the mirror and revokes its sessions
- Bad signatures and stale timestamps are rejected
"""

import json
import time

import pytest

from efectivio.models import User
from efectivio.services import webhook_service
from efectivio.services.webhook_service import WebhookVerificationError, sign_payload


def _headers(body: bytes, secret: str, msg_id="msg_1", timestamp=None):
    ts = str(int(time.time()) if timestamp is None else timestamp)
    return {
        "svix-id": msg_id,
        "svix-timestamp": ts,
        "svix-signature": f"v1,{sign_payload(secret, msg_id, ts, body)}",
        "Content-Type": "application/json",
    }


@pytest.fixture
def secret(app):
    return app.config["IDENTITY_WEBHOOK_SECRET"]


def _event(event_type, **data):
    return json.dumps({"type": event_type, "data": data}).encode("utf-8")


def _user_payload(**overrides):
    data = {
        "id": "user_2abc",
        "username": "mariana",
        "first_name": "Mariana",
        "last_name": "López",
        "primary_email_address_id": "idn_2",
        "email_addresses": [
            {"id": "idn_1", "email_address": "old@example.test"},
            {"id": "idn_2", "email_address": "Mariana@Example.test"},
        ],
    }
    data.update(overrides)
    return data


class TestVerification:
    def test_valid_signature(self, secret):
        body = _event("user.created", id="x")
        headers = _headers(body, secret)
        event = webhook_service.verify_signature(secret=secret, headers=headers, body=body)
        assert event["type"] == "user.created"

    def test_any_matching_signature_accepted(self, secret):
        body = _event("user.created", id="x")
        headers = _headers(body, secret)
        headers["svix-signature"] = "v1,bogus " + headers["svix-signature"]
        webhook_service.verify_signature(secret=secret, headers=headers, body=body)

    def test_tampered_body_rejected(self, secret):
        body = _event("user.created", id="x")
        headers = _headers(body, secret)
        with pytest.raises(WebhookVerificationError):
            webhook_service.verify_signature(secret=secret, headers=headers, body=body + b" ")

    def test_stale_timestamp_rejected(self, secret):
        body = _event("user.created", id="x")
        headers = _headers(body, secret, timestamp=int(time.time()) - 600)
        with pytest.raises(WebhookVerificationError):
            webhook_service.verify_signature(secret=secret, headers=headers, body=body)

    def test_missing_headers_rejected(self, secret):
        with pytest.raises(WebhookVerificationError):
            webhook_service.verify_signature(secret=secret, headers={}, body=b"{}")

    def test_non_ascii_signature_rejected(self, secret):
        body = _event("user.created", id="x")
        headers = _headers(body, secret)
        headers["svix-signature"] = "v1,firmaÑ=="
        with pytest.raises(WebhookVerificationError):
            webhook_service.verify_signature(secret=secret, headers=headers, body=body)


class TestWebhookRoute:
    def test_user_created_synced(self, client, secret, db_session):
        body = _event("user.created", **_user_payload())
        resp = client.post("/api/webhooks/identity", data=body, headers=_headers(body, secret))
        assert resp.status_code == 200
        assert resp.json == {"received": True, "result": "synced"}

        user = db_session.query(User).filter_by(external_id="user_2abc").one()
        assert user.email == "mariana@example.test"
        assert user.username == "mariana"
        assert user.full_name == "Mariana López"
        assert user.role == "user"
        assert user.password_hash is None

    def test_user_updated_refreshes(self, client, secret, db_session):
        body = _event("user.created", **_user_payload())
        client.post("/api/webhooks/identity", data=body, headers=_headers(body, secret))

        body = _event("user.updated", **_user_payload(first_name="Mariana G."))
        client.post("/api/webhooks/identity", data=body, headers=_headers(body, secret, msg_id="msg_2"))

        users = db_session.query(User).filter_by(external_id="user_2abc").all()
        assert len(users) == 1
        assert users[0].full_name == "Mariana G. López"

    def test_links_existing_local_account(self, client, secret, staff_user, db_session):
        body = _event("user.created", **_user_payload(
            id="user_9",
            username=None,
            email_addresses=[{"id": "idn_2", "email_address": staff_user.email}],
        ))
        client.post("/api/webhooks/identity", data=body, headers=_headers(body, secret))
        db_session.refresh(staff_user)
        assert staff_user.external_id == "user_9"
        assert db_session.query(User).count() == 1

    def test_user_deleted_deactivates(self, client, secret, db_session):
        body = _event("user.created", **_user_payload())
        client.post("/api/webhooks/identity", data=body, headers=_headers(body, secret))

        body = _event("user.deleted", id="user_2abc")
        resp = client.post("/api/webhooks/identity", data=body, headers=_headers(body, secret, msg_id="msg_3"))
        assert resp.json["result"] == "deactivated"
        assert db_session.query(User).filter_by(external_id="user_2abc").one().is_active is False

    def test_unknown_events_ignored(self, client, secret, db_session):
        body = _event("session.created", id="sess_1")
        resp = client.post("/api/webhooks/identity", data=body, headers=_headers(body, secret))
        assert resp.status_code == 200
        assert resp.json["result"] == "ignored"

    def test_bad_signature_rejected(self, client, secret, db_session):
        body = _event("user.created", **_user_payload())
        headers = _headers(body, secret)
        headers["svix-signature"] = "v1,AAAA"
        resp = client.post("/api/webhooks/identity", data=body, headers=headers)
        assert resp.status_code == 400
        assert db_session.query(User).count() == 0

    def test_identity_without_email_rejected(self, client, secret, db_session):
        body = _event("user.created", id="user_x", email_addresses=[])
        resp = client.post("/api/webhooks/identity", data=body, headers=_headers(body, secret))
        assert resp.status_code == 400

    def test_not_configured(self, app, client, secret, db_session, monkeypatch):
        monkeypatch.setitem(app.config, "IDENTITY_WEBHOOK_SECRET", None)
        body = _event("user.created", **_user_payload())
        resp = client.post("/api/webhooks/identity", data=body, headers=_headers(body, secret))
        assert resp.status_code == 503
