"""
Client portal tests.

Verifies:
- Invite -> verify -> register creates a linked client-role user
- Invitations are emailed, single-use and expire
- Portal users only reach their own client's projects, tasks and appointments
- Appointment reminders are emailed and recorded
"""

from datetime import timedelta

from efectivio.models import AuditLog, ClientInvitation, ClientPortalUser, User
from efectivio.services.email_service import get_email_sender
from efectivio.time_utils import utcnow


def _invite(client, headers, client_id, **extra):
    resp = client.post("/api/client-portal/invite", json={"client_id": client_id, **extra}, headers=headers)
    assert resp.status_code == 201, resp.json
    return resp.json


def _register(client, token, email="laura@acme.test", **extra):
    return client.post("/api/client-portal/register", json={
        "token": token,
        "email": email,
        "password": "Portal123!",
        "username": "laura",
        "full_name": "Laura Pérez",
        **extra,
    })


class TestInvitationFlow:
    def test_invite_defaults_to_client_email(self, client, staff_headers, acme, db_session):
        body = _invite(client, staff_headers, acme.id)
        assert body["email"] == "laura@acme.test"
        assert body["status"] == "pending"
        assert body["token"].startswith("inv_")
        assert body["email_sent"] is True

        sent = get_email_sender().sent
        assert len(sent) == 1
        assert sent[0]["to"] == "laura@acme.test"
        assert f"http://portal.test/portal/register?token={body['token']}" in sent[0]["html"]

        audit = db_session.query(AuditLog).filter_by(action="invite").one()
        assert audit.entity_type == "client_invitation"

    def test_invite_requires_client(self, client, staff_headers, db_session):
        assert client.post("/api/client-portal/invite", json={}, headers=staff_headers).status_code == 400
        resp = client.post("/api/client-portal/invite", json={"client_id": 9999}, headers=staff_headers)
        assert resp.status_code == 404

    def test_invite_without_email_rejected(self, client, staff_headers, db_session):
        from efectivio.models import Client
        nameless = Client(client_type="individual", name="Sin correo")
        db_session.add(nameless)
        db_session.commit()
        resp = client.post("/api/client-portal/invite", json={"client_id": nameless.id}, headers=staff_headers)
        assert resp.status_code == 400

    def test_verify_token(self, client, staff_headers, acme):
        token = _invite(client, staff_headers, acme.id)["token"]
        resp = client.get(f"/api/client-portal/verify-token/{token}")
        assert resp.status_code == 200
        assert resp.json["valid"] is True
        assert resp.json["client"]["id"] == acme.id

        assert client.get("/api/client-portal/verify-token/inv_unknown").status_code == 404

    def test_register_links_user(self, client, staff_headers, acme, db_session):
        token = _invite(client, staff_headers, acme.id)["token"]
        resp = _register(client, token)
        assert resp.status_code == 201, resp.json
        assert resp.json["user"]["role"] == "client"
        assert resp.json["client_id"] == acme.id

        user = db_session.query(User).filter_by(username="laura").one()
        assert db_session.query(ClientPortalUser).filter_by(user_id=user.id, client_id=acme.id).count() == 1
        invitation = db_session.query(ClientInvitation).filter_by(token=token).one()
        assert invitation.status == "accepted"
        assert invitation.accepted_at is not None
        db_session.refresh(acme)
        assert acme.has_portal_access is True

        login = client.post("/api/auth/login", json={"username": "laura", "password": "Portal123!"})
        assert login.status_code == 200
        me = client.get("/api/client-portal/me", headers={"Authorization": f"Bearer {login.json['token']}"})
        assert me.status_code == 200
        assert me.json["client"]["id"] == acme.id

    def test_token_is_single_use(self, client, staff_headers, acme):
        token = _invite(client, staff_headers, acme.id)["token"]
        assert _register(client, token).status_code == 201
        assert _register(client, token, username="laura2").status_code == 400
        assert client.get(f"/api/client-portal/verify-token/{token}").status_code == 400

    def test_expired_token_rejected(self, client, staff_headers, acme, db_session):
        token = _invite(client, staff_headers, acme.id)["token"]
        invitation = db_session.query(ClientInvitation).filter_by(token=token).one()
        invitation.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        assert client.get(f"/api/client-portal/verify-token/{token}").status_code == 400
        assert _register(client, token).status_code == 400
        assert db_session.query(User).filter_by(username="laura").count() == 0

    def test_email_must_match(self, client, staff_headers, acme, db_session):
        token = _invite(client, staff_headers, acme.id)["token"]
        resp = _register(client, token, email="someone@else.test")
        assert resp.status_code == 400
        assert db_session.query(User).filter_by(username="laura").count() == 0

    def test_weak_password_rejected(self, client, staff_headers, acme):
        token = _invite(client, staff_headers, acme.id)["token"]
        assert _register(client, token, password="short").status_code == 400

    def test_missing_fields_rejected(self, client, db_session):
        resp = client.post("/api/client-portal/register", json={"token": "inv_x"})
        assert resp.status_code == 400

    def test_me_requires_portal_link(self, client, staff_headers):
        assert client.get("/api/client-portal/me", headers=staff_headers).status_code == 403


class TestPortalRecords:
    def _project(self, client, headers, client_id, name):
        resp = client.post("/api/client-portal/projects", json={"client_id": client_id, "name": name}, headers=headers)
        assert resp.status_code == 201, resp.json
        return resp.json

    def test_projects_scoped(self, client, staff_headers, portal_headers, acme, other_client):
        mine = self._project(client, staff_headers, acme.id, "Sitio web")
        theirs = self._project(client, staff_headers, other_client.id, "App móvil")

        listed = client.get("/api/client-portal/projects", headers=portal_headers).json
        assert [p["id"] for p in listed] == [mine["id"]]

        assert client.get(f"/api/client-portal/projects/{theirs['id']}", headers=portal_headers).status_code == 404
        assert client.get(f"/api/client-portal/projects/{mine['id']}", headers=portal_headers).status_code == 200
        resp = client.get(f"/api/client-portal/projects?client_id={other_client.id}", headers=portal_headers)
        assert resp.status_code == 403

        assert len(client.get("/api/client-portal/projects", headers=staff_headers).json) == 2

    def test_portal_cannot_write(self, client, portal_headers, acme):
        resp = client.post("/api/client-portal/projects", json={"client_id": acme.id, "name": "X"}, headers=portal_headers)
        assert resp.status_code == 403

    def test_tasks_scoped(self, client, staff_headers, portal_headers, acme, other_client):
        mine = self._project(client, staff_headers, acme.id, "Sitio web")
        theirs = self._project(client, staff_headers, other_client.id, "App móvil")
        task = client.post("/api/client-portal/tasks", json={"project_id": mine["id"], "title": "Diseño"},
                           headers=staff_headers).json
        hidden = client.post("/api/client-portal/tasks", json={"project_id": theirs["id"], "title": "API"},
                             headers=staff_headers).json

        listed = client.get("/api/client-portal/tasks", headers=portal_headers).json
        assert [t["id"] for t in listed] == [task["id"]]
        assert client.get(f"/api/client-portal/tasks/{hidden['id']}", headers=portal_headers).status_code == 404

        detail = client.get(f"/api/client-portal/projects/{mine['id']}", headers=portal_headers).json
        assert [t["title"] for t in detail["tasks"]] == ["Diseño"]

    def test_task_needs_existing_project(self, client, staff_headers, db_session):
        resp = client.post("/api/client-portal/tasks", json={"project_id": 9999, "title": "X"}, headers=staff_headers)
        assert resp.status_code == 404

    def test_project_dates_ordered(self, client, staff_headers, acme):
        resp = client.post("/api/client-portal/projects", json={
            "client_id": acme.id, "name": "X", "start_date": "2026-05-01", "end_date": "2026-04-01",
        }, headers=staff_headers)
        assert resp.status_code == 400

    def test_delete_project_removes_tasks(self, client, staff_headers, acme):
        project = self._project(client, staff_headers, acme.id, "Temporal")
        task = client.post("/api/client-portal/tasks", json={"project_id": project["id"], "title": "T"},
                           headers=staff_headers).json
        assert client.delete(f"/api/client-portal/projects/{project['id']}", headers=staff_headers).status_code == 204
        assert client.get(f"/api/client-portal/tasks/{task['id']}", headers=staff_headers).status_code == 404


class TestAppointments:
    def _appointment(self, client, headers, client_id, start="2030-01-15T10:00:00Z", end="2030-01-15T11:00:00Z"):
        return client.post("/api/client-portal/appointments", json={
            "client_id": client_id,
            "title": "Revisión trimestral",
            "start_time": start,
            "end_time": end,
            "location": "Oficina",
        }, headers=headers)

    def test_create_and_scope(self, client, staff_headers, portal_headers, acme, other_client):
        assert self._appointment(client, staff_headers, acme.id).status_code == 201
        assert self._appointment(client, staff_headers, other_client.id).status_code == 201

        listed = client.get("/api/client-portal/appointments", headers=portal_headers).json
        assert len(listed) == 1
        assert listed[0]["client_id"] == acme.id
        assert listed[0]["start_time"] == "2030-01-15T10:00:00Z"

    def test_upcoming_filter(self, client, staff_headers, acme):
        self._appointment(client, staff_headers, acme.id)
        self._appointment(client, staff_headers, acme.id, start="2020-01-01T10:00:00Z", end="2020-01-01T11:00:00Z")
        assert len(client.get("/api/client-portal/appointments", headers=staff_headers).json) == 2
        assert len(client.get("/api/client-portal/appointments?upcoming=true", headers=staff_headers).json) == 1

    def test_end_must_follow_start(self, client, staff_headers, acme):
        resp = self._appointment(client, staff_headers, acme.id, start="2030-01-15T10:00:00Z", end="2030-01-15T10:00:00Z")
        assert resp.status_code == 400

    def test_send_reminder(self, client, staff_headers, acme):
        appointment = self._appointment(client, staff_headers, acme.id).json
        resp = client.post(f"/api/client-portal/appointments/{appointment['id']}/send-reminder", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json == {"email_sent": True}

        sent = get_email_sender().sent
        assert sent[-1]["to"] == "laura@acme.test"
        assert "Revisión trimestral" in sent[-1]["subject"]

        listed = client.get("/api/client-portal/appointments", headers=staff_headers).json
        assert listed[0]["reminder_sent_at"] is not None

    def test_reminder_unknown_appointment(self, client, staff_headers, db_session):
        resp = client.post("/api/client-portal/appointments/9999/send-reminder", headers=staff_headers)
        assert resp.status_code == 404
