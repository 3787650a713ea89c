"""
Profile tests.

Verifies:
- Any signed-in user can read and edit their own name, display name and email
- Role and username cannot be changed through the profile
- Avatars are images stored in the avatars bucket; a new one replaces the old
"""

import io

from efectivio.models import AuditLog, User
from efectivio.services.object_storage import get_object_storage


def _avatar(client, headers, name="yo.png", content=b"\x89PNG fake", mimetype="image/png"):
    data = {"avatar": (io.BytesIO(content), name, mimetype)}
    return client.post("/api/profile/avatar", data=data, headers=headers, content_type="multipart/form-data")


class TestProfile:
    def test_get_profile(self, client, staff_headers, staff_user):
        resp = client.get("/api/profile", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["id"] == staff_user.id
        assert resp.json["name"] == "staff"
        assert resp.json["display_name"] == "staff"
        assert resp.json["email"] == "staff@efectivio.test"
        assert resp.json["avatar_url"] is None

    def test_requires_auth(self, client, db_session):
        assert client.get("/api/profile").status_code == 401
        assert client.patch("/api/profile", json={"name": "X"}).status_code == 401

    def test_update_own_profile(self, client, staff_headers, staff_user, db_session):
        resp = client.patch(
            "/api/profile",
            json={"name": "Sofía Méndez", "display_name": "Sofi", "email": "Sofia@Efectivio.test"},
            headers=staff_headers,
        )
        assert resp.status_code == 200, resp.json
        assert resp.json["name"] == "Sofía Méndez"
        assert resp.json["display_name"] == "Sofi"
        assert resp.json["email"] == "sofia@efectivio.test"

        db_session.expire_all()
        user = db_session.get(User, staff_user.id)
        assert user.full_name == "Sofía Méndez"
        assert user.preferred_name == "Sofi"

        row = db_session.query(AuditLog).filter_by(entity_type="user", details="Profile update").one()
        assert row.user_id == staff_user.id
        assert row.changes["after"]["email"] == "sofia@efectivio.test"

    def test_portal_user_can_edit_profile(self, client, portal_headers):
        resp = client.patch("/api/profile", json={"full_name": "Laura Pérez"}, headers=portal_headers)
        assert resp.status_code == 200
        assert resp.json["role"] == "client"
        assert resp.json["name"] == "Laura Pérez"

    def test_email_taken_conflicts(self, client, staff_headers, admin_user):
        resp = client.patch("/api/profile", json={"email": "admin@efectivio.test"}, headers=staff_headers)
        assert resp.status_code == 409

    def test_invalid_email_rejected(self, client, staff_headers):
        assert client.patch("/api/profile", json={"email": "no-arroba"}, headers=staff_headers).status_code == 400

    def test_role_cannot_be_changed(self, client, staff_headers, staff_user, db_session):
        resp = client.patch("/api/profile", json={"role": "admin"}, headers=staff_headers)
        assert resp.status_code == 400
        db_session.expire_all()
        assert db_session.get(User, staff_user.id).role == "user"

    def test_non_string_rejected(self, client, staff_headers):
        assert client.patch("/api/profile", json={"name": 42}, headers=staff_headers).status_code == 400

    def test_mirrored_user_cannot_change_email(self, client, staff_headers, staff_user, db_session):
        staff_user.external_id = "user_2abc"
        db_session.commit()
        resp = client.patch("/api/profile", json={"email": "otro@efectivio.test"}, headers=staff_headers)
        assert resp.status_code == 400


class TestAvatar:
    def test_upload_avatar(self, client, staff_headers, staff_user, db_session):
        resp = _avatar(client, staff_headers)
        assert resp.status_code == 200, resp.json
        assert resp.json["avatar_url"].startswith(f"memory://avatars/avatar_{staff_user.id}_")

        db_session.expire_all()
        path = db_session.get(User, staff_user.id).avatar_path
        assert path.endswith(".png")
        assert get_object_storage().objects[("avatars", path)].data == b"\x89PNG fake"

        profile = client.get("/api/profile", headers=staff_headers).json
        assert profile["avatar_url"].startswith("memory://avatars/")

    def test_new_avatar_replaces_old(self, client, staff_headers, staff_user, db_session):
        _avatar(client, staff_headers)
        db_session.expire_all()
        first = db_session.get(User, staff_user.id).avatar_path

        assert _avatar(client, staff_headers, name="nuevo.jpg", mimetype="image/jpeg").status_code == 200
        db_session.expire_all()
        second = db_session.get(User, staff_user.id).avatar_path

        objects = get_object_storage().objects
        assert second != first
        assert ("avatars", first) not in objects
        assert ("avatars", second) in objects

    def test_non_image_rejected(self, client, staff_headers, db_session):
        resp = _avatar(client, staff_headers, name="notas.pdf", mimetype="application/pdf")
        assert resp.status_code == 400
        assert resp.json["errors"][0]["path"] == "avatar"
        assert not [key for key in get_object_storage().objects if key[0] == "avatars"]

    def test_missing_file_rejected(self, client, staff_headers):
        resp = client.post("/api/profile/avatar", data={}, headers=staff_headers, content_type="multipart/form-data")
        assert resp.status_code == 400

    def test_oversize_rejected(self, app, client, staff_headers, monkeypatch):
        monkeypatch.setitem(app.config, "MAX_AVATAR_BYTES", 16)
        resp = _avatar(client, staff_headers, content=b"x" * 32)
        assert resp.status_code == 413
