"""
Settings and white-label API tests.

Verifies:
- Staff read settings, only admins write them
- Inactive settings are hidden from non-admins
- At most one white-label configuration is active
- Active branding is public
"""

from efectivio.models import AuditLog, WhiteLabel


class TestSettingsApi:
    def test_admin_crud(self, client, admin_headers, db_session):
        resp = client.post("/api/settings", json={"key": "company.name", "value": "Efectivio", "category": "company"},
                           headers=admin_headers)
        assert resp.status_code == 201

        resp = client.put("/api/settings/company.name", json={"value": "Efectivio SA"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["value"] == "Efectivio SA"

        audit = db_session.query(AuditLog).filter_by(entity_type="system_config", action="update").one()
        assert audit.changes == {"before": {"value": "Efectivio"}, "after": {"value": "Efectivio SA"}}
        assert audit.user_name == "admin"

        assert client.delete("/api/settings/company.name", headers=admin_headers).status_code == 204
        assert client.get("/api/settings/company.name", headers=admin_headers).status_code == 404

    def test_duplicate_key_conflicts(self, client, admin_headers):
        body = {"key": "company.currency", "value": "MXN"}
        assert client.post("/api/settings", json=body, headers=admin_headers).status_code == 201
        assert client.post("/api/settings", json=body, headers=admin_headers).status_code == 409

    def test_required_cannot_be_deleted(self, client, admin_headers):
        client.post("/api/settings", json={"key": "company.name", "value": "X", "is_required": True}, headers=admin_headers)
        assert client.delete("/api/settings/company.name", headers=admin_headers).status_code == 409

    def test_staff_reads_but_cannot_write(self, client, admin_headers, staff_headers):
        client.post("/api/settings", json={"key": "billing.terms", "value": "30", "category": "billing"},
                    headers=admin_headers)

        assert client.get("/api/settings", headers=staff_headers).status_code == 200
        listed = client.get("/api/settings/category/billing", headers=staff_headers).json
        assert [c["key"] for c in listed] == ["billing.terms"]

        assert client.post("/api/settings", json={"key": "x", "value": "y"}, headers=staff_headers).status_code == 403
        assert client.put("/api/settings/billing.terms", json={"value": "1"}, headers=staff_headers).status_code == 403
        assert client.delete("/api/settings/billing.terms", headers=staff_headers).status_code == 403

    def test_inactive_hidden_from_staff(self, client, admin_headers, staff_headers):
        client.post("/api/settings", json={"key": "beta.flag", "value": "on", "is_active": False}, headers=admin_headers)

        assert client.get("/api/settings/beta.flag", headers=staff_headers).status_code == 404
        assert client.get("/api/settings/beta.flag", headers=admin_headers).status_code == 200

        assert client.get("/api/settings?include_inactive=true", headers=staff_headers).json == []
        admin_view = client.get("/api/settings?include_inactive=true", headers=admin_headers).json
        assert [c["key"] for c in admin_view] == ["beta.flag"]

    def test_portal_user_denied(self, client, portal_headers):
        assert client.get("/api/settings", headers=portal_headers).status_code == 403


class TestWhiteLabelApi:
    def _create(self, client, headers, name, **extra):
        resp = client.post("/api/white-label", json={"name": name, "company_name": "Efectivio", **extra}, headers=headers)
        assert resp.status_code == 201, resp.json
        return resp.json

    def test_only_one_active(self, client, admin_headers, db_session):
        first = self._create(client, admin_headers, "Principal", is_active=True)
        second = self._create(client, admin_headers, "Navidad", is_active=True)

        assert db_session.query(WhiteLabel).filter_by(is_active=True).count() == 1
        assert client.get("/api/white-label/active").json["id"] == second["id"]

        resp = client.put(f"/api/white-label/{first['id']}/activate", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["is_active"] is True
        assert client.get("/api/white-label/active").json["id"] == first["id"]
        assert db_session.query(WhiteLabel).filter_by(is_active=True).count() == 1

    def test_active_is_public_and_may_be_null(self, client, db_session):
        resp = client.get("/api/white-label/active")
        assert resp.status_code == 200
        assert resp.json is None

    def test_deactivate_all(self, client, admin_headers):
        self._create(client, admin_headers, "Principal", is_active=True)
        resp = client.put("/api/white-label/deactivate-all", headers=admin_headers)
        assert resp.json == {"deactivated": 1}
        assert client.get("/api/white-label/active").json is None

    def test_update_cannot_toggle_active(self, client, admin_headers):
        record = self._create(client, admin_headers, "Principal")
        resp = client.put(f"/api/white-label/{record['id']}", json={"is_active": True}, headers=admin_headers)
        assert resp.status_code == 400

        resp = client.put(f"/api/white-label/{record['id']}", json={"secondary_color": "#abc"}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["secondary_color"] == "#abc"

    def test_active_cannot_be_deleted(self, client, admin_headers):
        record = self._create(client, admin_headers, "Principal", is_active=True)
        assert client.delete(f"/api/white-label/{record['id']}", headers=admin_headers).status_code == 409
        client.put("/api/white-label/deactivate-all", headers=admin_headers)
        assert client.delete(f"/api/white-label/{record['id']}", headers=admin_headers).status_code == 204

    def test_invalid_color_rejected(self, client, admin_headers):
        resp = client.post("/api/white-label", json={"name": "X", "company_name": "Y", "primary_color": "red"},
                           headers=admin_headers)
        assert resp.status_code == 400

    def test_client_branding(self, client, admin_headers, portal_headers, acme):
        self._create(client, admin_headers, "Acme", client_id=acme.id)
        resp = client.get(f"/api/white-label/client/{acme.id}", headers=portal_headers)
        assert resp.status_code == 200
        assert resp.json["name"] == "Acme"

    def test_staff_cannot_manage(self, client, staff_headers):
        resp = client.post("/api/white-label", json={"name": "X", "company_name": "Y"}, headers=staff_headers)
        assert resp.status_code == 403
