"""
Client management tests.
"""

import pytest

from efectivio.models import Client


class TestClients:
    def test_create(self, client, staff_headers, db_session):
        resp = client.post("/api/clients", json={
            "client_type": "company",
            "name": "Panadería La Espiga",
            "email": "Ventas@LaEspiga.test",
            "tax_id": "PLE010101AB1",
            "payment_terms_days": 15,
        }, headers=staff_headers)
        assert resp.status_code == 201
        assert resp.json["email"] == "ventas@laespiga.test"
        assert resp.json["is_active"] is True
        assert resp.json["has_portal_access"] is False

    @pytest.mark.parametrize("payload", [
        {},
        {"name": "X", "client_type": "government"},
        {"name": "X", "payment_terms_days": 1.5},
        {"name": "X", "id": 99},
    ])
    def test_invalid_payload(self, client, staff_headers, db_session, payload):
        resp = client.post("/api/clients", json=payload, headers=staff_headers)
        assert resp.status_code == 400
        assert db_session.query(Client).count() == 0

    def test_search(self, client, staff_headers, acme, other_client):
        resp = client.get("/api/clients?search=laura", headers=staff_headers)
        assert [c["id"] for c in resp.json] == [acme.id]
        resp = client.get("/api/clients?search=ramírez", headers=staff_headers)
        assert [c["id"] for c in resp.json] == [other_client.id]

    def test_deactivate_hides_from_list(self, client, staff_headers, acme):
        resp = client.post(f"/api/clients/{acme.id}/deactivate", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["is_active"] is False
        assert client.get("/api/clients", headers=staff_headers).json == []
        listed = client.get("/api/clients?include_inactive=true", headers=staff_headers).json
        assert [c["id"] for c in listed] == [acme.id]

    def test_update(self, client, staff_headers, acme):
        resp = client.put(f"/api/clients/{acme.id}", json={"phone": "+52 55 1234 5678"}, headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["phone"] == "+52 55 1234 5678"
        assert resp.json["name"] == "Acme SA de CV"

    def test_missing_client(self, client, staff_headers, db_session):
        assert client.get("/api/clients/9999", headers=staff_headers).status_code == 404
        assert client.put("/api/clients/9999", json={"name": "X"}, headers=staff_headers).status_code == 404
        assert client.delete("/api/clients/9999", headers=staff_headers).status_code == 404

    def test_delete(self, client, staff_headers, other_client, db_session):
        assert client.delete(f"/api/clients/{other_client.id}", headers=staff_headers).status_code == 204
        assert db_session.get(Client, other_client.id) is None
