"""
File storage tests.

Verifies:
- Uploads land in the bucket chosen by category under the user/client path
- Size limit, unknown client and unknown folder are rejected
- Folder reads cover attachment variants
- Only the uploader or an admin can delete
- Portal users are pinned to their own client's files
"""

import io

import pytest

from efectivio.models import StoredFile
from efectivio.services import file_service
from efectivio.services.object_storage import StorageError, get_object_storage


def _upload(client, headers, name="factura.pdf", content=b"%PDF-1.4 test", **fields):
    data = {"file": (io.BytesIO(content), name)}
    data.update({k: str(v) for k, v in fields.items()})
    return client.post("/api/files/upload", data=data, headers=headers, content_type="multipart/form-data")


class TestCategoryMapping:
    @pytest.mark.parametrize("category,bucket", [
        ("invoice", "invoices"),
        ("quote_attachment", "invoices"),
        ("receipt", "receipts"),
        ("expense_receipt", "receipts"),
        ("contract", "contracts"),
        ("client_document", "documents"),
        ("other", "documents"),
    ])
    def test_bucket_for(self, category, bucket):
        assert file_service.bucket_for(category) == bucket

    def test_folder_read_expansion(self):
        assert file_service.categories_for_read("facturas") == ["invoice", "invoice_attachment"]
        assert file_service.categories_for_read("gastos") == ["expense", "expense_receipt"]
        assert file_service.categories_for_read("contract") == ["contract"]

    def test_object_path(self):
        path = file_service.build_object_path(
            user_id=3, client_id=7, category="invoice_attachment",
            filename="../Factura Marzo.pdf", timestamp_ms=1700000000000,
        )
        assert path == "user_3/client_7/invoice_attachment/1700000000000_Factura_Marzo.pdf"

    def test_unknown_folder_rejected(self):
        from efectivio.validation import ValidationError
        with pytest.raises(ValidationError):
            file_service.resolve_upload_category(category=None, folder_type="cajones")


class TestUpload:
    def test_upload_with_folder(self, client, staff_headers, staff_user, acme, db_session):
        resp = _upload(client, staff_headers, folder_type="facturas", client_id=acme.id)
        assert resp.status_code == 201, resp.json
        body = resp.json
        assert body["category"] == "invoice_attachment"
        assert body["bucket"] == "invoices"
        assert body["path"].startswith(f"user_{staff_user.id}/client_{acme.id}/invoice_attachment/")
        assert body["path"].endswith("_factura.pdf")
        assert body["size"] == len(b"%PDF-1.4 test")
        assert body["signed_url"].startswith("memory://invoices/")

        stored = get_object_storage().objects[("invoices", body["path"])]
        assert stored.data == b"%PDF-1.4 test"

    def test_signing_failure_still_returns_upload(self, client, staff_headers, db_session, monkeypatch):
        storage = get_object_storage()

        def refuse(bucket, path, expires_in):
            raise StorageError("signing unavailable")

        monkeypatch.setattr(storage, "signed_url", refuse)
        resp = _upload(client, staff_headers, category="contract")
        assert resp.status_code == 201, resp.json
        assert resp.json["signed_url"] is None
        assert db_session.query(StoredFile).count() == 1
        assert ("contracts", resp.json["path"]) in storage.objects

    def test_camel_case_folder_field(self, client, staff_headers):
        resp = _upload(client, staff_headers, folderType="gastos")
        assert resp.status_code == 201
        assert resp.json["category"] == "expense_receipt"
        assert resp.json["bucket"] == "receipts"

    def test_defaults_to_other(self, client, staff_headers):
        resp = _upload(client, staff_headers)
        assert resp.status_code == 201
        assert resp.json["category"] == "other"
        assert resp.json["bucket"] == "documents"

    def test_too_large_rejected(self, client, staff_headers, db_session):
        resp = _upload(client, staff_headers, content=b"x" * 1025)
        assert resp.status_code == 413
        assert db_session.query(StoredFile).count() == 0
        assert get_object_storage().objects == {}

    def test_unknown_client_rejected(self, client, staff_headers, db_session):
        resp = _upload(client, staff_headers, client_id=9999)
        assert resp.status_code == 404
        assert get_object_storage().objects == {}

    def test_missing_file_rejected(self, client, staff_headers):
        resp = client.post("/api/files/upload", data={"category": "invoice"}, headers=staff_headers,
                           content_type="multipart/form-data")
        assert resp.status_code == 400

    def test_unknown_category_rejected(self, client, staff_headers):
        assert _upload(client, staff_headers, category="memes").status_code == 400


class TestReadAndDelete:
    def test_list_by_folder(self, client, staff_headers):
        _upload(client, staff_headers, name="a.pdf", category="invoice")
        _upload(client, staff_headers, name="b.pdf", folder_type="facturas")
        _upload(client, staff_headers, name="c.pdf", category="contract")

        resp = client.get("/api/files/category/facturas", headers=staff_headers)
        assert sorted(f["name"] for f in resp.json) == ["a.pdf", "b.pdf"]

    def test_folders_listing(self, client, staff_headers):
        folders = client.get("/api/files/categories", headers=staff_headers).json
        assert {f["id"] for f in folders} == {"clientes", "facturas", "cotizaciones", "gastos", "productos"}

    def test_signed_url(self, client, staff_headers):
        file_id = _upload(client, staff_headers).json["id"]
        resp = client.get(f"/api/files/signed-url/{file_id}?expires_in=60", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json["url"].startswith("memory://documents/")
        assert resp.json["expires_in"] == 60

        assert client.get("/api/files/signed-url/424242", headers=staff_headers).status_code == 404

    def test_owner_deletes(self, client, staff_headers, db_session):
        body = _upload(client, staff_headers).json
        assert client.delete(f"/api/files/{body['id']}", headers=staff_headers).status_code == 204
        assert db_session.query(StoredFile).count() == 0
        assert ("documents", body["path"]) not in get_object_storage().objects

    def test_non_owner_cannot_delete(self, client, staff_headers, admin_headers, db_session):
        file_id = _upload(client, admin_headers).json["id"]
        assert client.delete(f"/api/files/{file_id}", headers=staff_headers).status_code == 403
        assert db_session.query(StoredFile).count() == 1

    def test_admin_deletes_any(self, client, staff_headers, admin_headers):
        file_id = _upload(client, staff_headers).json["id"]
        assert client.delete(f"/api/files/{file_id}", headers=admin_headers).status_code == 204


class TestPortalScoping:
    def test_portal_sees_only_own_client(self, client, staff_headers, portal_headers, acme, other_client):
        mine = _upload(client, staff_headers, name="acme.pdf", client_id=acme.id).json
        theirs = _upload(client, staff_headers, name="beto.pdf", client_id=other_client.id).json
        _upload(client, staff_headers, name="internal.pdf")

        listed = client.get("/api/files", headers=portal_headers).json
        assert [f["id"] for f in listed] == [mine["id"]]

        assert client.get(f"/api/files/client/{other_client.id}", headers=portal_headers).status_code == 403
        assert client.get(f"/api/files/signed-url/{theirs['id']}", headers=portal_headers).status_code == 404
        assert client.get(f"/api/files/signed-url/{mine['id']}", headers=portal_headers).status_code == 200

    def test_portal_upload_pinned_to_own_client(self, client, portal_headers, acme, other_client):
        resp = _upload(client, portal_headers, client_id=other_client.id)
        assert resp.status_code == 403

        resp = _upload(client, portal_headers, folder_type="gastos")
        assert resp.status_code == 201
        assert resp.json["client_id"] == acme.id
