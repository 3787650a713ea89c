# Overview: Service-layer operations for uploaded files and their metadata rows.

"""
File Service

Objects live in external storage at
    user_<uid>/[client_<cid>/]<category>/<ms timestamp>_<safe name>
inside a bucket chosen by category. The files table holds the metadata the
API lists and authorizes against.

Folders are the Spanish names the UI shows. On upload a folder selects an
attachment category; on read a folder or base category also matches its
_attachment/_document/_receipt/_image variants.
"""

from __future__ import annotations

import time

from flask import current_app
from werkzeug.utils import secure_filename

from ..extensions import db
from ..models import Client, Project, StoredFile
from ..validation import ValidationError
from .client_service import ClientNotFoundError
from .object_storage import StorageError, get_object_storage


class StoredFileNotFoundError(Exception):
    """Raised when a file metadata row is not found."""
    pass


class FileAccessError(Exception):
    """Raised when the caller may not act on a file."""
    pass


class FileTooLargeError(Exception):
    """Raised when an upload exceeds MAX_UPLOAD_BYTES."""
    pass


CATEGORIES = (
    "invoice", "quote", "receipt", "contract", "report", "tax", "other",
    "client", "expense", "product",
    "client_document", "invoice_attachment", "quote_attachment", "expense_receipt", "product_image",
)

CATEGORY_BUCKETS = {
    "invoice": "invoices",
    "quote": "invoices",
    "invoice_attachment": "invoices",
    "quote_attachment": "invoices",
    "receipt": "receipts",
    "expense_receipt": "receipts",
    "contract": "contracts",
}
DEFAULT_BUCKET = "documents"

# Upload folder -> stored category
FOLDER_CATEGORIES = {
    "clientes": "client_document",
    "facturas": "invoice_attachment",
    "cotizaciones": "quote_attachment",
    "gastos": "expense_receipt",
    "productos": "product_image",
}

# Folder -> base category for reads
FOLDER_BASES = {
    "clientes": "client",
    "facturas": "invoice",
    "cotizaciones": "quote",
    "gastos": "expense",
    "productos": "product",
}

FOLDER_LABELS = {
    "clientes": "Clientes",
    "facturas": "Facturas",
    "cotizaciones": "Cotizaciones",
    "gastos": "Gastos",
    "productos": "Productos",
}


def bucket_for(category: str) -> str:
    return CATEGORY_BUCKETS.get(category, DEFAULT_BUCKET)


def categories_for_read(name: str) -> list[str]:
    """
    Expand a folder or category name to every stored category it covers.

    "facturas" -> ["invoice", "invoice_attachment"]
    "gastos"   -> ["expense", "expense_receipt"]
    """
    base = FOLDER_BASES.get(name, name)
    expanded = [base] + [c for c in CATEGORIES if c.startswith(f"{base}_")]
    return expanded


def resolve_upload_category(*, category: str | None, folder_type: str | None) -> str:
    if folder_type:
        if folder_type not in FOLDER_CATEGORIES:
            raise ValidationError(f"folder_type must be one of: {', '.join(FOLDER_CATEGORIES)}")
        return FOLDER_CATEGORIES[folder_type]
    if not category:
        return "other"
    if category in FOLDER_CATEGORIES:
        return FOLDER_CATEGORIES[category]
    if category not in CATEGORIES:
        raise ValidationError(f"Unknown category: {category}")
    return category


def build_object_path(*, user_id: int, category: str, filename: str, client_id: int | None = None,
                      timestamp_ms: int | None = None) -> str:
    safe = secure_filename(filename or "") or "file"
    ts = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    parts = [f"user_{user_id}"]
    if client_id is not None:
        parts.append(f"client_{client_id}")
    parts.append(category)
    parts.append(f"{ts}_{safe}")
    return "/".join(parts)


def upload_file(
    *,
    user,
    upload,
    category: str | None = None,
    folder_type: str | None = None,
    client_id: int | None = None,
    project_id: int | None = None,
) -> StoredFile:
    """
    Store an uploaded werkzeug FileStorage and record its metadata.

    Raises:
        ValidationError: missing file, unknown category/folder, unknown project
        ClientNotFoundError: client_id does not exist
        FileTooLargeError: body larger than MAX_UPLOAD_BYTES
        StorageError: storage backend failure
    """
    if upload is None or not upload.filename:
        raise ValidationError("No file provided", errors=[{"path": "file", "message": "Required"}])

    resolved = resolve_upload_category(category=category, folder_type=folder_type)

    if client_id is not None and not db.session.get(Client, client_id):
        raise ClientNotFoundError(f"Client {client_id} not found")
    if project_id is not None and not db.session.get(Project, project_id):
        raise ValidationError("project_id does not reference an existing project")

    limit = current_app.config.get("MAX_UPLOAD_BYTES", 10 * 1024 * 1024)
    data = upload.stream.read(limit + 1)
    if len(data) > limit:
        raise FileTooLargeError(f"File exceeds maximum size of {limit} bytes")

    bucket = bucket_for(resolved)
    path = build_object_path(user_id=user.id, category=resolved, filename=upload.filename, client_id=client_id)
    storage = get_object_storage()
    storage.upload(bucket, path, data, upload.mimetype)

    record = StoredFile(
        name=upload.filename,
        path=path,
        bucket=bucket,
        size=len(data),
        mime_type=upload.mimetype,
        category=resolved,
        client_id=client_id,
        project_id=project_id,
        user_id=user.id,
    )
    db.session.add(record)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record uploaded file %s/%s; removing object", bucket, path)
        try:
            storage.delete(bucket, path)
        except StorageError:
            current_app.logger.error("Orphaned storage object %s/%s", bucket, path)
        raise
    return record


def get_file(file_id: int) -> StoredFile:
    record = db.session.get(StoredFile, file_id)
    if not record:
        raise StoredFileNotFoundError(f"File {file_id} not found")
    return record


def list_files(*, category: str | None = None, client_id: int | None = None) -> list[StoredFile]:
    query = db.session.query(StoredFile)
    if category:
        query = query.filter(StoredFile.category.in_(categories_for_read(category)))
    if client_id is not None:
        query = query.filter(StoredFile.client_id == client_id)
    return query.order_by(StoredFile.created_at.desc(), StoredFile.id.desc()).all()


def list_folders() -> list[dict]:
    return [
        {"id": folder, "name": FOLDER_LABELS[folder], "category": FOLDER_CATEGORIES[folder]}
        for folder in FOLDER_CATEGORIES
    ]


def signed_url(record: StoredFile, expires_in: int | None = None) -> str:
    ttl = expires_in or current_app.config.get("SIGNED_URL_TTL_SECONDS", 3600)
    if ttl <= 0:
        raise ValidationError("expires_in must be positive")
    return get_object_storage().signed_url(record.bucket, record.path, ttl)


def can_access(record: StoredFile, user) -> bool:
    if user.role in ("admin", "user"):
        return True
    link = getattr(user, "portal_link", None)
    return bool(link and record.client_id == link.client_id)


def delete_file(file_id: int, *, user) -> StoredFile:
    """
    Delete the storage object, then the metadata row.

    Only the uploader or an admin may delete. A row-delete failure after the
    object is gone is logged and re-raised; the object is not restored.
    """
    record = get_file(file_id)
    if record.user_id != user.id and not user.is_admin:
        raise FileAccessError("Only the owner or an admin can delete this file")

    get_object_storage().delete(record.bucket, record.path)

    try:
        db.session.delete(record)
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception(
            "Storage object %s/%s deleted but metadata row %s could not be removed",
            record.bucket, record.path, file_id,
        )
        raise
    return record
