# Overview: Service-layer operations for the signed-in user's own profile and avatar.

"""
Profile Service

Any authenticated user (staff or portal client) may read and edit their own
name, preferred display name and email, and replace their avatar image.
Avatars live in the "avatars" bucket as avatar_<uid>_<random hex><ext>; the
profile exposes them through a short-lived signed URL.
"""

from __future__ import annotations

import os
import uuid

from flask import current_app
from werkzeug.utils import secure_filename

from ..extensions import db
from ..models import User
from ..validation import ValidationError
from . import audit_service, auth_service
from .audit_service import diff_fields
from .auth_service import UserValidationError
from .file_service import FileTooLargeError
from .object_storage import StorageError, get_object_storage
from efectivio.time_utils import to_utc_z


AVATAR_BUCKET = "avatars"
AVATAR_MIME_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp")

PROFILE_FIELDS = ("name", "full_name", "email", "display_name")
PROFILE_AUDIT_FIELDS = ("full_name", "email", "preferred_name")


def avatar_url(user: User) -> str | None:
    if not user.avatar_path:
        return None
    ttl = current_app.config.get("SIGNED_URL_TTL_SECONDS", 3600)
    try:
        return get_object_storage().signed_url(AVATAR_BUCKET, user.avatar_path, ttl)
    except StorageError:
        current_app.logger.warning("Could not sign avatar URL for user %s", user.id, exc_info=True)
        return None


def profile_dict(user: User) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "name": user.full_name or user.username,
        "email": user.email,
        "display_name": user.display_name,
        "avatar_url": avatar_url(user),
        "role": user.role,
        "created_at": to_utc_z(user.created_at),
    }


def update_profile(user: User, payload) -> User:
    """
    Apply a self-service edit: name (or full_name), email, display_name.

    Email uniqueness and format follow the admin edit rules. Users mirrored
    from the hosted identity service cannot change their email here.
    """
    if not isinstance(payload, dict):
        raise UserValidationError("Request body must be a JSON object")
    unknown = set(payload) - set(PROFILE_FIELDS)
    if unknown:
        raise UserValidationError(f"Field not allowed: {sorted(unknown)[0]}")
    for field, value in payload.items():
        if value is not None and not isinstance(value, str):
            raise UserValidationError(f"{field} must be a string")

    before = {f: getattr(user, f) for f in PROFILE_AUDIT_FIELDS}

    changes = {}
    if "full_name" in payload or "name" in payload:
        changes["full_name"] = payload.get("full_name", payload.get("name"))
    if "email" in payload:
        requested = (payload["email"] or "").strip().lower()
        if user.external_id and requested != user.email:
            raise UserValidationError("Email is managed by the identity provider")
        changes["email"] = payload["email"]
    if changes:
        auth_service.update_user(user.id, changes=changes)

    if "display_name" in payload:
        preferred = (payload["display_name"] or "").strip() or None
        if preferred and len(preferred) > 255:
            raise UserValidationError("display_name exceeds max length 255")
        user.preferred_name = preferred

    audit_service.record(
        action="update",
        entity_type="user",
        entity_id=user.id,
        entity_name=user.username,
        changes=diff_fields(before, {f: getattr(user, f) for f in PROFILE_AUDIT_FIELDS}),
        details="Profile update",
        user=user,
    )
    db.session.commit()
    return user


def upload_avatar(user: User, upload) -> User:
    """
    Store a new avatar image and point the user at it.

    The previous image is removed after the new one is committed; a failed
    removal only leaves an unreferenced object behind and is logged.

    Raises:
        ValidationError: missing file or not an allowed image type
        FileTooLargeError: larger than MAX_AVATAR_BYTES
        StorageError: storage backend failure
    """
    if upload is None or not upload.filename:
        raise ValidationError("No file provided", errors=[{"path": "avatar", "message": "Required"}])
    if upload.mimetype not in AVATAR_MIME_TYPES:
        raise ValidationError(
            "Only JPEG, PNG, GIF or WebP images are allowed",
            errors=[{"path": "avatar", "message": "Unsupported image type"}],
        )

    limit = current_app.config.get("MAX_AVATAR_BYTES", 5 * 1024 * 1024)
    data = upload.stream.read(limit + 1)
    if len(data) > limit:
        raise FileTooLargeError(f"Avatar exceeds maximum size of {limit} bytes")

    extension = os.path.splitext(secure_filename(upload.filename))[1].lower()
    path = f"avatar_{user.id}_{uuid.uuid4().hex}{extension}"
    storage = get_object_storage()
    storage.upload(AVATAR_BUCKET, path, data, upload.mimetype)

    previous = user.avatar_path
    user.avatar_path = path
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record avatar %s; removing object", path)
        try:
            storage.delete(AVATAR_BUCKET, path)
        except StorageError:
            current_app.logger.error("Orphaned storage object %s/%s", AVATAR_BUCKET, path)
        raise

    if previous:
        try:
            storage.delete(AVATAR_BUCKET, previous)
        except StorageError:
            current_app.logger.warning("Could not remove previous avatar %s/%s", AVATAR_BUCKET, previous)
    return user
