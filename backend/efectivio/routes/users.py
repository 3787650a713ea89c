# Overview: Flask API routes for user administration; admin only except password changes.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_admin, require_auth
from ..extensions import db
from ..responses import bool_arg, error_response, internal_error
from ..services import audit_service, auth_service
from ..services.audit_service import diff_fields
from ..services.auth_service import (
    USER_AUDIT_FIELDS,
    PasswordValidationError,
    UserConflictError,
    UserNotFoundError,
    UserValidationError,
)


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_admin
def list_users_route():
    """
    List users.

    Query parameters:
    - role: admin | user | client
    - include_inactive: default true
    """
    users = auth_service.list_users(
        role=request.args.get("role"),
        include_inactive=bool_arg("include_inactive", default=True),
    )
    return jsonify([u.to_dict() for u in users])


@users_bp.get("/<int:user_id>")
@require_auth
@require_admin
def get_user_route(user_id: int):
    try:
        return jsonify(auth_service.get_user(user_id).to_dict())
    except UserNotFoundError:
        return error_response("User not found", 404)


@users_bp.post("")
@require_auth
@require_admin
def create_user_route():
    """
    Create a user.

    Request body:
    - username, email, password: required
    - full_name: optional
    - role: admin | user | client (default user)
    """
    data = request.get_json(silent=True) or {}
    if not all([data.get("username"), data.get("email"), data.get("password")]):
        return error_response("username, email, and password required", 400)
    try:
        user = auth_service.create_user(
            username=data["username"],
            email=data["email"],
            password=data["password"],
            full_name=data.get("full_name"),
            role=data.get("role") or "user",
            commit=False,
        )
        audit_service.record(
            action="create",
            entity_type="user",
            entity_id=user.id,
            entity_name=user.username,
            changes={"before": None, "after": {f: getattr(user, f) for f in USER_AUDIT_FIELDS}},
        )
        db.session.commit()
        return jsonify(user.to_dict()), 201
    except (PasswordValidationError, UserValidationError) as e:
        return error_response(str(e), 400)
    except UserConflictError as e:
        return error_response(str(e), 409)
    except Exception:
        return internal_error("Failed to create user")


@users_bp.put("/<int:user_id>")
@require_auth
@require_admin
def update_user_route(user_id: int):
    data = request.get_json(silent=True) or {}
    if user_id == g.current_user.id and (data.get("is_active") is False or data.get("role", "admin") != "admin"):
        return error_response("Admins cannot demote or deactivate themselves", 400)
    try:
        user, before = auth_service.update_user(user_id, changes=data)
        changes = diff_fields(before, {f: getattr(user, f) for f in USER_AUDIT_FIELDS})
        audit_service.record(
            action="update",
            entity_type="user",
            entity_id=user.id,
            entity_name=user.username,
            changes=changes,
            details="Password reset" if data.get("password") else None,
        )
        db.session.commit()
        return jsonify(user.to_dict())
    except UserNotFoundError:
        return error_response("User not found", 404)
    except (PasswordValidationError, UserValidationError) as e:
        return error_response(str(e), 400)
    except UserConflictError as e:
        return error_response(str(e), 409)
    except Exception:
        return internal_error("Failed to update user")


@users_bp.delete("/<int:user_id>")
@require_auth
@require_admin
def delete_user_route(user_id: int):
    if user_id == g.current_user.id:
        return error_response("Admins cannot delete themselves", 400)
    try:
        user = auth_service.delete_user(user_id)
        audit_service.record(
            action="delete",
            entity_type="user",
            entity_id=user_id,
            entity_name=user.username,
            changes={"before": {f: getattr(user, f) for f in USER_AUDIT_FIELDS}, "after": None},
        )
        db.session.commit()
        return "", 204
    except UserNotFoundError:
        return error_response("User not found", 404)
    except Exception:
        return internal_error("Failed to delete user")


@users_bp.post("/<int:user_id>/change-password")
@require_auth
def change_password_route(user_id: int):
    """
    Change a password. Users may change their own (current_password
    required); admins may change anyone's. All sessions are revoked.
    """
    me = g.current_user
    if me.id != user_id and not me.is_admin:
        return error_response("Permission denied", 403)

    data = request.get_json(silent=True) or {}
    new_password = data.get("new_password")
    if not new_password:
        return error_response("new_password is required", 400)
    try:
        user = auth_service.change_password(
            user_id,
            new_password=new_password,
            current_password=data.get("current_password"),
            require_current=me.id == user_id,
        )
        audit_service.record(
            action="update",
            entity_type="user",
            entity_id=user.id,
            entity_name=user.username,
            details="Password changed",
        )
        db.session.commit()
        return jsonify({"message": "Password changed"})
    except UserNotFoundError:
        return error_response("User not found", 404)
    except (PasswordValidationError, UserValidationError) as e:
        return error_response(str(e), 400)
    except Exception:
        return internal_error("Failed to change password")
