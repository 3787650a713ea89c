# Overview: Flask API routes for system configuration and white-label branding.

"""
Settings Routes

System config reads are open to staff (inactive keys to admins only);
every mutation requires the admin role and is audited.

White label: /active is public so the login page can brand itself.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_admin, require_auth, require_staff
from ..responses import bool_arg, error_response, internal_error, validation_error
from ..services import settings_service
from ..services.settings_service import SettingNotFoundError, WhiteLabelNotFoundError
from ..validation import ConflictError, ValidationError


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")
white_label_bp = Blueprint("white_label", __name__, url_prefix="/api/white-label")


def _include_inactive() -> bool:
    return g.current_user.is_admin and bool_arg("include_inactive")


# =============================================================================
# System config
# =============================================================================


@settings_bp.get("")
@require_auth
@require_staff
def list_settings_route():
    configs = settings_service.list_configs(include_inactive=_include_inactive())
    return jsonify([c.to_dict() for c in configs])


@settings_bp.get("/category/<category>")
@require_auth
@require_staff
def list_settings_by_category_route(category: str):
    configs = settings_service.list_configs(category=category, include_inactive=_include_inactive())
    return jsonify([c.to_dict() for c in configs])


@settings_bp.get("/<key>")
@require_auth
@require_staff
def get_setting_route(key: str):
    try:
        config = settings_service.get_config(key)
    except SettingNotFoundError:
        return error_response("Setting not found", 404)
    if not config.is_active and not g.current_user.is_admin:
        return error_response("Setting not found", 404)
    return jsonify(config.to_dict())


@settings_bp.post("")
@require_auth
@require_admin
def create_setting_route():
    data = request.get_json(silent=True) or {}
    try:
        config = settings_service.create_config(data, user=g.current_user)
        return jsonify(config.to_dict()), 201
    except ValidationError as e:
        return validation_error(e)
    except ConflictError as e:
        return error_response(str(e), 409)
    except Exception:
        return internal_error("Failed to create setting")


@settings_bp.put("/<key>")
@require_auth
@require_admin
def update_setting_route(key: str):
    """
    Update a setting's value or metadata.

    Request body: {"value": "...", "description": "...", "is_active": true, ...}
    Writes an audit row with action "update" and the changed fields.
    """
    data = request.get_json(silent=True) or {}
    try:
        config = settings_service.update_config(key, data, user=g.current_user)
        return jsonify(config.to_dict())
    except SettingNotFoundError:
        return error_response("Setting not found", 404)
    except ValidationError as e:
        return validation_error(e)
    except Exception:
        return internal_error("Failed to update setting")


@settings_bp.delete("/<key>")
@require_auth
@require_admin
def delete_setting_route(key: str):
    try:
        settings_service.delete_config(key, user=g.current_user)
        return "", 204
    except SettingNotFoundError:
        return error_response("Setting not found", 404)
    except ConflictError as e:
        return error_response(str(e), 409)


# =============================================================================
# White label
# =============================================================================


@white_label_bp.get("")
@require_auth
@require_admin
def list_white_labels_route():
    return jsonify([w.to_dict() for w in settings_service.list_white_labels()])


@white_label_bp.get("/active")
def active_white_label_route():
    """Public: the active branding, or null when none is active."""
    config = settings_service.get_active_white_label()
    return jsonify(config.to_dict() if config else None)


@white_label_bp.get("/client/<int:client_id>")
@require_auth
def client_white_label_route(client_id: int):
    config = settings_service.get_client_white_label(client_id)
    if not config:
        return error_response("White-label configuration not found", 404)
    return jsonify(config.to_dict())


@white_label_bp.get("/<int:config_id>")
@require_auth
@require_staff
def get_white_label_route(config_id: int):
    try:
        return jsonify(settings_service.get_white_label(config_id).to_dict())
    except WhiteLabelNotFoundError:
        return error_response("White-label configuration not found", 404)


@white_label_bp.post("")
@require_auth
@require_admin
def create_white_label_route():
    data = request.get_json(silent=True) or {}
    activate = bool(data.pop("is_active", False))
    try:
        config = settings_service.create_white_label(data, activate=activate, user=g.current_user)
        return jsonify(config.to_dict()), 201
    except ValidationError as e:
        return validation_error(e)
    except Exception:
        return internal_error("Failed to create white-label configuration")


@white_label_bp.put("/<int:config_id>")
@require_auth
@require_admin
def update_white_label_route(config_id: int):
    data = request.get_json(silent=True) or {}
    if "is_active" in data:
        return error_response("Use /activate or /deactivate-all to change is_active", 400)
    try:
        config = settings_service.update_white_label(config_id, data, user=g.current_user)
        return jsonify(config.to_dict())
    except WhiteLabelNotFoundError:
        return error_response("White-label configuration not found", 404)
    except ValidationError as e:
        return validation_error(e)


@white_label_bp.put("/<int:config_id>/activate")
@require_auth
@require_admin
def activate_white_label_route(config_id: int):
    try:
        config = settings_service.activate_white_label(config_id, user=g.current_user)
        return jsonify(config.to_dict())
    except WhiteLabelNotFoundError:
        return error_response("White-label configuration not found", 404)


@white_label_bp.put("/deactivate-all")
@require_auth
@require_admin
def deactivate_all_white_labels_route():
    count = settings_service.deactivate_all_white_labels(user=g.current_user)
    return jsonify({"deactivated": count})


@white_label_bp.delete("/<int:config_id>")
@require_auth
@require_admin
def delete_white_label_route(config_id: int):
    try:
        settings_service.delete_white_label(config_id, user=g.current_user)
        return "", 204
    except WhiteLabelNotFoundError:
        return error_response("White-label configuration not found", 404)
    except ConflictError as e:
        return error_response(str(e), 409)
