# Overview: Flask API routes for the signed-in user's own profile and avatar.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth
from ..responses import error_response, internal_error, validation_error
from ..services import profile_service
from ..services.auth_service import UserConflictError, UserValidationError
from ..services.file_service import FileTooLargeError
from ..services.object_storage import StorageError
from ..validation import ValidationError


profile_bp = Blueprint("profile", __name__, url_prefix="/api/profile")


@profile_bp.get("")
@require_auth
def get_profile_route():
    return jsonify(profile_service.profile_dict(g.current_user))


@profile_bp.patch("")
@require_auth
def update_profile_route():
    """
    Edit the caller's own profile.

    Request body (all optional): {"name", "full_name", "email", "display_name"}
    Role, username and active flag are admin-only and rejected here.
    """
    data = request.get_json(silent=True)
    try:
        user = profile_service.update_profile(g.current_user, data if data is not None else {})
        return jsonify(profile_service.profile_dict(user))
    except UserValidationError as e:
        return error_response(str(e), 400)
    except UserConflictError as e:
        return error_response(str(e), 409)
    except Exception:
        return internal_error("Failed to update profile")


@profile_bp.post("/avatar")
@require_auth
def upload_avatar_route():
    """Replace the caller's avatar (multipart field "avatar")."""
    try:
        user = profile_service.upload_avatar(g.current_user, request.files.get("avatar"))
        return jsonify({"avatar_url": profile_service.avatar_url(user), "profile": profile_service.profile_dict(user)})
    except ValidationError as e:
        return validation_error(e)
    except FileTooLargeError as e:
        return error_response(str(e), 413)
    except StorageError as e:
        return error_response(str(e), 502)
    except Exception:
        return internal_error("Failed to upload avatar")
