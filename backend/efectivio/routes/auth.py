# Overview: Flask API routes for sign-in, sign-out, sign-up and the current user.

"""
Authentication API routes

All calls go through the configured identity provider (local sessions or
the hosted identity service); the routes never branch on which is active.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth
from ..responses import error_response, internal_error
from ..services.auth_service import PasswordValidationError, UserConflictError, UserValidationError
from ..services.identity import ProviderError, get_identity_provider


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and return a bearer token.

    Request body: {"username" | "email" | "identifier": ..., "password": ...}
    The token must be sent as "Authorization: Bearer <token>".
    """
    data = request.get_json(silent=True) or {}
    identifier = data.get("username") or data.get("email") or data.get("identifier")
    password = data.get("password")

    if not all([identifier, password]):
        return error_response("username/email and password required", 400)

    try:
        result = get_identity_provider().sign_in(
            identifier,
            password,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
    except ProviderError as e:
        return error_response(str(e), 502)
    except Exception:
        return internal_error("Failed to login user")

    if not result:
        return error_response("Invalid credentials", 401)

    user, token = result
    return jsonify({
        "user": user.to_dict(),
        "token": token,
        "message": "Login successful",
    })


@auth_bp.post("/logout")
@require_auth
def logout_route():
    try:
        revoked = get_identity_provider().sign_out(g.auth_token)
    except ProviderError as e:
        return error_response(str(e), 502)
    return jsonify({"message": "Logged out", "revoked": revoked})


@auth_bp.post("/register")
def register_route():
    """
    Self sign-up for a business user account.

    Portal clients register through /api/client-portal/register instead.
    """
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    email = data.get("email")
    password = data.get("password")
    if not all([username, email, password]):
        return error_response("username, email, and password required", 400)

    try:
        user = get_identity_provider().sign_up(
            username=username,
            email=email,
            password=password,
            full_name=data.get("full_name"),
        )
        current_app.logger.info("User registered: %s", user.username)
        return jsonify({"user": user.to_dict(), "message": "User created successfully"}), 201
    except (PasswordValidationError, UserValidationError) as e:
        return error_response(str(e), 400)
    except UserConflictError as e:
        return error_response(str(e), 409)
    except ProviderError as e:
        return error_response(str(e), 502)
    except Exception:
        return internal_error("Failed to register user")


@auth_bp.get("/me")
@require_auth
def me_route():
    user = g.current_user
    body = {"user": user.to_dict()}
    if user.portal_link:
        body["client_id"] = user.portal_link.client_id
    return jsonify(body)
