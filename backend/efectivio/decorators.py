# Overview: Request authentication and role decorators for API routes.

from functools import wraps
from flask import current_app, request, jsonify, g

from .services.identity import ProviderError, get_identity_provider


def bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def require_auth(f):
    """
    Require a valid bearer token.

    The token is resolved by the configured identity provider; on success
    g.current_user holds the local User row.

    Returns 401 if:
    - No Authorization header
    - Invalid or expired token
    - User account deactivated
    Returns 502 if the hosted identity service cannot be reached.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        try:
            user = get_identity_provider().authenticate(token)
        except ProviderError:
            current_app.logger.exception("Failed to validate token with identity provider")
            return jsonify({"error": "Identity provider unavailable"}), 502

        if not user or not user.is_active:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        g.auth_token = token

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require the authenticated user to hold one of the given roles.

    Must be stacked under @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, 'current_user'):
                return jsonify({"error": "Authentication required"}), 401

            if g.current_user.role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_admin(f):
    """Require the authenticated user to be an admin."""
    return require_role("admin")(f)


def require_staff(f):
    """Require an admin or regular business user (not a portal client)."""
    return require_role("admin", "user")(f)
