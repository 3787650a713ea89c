# Overview: JSON error responses shared by route modules.

from flask import current_app, jsonify, request

from .extensions import db
from .time_utils import parse_iso_date
from .validation import ValidationError


def error_response(message: str, status: int, **extra):
    """Roll back pending work and return {"error": message, ...}."""
    db.session.rollback()
    body = {"error": message}
    body.update(extra)
    return jsonify(body), status


def validation_error(exc: ValidationError):
    db.session.rollback()
    return jsonify(exc.to_dict()), 400


def internal_error(message: str):
    """Log the active exception and return a generic 500."""
    current_app.logger.exception(message)
    db.session.rollback()
    return jsonify({"error": "Internal server error"}), 500


def date_arg(name: str):
    """Parse a YYYY-MM-DD query argument; raises ValidationError when malformed."""
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return parse_iso_date(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date (YYYY-MM-DD)")


def bool_arg(name: str, default: bool = False) -> bool:
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.lower() == "true"
