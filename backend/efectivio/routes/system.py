# Overview: System health endpoint.

import time
from flask import Blueprint, current_app

from ..extensions import db
from ..models import SessionToken, User
from ..services.email_service import EXTENSION_KEY as EMAIL_KEY
from ..services.identity import EXTENSION_KEY as IDENTITY_KEY
from ..services.object_storage import EXTENSION_KEY as STORAGE_KEY
from efectivio.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """Check database connectivity with a couple of cheap counts."""
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "users": user_count,
                "active_sessions": active_sessions,
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def provider_summary() -> dict:
    return {
        "identity": current_app.extensions[IDENTITY_KEY].name,
        "storage": current_app.extensions[STORAGE_KEY].name,
        "email": current_app.extensions[EMAIL_KEY].name,
    }


@system_bp.get("/health")
def health():
    """
    Health check.

    Returns:
    - 200: database reachable
    - 503: database unhealthy
    """
    database_health = check_database_health()
    healthy = database_health["status"] == "healthy"
    response = {
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database_health},
        "providers": provider_summary(),
    }
    return response, 200 if healthy else 503
