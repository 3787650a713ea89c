# Overview: Flask API route for browsing the audit log (admin only).

from flask import Blueprint, request, jsonify

from ..decorators import require_admin, require_auth
from ..services import audit_service


audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit-logs")


@audit_bp.get("")
@require_auth
@require_admin
def list_audit_logs_route():
    """
    List audit rows, newest first.

    Query parameters:
    - entity_type, action, user_id: filters
    - limit: default 100, max 500
    - offset: default 0
    """
    limit = min(max(request.args.get("limit", 100, type=int), 1), 500)
    offset = max(request.args.get("offset", 0, type=int), 0)
    rows, total = audit_service.list_audit_logs(
        entity_type=request.args.get("entity_type"),
        action=request.args.get("action"),
        user_id=request.args.get("user_id", type=int),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "items": [r.to_dict() for r in rows],
        "count": total,
        "limit": limit,
        "offset": offset,
    })
