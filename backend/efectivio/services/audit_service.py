# Overview: Service-layer operations for the append-only audit trail.

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from flask import g, has_request_context, request

from ..extensions import db
from ..models import AuditLog


def _jsonable(value):
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def diff_fields(before: dict, after: dict) -> dict | None:
    """
    {"before": {...}, "after": {...}} over the keys whose values differ.

    Returns None when nothing changed.
    """
    changed = [k for k in after if _jsonable(before.get(k)) != _jsonable(after.get(k))]
    if not changed:
        return None
    return {
        "before": {k: _jsonable(before.get(k)) for k in changed},
        "after": {k: _jsonable(after.get(k)) for k in changed},
    }


def record(
    *,
    action: str,
    entity_type: str,
    entity_id=None,
    entity_name: str | None = None,
    details: str | None = None,
    changes: dict | None = None,
    user=None,
) -> AuditLog:
    """
    Add an audit row to the current session; the caller commits it together
    with the mutation it describes.

    Actor, IP and user agent default to the current request.
    """
    if user is None and has_request_context():
        user = getattr(g, "current_user", None)

    ip_address = None
    user_agent = None
    if has_request_context():
        ip_address = request.headers.get("X-Forwarded-For", request.remote_addr)
        if ip_address and "," in ip_address:
            ip_address = ip_address.split(",", 1)[0].strip()
        user_agent = request.headers.get("User-Agent")

    entry = AuditLog(
        user_id=user.id if user else None,
        user_name=user.display_name if user else None,
        user_role=user.role if user else None,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        entity_name=entity_name,
        details=details,
        changes=changes,
        ip_address=ip_address,
        user_agent=user_agent[:512] if user_agent else None,
    )
    db.session.add(entry)
    return entry


def list_audit_logs(
    *,
    entity_type: str | None = None,
    action: str | None = None,
    user_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[AuditLog], int]:
    query = db.session.query(AuditLog)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if action:
        query = query.filter(AuditLog.action == action)
    if user_id is not None:
        query = query.filter(AuditLog.user_id == user_id)
    total = query.count()
    rows = query.order_by(AuditLog.occurred_at.desc(), AuditLog.id.desc()).offset(offset).limit(limit).all()
    return rows, total
