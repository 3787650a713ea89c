from __future__ import annotations

from ..extensions import db
from efectivio.time_utils import to_utc_z

AUDIT_ACTIONS = ("create", "update", "delete", "activate", "deactivate", "invite", "register")


class AuditLog(db.Model):
    """
    Append-only record of administrative mutations.

    Actor name and role are copied onto the row so the trail survives user
    deletion. changes holds {"before": {...}, "after": {...}} restricted to
    the fields that changed.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_entity", "entity_type", "entity_id"),
        db.Index("ix_audit_logs_occurred_at", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True, index=True)
    user_name = db.Column(db.String(255), nullable=True)
    user_role = db.Column(db.String(16), nullable=True)

    action = db.Column(db.String(32), nullable=False)
    entity_type = db.Column(db.String(64), nullable=False)
    entity_id = db.Column(db.String(128), nullable=True)
    entity_name = db.Column(db.String(255), nullable=True)
    details = db.Column(db.Text, nullable=True)
    changes = db.Column(db.JSON, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "user_role": self.user_role,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "entity_name": self.entity_name,
            "details": self.details,
            "changes": self.changes,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "occurred_at": to_utc_z(self.occurred_at),
        }
