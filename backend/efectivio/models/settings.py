from __future__ import annotations

from ..extensions import db
from efectivio.time_utils import to_utc_z


class SystemConfig(db.Model):
    """
    Key/value system configuration grouped by category.

    Required keys back core behavior and cannot be deleted.
    """
    __tablename__ = "system_config"
    __table_args__ = (
        db.Index("ix_system_config_category", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(128), nullable=False, unique=True, index=True)
    value = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(64), nullable=False, default="general")
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    is_required = db.Column(db.Boolean, nullable=False, default=False)
    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "key": self.key,
            "value": self.value,
            "category": self.category,
            "description": self.description,
            "is_active": self.is_active,
            "is_required": self.is_required,
            "updated_by_user_id": self.updated_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class WhiteLabel(db.Model):
    """
    Branding configuration. At most one row is active at any time.
    """
    __tablename__ = "white_label"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    company_name = db.Column(db.String(255), nullable=False)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)
    primary_color = db.Column(db.String(16), nullable=True)
    secondary_color = db.Column(db.String(16), nullable=True)
    logo_url = db.Column(db.String(1024), nullable=True)
    domain = db.Column(db.String(255), nullable=True)
    custom_css = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "company_name": self.company_name,
            "client_id": self.client_id,
            "primary_color": self.primary_color,
            "secondary_color": self.secondary_color,
            "logo_url": self.logo_url,
            "domain": self.domain,
            "custom_css": self.custom_css,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
