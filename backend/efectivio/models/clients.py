from __future__ import annotations

from ..extensions import db
from efectivio.time_utils import to_utc_z

CLIENT_TYPES = ("individual", "company")


class Client(db.Model):
    """
    A customer of the business: an individual or a company.

    Quotes, invoices, files and portal accounts reference clients by id.
    Deleting a client does not cascade to any of them.
    """
    __tablename__ = "clients"
    __table_args__ = (
        db.Index("ix_clients_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    client_type = db.Column(db.String(16), nullable=False, default="company")

    name = db.Column(db.String(255), nullable=False)
    company_name = db.Column(db.String(255), nullable=True)
    contact_name = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True, index=True)
    phone = db.Column(db.String(64), nullable=True)
    address = db.Column(db.Text, nullable=True)
    tax_id = db.Column(db.String(64), nullable=True)

    payment_terms_days = db.Column(db.Integer, nullable=False, default=30)
    has_portal_access = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "client_type": self.client_type,
            "name": self.name,
            "company_name": self.company_name,
            "contact_name": self.contact_name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "tax_id": self.tax_id,
            "payment_terms_days": self.payment_terms_days,
            "has_portal_access": self.has_portal_access,
            "is_active": self.is_active,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
