from __future__ import annotations

from ..extensions import db
from efectivio.money import to_money_str, to_rate_str
from efectivio.time_utils import to_iso_date, to_utc_z

QUOTE_STATUSES = ("draft", "sent", "accepted", "rejected", "expired", "converted")
INVOICE_STATUSES = ("draft", "sent", "paid", "overdue", "cancelled")


class Quote(db.Model):
    """
    Priced offer to a client. Owns its item rows.

    converted_to_invoice_id points at the most recent invoice produced from
    this quote (conversion may be repeated).
    """
    __tablename__ = "quotes"
    __table_args__ = (
        db.Index("ix_quotes_client_status", "client_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quote_number = db.Column(db.String(64), nullable=False, unique=True, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)

    issue_date = db.Column(db.Date, nullable=False)
    expiry_date = db.Column(db.Date, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="draft", index=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)
    terms_and_conditions = db.Column(db.Text, nullable=True)

    converted_to_invoice_id = db.Column(
        db.Integer,
        db.ForeignKey("invoices.id", use_alter=True, name="fk_quotes_converted_to_invoice"),
        nullable=True,
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    client = db.relationship("Client")
    items = db.relationship(
        "QuoteItem",
        back_populates="quote",
        cascade="all, delete-orphan",
        order_by="QuoteItem.position",
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "quote_number": self.quote_number,
            "client_id": self.client_id,
            "issue_date": to_iso_date(self.issue_date),
            "expiry_date": to_iso_date(self.expiry_date),
            "status": self.status,
            "subtotal": to_money_str(self.subtotal),
            "tax_amount": to_money_str(self.tax_amount),
            "total": to_money_str(self.total),
            "notes": self.notes,
            "terms_and_conditions": self.terms_and_conditions,
            "converted_to_invoice_id": self.converted_to_invoice_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class QuoteItem(db.Model):
    __tablename__ = "quote_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_quote_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    description = db.Column(db.String(500), nullable=False)
    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    amount = db.Column(db.Numeric(12, 2), nullable=False)

    quote = db.relationship("Quote", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quote_id": self.quote_id,
            "position": self.position,
            "description": self.description,
            "quantity": to_money_str(self.quantity),
            "unit_price": to_money_str(self.unit_price),
            "tax_rate": to_rate_str(self.tax_rate),
            "amount": to_money_str(self.amount),
        }


class Invoice(db.Model):
    """
    Bill issued to a client. Owns its item rows.

    quote_id is set when the invoice was produced by converting a quote.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_client_status", "client_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(64), nullable=False, unique=True, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)
    quote_id = db.Column(db.Integer, db.ForeignKey("quotes.id"), nullable=True, index=True)

    issue_date = db.Column(db.Date, nullable=False)
    due_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="draft", index=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    client = db.relationship("Client")
    quote = db.relationship("Quote", foreign_keys=[quote_id])
    items = db.relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "client_id": self.client_id,
            "quote_id": self.quote_id,
            "issue_date": to_iso_date(self.issue_date),
            "due_date": to_iso_date(self.due_date),
            "status": self.status,
            "subtotal": to_money_str(self.subtotal),
            "tax_amount": to_money_str(self.tax_amount),
            "total": to_money_str(self.total),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class InvoiceItem(db.Model):
    __tablename__ = "invoice_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_invoice_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    description = db.Column(db.String(500), nullable=False)
    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    tax_rate = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    amount = db.Column(db.Numeric(12, 2), nullable=False)

    invoice = db.relationship("Invoice", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "position": self.position,
            "description": self.description,
            "quantity": to_money_str(self.quantity),
            "unit_price": to_money_str(self.unit_price),
            "tax_rate": to_rate_str(self.tax_rate),
            "amount": to_money_str(self.amount),
        }


class DocumentSequence(db.Model):
    """
    Atomic per-type document sequences (quotes, journal entries).
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", name="uq_doc_sequences_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
