from __future__ import annotations

from ..extensions import db
from efectivio.money import to_money_str
from efectivio.time_utils import to_iso_date, to_utc_z

ACCOUNT_TYPES = ("asset", "liability", "equity", "revenue", "expense")

# Balance grows with debits for these types, with credits for the rest
DEBIT_NORMAL_TYPES = ("asset", "expense")

EXPENSE_CATEGORIES = ("office", "travel", "services", "utilities", "supplies", "taxes", "other")
EXPENSE_STATUSES = ("pending", "paid", "rejected")

JOURNAL_SOURCES = ("manual", "invoice", "expense")


class Account(db.Model):
    """
    Chart-of-accounts entry. Accounts may nest under a parent account.
    """
    __tablename__ = "accounts"
    __table_args__ = (
        db.CheckConstraint(
            "type IN ('asset', 'liability', 'equity', 'revenue', 'expense')",
            name="ck_accounts_type",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(16), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    parent_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    parent = db.relationship("Account", remote_side=[id], backref=db.backref("children", lazy=True))

    @property
    def is_debit_normal(self) -> bool:
        return self.type in DEBIT_NORMAL_TYPES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "type": self.type,
            "description": self.description,
            "parent_id": self.parent_id,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class JournalEntry(db.Model):
    """
    Double-entry journal header. Owns its lines; total debits equal total
    credits for every stored entry.
    """
    __tablename__ = "journal_entries"
    __table_args__ = (
        db.Index("ix_journal_entries_source", "source_type", "source_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    entry_number = db.Column(db.String(64), nullable=False, unique=True, index=True)
    date = db.Column(db.Date, nullable=False, index=True)
    reference = db.Column(db.String(128), nullable=True)
    description = db.Column(db.Text, nullable=True)

    source_type = db.Column(db.String(16), nullable=False, default="manual")
    source_id = db.Column(db.Integer, nullable=True)
    is_posted = db.Column(db.Boolean, nullable=False, default=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    lines = db.relationship(
        "JournalLine",
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="JournalLine.position",
    )

    def to_dict(self, include_lines: bool = False) -> dict:
        total_debit = sum((line.debit for line in self.lines), 0)
        total_credit = sum((line.credit for line in self.lines), 0)
        data = {
            "id": self.id,
            "entry_number": self.entry_number,
            "date": to_iso_date(self.date),
            "reference": self.reference,
            "description": self.description,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "is_posted": self.is_posted,
            "total_debit": to_money_str(total_debit),
            "total_credit": to_money_str(total_credit),
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class JournalLine(db.Model):
    __tablename__ = "journal_lines"
    __table_args__ = (
        db.CheckConstraint("debit >= 0 AND credit >= 0", name="ck_journal_lines_non_negative"),
        db.Index("ix_journal_lines_account", "account_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    journal_entry_id = db.Column(
        db.Integer, db.ForeignKey("journal_entries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = db.Column(db.Integer, nullable=False, default=0)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False)
    description = db.Column(db.String(500), nullable=True)
    debit = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    credit = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    entry = db.relationship("JournalEntry", back_populates="lines")
    account = db.relationship("Account")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "journal_entry_id": self.journal_entry_id,
            "position": self.position,
            "account_id": self.account_id,
            "account_code": self.account.code if self.account else None,
            "account_name": self.account.name if self.account else None,
            "description": self.description,
            "debit": to_money_str(self.debit),
            "credit": to_money_str(self.credit),
        }


class Expense(db.Model):
    __tablename__ = "expenses"
    __table_args__ = (
        db.Index("ix_expenses_date", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    description = db.Column(db.String(500), nullable=False)
    supplier_name = db.Column(db.String(255), nullable=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)

    date = db.Column(db.Date, nullable=False)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    category = db.Column(db.String(32), nullable=False, default="other", index=True)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    notes = db.Column(db.Text, nullable=True)
    receipt_file_id = db.Column(db.Integer, db.ForeignKey("files.id"), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "supplier_name": self.supplier_name,
            "client_id": self.client_id,
            "date": to_iso_date(self.date),
            "amount": to_money_str(self.amount),
            "tax_amount": to_money_str(self.tax_amount),
            "category": self.category,
            "status": self.status,
            "notes": self.notes,
            "receipt_file_id": self.receipt_file_id,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
