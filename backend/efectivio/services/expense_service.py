# Overview: Service-layer operations for expenses.

from __future__ import annotations

from ..extensions import db
from ..models import Client, Expense, StoredFile
from ..models.accounting import EXPENSE_CATEGORIES, EXPENSE_STATUSES
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from .accounting_service import post_expense_journal, remove_source_journal, repost_expense_journal
from .concurrency import run_with_retry
from efectivio.time_utils import today


class ExpenseNotFoundError(Exception):
    """Raised when an expense is not found."""
    pass


EXPENSE_POLICY = ModelValidationPolicy(
    writable_fields={
        "description", "supplier_name", "client_id", "date", "amount", "tax_amount",
        "category", "status", "notes", "receipt_file_id",
    },
    required_on_create={"description", "amount"},
    choices={"category": EXPENSE_CATEGORIES, "status": EXPENSE_STATUSES},
)

# Fields that appear in the posted journal entry
POSTED_FIELDS = ("amount", "tax_amount", "date", "description")


def get_expense(expense_id: int) -> Expense:
    expense = db.session.get(Expense, expense_id)
    if not expense:
        raise ExpenseNotFoundError(f"Expense {expense_id} not found")
    return expense


def list_expenses(
    *,
    category: str | None = None,
    status: str | None = None,
    start=None,
    end=None,
) -> list[Expense]:
    query = db.session.query(Expense)
    if category:
        query = query.filter(Expense.category == category)
    if status:
        query = query.filter(Expense.status == status)
    if start:
        query = query.filter(Expense.date >= start)
    if end:
        query = query.filter(Expense.date <= end)
    return query.order_by(Expense.date.desc(), Expense.id.desc()).all()


def _check_refs(patch: dict) -> None:
    if patch.get("amount") is not None and patch["amount"] <= 0:
        raise ValidationError("amount must be greater than 0", errors=[{"path": "amount", "message": "Must be greater than 0"}])
    if patch.get("tax_amount") is not None and patch["tax_amount"] < 0:
        raise ValidationError("tax_amount cannot be negative", errors=[{"path": "tax_amount", "message": "Cannot be negative"}])
    if patch.get("client_id") is not None and not db.session.get(Client, patch["client_id"]):
        raise ValidationError("client_id does not reference an existing client")
    if patch.get("receipt_file_id") is not None and not db.session.get(StoredFile, patch["receipt_file_id"]):
        raise ValidationError("receipt_file_id does not reference an existing file")


def create_expense(payload: dict, *, created_by_user_id: int | None = None) -> Expense:
    """
    Record an expense and post it: debit Operating Expenses, credit Cash and Banks.
    """
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=False)
    _check_refs(patch)
    if not patch.get("date"):
        patch["date"] = today()

    def _op() -> Expense:
        expense = Expense(created_by_user_id=created_by_user_id, **patch)
        db.session.add(expense)
        db.session.flush()
        post_expense_journal(expense)
        db.session.commit()
        return expense

    return run_with_retry(_op)


def update_expense(expense_id: int, payload: dict) -> Expense:
    expense = get_expense(expense_id)
    patch = validate_payload(model=Expense, payload=payload, policy=EXPENSE_POLICY, partial=True)
    _check_refs(patch)
    for key, value in patch.items():
        setattr(expense, key, value)
    if any(key in patch for key in POSTED_FIELDS):
        db.session.flush()
        repost_expense_journal(expense)
    db.session.commit()
    return expense


def delete_expense(expense_id: int) -> None:
    """Delete an expense together with the journal entry it posted."""
    expense = get_expense(expense_id)
    remove_source_journal("expense", expense.id)
    db.session.delete(expense)
    db.session.commit()
