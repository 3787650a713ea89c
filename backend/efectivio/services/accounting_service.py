# Overview: Service-layer operations for the chart of accounts and the journal.

"""
Accounting Service

Double-entry bookkeeping:
- Every journal entry has at least two lines
- Each line carries a positive debit or a positive credit, never both
- Total debits equal total credits (within one cent) or the entry is rejected

Invoices and expenses post their own entries through post_invoice_journal
and post_expense_journal, inside the caller's transaction. Editing a posted
document replaces its entry; deleting it removes the entry, so reports built
from journal lines always agree with the documents.
"""

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import Account, Expense, Invoice, JournalEntry, JournalLine
from ..models.accounting import ACCOUNT_TYPES, JOURNAL_SOURCES
from ..money import ZERO, quantize
from ..validation import ConflictError, ModelValidationPolicy, ValidationError, parse_decimal, validate_payload
from .numbering_service import next_document_number
from .totals import journal_totals
from efectivio.time_utils import today


class AccountNotFoundError(Exception):
    """Raised when an account is not found."""
    pass


class JournalEntryNotFoundError(Exception):
    """Raised when a journal entry is not found."""
    pass


class UnbalancedJournalError(ValidationError):
    """Raised when a journal entry's debits and credits differ."""
    pass


CASH_ACCOUNT = "1000"
RECEIVABLE_ACCOUNT = "1100"
PAYABLE_ACCOUNT = "2000"
CAPITAL_ACCOUNT = "3000"
REVENUE_ACCOUNT = "4000"
OPERATING_EXPENSE_ACCOUNT = "5000"

DEFAULT_CHART = (
    (CASH_ACCOUNT, "Caja y Bancos", "asset"),
    (RECEIVABLE_ACCOUNT, "Cuentas por Cobrar", "asset"),
    (PAYABLE_ACCOUNT, "Cuentas por Pagar", "liability"),
    (CAPITAL_ACCOUNT, "Capital", "equity"),
    (REVENUE_ACCOUNT, "Ingresos", "revenue"),
    (OPERATING_EXPENSE_ACCOUNT, "Gastos Operativos", "expense"),
)

ACCOUNT_POLICY = ModelValidationPolicy(
    writable_fields={"code", "name", "type", "description", "parent_id", "is_active"},
    required_on_create={"code", "name", "type"},
    choices={"type": ACCOUNT_TYPES},
)

JOURNAL_HEADER_POLICY = ModelValidationPolicy(
    writable_fields={"date", "reference", "description"},
    required_on_create=set(),
)


# =============================================================================
# Chart of accounts
# =============================================================================


def ensure_default_chart() -> dict[str, Account]:
    """
    Create any missing default accounts (flushes, does not commit).

    Returns {code: Account} for the default codes.
    """
    existing = {
        a.code: a
        for a in db.session.query(Account).filter(Account.code.in_([c for c, _, _ in DEFAULT_CHART])).all()
    }
    for code, name, account_type in DEFAULT_CHART:
        if code not in existing:
            account = Account(code=code, name=name, type=account_type, is_active=True)
            db.session.add(account)
            existing[code] = account
    db.session.flush()
    return existing


def list_accounts(*, account_type: str | None = None, include_inactive: bool = False) -> list[Account]:
    query = db.session.query(Account)
    if account_type:
        query = query.filter(Account.type == account_type)
    if not include_inactive:
        query = query.filter(Account.is_active.is_(True))
    return query.order_by(Account.code.asc()).all()


def get_account(account_id: int) -> Account:
    account = db.session.get(Account, account_id)
    if not account:
        raise AccountNotFoundError(f"Account {account_id} not found")
    return account


def _check_parent(account_id: int | None, parent_id: int | None) -> None:
    if parent_id is None:
        return
    if account_id is not None and parent_id == account_id:
        raise ValidationError("An account cannot be its own parent")
    parent = db.session.get(Account, parent_id)
    if not parent:
        raise ValidationError("parent_id does not reference an existing account")
    # Walk up to reject cycles
    seen = set()
    node = parent
    while node is not None:
        if node.id in seen or (account_id is not None and node.id == account_id):
            raise ValidationError("Account hierarchy cannot contain cycles")
        seen.add(node.id)
        node = node.parent


def create_account(payload: dict) -> Account:
    patch = validate_payload(model=Account, payload=payload, policy=ACCOUNT_POLICY, partial=False)
    if db.session.query(Account.id).filter_by(code=patch["code"]).first():
        raise ConflictError(f"Account code '{patch['code']}' already exists")
    _check_parent(None, patch.get("parent_id"))
    account = Account(**patch)
    db.session.add(account)
    db.session.commit()
    return account


def update_account(account_id: int, payload: dict) -> Account:
    account = get_account(account_id)
    patch = validate_payload(model=Account, payload=payload, policy=ACCOUNT_POLICY, partial=True)
    if "code" in patch and patch["code"] != account.code:
        if db.session.query(Account.id).filter_by(code=patch["code"]).first():
            raise ConflictError(f"Account code '{patch['code']}' already exists")
    if "type" in patch and patch["type"] != account.type and _has_lines(account.id):
        raise ConflictError("Cannot change the type of an account with journal lines")
    if "parent_id" in patch:
        _check_parent(account.id, patch["parent_id"])
    for key, value in patch.items():
        setattr(account, key, value)
    db.session.commit()
    return account


def _has_lines(account_id: int) -> bool:
    return db.session.query(JournalLine.id).filter_by(account_id=account_id).first() is not None


def delete_account(account_id: int) -> None:
    """
    Delete an account that nothing depends on.

    Raises:
        ConflictError: if journal lines or child accounts reference it
    """
    account = get_account(account_id)
    if _has_lines(account.id):
        raise ConflictError("Account has journal lines; deactivate it instead")
    if db.session.query(Account.id).filter_by(parent_id=account.id).first():
        raise ConflictError("Account has child accounts")
    db.session.delete(account)
    db.session.commit()


# =============================================================================
# Journal
# =============================================================================


def _resolve_account(line: dict, path: str, errors: list) -> Account | None:
    account = None
    if line.get("account_id") is not None:
        account_id = line["account_id"]
        if isinstance(account_id, bool) or not isinstance(account_id, int):
            errors.append({"path": f"{path}.account_id", "message": "Must be an integer"})
            return None
        account = db.session.get(Account, account_id)
    elif line.get("account_code"):
        account = db.session.query(Account).filter_by(code=str(line["account_code"])).first()
    else:
        errors.append({"path": f"{path}.account_id", "message": "Required"})
        return None

    if not account:
        errors.append({"path": f"{path}.account_id", "message": "Account not found"})
        return None
    if not account.is_active:
        errors.append({"path": f"{path}.account_id", "message": "Account is inactive"})
        return None
    return account


def _build_lines(raw_lines: list) -> list[JournalLine]:
    if not isinstance(raw_lines, list) or len(raw_lines) < 2:
        raise ValidationError("A journal entry needs at least two lines",
                              errors=[{"path": "lines", "message": "At least two lines required"}])

    errors: list[dict] = []
    lines: list[JournalLine] = []
    for index, raw in enumerate(raw_lines):
        path = f"lines[{index}]"
        if not isinstance(raw, dict):
            errors.append({"path": path, "message": "Must be an object"})
            continue
        account = _resolve_account(raw, path, errors)
        try:
            debit = quantize(parse_decimal(raw.get("debit") or 0, "debit"))
            credit = quantize(parse_decimal(raw.get("credit") or 0, "credit"))
        except ValidationError as exc:
            errors.append({"path": path, "message": str(exc)})
            continue
        if debit < 0 or credit < 0:
            errors.append({"path": path, "message": "Debit and credit cannot be negative"})
            continue
        if (debit > 0) == (credit > 0):
            errors.append({"path": path, "message": "Exactly one of debit or credit must be positive"})
            continue
        if account is None:
            continue
        lines.append(JournalLine(
            position=index,
            account_id=account.id,
            account=account,
            description=(raw.get("description") or None),
            debit=debit,
            credit=credit,
        ))

    if errors:
        raise ValidationError("Invalid journal lines", errors=errors)

    total_debit, total_credit = journal_totals(lines)
    if abs(total_debit - total_credit) > Decimal("0.01"):
        raise UnbalancedJournalError(
            f"Journal entry is unbalanced: debits {total_debit:.2f} != credits {total_credit:.2f}",
            errors=[{"path": "lines", "message": "Total debits must equal total credits"}],
        )
    return lines


def create_journal_entry(
    *,
    header: dict,
    lines: list,
    source_type: str = "manual",
    source_id: int | None = None,
    created_by_user_id: int | None = None,
    commit: bool = True,
) -> JournalEntry:
    """
    Create a balanced journal entry with its lines.

    header: {date?, reference?, description?}; date defaults to today.
    lines:  [{account_id | account_code, debit, credit, description?}, ...]

    Raises:
        ValidationError: malformed header or lines
        UnbalancedJournalError: debits and credits differ by more than 0.01
    """
    if source_type not in JOURNAL_SOURCES:
        raise ValidationError(f"source_type must be one of: {', '.join(JOURNAL_SOURCES)}")
    patch = validate_payload(model=JournalEntry, payload=header, policy=JOURNAL_HEADER_POLICY, partial=False)
    built = _build_lines(lines)

    entry = JournalEntry(
        entry_number=next_document_number(document_type="journal_entry", prefix="JE"),
        date=patch.get("date") or today(),
        reference=patch.get("reference"),
        description=patch.get("description"),
        source_type=source_type,
        source_id=source_id,
        is_posted=True,
        created_by_user_id=created_by_user_id,
    )
    entry.lines = built
    db.session.add(entry)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return entry


def list_journal_entries(
    *,
    start=None,
    end=None,
    source_type: str | None = None,
) -> list[JournalEntry]:
    query = db.session.query(JournalEntry)
    if start:
        query = query.filter(JournalEntry.date >= start)
    if end:
        query = query.filter(JournalEntry.date <= end)
    if source_type:
        query = query.filter(JournalEntry.source_type == source_type)
    return query.order_by(JournalEntry.date.desc(), JournalEntry.id.desc()).all()


def get_journal_entry(entry_id: int) -> JournalEntry:
    entry = db.session.get(JournalEntry, entry_id)
    if not entry:
        raise JournalEntryNotFoundError(f"Journal entry {entry_id} not found")
    return entry


def update_journal_entry(entry_id: int, header: dict, lines: list | None = None) -> JournalEntry:
    """Edit header fields; when lines are given they replace the old set after the balance check."""
    entry = get_journal_entry(entry_id)
    patch = validate_payload(model=JournalEntry, payload=header, policy=JOURNAL_HEADER_POLICY, partial=True)
    if lines is not None:
        entry.lines = _build_lines(lines)
    for key, value in patch.items():
        setattr(entry, key, value)
    db.session.commit()
    return entry


def delete_journal_entry(entry_id: int) -> None:
    entry = get_journal_entry(entry_id)
    db.session.delete(entry)
    db.session.commit()


def _posting_lines(debit_code: str, credit_code: str, amount: Decimal, description: str) -> list[dict]:
    chart = ensure_default_chart()
    return [
        {"account_id": chart[debit_code].id, "debit": amount, "credit": ZERO, "description": description},
        {"account_id": chart[credit_code].id, "debit": ZERO, "credit": amount, "description": description},
    ]


def post_invoice_journal(invoice: Invoice) -> JournalEntry | None:
    """
    Debit Accounts Receivable, credit Revenue for the invoice total.

    Zero-total invoices post nothing. Flushes only.
    """
    amount = quantize(invoice.total or 0)
    if amount <= 0:
        return None
    label = f"Invoice #{invoice.invoice_number}"
    return create_journal_entry(
        header={
            "date": invoice.issue_date,
            "reference": label,
            "description": f"Invoice created for client #{invoice.client_id}",
        },
        lines=_posting_lines(RECEIVABLE_ACCOUNT, REVENUE_ACCOUNT, amount, label),
        source_type="invoice",
        source_id=invoice.id,
        commit=False,
    )


def post_expense_journal(expense: Expense) -> JournalEntry | None:
    """Debit Operating Expenses, credit Cash and Banks for amount plus tax. Flushes only."""
    amount = quantize((expense.amount or 0) + (expense.tax_amount or 0))
    if amount <= 0:
        return None
    label = f"Expense #{expense.id}"
    return create_journal_entry(
        header={
            "date": expense.date,
            "reference": label,
            "description": expense.description,
        },
        lines=_posting_lines(OPERATING_EXPENSE_ACCOUNT, CASH_ACCOUNT, amount, label),
        source_type="expense",
        source_id=expense.id,
        commit=False,
    )


def remove_source_journal(source_type: str, source_id: int) -> int:
    """Delete the entries a document posted. Flushes only; returns how many were removed."""
    entries = (
        db.session.query(JournalEntry)
        .filter(JournalEntry.source_type == source_type, JournalEntry.source_id == source_id)
        .all()
    )
    for entry in entries:
        db.session.delete(entry)
    db.session.flush()
    return len(entries)


def repost_invoice_journal(invoice: Invoice) -> JournalEntry | None:
    """Replace the invoice's posting with one matching its current total and issue date."""
    remove_source_journal("invoice", invoice.id)
    return post_invoice_journal(invoice)


def repost_expense_journal(expense: Expense) -> JournalEntry | None:
    remove_source_journal("expense", expense.id)
    return post_expense_journal(expense)
