# Overview: Service-layer operations for invoices.

from __future__ import annotations

from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import Client, Invoice, InvoiceItem
from ..models.documents import INVOICE_STATUSES
from ..validation import ConflictError, ModelValidationPolicy, ValidationError, require_dict, validate_payload
from .accounting_service import post_invoice_journal, remove_source_journal, repost_invoice_journal
from .concurrency import run_with_retry
from .document_service import build_item_rows, prepare_items, reject_bare_money_edit
from .numbering_service import next_invoice_number
from efectivio.time_utils import today


class InvoiceNotFoundError(Exception):
    """Raised when an invoice is not found."""
    pass


# Header fields that appear in the posted journal entry
POSTED_FIELDS = ("issue_date", "invoice_number")

INVOICE_POLICY = ModelValidationPolicy(
    writable_fields={
        "invoice_number", "client_id", "quote_id", "issue_date", "due_date", "status",
        "subtotal", "tax_amount", "total", "notes",
    },
    required_on_create={"client_id"},
    choices={"status": INVOICE_STATUSES},
)


def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if not invoice:
        raise InvoiceNotFoundError(f"Invoice {invoice_id} not found")
    return invoice


def list_invoices(*, status: str | None = None, client_id: int | None = None) -> list[Invoice]:
    query = db.session.query(Invoice)
    if status:
        query = query.filter(Invoice.status == status)
    if client_id is not None:
        query = query.filter(Invoice.client_id == client_id)
    return query.order_by(Invoice.issue_date.desc(), Invoice.id.desc()).all()


def _check_client(client_id: int) -> None:
    if not db.session.get(Client, client_id):
        raise ValidationError("client_id does not reference an existing client",
                              errors=[{"path": "client_id", "message": "Client not found"}])


def _check_dates(issue_date, due_date) -> None:
    if issue_date and due_date and due_date < issue_date:
        raise ValidationError("due_date cannot be before issue_date",
                              errors=[{"path": "due_date", "message": "Must be on or after issue_date"}])


def _check_number_free(number: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Invoice.id).filter(Invoice.invoice_number == number)
    if exclude_id is not None:
        query = query.filter(Invoice.id != exclude_id)
    if query.first():
        raise ConflictError(f"Invoice number '{number}' already exists")


def create_invoice(*, invoice: dict, items) -> Invoice:
    """
    Create an invoice from {invoice, items} and post its journal entry.

    - issue_date defaults to today
    - due_date defaults to issue_date + INVOICE_DUE_DAYS
    - invoice_number defaults to INV-<timestamp suffix>
    - totals are derived from items; disagreeing submitted figures are rejected

    The invoice, its items and the receivable/revenue entry commit together.
    """
    header = validate_payload(model=Invoice, payload=require_dict(invoice, "invoice"), policy=INVOICE_POLICY, partial=False)
    _check_client(header["client_id"])
    if not header.get("issue_date"):
        header["issue_date"] = today()
    if not header.get("due_date"):
        header["due_date"] = header["issue_date"] + timedelta(days=current_app.config.get("INVOICE_DUE_DAYS", 30))
    _check_dates(header["issue_date"], header["due_date"])
    totals = prepare_items(header, items)
    if header.get("invoice_number"):
        _check_number_free(header["invoice_number"])

    def _op() -> Invoice:
        fields = dict(header)
        if not fields.get("invoice_number"):
            fields["invoice_number"] = next_invoice_number()
        record = Invoice(**fields)
        record.items = build_item_rows(InvoiceItem, totals)
        db.session.add(record)
        db.session.flush()
        post_invoice_journal(record)
        db.session.commit()
        return record

    return run_with_retry(_op)


def update_invoice(invoice_id: int, *, invoice: dict, items=None) -> Invoice:
    record = get_invoice(invoice_id)
    header = validate_payload(model=Invoice, payload=require_dict(invoice, "invoice"), policy=INVOICE_POLICY, partial=True)
    if "client_id" in header:
        _check_client(header["client_id"])
    if header.get("invoice_number") and header["invoice_number"] != record.invoice_number:
        _check_number_free(header["invoice_number"], exclude_id=record.id)
    for key in ("issue_date", "due_date"):
        if key in header and header[key] is None:
            raise ValidationError(f"{key} cannot be null")
    _check_dates(header.get("issue_date", record.issue_date), header.get("due_date", record.due_date))

    if items is None:
        reject_bare_money_edit(header)
    else:
        totals = prepare_items(header, items)
        record.items = build_item_rows(InvoiceItem, totals)

    for key, value in header.items():
        setattr(record, key, value)
    if items is not None or any(key in header for key in POSTED_FIELDS):
        db.session.flush()
        repost_invoice_journal(record)
    db.session.commit()
    return record


def set_invoice_status(invoice_id: int, status: str) -> Invoice:
    if status not in INVOICE_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(INVOICE_STATUSES)}")
    record = get_invoice(invoice_id)
    record.status = status
    db.session.commit()
    return record


def delete_invoice(invoice_id: int) -> None:
    """
    Delete an invoice, its items and the journal entry it posted.
    """
    record = get_invoice(invoice_id)
    remove_source_journal("invoice", record.id)
    db.session.delete(record)
    db.session.commit()
