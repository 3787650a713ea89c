# Overview: Service-layer operations for quotes and quote-to-invoice conversion.

"""
Quote Service

A quote owns its items; replacing items re-derives the totals. Conversion
produces an invoice in a single transaction (see convert_quote_to_invoice).
"""

from __future__ import annotations

from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import Client, Invoice, InvoiceItem, Quote, QuoteItem
from ..models.documents import QUOTE_STATUSES
from ..validation import ConflictError, ModelValidationPolicy, ValidationError, require_dict, validate_payload
from .accounting_service import post_invoice_journal
from .concurrency import run_with_retry
from .document_service import build_item_rows, copy_item_rows, prepare_items, reject_bare_money_edit
from .numbering_service import next_document_number, next_invoice_number
from efectivio.time_utils import today


class QuoteNotFoundError(Exception):
    """Raised when a quote is not found."""
    pass


QUOTE_POLICY = ModelValidationPolicy(
    writable_fields={
        "quote_number", "client_id", "issue_date", "expiry_date", "status",
        "subtotal", "tax_amount", "total", "notes", "terms_and_conditions",
    },
    required_on_create={"client_id"},
    choices={"status": QUOTE_STATUSES},
)


def get_quote(quote_id: int) -> Quote:
    quote = db.session.get(Quote, quote_id)
    if not quote:
        raise QuoteNotFoundError(f"Quote {quote_id} not found")
    return quote


def list_quotes(*, status: str | None = None, client_id: int | None = None) -> list[Quote]:
    query = db.session.query(Quote)
    if status:
        query = query.filter(Quote.status == status)
    if client_id is not None:
        query = query.filter(Quote.client_id == client_id)
    return query.order_by(Quote.issue_date.desc(), Quote.id.desc()).all()


def _check_client(client_id: int) -> None:
    if not db.session.get(Client, client_id):
        raise ValidationError("client_id does not reference an existing client",
                              errors=[{"path": "client_id", "message": "Client not found"}])


def _check_dates(issue_date, expiry_date) -> None:
    if issue_date and expiry_date and expiry_date < issue_date:
        raise ValidationError("expiry_date cannot be before issue_date",
                              errors=[{"path": "expiry_date", "message": "Must be on or after issue_date"}])


def _check_number_free(number: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Quote.id).filter(Quote.quote_number == number)
    if exclude_id is not None:
        query = query.filter(Quote.id != exclude_id)
    if query.first():
        raise ConflictError(f"Quote number '{number}' already exists")


def create_quote(*, quote: dict, items) -> Quote:
    """
    Create a quote from {quote, items}.

    Totals are computed from the items; submitted figures that disagree by
    more than one cent are rejected. quote_number defaults to the next
    QT-###### value and issue_date to today.
    """
    header = validate_payload(model=Quote, payload=require_dict(quote, "quote"), policy=QUOTE_POLICY, partial=False)
    _check_client(header["client_id"])
    if not header.get("issue_date"):
        header["issue_date"] = today()
    _check_dates(header["issue_date"], header.get("expiry_date"))
    totals = prepare_items(header, items)

    if header.get("quote_number"):
        _check_number_free(header["quote_number"])
    else:
        header["quote_number"] = next_document_number(document_type="quote", prefix="QT")

    record = Quote(**header)
    record.items = build_item_rows(QuoteItem, totals)
    db.session.add(record)
    db.session.commit()
    return record


def update_quote(quote_id: int, *, quote: dict, items=None) -> Quote:
    """
    Patch header fields; when items are supplied they replace the current
    set and the totals are recomputed.
    """
    record = get_quote(quote_id)
    header = validate_payload(model=Quote, payload=require_dict(quote, "quote"), policy=QUOTE_POLICY, partial=True)
    if "client_id" in header:
        _check_client(header["client_id"])
    if header.get("quote_number") and header["quote_number"] != record.quote_number:
        _check_number_free(header["quote_number"], exclude_id=record.id)
    if "issue_date" in header and header["issue_date"] is None:
        raise ValidationError("issue_date cannot be null")
    _check_dates(header.get("issue_date", record.issue_date), header.get("expiry_date", record.expiry_date))

    if items is None:
        reject_bare_money_edit(header)
    else:
        totals = prepare_items(header, items)
        record.items = build_item_rows(QuoteItem, totals)

    for key, value in header.items():
        setattr(record, key, value)
    db.session.commit()
    return record


def set_quote_status(quote_id: int, status: str) -> Quote:
    if status not in QUOTE_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(QUOTE_STATUSES)}")
    record = get_quote(quote_id)
    record.status = status
    db.session.commit()
    return record


def delete_quote(quote_id: int) -> None:
    """Delete a quote together with its items."""
    record = get_quote(quote_id)
    db.session.query(Invoice).filter(Invoice.quote_id == record.id).update(
        {Invoice.quote_id: None}, synchronize_session=False
    )
    db.session.delete(record)
    db.session.commit()


def convert_quote_to_invoice(quote_id: int) -> Invoice | None:
    """
    Convert a quote into a new invoice.

    Returns None (and writes nothing) when the quote does not exist.

    In one transaction:
    1. quote.status -> "converted"
    2. a new invoice INV-<timestamp suffix>, issued today, due after
       INVOICE_DUE_DAYS, with the quote's client, totals, notes and items
       copied verbatim, plus its receivable/revenue journal entry
    3. quote.converted_to_invoice_id -> the new invoice

    Any failure rolls all three back. The current status is not checked:
    converting again yields another invoice and re-points the quote at it.
    """
    due_days = current_app.config.get("INVOICE_DUE_DAYS", 30)

    def _op() -> Invoice | None:
        quote = db.session.get(Quote, quote_id)
        if quote is None:
            return None

        quote.status = "converted"

        issue_date = today()
        invoice = Invoice(
            invoice_number=next_invoice_number(),
            client_id=quote.client_id,
            quote_id=quote.id,
            issue_date=issue_date,
            due_date=issue_date + timedelta(days=due_days),
            status="draft",
            subtotal=quote.subtotal,
            tax_amount=quote.tax_amount,
            total=quote.total,
            notes=quote.notes,
        )
        invoice.items = copy_item_rows(quote.items, InvoiceItem)
        db.session.add(invoice)
        db.session.flush()

        post_invoice_journal(invoice)

        quote.converted_to_invoice_id = invoice.id
        db.session.commit()
        return invoice

    return run_with_retry(_op)
