# Overview: Service-layer operations for document numbers (quotes, invoices, journal entries).

from __future__ import annotations

import time

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence, Invoice


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def next_document_number(*, document_type: str, prefix: str, pad: int = 6) -> str:
    """
    Allocate the next number for a document type inside the current transaction.

    The counter row is bumped with a single UPDATE; the first allocation for
    a type inserts the row under a savepoint so a concurrent insert does not
    discard the caller's pending work.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(document_type=document_type, next_number=2))
            return f"{prefix}-{1:0{pad}d}"
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise DocumentSequenceError(f"Could not allocate {document_type} number")

    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type)
        .scalar()
    )
    return f"{prefix}-{current - 1:0{pad}d}"


def next_invoice_number() -> str:
    """
    INV-<last six digits of the millisecond clock>, bumped until unused.
    """
    candidate = int(time.time() * 1000) % 1_000_000
    for _ in range(1000):
        number = f"INV-{candidate:06d}"
        exists = db.session.query(Invoice.id).filter_by(invoice_number=number).first()
        if not exists:
            return number
        candidate = (candidate + 1) % 1_000_000
    raise DocumentSequenceError("Could not allocate invoice number")
