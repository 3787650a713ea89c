# Overview: Shared header/item handling for quotes and invoices.

from __future__ import annotations

from ..validation import ValidationError, require_list
from .totals import DocumentTotals, compute_document_totals, reconcile_document_figures

MONEY_FIELDS = ("subtotal", "tax_amount", "total")


def prepare_items(header_patch: dict, raw_items) -> DocumentTotals:
    """
    Compute totals for submitted items and check them against any figures
    in the header. Writes the computed figures back into header_patch.
    """
    items = require_list(raw_items, "items")
    totals = compute_document_totals(items)
    reconcile_document_figures(header_patch, totals)
    header_patch["subtotal"] = totals.subtotal
    header_patch["tax_amount"] = totals.tax_amount
    header_patch["total"] = totals.total
    return totals


def build_item_rows(item_cls, totals: DocumentTotals) -> list:
    return [
        item_cls(
            position=index,
            description=line.description,
            quantity=line.quantity,
            unit_price=line.unit_price,
            tax_rate=line.tax_rate,
            amount=line.amount,
        )
        for index, line in enumerate(totals.lines)
    ]


def reject_bare_money_edit(header_patch: dict) -> None:
    """Totals follow the items; they cannot be edited on their own."""
    touched = [f for f in MONEY_FIELDS if f in header_patch]
    if touched:
        raise ValidationError(
            "Totals can only change together with items",
            errors=[{"path": f, "message": "Send items to change totals"} for f in touched],
        )


def copy_item_rows(source_items, item_cls) -> list:
    return [
        item_cls(
            position=item.position,
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            tax_rate=item.tax_rate,
            amount=item.amount,
        )
        for item in source_items
    ]
