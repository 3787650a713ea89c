# Overview: Document arithmetic for quotes, invoices and journal entries.

"""
Totals

Line:      amount = quantity x unit_price
           tax    = amount x tax_rate / 100
Document:  subtotal   = sum(amount)
           tax_amount = sum(line tax), rounded once at document level
           total      = subtotal + tax_amount

Client-supplied figures are checked against the computed ones; a figure
that is off by more than one cent is rejected rather than stored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ..money import ZERO, close_enough, quantize
from ..validation import ValidationError, parse_decimal

HUNDRED = Decimal("100")


@dataclass
class LineTotals:
    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal
    amount: Decimal
    tax: Decimal


@dataclass
class DocumentTotals:
    lines: list[LineTotals] = field(default_factory=list)
    subtotal: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total: Decimal = ZERO


def line_amount(quantity, unit_price) -> Decimal:
    return quantize(Decimal(quantity) * Decimal(unit_price))


def line_tax(amount, tax_rate) -> Decimal:
    """Unrounded line tax; rounding happens on the document sum."""
    return Decimal(amount) * Decimal(tax_rate) / HUNDRED


def _item_value(item: dict, *names: str):
    for name in names:
        if name in item and item[name] is not None:
            return item[name]
    return None


def compute_document_totals(items: list[dict]) -> DocumentTotals:
    """
    Compute and validate item and document figures.

    Each item needs description, quantity (> 0) and unit_price (>= 0);
    tax_rate defaults to 0 and must lie in [0, 100]. A supplied item amount
    must match quantity x unit_price.

    Raises:
        ValidationError: with one {path, message} per offending field
    """
    errors: list[dict] = []
    totals = DocumentTotals()
    raw_tax = ZERO

    for index, item in enumerate(items):
        path = f"items[{index}]"
        if not isinstance(item, dict):
            errors.append({"path": path, "message": "Must be an object"})
            continue

        description = str(item.get("description") or "").strip()
        if not description:
            errors.append({"path": f"{path}.description", "message": "Required"})

        try:
            quantity = parse_decimal(item.get("quantity"), "quantity")
            if quantity <= 0:
                errors.append({"path": f"{path}.quantity", "message": "Must be greater than 0"})
        except ValidationError as exc:
            errors.append({"path": f"{path}.quantity", "message": str(exc)})
            continue

        try:
            unit_price = parse_decimal(_item_value(item, "unit_price", "unitPrice"), "unit_price")
            if unit_price < 0:
                errors.append({"path": f"{path}.unit_price", "message": "Must be 0 or greater"})
        except ValidationError as exc:
            errors.append({"path": f"{path}.unit_price", "message": str(exc)})
            continue

        raw_rate = _item_value(item, "tax_rate", "taxRate")
        try:
            tax_rate = parse_decimal(raw_rate, "tax_rate") if raw_rate is not None else ZERO
            if tax_rate < 0 or tax_rate > HUNDRED:
                errors.append({"path": f"{path}.tax_rate", "message": "Must be between 0 and 100"})
        except ValidationError as exc:
            errors.append({"path": f"{path}.tax_rate", "message": str(exc)})
            continue

        amount = line_amount(quantity, unit_price)
        submitted_amount = item.get("amount")
        if submitted_amount is not None:
            try:
                if not close_enough(parse_decimal(submitted_amount, "amount"), amount):
                    errors.append({
                        "path": f"{path}.amount",
                        "message": f"Does not match quantity x unit_price ({amount:.2f})",
                    })
            except ValidationError as exc:
                errors.append({"path": f"{path}.amount", "message": str(exc)})

        tax = line_tax(amount, tax_rate)
        raw_tax += tax
        totals.subtotal += amount
        totals.lines.append(LineTotals(
            description=description,
            quantity=quantity,
            unit_price=unit_price,
            tax_rate=tax_rate,
            amount=amount,
            tax=quantize(tax),
        ))

    if errors:
        raise ValidationError("Invalid items", errors=errors)

    totals.subtotal = quantize(totals.subtotal)
    totals.tax_amount = quantize(raw_tax)
    totals.total = totals.subtotal + totals.tax_amount
    return totals


def reconcile_document_figures(header: dict, totals: DocumentTotals) -> None:
    """
    Reject header subtotal/tax_amount/total that disagree with the items.

    Omitted figures are fine; the caller stores the computed ones.
    """
    errors = []
    for field_name, computed in (
        ("subtotal", totals.subtotal),
        ("tax_amount", totals.tax_amount),
        ("total", totals.total),
    ):
        submitted = header.get(field_name)
        if submitted is None:
            continue
        if not close_enough(submitted, computed):
            errors.append({
                "path": field_name,
                "message": f"Does not match items ({computed:.2f})",
            })
    if errors:
        raise ValidationError("Document totals do not match items", errors=errors)


def journal_totals(lines) -> tuple[Decimal, Decimal]:
    """(total_debit, total_credit) over line dicts or JournalLine rows."""
    total_debit = ZERO
    total_credit = ZERO
    for line in lines:
        debit = line["debit"] if isinstance(line, dict) else line.debit
        credit = line["credit"] if isinstance(line, dict) else line.credit
        total_debit += Decimal(debit or 0)
        total_credit += Decimal(credit or 0)
    return quantize(total_debit), quantize(total_credit)


def is_balanced(lines) -> bool:
    total_debit, total_credit = journal_totals(lines)
    return close_enough(total_debit, total_credit)
