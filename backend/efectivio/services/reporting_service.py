# Overview: Financial statements computed from posted journal lines.

"""
Reporting Service

Balances come from journal lines only:
- asset / expense accounts:               debit - credit
- liability / equity / revenue accounts:  credit - debit

Balance sheet (as of a date): assets vs liabilities + equity, where equity
includes net income to date (revenue - expenses) as retained earnings.
Income statement (date range): revenue, expenses, net income.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Account, JournalEntry, JournalLine
from ..models.accounting import DEBIT_NORMAL_TYPES
from ..money import ZERO, quantize, to_money_str


def account_balances(*, start=None, end=None) -> list[tuple[Account, Decimal]]:
    """(account, signed balance) for every account with lines in the window."""
    query = (
        db.session.query(
            JournalLine.account_id,
            func.coalesce(func.sum(JournalLine.debit), 0),
            func.coalesce(func.sum(JournalLine.credit), 0),
        )
        .join(JournalEntry, JournalEntry.id == JournalLine.journal_entry_id)
        .filter(JournalEntry.is_posted.is_(True))
    )
    if start:
        query = query.filter(JournalEntry.date >= start)
    if end:
        query = query.filter(JournalEntry.date <= end)
    rows = query.group_by(JournalLine.account_id).all()

    accounts = {a.id: a for a in db.session.query(Account).filter(Account.id.in_([r[0] for r in rows])).all()}
    result = []
    for account_id, debit, credit in rows:
        account = accounts[account_id]
        debit = Decimal(str(debit))
        credit = Decimal(str(credit))
        balance = debit - credit if account.type in DEBIT_NORMAL_TYPES else credit - debit
        result.append((account, quantize(balance)))
    result.sort(key=lambda pair: pair[0].code)
    return result


def _section(pairs, account_type: str) -> tuple[list[dict], Decimal]:
    rows = []
    total = ZERO
    for account, balance in pairs:
        if account.type != account_type:
            continue
        rows.append({
            "account_id": account.id,
            "code": account.code,
            "name": account.name,
            "balance": to_money_str(balance),
        })
        total += balance
    return rows, quantize(total)


def balance_sheet(*, as_of) -> dict:
    pairs = account_balances(end=as_of)
    assets, total_assets = _section(pairs, "asset")
    liabilities, total_liabilities = _section(pairs, "liability")
    equity, total_equity = _section(pairs, "equity")
    _, revenue = _section(pairs, "revenue")
    _, expenses = _section(pairs, "expense")
    retained = quantize(revenue - expenses)
    total_equity_with_earnings = quantize(total_equity + retained)

    return {
        "as_of": as_of.isoformat(),
        "assets": assets,
        "liabilities": liabilities,
        "equity": equity,
        "retained_earnings": to_money_str(retained),
        "total_assets": to_money_str(total_assets),
        "total_liabilities": to_money_str(total_liabilities),
        "total_equity": to_money_str(total_equity_with_earnings),
        "total_liabilities_and_equity": to_money_str(total_liabilities + total_equity_with_earnings),
        "is_balanced": total_assets == quantize(total_liabilities + total_equity_with_earnings),
    }


def income_statement(*, start, end) -> dict:
    pairs = account_balances(start=start, end=end)
    revenue, total_revenue = _section(pairs, "revenue")
    expenses, total_expenses = _section(pairs, "expense")
    return {
        "start": start.isoformat() if start else None,
        "end": end.isoformat() if end else None,
        "revenue": revenue,
        "expenses": expenses,
        "total_revenue": to_money_str(total_revenue),
        "total_expenses": to_money_str(total_expenses),
        "net_income": to_money_str(total_revenue - total_expenses),
    }
