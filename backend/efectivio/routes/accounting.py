# Overview: Flask API routes for the chart of accounts, the journal and financial reports.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_staff
from ..responses import bool_arg, date_arg, error_response, internal_error, validation_error
from ..services import accounting_service, reporting_service
from ..services.accounting_service import AccountNotFoundError, JournalEntryNotFoundError
from ..time_utils import today
from ..validation import ConflictError, ValidationError


accounts_bp = Blueprint("accounts", __name__, url_prefix="/api/accounts")
journal_bp = Blueprint("journal", __name__, url_prefix="/api/journal-entries")
reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


# =============================================================================
# Accounts
# =============================================================================


@accounts_bp.get("")
@require_auth
@require_staff
def list_accounts_route():
    accounts = accounting_service.list_accounts(
        account_type=request.args.get("type"),
        include_inactive=bool_arg("include_inactive"),
    )
    return jsonify([a.to_dict() for a in accounts])


@accounts_bp.post("")
@require_auth
@require_staff
def create_account_route():
    data = request.get_json(silent=True) or {}
    try:
        account = accounting_service.create_account(data)
        return jsonify(account.to_dict()), 201
    except ValidationError as e:
        return validation_error(e)
    except ConflictError as e:
        return error_response(str(e), 409)
    except Exception:
        return internal_error("Failed to create account")


@accounts_bp.get("/<int:account_id>")
@require_auth
@require_staff
def get_account_route(account_id: int):
    try:
        return jsonify(accounting_service.get_account(account_id).to_dict())
    except AccountNotFoundError:
        return error_response("Account not found", 404)


@accounts_bp.put("/<int:account_id>")
@require_auth
@require_staff
def update_account_route(account_id: int):
    data = request.get_json(silent=True) or {}
    try:
        account = accounting_service.update_account(account_id, data)
        return jsonify(account.to_dict())
    except AccountNotFoundError:
        return error_response("Account not found", 404)
    except ValidationError as e:
        return validation_error(e)
    except ConflictError as e:
        return error_response(str(e), 409)


@accounts_bp.delete("/<int:account_id>")
@require_auth
@require_staff
def delete_account_route(account_id: int):
    try:
        accounting_service.delete_account(account_id)
        return "", 204
    except AccountNotFoundError:
        return error_response("Account not found", 404)
    except ConflictError as e:
        return error_response(str(e), 409)


# =============================================================================
# Journal entries
# =============================================================================


@journal_bp.get("")
@require_auth
@require_staff
def list_journal_entries_route():
    try:
        entries = accounting_service.list_journal_entries(
            start=date_arg("start"),
            end=date_arg("end"),
            source_type=request.args.get("source_type"),
        )
    except ValidationError as e:
        return validation_error(e)
    return jsonify([e.to_dict() for e in entries])


@journal_bp.post("")
@require_auth
@require_staff
def create_journal_entry_route():
    """
    Create a manual journal entry.

    Request body:
    {
        "entry": {"date": "2026-01-31", "reference": "...", "description": "..."},
        "lines": [
            {"account_id": 1, "debit": "100.00", "credit": "0"},
            {"account_id": 4, "debit": "0", "credit": "100.00"}
        ]
    }

    Returns 400 when debits and credits do not balance.
    """
    data = request.get_json(silent=True) or {}
    try:
        entry = accounting_service.create_journal_entry(
            header=data.get("entry") or {},
            lines=data.get("lines"),
            created_by_user_id=g.current_user.id,
        )
        return jsonify(entry.to_dict(include_lines=True)), 201
    except ValidationError as e:
        return validation_error(e)
    except Exception:
        return internal_error("Failed to create journal entry")


@journal_bp.get("/<int:entry_id>")
@require_auth
@require_staff
def get_journal_entry_route(entry_id: int):
    try:
        return jsonify(accounting_service.get_journal_entry(entry_id).to_dict(include_lines=True))
    except JournalEntryNotFoundError:
        return error_response("Journal entry not found", 404)


@journal_bp.put("/<int:entry_id>")
@require_auth
@require_staff
def update_journal_entry_route(entry_id: int):
    data = request.get_json(silent=True) or {}
    header = data.get("entry") if "entry" in data or "lines" in data else data
    try:
        entry = accounting_service.update_journal_entry(entry_id, header or {}, data.get("lines"))
        return jsonify(entry.to_dict(include_lines=True))
    except JournalEntryNotFoundError:
        return error_response("Journal entry not found", 404)
    except ValidationError as e:
        return validation_error(e)
    except Exception:
        return internal_error("Failed to update journal entry")


@journal_bp.delete("/<int:entry_id>")
@require_auth
@require_staff
def delete_journal_entry_route(entry_id: int):
    try:
        accounting_service.delete_journal_entry(entry_id)
        return "", 204
    except JournalEntryNotFoundError:
        return error_response("Journal entry not found", 404)


# =============================================================================
# Reports
# =============================================================================


@reports_bp.get("/balance-sheet")
@require_auth
@require_staff
def balance_sheet_report():
    try:
        as_of = date_arg("as_of") or today()
    except ValidationError as e:
        return validation_error(e)
    return jsonify(reporting_service.balance_sheet(as_of=as_of)), 200


@reports_bp.get("/income-statement")
@require_auth
@require_staff
def income_statement_report():
    try:
        start = date_arg("start")
        end = date_arg("end")
    except ValidationError as e:
        return validation_error(e)
    if start and end and end < start:
        return jsonify({"error": "end cannot be before start"}), 400
    return jsonify(reporting_service.income_statement(start=start, end=end)), 200
