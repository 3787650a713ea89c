# Overview: Flask API routes for expense operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_staff
from ..responses import date_arg, error_response, internal_error, validation_error
from ..services import expense_service
from ..services.expense_service import ExpenseNotFoundError
from ..validation import ValidationError


expenses_bp = Blueprint("expenses", __name__, url_prefix="/api/expenses")


@expenses_bp.get("")
@require_auth
@require_staff
def list_expenses_route():
    """
    Query parameters: category, status, start, end (YYYY-MM-DD).
    """
    try:
        expenses = expense_service.list_expenses(
            category=request.args.get("category"),
            status=request.args.get("status"),
            start=date_arg("start"),
            end=date_arg("end"),
        )
    except ValidationError as e:
        return validation_error(e)
    return jsonify([e.to_dict() for e in expenses])


@expenses_bp.post("")
@require_auth
@require_staff
def create_expense_route():
    data = request.get_json(silent=True) or {}
    try:
        expense = expense_service.create_expense(data, created_by_user_id=g.current_user.id)
        return jsonify(expense.to_dict()), 201
    except ValidationError as e:
        return validation_error(e)
    except Exception:
        return internal_error("Failed to create expense")


@expenses_bp.get("/<int:expense_id>")
@require_auth
@require_staff
def get_expense_route(expense_id: int):
    try:
        return jsonify(expense_service.get_expense(expense_id).to_dict())
    except ExpenseNotFoundError:
        return error_response("Expense not found", 404)


@expenses_bp.put("/<int:expense_id>")
@require_auth
@require_staff
def update_expense_route(expense_id: int):
    data = request.get_json(silent=True) or {}
    try:
        expense = expense_service.update_expense(expense_id, data)
        return jsonify(expense.to_dict())
    except ExpenseNotFoundError:
        return error_response("Expense not found", 404)
    except ValidationError as e:
        return validation_error(e)
    except Exception:
        return internal_error("Failed to update expense")


@expenses_bp.delete("/<int:expense_id>")
@require_auth
@require_staff
def delete_expense_route(expense_id: int):
    try:
        expense_service.delete_expense(expense_id)
        return "", 204
    except ExpenseNotFoundError:
        return error_response("Expense not found", 404)
