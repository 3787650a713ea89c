# Overview: Flask API routes for invoice operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_staff
from ..responses import error_response, internal_error, validation_error
from ..services import invoice_service
from ..services.invoice_service import InvoiceNotFoundError
from ..validation import ConflictError, ValidationError


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
@require_auth
@require_staff
def list_invoices_route():
    invoices = invoice_service.list_invoices(
        status=request.args.get("status"),
        client_id=request.args.get("client_id", type=int),
    )
    return jsonify([i.to_dict() for i in invoices])


@invoices_bp.post("")
@require_auth
@require_staff
def create_invoice_route():
    """
    Create an invoice with its items and post it to the journal.

    Request body:
    {
        "invoice": {"client_id": 1, "issue_date": "2026-01-15", "due_date": "...", ...},
        "items": [{"description": "...", "quantity": 2, "unit_price": 50, "tax_rate": 10}]
    }
    """
    data = request.get_json(silent=True) or {}
    try:
        invoice = invoice_service.create_invoice(invoice=data.get("invoice"), items=data.get("items"))
        return jsonify(invoice.to_dict(include_items=True)), 201
    except ValidationError as e:
        return validation_error(e)
    except ConflictError as e:
        return error_response(str(e), 409)
    except Exception:
        return internal_error("Failed to create invoice")


@invoices_bp.get("/<int:invoice_id>")
@require_auth
@require_staff
def get_invoice_route(invoice_id: int):
    try:
        return jsonify(invoice_service.get_invoice(invoice_id).to_dict(include_items=True))
    except InvoiceNotFoundError:
        return error_response("Invoice not found", 404)


@invoices_bp.put("/<int:invoice_id>")
@require_auth
@require_staff
def update_invoice_route(invoice_id: int):
    data = request.get_json(silent=True) or {}
    header = data.get("invoice") if "invoice" in data or "items" in data else data
    try:
        invoice = invoice_service.update_invoice(invoice_id, invoice=header or {}, items=data.get("items"))
        return jsonify(invoice.to_dict(include_items=True))
    except InvoiceNotFoundError:
        return error_response("Invoice not found", 404)
    except ValidationError as e:
        return validation_error(e)
    except ConflictError as e:
        return error_response(str(e), 409)
    except Exception:
        return internal_error("Failed to update invoice")


@invoices_bp.post("/<int:invoice_id>/status")
@require_auth
@require_staff
def set_invoice_status_route(invoice_id: int):
    data = request.get_json(silent=True) or {}
    try:
        invoice = invoice_service.set_invoice_status(invoice_id, data.get("status"))
        return jsonify(invoice.to_dict())
    except InvoiceNotFoundError:
        return error_response("Invoice not found", 404)
    except ValidationError as e:
        return validation_error(e)


@invoices_bp.delete("/<int:invoice_id>")
@require_auth
@require_staff
def delete_invoice_route(invoice_id: int):
    try:
        invoice_service.delete_invoice(invoice_id)
        return "", 204
    except InvoiceNotFoundError:
        return error_response("Invoice not found", 404)
    except Exception:
        return internal_error("Failed to delete invoice")
