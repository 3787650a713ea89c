# Overview: Flask API routes for quotes and quote conversion; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..decorators import require_auth, require_staff
from ..responses import error_response, internal_error, validation_error
from ..services import quote_service
from ..services.quote_service import QuoteNotFoundError
from ..validation import ConflictError, ValidationError


quotes_bp = Blueprint("quotes", __name__, url_prefix="/api/quotes")


@quotes_bp.get("")
@require_auth
@require_staff
def list_quotes_route():
    quotes = quote_service.list_quotes(
        status=request.args.get("status"),
        client_id=request.args.get("client_id", type=int),
    )
    return jsonify([q.to_dict() for q in quotes])


@quotes_bp.post("")
@require_auth
@require_staff
def create_quote_route():
    """
    Create a quote with its items.

    Request body:
    {
        "quote": {"client_id": 1, "issue_date": "2026-01-15", "expiry_date": "...", ...},
        "items": [{"description": "...", "quantity": 2, "unit_price": 50, "tax_rate": 10}]
    }

    subtotal/tax_amount/total may be omitted; if sent they must match the items.
    """
    data = request.get_json(silent=True) or {}
    try:
        quote = quote_service.create_quote(quote=data.get("quote"), items=data.get("items"))
        return jsonify(quote.to_dict(include_items=True)), 201
    except ValidationError as e:
        return validation_error(e)
    except ConflictError as e:
        return error_response(str(e), 409)
    except Exception:
        return internal_error("Failed to create quote")


@quotes_bp.get("/<int:quote_id>")
@require_auth
@require_staff
def get_quote_route(quote_id: int):
    try:
        return jsonify(quote_service.get_quote(quote_id).to_dict(include_items=True))
    except QuoteNotFoundError:
        return error_response("Quote not found", 404)


@quotes_bp.put("/<int:quote_id>")
@require_auth
@require_staff
def update_quote_route(quote_id: int):
    """
    Update a quote.

    Body is either {"quote": {...}, "items": [...]} or a bare header patch.
    Items, when present, replace the existing ones.
    """
    data = request.get_json(silent=True) or {}
    header = data.get("quote") if "quote" in data or "items" in data else data
    try:
        quote = quote_service.update_quote(quote_id, quote=header or {}, items=data.get("items"))
        return jsonify(quote.to_dict(include_items=True))
    except QuoteNotFoundError:
        return error_response("Quote not found", 404)
    except ValidationError as e:
        return validation_error(e)
    except ConflictError as e:
        return error_response(str(e), 409)
    except Exception:
        return internal_error("Failed to update quote")


@quotes_bp.post("/<int:quote_id>/status")
@require_auth
@require_staff
def set_quote_status_route(quote_id: int):
    data = request.get_json(silent=True) or {}
    try:
        quote = quote_service.set_quote_status(quote_id, data.get("status"))
        return jsonify(quote.to_dict())
    except QuoteNotFoundError:
        return error_response("Quote not found", 404)
    except ValidationError as e:
        return validation_error(e)


@quotes_bp.post("/<int:quote_id>/convert")
@require_auth
@require_staff
def convert_quote_route(quote_id: int):
    """
    Convert a quote into a new invoice.

    Returns the invoice (201), or 404 when the quote does not exist.
    """
    try:
        invoice = quote_service.convert_quote_to_invoice(quote_id)
        if invoice is None:
            return error_response("Quote not found", 404)
        return jsonify(invoice.to_dict(include_items=True)), 201
    except Exception:
        return internal_error("Failed to convert quote")


@quotes_bp.delete("/<int:quote_id>")
@require_auth
@require_staff
def delete_quote_route(quote_id: int):
    try:
        quote_service.delete_quote(quote_id)
        return "", 204
    except QuoteNotFoundError:
        return error_response("Quote not found", 404)
    except Exception:
        return internal_error("Failed to delete quote")
