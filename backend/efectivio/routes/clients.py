# Overview: Flask API routes for client operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify
from sqlalchemy.exc import IntegrityError

from ..decorators import require_auth, require_staff
from ..responses import error_response, internal_error, validation_error, bool_arg
from ..services import client_service
from ..services.client_service import ClientNotFoundError
from ..validation import ValidationError


clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")


@clients_bp.get("")
@require_auth
@require_staff
def list_clients_route():
    """
    List clients.

    Query parameters:
    - search: matches name, company, contact or email
    - include_inactive: include deactivated clients (default: false)
    """
    clients = client_service.list_clients(
        search=request.args.get("search"),
        include_inactive=bool_arg("include_inactive"),
    )
    return jsonify([c.to_dict() for c in clients])


@clients_bp.post("")
@require_auth
@require_staff
def create_client_route():
    data = request.get_json(silent=True) or {}
    try:
        client = client_service.create_client(data)
        return jsonify(client.to_dict()), 201
    except ValidationError as e:
        return validation_error(e)
    except Exception:
        return internal_error("Failed to create client")


@clients_bp.get("/<int:client_id>")
@require_auth
@require_staff
def get_client_route(client_id: int):
    try:
        return jsonify(client_service.get_client(client_id).to_dict())
    except ClientNotFoundError:
        return error_response("Client not found", 404)


@clients_bp.put("/<int:client_id>")
@require_auth
@require_staff
def update_client_route(client_id: int):
    data = request.get_json(silent=True) or {}
    try:
        client = client_service.update_client(client_id, data)
        return jsonify(client.to_dict())
    except ClientNotFoundError:
        return error_response("Client not found", 404)
    except ValidationError as e:
        return validation_error(e)
    except Exception:
        return internal_error("Failed to update client")


@clients_bp.post("/<int:client_id>/deactivate")
@require_auth
@require_staff
def deactivate_client_route(client_id: int):
    try:
        client = client_service.deactivate_client(client_id)
        return jsonify(client.to_dict())
    except ClientNotFoundError:
        return error_response("Client not found", 404)


@clients_bp.delete("/<int:client_id>")
@require_auth
@require_staff
def delete_client_route(client_id: int):
    try:
        client_service.delete_client(client_id)
        return "", 204
    except ClientNotFoundError:
        return error_response("Client not found", 404)
    except IntegrityError:
        return error_response("Client is still referenced by other records; deactivate it instead", 409)
    except Exception:
        return internal_error("Failed to delete client")
