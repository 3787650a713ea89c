# Overview: Flask API routes for file upload, listing, signed URLs and deletion.

from flask import Blueprint, current_app, request, jsonify, g

from ..decorators import require_auth
from ..responses import error_response, internal_error, validation_error
from ..services import file_service, portal_service
from ..services.client_service import ClientNotFoundError
from ..services.file_service import FileAccessError, FileTooLargeError, StoredFileNotFoundError
from ..services.object_storage import StorageError
from ..services.portal_service import PortalAccessError
from ..validation import ValidationError


files_bp = Blueprint("files", __name__, url_prefix="/api/files")


def _int_form(name: str):
    raw = request.form.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def _visible(records):
    user = g.current_user
    return [r for r in records if file_service.can_access(r, user)]


@files_bp.post("/upload")
@require_auth
def upload_file_route():
    """
    Upload a file (multipart/form-data).

    Form fields:
    - file: the file (required)
    - category: stored category, or
    - folder_type: clientes | facturas | cotizaciones | gastos | productos
    - client_id, project_id: optional links

    Returns the metadata row plus a signed URL (201). The upload is already
    committed when the URL is requested, so a signing failure yields
    signed_url: null rather than an error.
    """
    try:
        client_id = _int_form("client_id")
        project_id = _int_form("project_id")
        client_id = portal_service.scoped_client_id(g.current_user, client_id)
        record = file_service.upload_file(
            user=g.current_user,
            upload=request.files.get("file"),
            category=request.form.get("category"),
            folder_type=request.form.get("folder_type") or request.form.get("folderType"),
            client_id=client_id,
            project_id=project_id,
        )
        body = record.to_dict()
        try:
            body["signed_url"] = file_service.signed_url(record)
        except StorageError:
            current_app.logger.warning("Uploaded file %s stored but signing its URL failed", record.id, exc_info=True)
            body["signed_url"] = None
        return jsonify(body), 201
    except ValidationError as e:
        return validation_error(e)
    except PortalAccessError as e:
        return error_response(str(e), 403)
    except ClientNotFoundError:
        return error_response("Client not found", 404)
    except FileTooLargeError as e:
        return error_response(str(e), 413)
    except StorageError as e:
        return error_response(str(e), 502)
    except Exception:
        return internal_error("Failed to upload file")


@files_bp.get("")
@require_auth
def list_files_route():
    client_id = request.args.get("client_id", type=int)
    try:
        client_id = portal_service.scoped_client_id(g.current_user, client_id)
    except PortalAccessError as e:
        return error_response(str(e), 403)
    records = file_service.list_files(category=request.args.get("category"), client_id=client_id)
    return jsonify([r.to_dict() for r in _visible(records)])


@files_bp.get("/categories")
@require_auth
def list_folders_route():
    return jsonify(file_service.list_folders())


@files_bp.get("/category/<category>")
@require_auth
def list_files_by_category_route(category: str):
    try:
        client_id = portal_service.scoped_client_id(g.current_user)
    except PortalAccessError as e:
        return error_response(str(e), 403)
    records = file_service.list_files(category=category, client_id=client_id)
    return jsonify([r.to_dict() for r in _visible(records)])


@files_bp.get("/client/<int:client_id>")
@require_auth
def list_client_files_route(client_id: int):
    try:
        portal_service.scoped_client_id(g.current_user, client_id)
    except PortalAccessError as e:
        return error_response(str(e), 403)
    records = file_service.list_files(client_id=client_id)
    return jsonify([r.to_dict() for r in records])


@files_bp.get("/signed-url/<int:file_id>")
@require_auth
def signed_url_route(file_id: int):
    expires_in = request.args.get("expires_in", type=int)
    try:
        record = file_service.get_file(file_id)
        if not file_service.can_access(record, g.current_user):
            return error_response("File not found", 404)
        url = file_service.signed_url(record, expires_in)
        return jsonify({"url": url, "expires_in": expires_in or None, "file": record.to_dict()})
    except StoredFileNotFoundError:
        return error_response("File not found", 404)
    except ValidationError as e:
        return validation_error(e)
    except StorageError as e:
        return error_response(str(e), 502)


@files_bp.delete("/<int:file_id>")
@require_auth
def delete_file_route(file_id: int):
    try:
        file_service.delete_file(file_id, user=g.current_user)
        return "", 204
    except StoredFileNotFoundError:
        return error_response("File not found", 404)
    except FileAccessError as e:
        return error_response(str(e), 403)
    except StorageError as e:
        return error_response(str(e), 502)
    except Exception:
        return internal_error("Failed to delete file")
