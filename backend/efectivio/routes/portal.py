# Overview: Flask API routes for the client portal: invitations, registration, projects, tasks and appointments.

"""
Client Portal Routes

Public: verify-token, register.
Staff only: invite, writes to projects/tasks/appointments, reminders.
Client role: read access pinned to the caller's own client.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_staff
from ..responses import bool_arg, error_response, internal_error, validation_error
from ..services import portal_service
from ..services.auth_service import PasswordValidationError, UserConflictError, UserValidationError
from ..services.client_service import ClientNotFoundError
from ..services.identity import ProviderError
from ..services.portal_service import (
    InvitationInvalidError,
    InvitationNotFoundError,
    PortalAccessError,
    PortalRecordNotFoundError,
)
from ..validation import ValidationError


portal_bp = Blueprint("client_portal", __name__, url_prefix="/api/client-portal")


def _scope(requested=None):
    return portal_service.scoped_client_id(g.current_user, requested)


# =============================================================================
# Invitations and registration
# =============================================================================


@portal_bp.post("/invite")
@require_auth
@require_staff
def invite_route():
    """
    Invite a client contact to the portal.

    Request body: {"client_id": 1, "email": "contact@example.com"}
    email defaults to the client's email.
    """
    data = request.get_json(silent=True) or {}
    client_id = data.get("client_id")
    if not isinstance(client_id, int):
        return error_response("client_id is required", 400)
    try:
        invitation, sent = portal_service.create_invitation(
            client_id=client_id, email=data.get("email"), invited_by=g.current_user,
        )
        body = invitation.to_dict()
        body["token"] = invitation.token
        body["email_sent"] = sent
        return jsonify(body), 201
    except ClientNotFoundError:
        return error_response("Client not found", 404)
    except ValidationError as e:
        return validation_error(e)
    except Exception:
        return internal_error("Failed to create invitation")


@portal_bp.get("/verify-token/<token>")
def verify_token_route(token: str):
    try:
        invitation = portal_service.verify_invitation(token)
    except InvitationNotFoundError as e:
        return error_response(str(e), 404)
    except InvitationInvalidError as e:
        return error_response(str(e), 400)
    return jsonify({
        "valid": True,
        "invitation": invitation.to_dict(),
        "client": invitation.client.to_dict(),
    })


@portal_bp.post("/register")
def register_route():
    data = request.get_json(silent=True) or {}
    token = data.get("token")
    email = data.get("email")
    password = data.get("password")
    if not all([token, email, password]):
        return error_response("token, email and password are required", 400)
    try:
        user = portal_service.register_portal_user(
            token=token,
            email=email,
            password=password,
            full_name=data.get("full_name"),
            username=data.get("username"),
        )
        return jsonify({"user": user.to_dict(), "client_id": user.portal_link.client_id}), 201
    except InvitationNotFoundError as e:
        return error_response(str(e), 404)
    except (InvitationInvalidError, UserValidationError, PasswordValidationError) as e:
        return error_response(str(e), 400)
    except UserConflictError as e:
        return error_response(str(e), 409)
    except ProviderError as e:
        return error_response(str(e), 502)
    except Exception:
        return internal_error("Failed to register portal user")


@portal_bp.get("/me")
@require_auth
def me_route():
    try:
        return jsonify(portal_service.portal_overview(g.current_user))
    except PortalAccessError as e:
        return error_response(str(e), 403)
    except ClientNotFoundError:
        return error_response("Client not found", 404)


# =============================================================================
# Projects
# =============================================================================


@portal_bp.get("/projects")
@require_auth
def list_projects_route():
    try:
        client_id = _scope(request.args.get("client_id", type=int))
    except PortalAccessError as e:
        return error_response(str(e), 403)
    return jsonify([p.to_dict() for p in portal_service.list_projects(client_id=client_id)])


@portal_bp.get("/projects/<int:project_id>")
@require_auth
def get_project_route(project_id: int):
    try:
        project = portal_service.get_project(project_id)
        _scope(project.client_id)
    except (PortalRecordNotFoundError, PortalAccessError):
        return error_response("Project not found", 404)
    body = project.to_dict()
    body["tasks"] = [t.to_dict() for t in project.tasks]
    return jsonify(body)


@portal_bp.post("/projects")
@require_auth
@require_staff
def create_project_route():
    data = request.get_json(silent=True) or {}
    try:
        return jsonify(portal_service.create_project(data).to_dict()), 201
    except ValidationError as e:
        return validation_error(e)
    except Exception:
        return internal_error("Failed to create project")


@portal_bp.put("/projects/<int:project_id>")
@require_auth
@require_staff
def update_project_route(project_id: int):
    data = request.get_json(silent=True) or {}
    try:
        return jsonify(portal_service.update_project(project_id, data).to_dict())
    except PortalRecordNotFoundError:
        return error_response("Project not found", 404)
    except ValidationError as e:
        return validation_error(e)


@portal_bp.delete("/projects/<int:project_id>")
@require_auth
@require_staff
def delete_project_route(project_id: int):
    try:
        portal_service.delete_project(project_id)
        return "", 204
    except PortalRecordNotFoundError:
        return error_response("Project not found", 404)


# =============================================================================
# Tasks
# =============================================================================


@portal_bp.get("/tasks")
@require_auth
def list_tasks_route():
    try:
        client_id = _scope()
    except PortalAccessError as e:
        return error_response(str(e), 403)
    tasks = portal_service.list_tasks(
        project_id=request.args.get("project_id", type=int),
        client_id=client_id,
    )
    return jsonify([t.to_dict() for t in tasks])


@portal_bp.get("/tasks/<int:task_id>")
@require_auth
def get_task_route(task_id: int):
    try:
        task = portal_service.get_task(task_id)
        _scope(task.project.client_id)
    except (PortalRecordNotFoundError, PortalAccessError):
        return error_response("Task not found", 404)
    return jsonify(task.to_dict())


@portal_bp.post("/tasks")
@require_auth
@require_staff
def create_task_route():
    data = request.get_json(silent=True) or {}
    try:
        return jsonify(portal_service.create_task(data).to_dict()), 201
    except PortalRecordNotFoundError:
        return error_response("Project not found", 404)
    except ValidationError as e:
        return validation_error(e)


@portal_bp.put("/tasks/<int:task_id>")
@require_auth
@require_staff
def update_task_route(task_id: int):
    data = request.get_json(silent=True) or {}
    try:
        return jsonify(portal_service.update_task(task_id, data).to_dict())
    except PortalRecordNotFoundError as e:
        return error_response(str(e), 404)
    except ValidationError as e:
        return validation_error(e)


@portal_bp.delete("/tasks/<int:task_id>")
@require_auth
@require_staff
def delete_task_route(task_id: int):
    try:
        portal_service.delete_task(task_id)
        return "", 204
    except PortalRecordNotFoundError:
        return error_response("Task not found", 404)


# =============================================================================
# Appointments
# =============================================================================


@portal_bp.get("/appointments")
@require_auth
def list_appointments_route():
    try:
        client_id = _scope(request.args.get("client_id", type=int))
    except PortalAccessError as e:
        return error_response(str(e), 403)
    appointments = portal_service.list_appointments(
        client_id=client_id,
        upcoming_only=bool_arg("upcoming"),
    )
    return jsonify([a.to_dict() for a in appointments])


@portal_bp.post("/appointments")
@require_auth
@require_staff
def create_appointment_route():
    data = request.get_json(silent=True) or {}
    try:
        appointment = portal_service.create_appointment(data, created_by=g.current_user)
        return jsonify(appointment.to_dict()), 201
    except ValidationError as e:
        return validation_error(e)
    except Exception:
        return internal_error("Failed to create appointment")


@portal_bp.post("/appointments/<int:appointment_id>/send-reminder")
@require_auth
@require_staff
def send_reminder_route(appointment_id: int):
    try:
        sent = portal_service.send_appointment_reminder(appointment_id)
    except PortalRecordNotFoundError:
        return error_response("Appointment not found", 404)
    except ValidationError as e:
        return validation_error(e)
    if not sent:
        return error_response("Reminder email could not be sent", 502, email_sent=False)
    return jsonify({"email_sent": True})
