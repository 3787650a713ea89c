# Overview: Service-layer operations for the client portal: invitations, registration and shared records.

"""
Client Portal Service

Invitation flow:
1. Staff invites a client contact (token inv_<32 hex>, expires after
   INVITATION_TTL_DAYS); the email is best-effort.
2. The contact verifies the token (unknown -> 404, expired/used -> 400).
3. The contact registers with the invited email: a client-role user and its
   portal link are created, the invitation is marked accepted and the client
   gains portal access, all in one commit.

Portal users only ever see records of their own client.
"""

from __future__ import annotations

import uuid
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import (
    Appointment,
    Client,
    ClientInvitation,
    ClientPortalUser,
    Invoice,
    Project,
    Quote,
    StoredFile,
    Task,
    User,
)
from ..models.auth import ROLE_CLIENT
from ..models.portal import APPOINTMENT_STATUSES, PROJECT_STATUSES, TASK_PRIORITIES, TASK_STATUSES
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from . import audit_service, auth_service, email_service
from .client_service import ClientNotFoundError, get_client
from .identity import get_identity_provider
from efectivio.time_utils import to_utc_z, utcnow


class InvitationNotFoundError(Exception):
    """Raised when an invitation token is unknown."""
    pass


class InvitationInvalidError(Exception):
    """Raised when an invitation is expired, used, or does not match."""
    pass


class PortalAccessError(Exception):
    """Raised when a portal user has no client link or reaches outside it."""
    pass


class PortalRecordNotFoundError(Exception):
    """Raised when a project, task or appointment is not found."""
    pass


PROJECT_POLICY = ModelValidationPolicy(
    writable_fields={"client_id", "name", "description", "status", "start_date", "end_date", "budget"},
    required_on_create={"client_id", "name"},
    choices={"status": PROJECT_STATUSES},
)

TASK_POLICY = ModelValidationPolicy(
    writable_fields={"project_id", "title", "description", "status", "priority", "due_date", "assigned_to_user_id"},
    required_on_create={"project_id", "title"},
    choices={"status": TASK_STATUSES, "priority": TASK_PRIORITIES},
)

APPOINTMENT_POLICY = ModelValidationPolicy(
    writable_fields={"client_id", "title", "description", "start_time", "end_time", "location", "status"},
    required_on_create={"client_id", "title", "start_time", "end_time"},
    choices={"status": APPOINTMENT_STATUSES},
)


# =============================================================================
# Invitations
# =============================================================================


def generate_invitation_token() -> str:
    return f"inv_{uuid.uuid4().hex}"


def create_invitation(*, client_id: int, email: str | None = None, invited_by: User | None = None) -> tuple[ClientInvitation, bool]:
    """
    Create an invitation and email it.

    email defaults to the client's email. Returns (invitation, email_sent);
    a failed send leaves the invitation in place.
    """
    client = get_client(client_id)
    email = (email or client.email or "").strip().lower()
    if not auth_service.EMAIL_RE.match(email):
        raise ValidationError("A valid email is required", errors=[{"path": "email", "message": "Invalid email"}])

    ttl_days = current_app.config.get("INVITATION_TTL_DAYS", 7)
    invitation = ClientInvitation(
        client_id=client.id,
        email=email,
        token=generate_invitation_token(),
        status="pending",
        expires_at=utcnow() + timedelta(days=ttl_days),
        invited_by_user_id=invited_by.id if invited_by else None,
    )
    db.session.add(invitation)
    db.session.flush()
    audit_service.record(
        action="invite",
        entity_type="client_invitation",
        entity_id=invitation.id,
        entity_name=client.name,
        details=f"Portal invitation sent to {email}",
        user=invited_by,
    )
    db.session.commit()

    sent = email_service.send_portal_invitation(email=email, client_name=client.name, token=invitation.token)
    if not sent:
        current_app.logger.warning("Invitation %s created but email to %s failed", invitation.id, email)
    return invitation, sent


def verify_invitation(token: str) -> ClientInvitation:
    invitation = db.session.query(ClientInvitation).filter_by(token=token).first()
    if not invitation:
        raise InvitationNotFoundError("Invitation not found")
    if invitation.status != "pending":
        raise InvitationInvalidError("Invitation has already been used")
    if invitation.expires_at < utcnow():
        raise InvitationInvalidError("Invitation has expired")
    return invitation


def register_portal_user(
    *,
    token: str,
    email: str,
    password: str,
    full_name: str | None = None,
    username: str | None = None,
) -> User:
    """
    Redeem an invitation and create the client's portal account.

    Raises:
        InvitationNotFoundError: unknown token
        InvitationInvalidError: expired, used, or email mismatch
        auth_service.UserConflictError / UserValidationError / PasswordValidationError
    """
    invitation = verify_invitation(token)
    email = (email or "").strip().lower()
    if email != invitation.email.lower():
        raise InvitationInvalidError("Email does not match the invitation")

    username = (username or email.split("@", 1)[0]).strip()
    provider = get_identity_provider()
    if provider.name == "local":
        user = auth_service.create_user(
            username=username,
            email=email,
            password=password,
            full_name=full_name,
            role=ROLE_CLIENT,
            commit=False,
        )
    else:
        user = provider.sign_up(username=username, email=email, password=password, full_name=full_name)
        user.role = ROLE_CLIENT

    db.session.add(ClientPortalUser(client_id=invitation.client_id, user_id=user.id, invitation_id=invitation.id))
    invitation.status = "accepted"
    invitation.accepted_at = utcnow()
    invitation.client.has_portal_access = True
    audit_service.record(
        action="register",
        entity_type="client_portal_user",
        entity_id=user.id,
        entity_name=invitation.client.name,
        details=f"Portal account created for {email}",
        user=user,
    )
    db.session.commit()
    return user


def purge_expired_invitations() -> int:
    """Delete pending invitations past their expiry."""
    count = (
        db.session.query(ClientInvitation)
        .filter(ClientInvitation.status == "pending", ClientInvitation.expires_at < utcnow())
        .delete(synchronize_session=False)
    )
    db.session.commit()
    return count


# =============================================================================
# Portal scope
# =============================================================================


def portal_client_id(user: User) -> int:
    link = db.session.query(ClientPortalUser).filter_by(user_id=user.id).first()
    if not link:
        raise PortalAccessError("User has no client portal access")
    return link.client_id


def scoped_client_id(user: User, requested: int | None = None) -> int | None:
    """
    Staff may look at any client (requested or None for all); portal users
    are pinned to their own client.
    """
    if user.role != ROLE_CLIENT:
        return requested
    own = portal_client_id(user)
    if requested is not None and requested != own:
        raise PortalAccessError("Access to this client is not allowed")
    return own


def portal_overview(user: User) -> dict:
    client_id = portal_client_id(user)
    client = db.session.get(Client, client_id)
    if not client:
        raise ClientNotFoundError(f"Client {client_id} not found")
    quotes = db.session.query(Quote).filter_by(client_id=client_id).order_by(Quote.issue_date.desc()).all()
    invoices = db.session.query(Invoice).filter_by(client_id=client_id).order_by(Invoice.issue_date.desc()).all()
    files = db.session.query(StoredFile).filter_by(client_id=client_id).order_by(StoredFile.created_at.desc()).all()
    return {
        "user": user.to_dict(),
        "client": client.to_dict(),
        "quotes": [q.to_dict() for q in quotes],
        "invoices": [i.to_dict() for i in invoices],
        "files": [f.to_dict() for f in files],
        "projects": [p.to_dict() for p in list_projects(client_id=client_id)],
        "appointments": [a.to_dict() for a in list_appointments(client_id=client_id)],
    }


# =============================================================================
# Projects and tasks
# =============================================================================


def _require_client(client_id: int) -> None:
    if not db.session.get(Client, client_id):
        raise ValidationError("client_id does not reference an existing client",
                              errors=[{"path": "client_id", "message": "Client not found"}])


def _check_date_order(start, end, start_name: str, end_name: str) -> None:
    if start and end and end < start:
        raise ValidationError(f"{end_name} cannot be before {start_name}",
                              errors=[{"path": end_name, "message": f"Must be after {start_name}"}])


def list_projects(*, client_id: int | None = None) -> list[Project]:
    query = db.session.query(Project)
    if client_id is not None:
        query = query.filter(Project.client_id == client_id)
    return query.order_by(Project.created_at.desc(), Project.id.desc()).all()


def get_project(project_id: int) -> Project:
    project = db.session.get(Project, project_id)
    if not project:
        raise PortalRecordNotFoundError(f"Project {project_id} not found")
    return project


def create_project(payload: dict) -> Project:
    patch = validate_payload(model=Project, payload=payload, policy=PROJECT_POLICY, partial=False)
    _require_client(patch["client_id"])
    _check_date_order(patch.get("start_date"), patch.get("end_date"), "start_date", "end_date")
    project = Project(**patch)
    db.session.add(project)
    db.session.commit()
    return project


def update_project(project_id: int, payload: dict) -> Project:
    project = get_project(project_id)
    patch = validate_payload(model=Project, payload=payload, policy=PROJECT_POLICY, partial=True)
    if "client_id" in patch:
        _require_client(patch["client_id"])
    _check_date_order(patch.get("start_date", project.start_date), patch.get("end_date", project.end_date),
                      "start_date", "end_date")
    for key, value in patch.items():
        setattr(project, key, value)
    db.session.commit()
    return project


def delete_project(project_id: int) -> None:
    """Deletes the project and its tasks; files keep their rows with project_id cleared."""
    project = get_project(project_id)
    db.session.query(StoredFile).filter_by(project_id=project.id).update(
        {StoredFile.project_id: None}, synchronize_session=False
    )
    db.session.delete(project)
    db.session.commit()


def list_tasks(*, project_id: int | None = None, client_id: int | None = None) -> list[Task]:
    query = db.session.query(Task)
    if project_id is not None:
        query = query.filter(Task.project_id == project_id)
    if client_id is not None:
        query = query.join(Project, Project.id == Task.project_id).filter(Project.client_id == client_id)
    return query.order_by(Task.due_date.asc(), Task.id.asc()).all()


def get_task(task_id: int) -> Task:
    task = db.session.get(Task, task_id)
    if not task:
        raise PortalRecordNotFoundError(f"Task {task_id} not found")
    return task


def _require_assignee(user_id: int | None) -> None:
    if user_id is not None and not db.session.get(User, user_id):
        raise ValidationError("assigned_to_user_id does not reference an existing user")


def create_task(payload: dict) -> Task:
    patch = validate_payload(model=Task, payload=payload, policy=TASK_POLICY, partial=False)
    get_project(patch["project_id"])
    _require_assignee(patch.get("assigned_to_user_id"))
    task = Task(**patch)
    db.session.add(task)
    db.session.commit()
    return task


def update_task(task_id: int, payload: dict) -> Task:
    task = get_task(task_id)
    patch = validate_payload(model=Task, payload=payload, policy=TASK_POLICY, partial=True)
    if "project_id" in patch:
        get_project(patch["project_id"])
    _require_assignee(patch.get("assigned_to_user_id"))
    for key, value in patch.items():
        setattr(task, key, value)
    db.session.commit()
    return task


def delete_task(task_id: int) -> None:
    task = get_task(task_id)
    db.session.delete(task)
    db.session.commit()


# =============================================================================
# Appointments
# =============================================================================


def list_appointments(*, client_id: int | None = None, upcoming_only: bool = False) -> list[Appointment]:
    query = db.session.query(Appointment)
    if client_id is not None:
        query = query.filter(Appointment.client_id == client_id)
    if upcoming_only:
        query = query.filter(Appointment.start_time >= utcnow())
    return query.order_by(Appointment.start_time.asc()).all()


def get_appointment(appointment_id: int) -> Appointment:
    appointment = db.session.get(Appointment, appointment_id)
    if not appointment:
        raise PortalRecordNotFoundError(f"Appointment {appointment_id} not found")
    return appointment


def create_appointment(payload: dict, *, created_by: User | None = None) -> Appointment:
    patch = validate_payload(model=Appointment, payload=payload, policy=APPOINTMENT_POLICY, partial=False)
    _require_client(patch["client_id"])
    if patch["end_time"] <= patch["start_time"]:
        raise ValidationError("end_time must be after start_time",
                              errors=[{"path": "end_time", "message": "Must be after start_time"}])
    appointment = Appointment(created_by_user_id=created_by.id if created_by else None, **patch)
    db.session.add(appointment)
    db.session.commit()
    return appointment


def send_appointment_reminder(appointment_id: int) -> bool:
    """
    Email the client about the appointment. Records reminder_sent_at only
    when the send succeeds.
    """
    appointment = get_appointment(appointment_id)
    client = appointment.client
    if not client or not client.email:
        raise ValidationError("Client has no email address")
    sent = email_service.send_appointment_reminder(
        email=client.email,
        client_name=client.contact_name or client.name,
        title=appointment.title,
        start_time=to_utc_z(appointment.start_time),
        location=appointment.location,
    )
    if sent:
        appointment.reminder_sent_at = utcnow()
        db.session.commit()
    return sent
