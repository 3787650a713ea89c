# Overview: Service-layer operations for clients.

from __future__ import annotations

from ..extensions import db
from ..models import Client
from ..models.clients import CLIENT_TYPES
from ..validation import ModelValidationPolicy, validate_payload


class ClientNotFoundError(Exception):
    """Raised when a client is not found."""
    pass


CLIENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "client_type", "name", "company_name", "contact_name", "email", "phone",
        "address", "tax_id", "payment_terms_days", "is_active", "notes",
    },
    required_on_create={"name"},
    choices={"client_type": CLIENT_TYPES},
)


def get_client(client_id: int) -> Client:
    client = db.session.get(Client, client_id)
    if not client:
        raise ClientNotFoundError(f"Client {client_id} not found")
    return client


def list_clients(*, search: str | None = None, include_inactive: bool = False) -> list[Client]:
    query = db.session.query(Client)
    if not include_inactive:
        query = query.filter(Client.is_active.is_(True))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Client.name.ilike(pattern),
            Client.company_name.ilike(pattern),
            Client.contact_name.ilike(pattern),
            Client.email.ilike(pattern),
        ))
    return query.order_by(Client.name.asc()).all()


def create_client(payload: dict) -> Client:
    patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=False)
    if patch.get("email"):
        patch["email"] = patch["email"].lower()
    client = Client(**patch)
    db.session.add(client)
    db.session.commit()
    return client


def update_client(client_id: int, payload: dict) -> Client:
    client = get_client(client_id)
    patch = validate_payload(model=Client, payload=payload, policy=CLIENT_POLICY, partial=True)
    if patch.get("email"):
        patch["email"] = patch["email"].lower()
    for key, value in patch.items():
        setattr(client, key, value)
    db.session.commit()
    return client


def deactivate_client(client_id: int) -> Client:
    client = get_client(client_id)
    client.is_active = False
    db.session.commit()
    return client


def delete_client(client_id: int) -> None:
    """
    Hard delete. Quotes, invoices and files that reference the client are
    left untouched.
    """
    client = get_client(client_id)
    db.session.delete(client)
    db.session.commit()
