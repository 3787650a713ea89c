# Overview: Verification and handling of signed identity-provider webhook events.

"""
Identity Webhooks

Events arrive signed the Svix way:
    svix-id, svix-timestamp, svix-signature: "v1,<base64 sig> [v1,<sig> ...]"
    sig = base64(HMAC-SHA256(secret, f"{id}.{timestamp}.{raw body}"))
The secret is configured as "whsec_<base64 key>". Timestamps more than five
minutes from now are rejected.

user.created / user.updated refresh the local mirror of the identity;
user.deleted deactivates it. Other event types are acknowledged and ignored.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time

from .identity import deactivate_external_user, upsert_external_user

TOLERANCE_SECONDS = 5 * 60


class WebhookVerificationError(Exception):
    """Raised when a webhook signature or timestamp is invalid."""
    pass


def _secret_bytes(secret: str) -> bytes:
    if secret.startswith("whsec_"):
        secret = secret[len("whsec_"):]
    try:
        return base64.b64decode(secret)
    except ValueError as exc:
        raise WebhookVerificationError("Webhook secret is not valid base64") from exc


def sign_payload(secret: str, msg_id: str, timestamp: str, body: bytes) -> str:
    signed = f"{msg_id}.{timestamp}.".encode("utf-8") + body
    digest = hmac.new(_secret_bytes(secret), signed, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(*, secret: str, headers, body: bytes, now: float | None = None) -> dict:
    """
    Check the Svix headers against the raw body and return the parsed JSON.

    Raises:
        WebhookVerificationError: missing headers, stale timestamp, bad signature
    """
    msg_id = headers.get("svix-id")
    timestamp = headers.get("svix-timestamp")
    signature_header = headers.get("svix-signature")
    if not (msg_id and timestamp and signature_header):
        raise WebhookVerificationError("Missing svix headers")

    try:
        ts = int(timestamp)
    except ValueError:
        raise WebhookVerificationError("Invalid svix-timestamp")
    current = time.time() if now is None else now
    if abs(current - ts) > TOLERANCE_SECONDS:
        raise WebhookVerificationError("Webhook timestamp outside tolerance")

    expected = sign_payload(secret, msg_id, timestamp, body)
    for candidate in signature_header.split():
        version, _, value = candidate.partition(",")
        if version == "v1" and hmac.compare_digest(value.encode("utf-8"), expected.encode("ascii")):
            break
    else:
        raise WebhookVerificationError("Invalid webhook signature")

    try:
        return json.loads(body)
    except ValueError as exc:
        raise WebhookVerificationError("Webhook body is not JSON") from exc


def _primary_email(data: dict) -> str | None:
    addresses = data.get("email_addresses") or []
    primary_id = data.get("primary_email_address_id")
    for address in addresses:
        if address.get("id") == primary_id:
            return address.get("email_address")
    if addresses:
        return addresses[0].get("email_address")
    return data.get("email")


def handle_event(event: dict) -> str:
    """
    Apply an identity event to the users table.

    Returns "synced", "deactivated" or "ignored".
    """
    event_type = event.get("type")
    data = event.get("data") or {}
    external_id = data.get("id")

    if event_type in ("user.created", "user.updated"):
        if not external_id:
            raise WebhookVerificationError("Event has no user id")
        full_name = " ".join(p for p in (data.get("first_name"), data.get("last_name")) if p) or None
        upsert_external_user(
            external_id=str(external_id),
            email=_primary_email(data),
            username=data.get("username"),
            full_name=full_name,
        )
        return "synced"

    if event_type == "user.deleted":
        if external_id and deactivate_external_user(str(external_id)):
            return "deactivated"
        return "ignored"

    return "ignored"
