# Overview: Identity providers behind one interface; local sessions or a hosted identity service.

"""
Identity

Routes and decorators talk to whichever provider the app was configured
with (AUTH_PROVIDER) through the same four calls:

- authenticate(token)        -> User | None
- sign_in(identifier, pw)    -> (User, token) | None
- sign_up(...)               -> User
- sign_out(token)            -> bool

LocalIdentityProvider keeps credentials in this database (bcrypt) and issues
session tokens. RemoteIdentityProvider delegates credentials to a hosted
GoTrue-style identity service over HTTP and mirrors each identity into the
users table keyed by external_id, so foreign keys and roles stay local.
"""

from __future__ import annotations

import httpx
from flask import current_app

from ..extensions import db
from ..models import User
from ..models.auth import ROLE_USER
from . import auth_service, session_service

EXTENSION_KEY = "efectivio.identity"


class ProviderError(Exception):
    """Raised when an external provider fails or answers unexpectedly."""
    pass


class IdentityProvider:
    name = "base"

    def authenticate(self, token: str) -> User | None:
        raise NotImplementedError

    def sign_in(self, identifier: str, password: str, *, user_agent: str | None = None,
                ip_address: str | None = None) -> tuple[User, str] | None:
        raise NotImplementedError

    def sign_up(self, *, username: str, email: str, password: str, full_name: str | None = None) -> User:
        raise NotImplementedError

    def sign_out(self, token: str) -> bool:
        raise NotImplementedError


class LocalIdentityProvider(IdentityProvider):
    """Development stand-in: bcrypt passwords and database session tokens."""
    name = "local"

    def authenticate(self, token: str) -> User | None:
        context = session_service.validate_session(token)
        return context.user if context else None

    def sign_in(self, identifier, password, *, user_agent=None, ip_address=None):
        user = auth_service.authenticate(identifier, password)
        if not user:
            return None
        _, token = session_service.create_session(user.id, user_agent=user_agent, ip_address=ip_address)
        return user, token

    def sign_up(self, *, username, email, password, full_name=None):
        return auth_service.create_user(
            username=username,
            email=email,
            password=password,
            full_name=full_name,
            role=ROLE_USER,
        )

    def sign_out(self, token):
        return session_service.revoke_session(token, reason="User logout")


def _unique_username(base: str) -> str:
    base = (base or "user")[:56]
    candidate = base
    suffix = 1
    while db.session.query(User.id).filter_by(username=candidate).first():
        suffix += 1
        candidate = f"{base}_{suffix}"
    return candidate


def upsert_external_user(
    *,
    external_id: str,
    email: str | None,
    username: str | None = None,
    full_name: str | None = None,
) -> User:
    """
    Create or refresh the local mirror of a hosted identity.

    Matching is by external_id, then by email (linking a pre-existing local
    account). A missing username falls back to the email local part, then to
    user_<external_id>.
    """
    user = db.session.query(User).filter_by(external_id=external_id).first()
    email = (email or "").strip().lower() or None
    if not user and email:
        user = db.session.query(User).filter_by(email=email).first()
        if user and user.external_id and user.external_id != external_id:
            raise ProviderError("Email already linked to another identity")

    if user:
        user.external_id = external_id
        if email and email != user.email:
            user.email = email
        if full_name:
            user.full_name = full_name
        if username and username != user.username:
            taken = db.session.query(User.id).filter(User.username == username, User.id != user.id).first()
            if not taken:
                user.username = username
        db.session.commit()
        return user

    if not email:
        raise ProviderError("Identity has no email address")

    base = username or email.split("@", 1)[0] or f"user_{external_id}"
    user = User(
        username=_unique_username(base),
        email=email,
        full_name=full_name,
        role=ROLE_USER,
        external_id=external_id,
        password_hash=None,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def deactivate_external_user(external_id: str) -> User | None:
    user = db.session.query(User).filter_by(external_id=external_id).first()
    if not user:
        return None
    user.is_active = False
    session_service.revoke_all_user_sessions(user.id, reason="Identity deleted", commit=False)
    db.session.commit()
    return user


class RemoteIdentityProvider(IdentityProvider):
    """
    Hosted identity service speaking the GoTrue REST dialect.

    Tokens are the service's access tokens; validation is a round trip to
    GET /auth/v1/user. No retries.
    """
    name = "remote"

    def __init__(self, *, base_url: str, api_key: str, timeout: float = 10.0,
                 transport: httpx.BaseTransport | None = None):
        if not base_url or not api_key:
            raise ProviderError("IDENTITY_PROVIDER_URL and IDENTITY_PROVIDER_API_KEY are required")
        self.client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={"apikey": api_key},
        )

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return self.client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            current_app.logger.error("Identity provider request failed: %s %s: %s", method, path, exc)
            raise ProviderError("Identity provider unavailable") from exc

    @staticmethod
    def _mirror(payload: dict) -> User:
        if not payload or not payload.get("id"):
            raise ProviderError("Identity provider returned no user")
        metadata = payload.get("user_metadata") or {}
        return upsert_external_user(
            external_id=str(payload["id"]),
            email=payload.get("email"),
            username=metadata.get("username"),
            full_name=metadata.get("full_name"),
        )

    def authenticate(self, token):
        resp = self._request("GET", "/auth/v1/user", headers={"Authorization": f"Bearer {token}"})
        if resp.status_code in (401, 403, 404):
            return None
        if resp.status_code != 200:
            current_app.logger.warning("Identity provider returned %s on token check", resp.status_code)
            raise ProviderError("Identity provider error")
        user = self._mirror(resp.json())
        return user if user.is_active else None

    def sign_in(self, identifier, password, *, user_agent=None, ip_address=None):
        resp = self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": identifier, "password": password},
        )
        if resp.status_code in (400, 401):
            return None
        if resp.status_code != 200:
            current_app.logger.warning("Identity provider returned %s on sign-in", resp.status_code)
            raise ProviderError("Identity provider error")
        body = resp.json()
        user = self._mirror(body.get("user") or {})
        if not user.is_active:
            return None
        return user, body["access_token"]

    def sign_up(self, *, username, email, password, full_name=None):
        auth_service.validate_password_strength(password)
        resp = self._request(
            "POST",
            "/auth/v1/signup",
            json={
                "email": email,
                "password": password,
                "data": {"username": username, "full_name": full_name},
            },
        )
        if resp.status_code in (400, 422):
            message = resp.json().get("msg") or "Sign-up rejected"
            raise auth_service.UserValidationError(message)
        if resp.status_code not in (200, 201):
            current_app.logger.warning("Identity provider returned %s on sign-up", resp.status_code)
            raise ProviderError("Identity provider error")
        body = resp.json()
        return self._mirror(body.get("user") or body)

    def sign_out(self, token):
        resp = self._request("POST", "/auth/v1/logout", headers={"Authorization": f"Bearer {token}"})
        return resp.status_code in (200, 204)


def build_identity_provider(config) -> IdentityProvider:
    kind = (config.get("AUTH_PROVIDER") or "local").lower()
    if kind == "local":
        return LocalIdentityProvider()
    if kind == "remote":
        return RemoteIdentityProvider(
            base_url=config.get("IDENTITY_PROVIDER_URL"),
            api_key=config.get("IDENTITY_PROVIDER_API_KEY"),
            timeout=config.get("OUTBOUND_TIMEOUT_SECONDS", 10.0),
        )
    raise ProviderError(f"Unknown AUTH_PROVIDER: {kind}")


def init_identity(app) -> None:
    app.extensions[EXTENSION_KEY] = build_identity_provider(app.config)


def get_identity_provider() -> IdentityProvider:
    return current_app.extensions[EXTENSION_KEY]
