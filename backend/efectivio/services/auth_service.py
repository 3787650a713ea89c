# Overview: Service-layer operations for users and passwords.

"""
User and password management.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
import re
from ..extensions import db
from ..models import User
from ..models.auth import ROLES, ROLE_USER
from .session_service import revoke_all_user_sessions
from efectivio.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class UserNotFoundError(Exception):
    """Raised when a user is not found."""
    pass


class UserValidationError(Exception):
    """Raised when user data fails validation."""
    pass


class UserConflictError(Exception):
    """Raised when username or email is already taken."""
    pass


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str | None) -> bool:
    """
    Verify password against bcrypt hash.

    Users mirrored from the hosted identity service have no local hash and
    never verify.
    """
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _normalize_email(email: str | None) -> str:
    email = (email or "").strip().lower()
    if not EMAIL_RE.match(email):
        raise UserValidationError("A valid email is required")
    return email


def _check_unique(username: str | None, email: str | None, exclude_id: int | None = None) -> None:
    conditions = []
    if username:
        conditions.append(User.username == username)
    if email:
        conditions.append(User.email == email)
    if not conditions:
        return
    query = db.session.query(User).filter(db.or_(*conditions))
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first():
        raise UserConflictError("Username or email already exists")


def create_user(
    *,
    username: str,
    email: str,
    password: str | None,
    full_name: str | None = None,
    role: str = ROLE_USER,
    external_id: str | None = None,
    commit: bool = True,
) -> User:
    """
    Create new user.

    password may be None only for users whose credentials live with the
    hosted identity service (external_id set).

    Raises:
        UserValidationError: bad username/email/role
        UserConflictError: username or email taken
        PasswordValidationError: weak password
    """
    username = (username or "").strip()
    if not username:
        raise UserValidationError("username is required")
    if len(username) > 64:
        raise UserValidationError("username exceeds max length 64")
    email = _normalize_email(email)
    if role not in ROLES:
        raise UserValidationError(f"role must be one of: {', '.join(ROLES)}")
    if password is None and not external_id:
        raise UserValidationError("password is required")

    _check_unique(username, email)

    user = User(
        username=username,
        email=email,
        full_name=(full_name or "").strip() or None,
        role=role,
        external_id=external_id,
        password_hash=hash_password(password) if password is not None else None,
        is_active=True,
    )

    db.session.add(user)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return user


def authenticate(identifier: str, password: str) -> User | None:
    """
    Authenticate user with username or email and password.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    identifier = (identifier or "").strip()
    user = db.session.query(User).filter(
        db.or_(User.username == identifier, User.email == identifier.lower()),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise UserNotFoundError(f"User {user_id} not found")
    return user


def list_users(*, role: str | None = None, include_inactive: bool = True) -> list[User]:
    query = db.session.query(User)
    if role:
        query = query.filter(User.role == role)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.username.asc()).all()


USER_AUDIT_FIELDS = ("username", "email", "full_name", "role", "is_active")


def update_user(user_id: int, *, changes: dict) -> tuple[User, dict]:
    """
    Apply an admin edit to a user.

    Returns (user, before) where before holds the audited fields as they
    were prior to the edit. Deactivation revokes the user's sessions.
    """
    user = get_user(user_id)
    before = {f: getattr(user, f) for f in USER_AUDIT_FIELDS}

    unknown = set(changes) - set(USER_AUDIT_FIELDS) - {"password"}
    if unknown:
        raise UserValidationError(f"Field not allowed: {sorted(unknown)[0]}")

    if "username" in changes:
        username = (changes["username"] or "").strip()
        if not username:
            raise UserValidationError("username cannot be blank")
        _check_unique(username, None, exclude_id=user.id)
        user.username = username
    if "email" in changes:
        email = _normalize_email(changes["email"])
        _check_unique(None, email, exclude_id=user.id)
        user.email = email
    if "full_name" in changes:
        user.full_name = (changes["full_name"] or "").strip() or None
    if "role" in changes:
        if changes["role"] not in ROLES:
            raise UserValidationError(f"role must be one of: {', '.join(ROLES)}")
        user.role = changes["role"]
    if "is_active" in changes:
        if not isinstance(changes["is_active"], bool):
            raise UserValidationError("is_active must be a boolean")
        user.is_active = changes["is_active"]
        if not user.is_active:
            revoke_all_user_sessions(user.id, reason="User account deactivated", commit=False)
    if changes.get("password"):
        user.password_hash = hash_password(changes["password"])

    return user, before


def change_password(user_id: int, *, new_password: str, current_password: str | None = None, require_current: bool = True) -> User:
    """
    Set a new password and revoke all existing sessions.

    Users changing their own password must present the current one.
    """
    user = get_user(user_id)
    if require_current and not verify_password(current_password or "", user.password_hash):
        raise UserValidationError("Current password is incorrect")
    user.password_hash = hash_password(new_password)
    revoke_all_user_sessions(user.id, reason="Password changed", commit=False)
    return user


def delete_user(user_id: int) -> User:
    user = get_user(user_id)
    if user.portal_link:
        db.session.delete(user.portal_link)
    db.session.delete(user)
    return user
