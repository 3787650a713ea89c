# Overview: Service-layer operations for system configuration and white-label branding.

"""
Settings Service

System config: key/value rows grouped by category. Keys are unique,
required keys cannot be deleted. Every mutation writes an audit row with
the {before, after} diff, committed with the change.

White label: branding rows of which at most one is active. Activation
clears the flag everywhere else in the same transaction; an active row
cannot be deleted.
"""

from __future__ import annotations

import re

from ..extensions import db
from ..models import Client, SystemConfig, WhiteLabel
from ..validation import ConflictError, ModelValidationPolicy, ValidationError, validate_payload
from . import audit_service
from .audit_service import diff_fields


class SettingNotFoundError(Exception):
    """Raised when a system config key is not found."""
    pass


class WhiteLabelNotFoundError(Exception):
    """Raised when a white-label configuration is not found."""
    pass


CONFIG_POLICY = ModelValidationPolicy(
    writable_fields={"key", "value", "category", "description", "is_active", "is_required"},
    required_on_create={"key"},
)

CONFIG_AUDIT_FIELDS = ("value", "category", "description", "is_active", "is_required")

WHITE_LABEL_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "company_name", "client_id", "primary_color", "secondary_color",
        "logo_url", "domain", "custom_css",
    },
    required_on_create={"name", "company_name"},
)

WHITE_LABEL_AUDIT_FIELDS = (
    "name", "company_name", "client_id", "primary_color", "secondary_color",
    "logo_url", "domain", "custom_css", "is_active",
)

HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

DEFAULT_CONFIG = (
    ("company.name", "Efectivio", "company", "Business name shown on documents", True),
    ("company.currency", "MXN", "company", "Currency code for monetary amounts", True),
    ("invoice.default_due_days", "30", "billing", "Days until an invoice is due", True),
    ("invoice.default_tax_rate", "16", "billing", "Default tax rate percentage for new items", False),
    ("portal.invitation_ttl_days", "7", "portal", "Days a portal invitation stays valid", False),
)


def _snapshot(record, fields) -> dict:
    return {f: getattr(record, f) for f in fields}


# =============================================================================
# System config
# =============================================================================


def list_configs(*, category: str | None = None, include_inactive: bool = False) -> list[SystemConfig]:
    query = db.session.query(SystemConfig)
    if category:
        query = query.filter(SystemConfig.category == category)
    if not include_inactive:
        query = query.filter(SystemConfig.is_active.is_(True))
    return query.order_by(SystemConfig.category.asc(), SystemConfig.key.asc()).all()


def get_config(key: str) -> SystemConfig:
    record = db.session.query(SystemConfig).filter_by(key=key).first()
    if not record:
        raise SettingNotFoundError(f"Setting '{key}' not found")
    return record


def create_config(payload: dict, *, user=None) -> SystemConfig:
    patch = validate_payload(model=SystemConfig, payload=payload, policy=CONFIG_POLICY, partial=False)
    if db.session.query(SystemConfig.id).filter_by(key=patch["key"]).first():
        raise ConflictError(f"Setting '{patch['key']}' already exists")
    record = SystemConfig(updated_by_user_id=user.id if user else None, **patch)
    db.session.add(record)
    db.session.flush()
    audit_service.record(
        action="create",
        entity_type="system_config",
        entity_id=record.key,
        entity_name=record.key,
        changes={"before": None, "after": _snapshot(record, ("key",) + CONFIG_AUDIT_FIELDS)},
        user=user,
    )
    db.session.commit()
    return record


def update_config(key: str, payload: dict, *, user=None) -> SystemConfig:
    """
    Update a config value (and optionally its metadata).

    The key itself is immutable. The audit row carries only changed fields.
    """
    record = get_config(key)
    if "key" in (payload or {}) and payload["key"] != key:
        raise ValidationError("key cannot be changed")
    patch = validate_payload(model=SystemConfig, payload=payload, policy=CONFIG_POLICY, partial=True)
    patch.pop("key", None)

    before = _snapshot(record, CONFIG_AUDIT_FIELDS)
    for field, value in patch.items():
        setattr(record, field, value)
    record.updated_by_user_id = user.id if user else record.updated_by_user_id
    changes = diff_fields(before, _snapshot(record, CONFIG_AUDIT_FIELDS))

    audit_service.record(
        action="update",
        entity_type="system_config",
        entity_id=record.key,
        entity_name=record.key,
        changes=changes,
        details=None if changes else "No changes",
        user=user,
    )
    db.session.commit()
    return record


def delete_config(key: str, *, user=None) -> None:
    record = get_config(key)
    if record.is_required:
        raise ConflictError(f"Setting '{key}' is required and cannot be deleted")
    audit_service.record(
        action="delete",
        entity_type="system_config",
        entity_id=record.key,
        entity_name=record.key,
        changes={"before": _snapshot(record, CONFIG_AUDIT_FIELDS), "after": None},
        user=user,
    )
    db.session.delete(record)
    db.session.commit()


def seed_default_configs() -> int:
    existing = {k for (k,) in db.session.query(SystemConfig.key).all()}
    created = 0
    for key, value, category, description, required in DEFAULT_CONFIG:
        if key in existing:
            continue
        db.session.add(SystemConfig(
            key=key, value=value, category=category, description=description,
            is_required=required, is_active=True,
        ))
        created += 1
    db.session.commit()
    return created


# =============================================================================
# White label
# =============================================================================


def _check_white_label(patch: dict) -> None:
    for field in ("primary_color", "secondary_color"):
        value = patch.get(field)
        if value and not HEX_COLOR_RE.match(value):
            raise ValidationError(f"{field} must be a hex color like #1A2B3C",
                                  errors=[{"path": field, "message": "Invalid hex color"}])
    if patch.get("client_id") is not None and not db.session.get(Client, patch["client_id"]):
        raise ValidationError("client_id does not reference an existing client")


def list_white_labels() -> list[WhiteLabel]:
    return db.session.query(WhiteLabel).order_by(WhiteLabel.id.asc()).all()


def get_white_label(config_id: int) -> WhiteLabel:
    record = db.session.get(WhiteLabel, config_id)
    if not record:
        raise WhiteLabelNotFoundError(f"White-label configuration {config_id} not found")
    return record


def get_active_white_label() -> WhiteLabel | None:
    return db.session.query(WhiteLabel).filter(WhiteLabel.is_active.is_(True)).order_by(WhiteLabel.id.asc()).first()


def get_client_white_label(client_id: int) -> WhiteLabel | None:
    return (
        db.session.query(WhiteLabel)
        .filter(WhiteLabel.client_id == client_id)
        .order_by(WhiteLabel.is_active.desc(), WhiteLabel.id.desc())
        .first()
    )


def _deactivate_others(keep_id: int | None) -> None:
    query = db.session.query(WhiteLabel).filter(WhiteLabel.is_active.is_(True))
    if keep_id is not None:
        query = query.filter(WhiteLabel.id != keep_id)
    query.update({WhiteLabel.is_active: False}, synchronize_session="fetch")


def create_white_label(payload: dict, *, activate: bool = False, user=None) -> WhiteLabel:
    patch = validate_payload(model=WhiteLabel, payload=payload, policy=WHITE_LABEL_POLICY, partial=False)
    _check_white_label(patch)
    record = WhiteLabel(is_active=False, **patch)
    db.session.add(record)
    db.session.flush()
    if activate:
        _deactivate_others(record.id)
        record.is_active = True
    audit_service.record(
        action="create",
        entity_type="white_label",
        entity_id=record.id,
        entity_name=record.name,
        changes={"before": None, "after": _snapshot(record, WHITE_LABEL_AUDIT_FIELDS)},
        user=user,
    )
    db.session.commit()
    return record


def update_white_label(config_id: int, payload: dict, *, user=None) -> WhiteLabel:
    record = get_white_label(config_id)
    patch = validate_payload(model=WhiteLabel, payload=payload, policy=WHITE_LABEL_POLICY, partial=True)
    _check_white_label(patch)
    before = _snapshot(record, WHITE_LABEL_AUDIT_FIELDS)
    for field, value in patch.items():
        setattr(record, field, value)
    audit_service.record(
        action="update",
        entity_type="white_label",
        entity_id=record.id,
        entity_name=record.name,
        changes=diff_fields(before, _snapshot(record, WHITE_LABEL_AUDIT_FIELDS)),
        user=user,
    )
    db.session.commit()
    return record


def activate_white_label(config_id: int, *, user=None) -> WhiteLabel:
    """Make one configuration the only active one."""
    record = get_white_label(config_id)
    _deactivate_others(record.id)
    record.is_active = True
    audit_service.record(
        action="activate",
        entity_type="white_label",
        entity_id=record.id,
        entity_name=record.name,
        user=user,
    )
    db.session.commit()
    return record


def deactivate_all_white_labels(*, user=None) -> int:
    count = (
        db.session.query(WhiteLabel)
        .filter(WhiteLabel.is_active.is_(True))
        .update({WhiteLabel.is_active: False}, synchronize_session="fetch")
    )
    audit_service.record(
        action="deactivate",
        entity_type="white_label",
        details=f"Deactivated {count} configuration(s)",
        user=user,
    )
    db.session.commit()
    return count


def delete_white_label(config_id: int, *, user=None) -> None:
    record = get_white_label(config_id)
    if record.is_active:
        raise ConflictError("Cannot delete the active white-label configuration")
    audit_service.record(
        action="delete",
        entity_type="white_label",
        entity_id=record.id,
        entity_name=record.name,
        changes={"before": _snapshot(record, WHITE_LABEL_AUDIT_FIELDS), "after": None},
        user=user,
    )
    db.session.delete(record)
    db.session.commit()
