# Overview: Service-layer operations for the identity registry; encapsulates business logic and database work.

"""
Identity Registry

WHY: Every fine operation is attributable to a resolved identity with a
fixed role. The registry is the only place identities are created or
deactivated, and the only place role checks are evaluated.

RULES:
- Roles are a tagged field (OFFICER, DRIVER, ADMIN, DEPARTMENT_OFFICIAL),
  fixed at registration.
- Identities are never deleted. deactivate() is idempotent and keeps the
  row resolvable for historical fines.
- Credentials are bcrypt hashes; plaintext is never stored.
"""

import re

import bcrypt
from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..errors import (
    DuplicateIdentityError,
    InactiveIdentityError,
    InvalidActorError,
    NotFoundError,
    PasswordValidationError,
    ValidationError,
)
from ..extensions import db
from ..models import Identity, VALID_ROLES
from ..time_utils import utcnow


# =============================================================================
# CREDENTIALS
# =============================================================================

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
    if len(password) < 8:
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
    """Validate strength, then bcrypt-hash with the configured cost factor."""
    validate_password_strength(password)
    rounds = int(current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, credential_hash: str | None) -> bool:
    if not credential_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), credential_hash.encode('utf-8'))
    except ValueError:
        # Malformed hash in storage
        return False


# =============================================================================
# REGISTRY OPERATIONS
# =============================================================================

def register(role: str, attributes: dict) -> Identity:
    """
    Register a new identity.

    Args:
        role: One of VALID_ROLES
        attributes: external_id, name, contact, optional password

    Raises:
        ValidationError: Unknown role, missing field, weak password
        DuplicateIdentityError: external_id or contact already registered
    """
    if role not in VALID_ROLES:
        raise ValidationError(f"Invalid role: {role}. Must be one of {list(VALID_ROLES)}")

    external_id = (attributes.get("external_id") or "").strip()
    name = (attributes.get("name") or "").strip()
    contact = (attributes.get("contact") or "").strip().lower()
    password = attributes.get("password")

    missing = [k for k, v in (("external_id", external_id), ("name", name), ("contact", contact)) if not v]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    existing = db.session.query(Identity).filter(
        or_(Identity.external_id == external_id, Identity.contact == contact)
    ).first()
    if existing:
        raise DuplicateIdentityError(
            f"Identity with external_id '{external_id}' or contact '{contact}' already exists"
        )

    credential_hash = hash_password(password) if password else None

    identity = Identity(
        external_id=external_id,
        role=role,
        name=name,
        contact=contact,
        credential_hash=credential_hash,
        is_active=True,
    )
    db.session.add(identity)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise DuplicateIdentityError(
            f"Identity with external_id '{external_id}' or contact '{contact}' already exists"
        )

    current_app.logger.info("Registered %s identity %s (%s)", role, identity.id, external_id)
    return identity


def resolve(identity_id: int) -> Identity:
    """Resolve an identity by id. Inactive identities still resolve."""
    identity = db.session.get(Identity, identity_id) if identity_id is not None else None
    if not identity:
        raise NotFoundError(f"Identity {identity_id} not found")
    return identity


def resolve_external(external_id: str) -> Identity:
    identity = db.session.query(Identity).filter_by(external_id=external_id).first()
    if not identity:
        raise NotFoundError(f"Identity '{external_id}' not found")
    return identity


def deactivate(identity_id: int, actor_id: int | None = None) -> Identity:
    """
    Soft-deactivate an identity.

    Idempotent: a second call leaves deactivated_at untouched. Fines that
    reference the identity are unaffected.
    """
    identity = resolve(identity_id)
    if not identity.is_active:
        return identity

    identity.is_active = False
    identity.deactivated_at = utcnow()
    identity.deactivated_by_id = actor_id
    db.session.commit()

    current_app.logger.info("Deactivated identity %s (by %s)", identity_id, actor_id)
    return identity


def authorize(identity_id: int, role: str) -> bool:
    """Pure predicate: identity exists, is active and holds role."""
    identity = db.session.get(Identity, identity_id) if identity_id is not None else None
    return bool(identity and identity.is_active and identity.role == role)


def require_actor(identity_id: int, *roles: str) -> Identity:
    """
    Resolve an acting identity and enforce its role.

    Raises:
        InvalidActorError: Unknown identity, or identity lacks every role
        InactiveIdentityError: Identity was deactivated
    """
    identity = db.session.get(Identity, identity_id) if identity_id is not None else None
    if not identity:
        current_app.logger.warning("Unknown actor %s", identity_id)
        raise InvalidActorError(f"Unknown actor {identity_id}")

    if not identity.is_active:
        current_app.logger.warning("Inactive actor %s attempted a %s operation", identity_id, "/".join(roles))
        raise InactiveIdentityError(f"Identity {identity_id} is inactive")

    if roles and identity.role not in roles:
        current_app.logger.warning(
            "Actor %s with role %s denied; requires %s", identity_id, identity.role, "/".join(roles)
        )
        raise InvalidActorError(
            f"Identity {identity_id} has role {identity.role}; requires {' or '.join(roles)}"
        )

    return identity


def verify_credential(external_id: str, password: str) -> Identity | None:
    """
    Check a login credential for the external authentication layer.

    Returns the identity on success, None otherwise. Inactive identities
    never verify.
    """
    identity = db.session.query(Identity).filter_by(external_id=external_id).first()
    if not identity or not identity.is_active:
        return None
    if not verify_password(password, identity.credential_hash):
        current_app.logger.warning("Credential check failed for %s", external_id)
        return None
    return identity


def list_identities(role: str | None = None, include_inactive: bool = False) -> list[Identity]:
    query = db.session.query(Identity)
    if role:
        if role not in VALID_ROLES:
            raise ValidationError(f"Invalid role: {role}")
        query = query.filter_by(role=role)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(Identity.id.asc()).all()
