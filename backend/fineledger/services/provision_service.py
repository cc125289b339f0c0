# Overview: Service-layer operations for the provision catalog.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConcurrentModificationError, UnknownProvisionError, ValidationError
from ..extensions import db
from ..models import Provision, ROLE_ADMIN
from ..time_utils import utcnow
from .concurrency import backoff, retry_settings, run_with_retry
from .identity_service import require_actor


def lookup(code: str, *, include_inactive: bool = False) -> Provision:
    """
    Resolve a provision by code.

    Deactivated provisions are hidden unless include_inactive is set, so
    they cannot be used for new fines but remain visible for history.
    """
    code = (code or "").strip().upper()
    provision = db.session.query(Provision).filter_by(code=code).first()
    if not provision or (not provision.is_active and not include_inactive):
        raise UnknownProvisionError(f"Unknown provision '{code}'")
    return provision


def upsert(code: str, description: str, amount_cents: int, admin_id: int) -> Provision:
    """
    Create or update a provision. Admin only.

    Issued fines carry their own amount_cents, so changing the amount here
    affects only fines issued afterwards. Upserting a deactivated code
    reactivates it.
    """
    code = (code or "").strip().upper()
    description = (description or "").strip()
    if not code:
        raise ValidationError("code is required")
    if not description:
        raise ValidationError("description is required")
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise ValidationError("amount_cents must be a positive integer")

    def _op() -> Provision:
        require_actor(admin_id, ROLE_ADMIN)

        provision = db.session.query(Provision).filter_by(code=code).first()
        if provision is None:
            provision = Provision(code=code, description=description, amount_cents=amount_cents)
            db.session.add(provision)
        else:
            provision.description = description
            provision.amount_cents = amount_cents
            provision.is_active = True
        provision.updated_at = utcnow()
        provision.updated_by_id = admin_id

        db.session.commit()
        return provision

    attempts, backoff_base = retry_settings()
    for attempt in range(attempts):
        try:
            provision = run_with_retry(_op)
        except IntegrityError:
            # A concurrent upsert inserted the code first; the next pass updates it.
            current_app.logger.warning(
                "Provision insert race on %s (attempt %d/%d)", code, attempt + 1, attempts
            )
            backoff(attempt, backoff_base)
            continue

        current_app.logger.info("Provision %s set to %d by admin %s", code, amount_cents, admin_id)
        return provision

    raise ConcurrentModificationError(f"Could not save provision {code}")


def deactivate(code: str, admin_id: int) -> Provision:
    def _op() -> Provision:
        require_actor(admin_id, ROLE_ADMIN)
        provision = lookup(code, include_inactive=True)
        if provision.is_active:
            provision.is_active = False
            provision.updated_at = utcnow()
            provision.updated_by_id = admin_id
        db.session.commit()
        return provision

    return run_with_retry(_op)


def list_provisions(include_inactive: bool = False) -> list[Provision]:
    query = db.session.query(Provision)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(Provision.code.asc()).all()
