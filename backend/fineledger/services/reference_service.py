# Overview: Service-layer operations for fine reference numbers; central atomic sequence.

from __future__ import annotations

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import ReferenceSequence
from ..time_utils import utcnow


def reference_scope(prefix: str | None = None, year: int | None = None) -> str:
    prefix = prefix or current_app.config.get("FINE_REFERENCE_PREFIX", "TF")
    year = year or utcnow().year
    return f"{prefix}-{year}"


def next_reference_number(*, prefix: str | None = None, year: int | None = None) -> str:
    """
    Atomically allocate the next fine reference number.

    Runs inside the caller's transaction. The UPDATE takes the write lock on
    the scope row, so concurrent issuers serialize here and each sees a
    distinct counter value. The first issuer of a year creates the row;
    losing that insert race falls back to the UPDATE path.
    """
    scope = reference_scope(prefix, year)

    stmt = (
        update(ReferenceSequence)
        .where(ReferenceSequence.scope == scope)
        .values(next_number=ReferenceSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        seq = ReferenceSequence(scope=scope, next_number=2)
        db.session.add(seq)
        try:
            db.session.flush()
            return format_reference(scope, 1)
        except IntegrityError:
            db.session.rollback()
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise

    current = (
        db.session.query(ReferenceSequence.next_number)
        .filter_by(scope=scope)
        .scalar()
    )
    return format_reference(scope, current - 1)


def format_reference(scope: str, number: int) -> str:
    return f"{scope}-{number:06d}"
