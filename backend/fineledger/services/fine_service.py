# Overview: Service-layer operations for the fine ledger; lifecycle state machine and payment recording.

"""
Fine Ledger

================================================================================
PURPOSE: Own the fine lifecycle from issuance to settlement or cancellation
================================================================================

STATE MACHINE:
    PENDING  -> PAID       payment recorded (terminal)
    PENDING  -> DISPUTED   driver or admin contests
    DISPUTED -> PENDING    admin reopens after review
    PENDING  -> VOID       admin cancels (terminal)
    DISPUTED -> VOID       admin cancels or upholds dispute (terminal)

RULES (NON-NEGOTIABLE):
1. Only an active OFFICER issues fines, only against an active DRIVER.
2. amount_cents is copied from the provision at issue time and never changes.
3. Payment is all-or-nothing: amount must equal the fine amount.
4. The payment row and the PAID status commit in one transaction.
5. A confirmation id settles at most one fine; replaying it returns the
   existing payment.
6. Every transition appends a FineEvent in the same transaction.
7. Rejected transitions leave the fine untouched.

CONCURRENCY:
- Fines are loaded FOR UPDATE and carry a version_id optimistic lock.
- Each operation is one run_with_retry transaction; a lost race is retried
  and then surfaced as ConcurrentModificationError.
- Reference numbers come from reference_service; a unique-constraint hit on
  reference_number is retried and then surfaced as ReferenceCollisionError.
================================================================================
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import (
    AlreadyDisputedError,
    AlreadySettledError,
    AmountMismatchError,
    ConcurrentModificationError,
    ConfirmationConflictError,
    InvalidActorError,
    InvalidTransitionError,
    NotFoundError,
    ReferenceCollisionError,
    ValidationError,
)
from ..extensions import db
from ..models import (
    Fine,
    FineEvent,
    FinePayment,
    FINE_STATUS_PENDING,
    FINE_STATUS_PAID,
    FINE_STATUS_DISPUTED,
    FINE_STATUS_VOID,
    ROLE_ADMIN,
    ROLE_DRIVER,
    ROLE_OFFICER,
)
from ..time_utils import utcnow
from . import provision_service, reference_service
from .audit_service import (
    append_fine_event,
    list_fine_events,
    EVENT_ISSUED,
    EVENT_PAID,
    EVENT_DISPUTED,
    EVENT_REOPENED,
    EVENT_VOIDED,
)
from .concurrency import backoff, lock_for_update, retry_settings, run_with_retry
from .identity_service import require_actor


ALLOWED_TRANSITIONS = {
    (FINE_STATUS_PENDING, FINE_STATUS_PAID),
    (FINE_STATUS_PENDING, FINE_STATUS_DISPUTED),
    (FINE_STATUS_DISPUTED, FINE_STATUS_PENDING),
    (FINE_STATUS_PENDING, FINE_STATUS_VOID),
    (FINE_STATUS_DISPUTED, FINE_STATUS_VOID),
}
TERMINAL_STATUSES = {FINE_STATUS_PAID, FINE_STATUS_VOID}


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CARD = "CARD"
METHOD_CASH = "CASH"
METHOD_BANK_TRANSFER = "BANK_TRANSFER"
METHOD_MOBILE_WALLET = "MOBILE_WALLET"
METHOD_ONLINE = "ONLINE"

VALID_PAYMENT_METHODS = [
    METHOD_CARD,
    METHOD_CASH,
    METHOD_BANK_TRANSFER,
    METHOD_MOBILE_WALLET,
    METHOD_ONLINE,
]

OUTCOME_REOPEN = "REOPEN"
OUTCOME_VOID = "VOID"
VALID_DISPUTE_OUTCOMES = (OUTCOME_REOPEN, OUTCOME_VOID)


# =============================================================================
# TRANSITION TABLE
# =============================================================================

def can_transition(from_status: str, to_status: str) -> bool:
    return (from_status, to_status) in ALLOWED_TRANSITIONS


def check_transition(fine: Fine, to_status: str) -> None:
    """
    Raise the business-rule error for an illegal transition.

    - Terminal source (PAID, VOID): AlreadySettledError
    - DISPUTED source moving to PAID or DISPUTED: AlreadyDisputedError
    - Anything else outside the table: InvalidTransitionError
    """
    if can_transition(fine.status, to_status):
        return
    if fine.status in TERMINAL_STATUSES:
        raise AlreadySettledError(f"Fine {fine.reference_number} is already {fine.status}")
    if fine.status == FINE_STATUS_DISPUTED and to_status in (FINE_STATUS_PAID, FINE_STATUS_DISPUTED):
        raise AlreadyDisputedError(
            f"Fine {fine.reference_number} is under dispute; resolve the dispute first"
        )
    raise InvalidTransitionError(
        f"Cannot move fine {fine.reference_number} from {fine.status} to {to_status}"
    )


def _apply_transition(
    fine: Fine,
    to_status: str,
    *,
    event_type: str,
    actor_id: int | None,
    reason: str | None = None,
) -> None:
    check_transition(fine, to_status)
    from_status = fine.status
    fine.status = to_status
    append_fine_event(
        fine=fine,
        event_type=event_type,
        from_status=from_status,
        to_status=to_status,
        actor_id=actor_id,
        reason=reason,
    )


def _load_fine_for_update(reference_number: str) -> Fine:
    fine = lock_for_update(
        db.session.query(Fine).filter_by(reference_number=reference_number)
    ).first()
    if not fine:
        raise NotFoundError(f"Fine {reference_number} not found")
    return fine


def _is_reference_conflict(exc: IntegrityError) -> bool:
    return "reference_number" in str(exc.orig)


# =============================================================================
# ISSUANCE
# =============================================================================

def issue(
    officer_id: int,
    driver_id: int,
    provision_code: str,
    vehicle_number: str,
    location: str,
    court: str | None = None,
    amount_cents: int | None = None,
) -> Fine:
    """
    Issue a fine.

    Args:
        officer_id: Issuing officer (must be an active OFFICER)
        driver_id: Driver being fined (must be an active DRIVER)
        provision_code: Catalog code; its amount is copied onto the fine
        vehicle_number: Plate number, normalized to upper case
        location: Where the violation happened
        court: Court the fine is answerable to (optional)
        amount_cents: Officer override of the provision amount (optional)

    Returns:
        The PENDING fine

    Raises:
        InvalidActorError / InactiveIdentityError: officer or driver invalid
        UnknownProvisionError: provision missing or deactivated
        ValidationError: blank vehicle/location or non-positive override
        ReferenceCollisionError: reference allocation kept colliding
    """
    vehicle_number = (vehicle_number or "").strip().upper()
    location = (location or "").strip()
    court = (court or "").strip() or None
    if not vehicle_number:
        raise ValidationError("vehicle_number is required")
    if not location:
        raise ValidationError("location is required")
    if amount_cents is not None and (
        isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0
    ):
        raise ValidationError("amount_cents override must be a positive integer")

    def _op() -> Fine:
        require_actor(officer_id, ROLE_OFFICER)
        require_actor(driver_id, ROLE_DRIVER)
        provision = provision_service.lookup(provision_code)
        provision_id = provision.id
        code = provision.code
        amount = amount_cents if amount_cents is not None else provision.amount_cents

        reference_number = reference_service.next_reference_number()
        issued_at = utcnow()

        fine = Fine(
            reference_number=reference_number,
            officer_id=officer_id,
            driver_id=driver_id,
            provision_id=provision_id,
            provision_code=code,
            vehicle_number=vehicle_number,
            location=location,
            court=court,
            issued_at=issued_at,
            amount_cents=amount,
            status=FINE_STATUS_PENDING,
        )
        db.session.add(fine)
        db.session.flush()

        append_fine_event(
            fine=fine,
            event_type=EVENT_ISSUED,
            from_status=None,
            to_status=FINE_STATUS_PENDING,
            actor_id=officer_id,
            occurred_at=issued_at,
        )

        db.session.commit()
        return fine

    attempts, backoff_base = retry_settings()
    for attempt in range(attempts):
        try:
            fine = run_with_retry(_op)
        except IntegrityError as exc:
            if not _is_reference_conflict(exc):
                raise
            current_app.logger.warning(
                "Reference collision on issue (attempt %d/%d)", attempt + 1, attempts
            )
            backoff(attempt, backoff_base)
            continue

        current_app.logger.info(
            "Issued fine %s: officer=%s driver=%s provision=%s amount_cents=%d",
            fine.reference_number, officer_id, driver_id, fine.provision_code, fine.amount_cents,
        )
        return fine

    raise ReferenceCollisionError(
        f"Could not allocate a unique reference number after {attempts} attempts"
    )


# =============================================================================
# PAYMENT
# =============================================================================

def record_payment(
    reference_number: str,
    amount_cents: int,
    method: str,
    confirmation_id: str,
    recorded_by_id: int | None = None,
) -> FinePayment:
    """
    Record full settlement of a PENDING fine.

    WHY: Called after the gateway reports success. The gateway may report
    the same success twice, so the confirmation id is the idempotency key:
    replaying it returns the payment already on file.

    Args:
        reference_number: Fine being paid
        amount_cents: Must equal the fine amount (no partial payments)
        method: One of VALID_PAYMENT_METHODS
        confirmation_id: Gateway confirmation, unique across all payments
        recorded_by_id: The paying driver or an admin; None for gateway callbacks

    Raises:
        AlreadySettledError: Fine is PAID (with another confirmation) or VOID
        AlreadyDisputedError: Fine is DISPUTED
        AmountMismatchError: amount_cents differs from the fine amount
        ConfirmationConflictError: confirmation id already paid another fine
    """
    method = (method or "").strip().upper()
    confirmation_id = (confirmation_id or "").strip()
    if method not in VALID_PAYMENT_METHODS:
        raise ValidationError(f"Invalid payment method: {method}. Must be one of {VALID_PAYMENT_METHODS}")
    if not confirmation_id:
        raise ValidationError("confirmation_id is required")
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int):
        raise ValidationError("amount_cents must be an integer")

    def _op() -> FinePayment:
        actor = require_actor(recorded_by_id, ROLE_DRIVER, ROLE_ADMIN) if recorded_by_id is not None else None

        fine = _load_fine_for_update(reference_number)

        if actor is not None and actor.role == ROLE_DRIVER and fine.driver_id != actor.id:
            raise InvalidActorError(f"Identity {actor.id} is not the driver on fine {reference_number}")

        existing = db.session.query(FinePayment).filter_by(confirmation_id=confirmation_id).first()
        if existing:
            if existing.fine_id != fine.id:
                raise ConfirmationConflictError(
                    f"Confirmation {confirmation_id} already settled another fine"
                )
            db.session.commit()
            return existing

        check_transition(fine, FINE_STATUS_PAID)

        if amount_cents != fine.amount_cents:
            raise AmountMismatchError(
                f"Payment of {amount_cents} does not match fine amount {fine.amount_cents}"
            )

        payment = FinePayment(
            fine_id=fine.id,
            amount_cents=amount_cents,
            method=method,
            confirmation_id=confirmation_id,
            paid_at=utcnow(),
            recorded_by_id=recorded_by_id,
        )
        db.session.add(payment)

        _apply_transition(
            fine,
            FINE_STATUS_PAID,
            event_type=EVENT_PAID,
            actor_id=recorded_by_id,
            reason=f"{method} confirmation {confirmation_id}",
        )

        db.session.commit()
        return payment

    attempts, backoff_base = retry_settings()
    for attempt in range(attempts):
        try:
            payment = run_with_retry(_op)
        except IntegrityError:
            # Another request inserted a payment for this fine or confirmation
            # first; the next pass sees it and answers accordingly.
            current_app.logger.warning(
                "Payment insert race on %s (attempt %d/%d)", reference_number, attempt + 1, attempts
            )
            backoff(attempt, backoff_base)
            continue

        current_app.logger.info(
            "Payment %s recorded for fine %s (%s)", payment.confirmation_id, reference_number, payment.method
        )
        return payment

    raise ConcurrentModificationError(f"Could not record payment for fine {reference_number}")


# =============================================================================
# DISPUTES AND VOIDS
# =============================================================================

def dispute(reference_number: str, actor_id: int, reason: str | None = None) -> Fine:
    """
    Contest a PENDING fine (PENDING -> DISPUTED).

    The actor must be the fine's own driver or an admin.
    """
    reason = (reason or "").strip() or None

    def _op() -> Fine:
        actor = require_actor(actor_id, ROLE_DRIVER, ROLE_ADMIN)
        fine = _load_fine_for_update(reference_number)

        if actor.role == ROLE_DRIVER and fine.driver_id != actor.id:
            raise InvalidActorError(f"Identity {actor_id} is not the driver on fine {reference_number}")

        _apply_transition(
            fine,
            FINE_STATUS_DISPUTED,
            event_type=EVENT_DISPUTED,
            actor_id=actor_id,
            reason=reason,
        )
        fine.dispute_reason = reason
        fine.disputed_at = utcnow()
        fine.disputed_by_id = actor_id

        db.session.commit()
        return fine

    fine = run_with_retry(_op)
    current_app.logger.info("Fine %s disputed by %s", reference_number, actor_id)
    return fine


def resolve_dispute(
    reference_number: str,
    admin_id: int,
    outcome: str,
    reason: str | None = None,
) -> Fine:
    """
    Close a dispute. REOPEN returns the fine to PENDING; VOID cancels it.
    """
    outcome = (outcome or "").strip().upper()
    reason = (reason or "").strip() or None
    if outcome not in VALID_DISPUTE_OUTCOMES:
        raise ValidationError(f"Invalid outcome: {outcome}. Must be one of {list(VALID_DISPUTE_OUTCOMES)}")

    def _op() -> Fine:
        require_actor(admin_id, ROLE_ADMIN)
        fine = _load_fine_for_update(reference_number)

        if fine.status != FINE_STATUS_DISPUTED:
            if fine.status in TERMINAL_STATUSES:
                raise AlreadySettledError(f"Fine {reference_number} is already {fine.status}")
            raise InvalidTransitionError(f"Fine {reference_number} is not under dispute")

        if outcome == OUTCOME_REOPEN:
            _apply_transition(
                fine,
                FINE_STATUS_PENDING,
                event_type=EVENT_REOPENED,
                actor_id=admin_id,
                reason=reason,
            )
        else:
            _apply_transition(
                fine,
                FINE_STATUS_VOID,
                event_type=EVENT_VOIDED,
                actor_id=admin_id,
                reason=reason or "Dispute upheld",
            )
            fine.void_reason = reason or "Dispute upheld"
            fine.voided_at = utcnow()
            fine.voided_by_id = admin_id

        db.session.commit()
        return fine

    fine = run_with_retry(_op)
    current_app.logger.info("Dispute on fine %s resolved by %s: %s", reference_number, admin_id, outcome)
    return fine


def void(reference_number: str, admin_id: int, reason: str) -> Fine:
    """
    Cancel a PENDING or DISPUTED fine. VOID is terminal.

    WHY: Fines are never deleted. Voiding keeps the record and the reason
    for audit.
    """
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A void reason is required")

    def _op() -> Fine:
        require_actor(admin_id, ROLE_ADMIN)
        fine = _load_fine_for_update(reference_number)

        _apply_transition(
            fine,
            FINE_STATUS_VOID,
            event_type=EVENT_VOIDED,
            actor_id=admin_id,
            reason=reason,
        )
        fine.void_reason = reason
        fine.voided_at = utcnow()
        fine.voided_by_id = admin_id

        db.session.commit()
        return fine

    fine = run_with_retry(_op)
    current_app.logger.info("Fine %s voided by %s: %s", reference_number, admin_id, reason)
    return fine


# =============================================================================
# LOOKUPS
# =============================================================================

def get_fine(reference_number: str) -> Fine:
    fine = db.session.query(Fine).filter_by(reference_number=reference_number).first()
    if not fine:
        raise NotFoundError(f"Fine {reference_number} not found")
    return fine


def get_payment(reference_number: str) -> FinePayment | None:
    fine = get_fine(reference_number)
    return db.session.query(FinePayment).filter_by(fine_id=fine.id).first()


def get_fine_events(reference_number: str) -> list[FineEvent]:
    fine = get_fine(reference_number)
    return list_fine_events(fine.id)
