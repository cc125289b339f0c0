# Overview: Service-layer operations for the payment gateway; capability interface and settlement flow.

"""
Payment Gateway

WHY: Card and wallet processing live outside this system. The ledger only
needs one capability from a processor: charge an amount against a fine
reference and hand back a confirmation id.

FLOW:
    settle_fine -> gateway.initiate_payment -> fine_service.record_payment

The confirmation id is threaded into record_payment, which is idempotent
on it, so a settlement retried after a timeout never produces a second
payment row.
"""

from __future__ import annotations

import hashlib

from flask import current_app

from ..errors import GatewayError, InvalidActorError
from ..models import FinePayment, FINE_STATUS_PAID, ROLE_DRIVER
from . import fine_service
from .identity_service import require_actor


class PaymentGateway:
    """Capability interface for an external payment processor."""

    def initiate_payment(self, reference_number: str, amount_cents: int) -> str:
        """
        Charge amount_cents for the fine and return a confirmation id.

        Raises GatewayError when the processor declines or is unreachable.
        """
        raise NotImplementedError


class SandboxGateway(PaymentGateway):
    """
    Deterministic in-process gateway for development and tests.

    Confirmation ids are derived from (reference, amount), so charging the
    same fine twice yields the same id, the way a real processor behaves
    with an idempotency key.
    """

    def __init__(self, decline_references: set[str] | None = None):
        self.decline_references = set(decline_references or ())
        self.charges: list[tuple[str, int]] = []

    def initiate_payment(self, reference_number: str, amount_cents: int) -> str:
        if reference_number in self.decline_references:
            raise GatewayError(f"Payment for {reference_number} declined")
        self.charges.append((reference_number, amount_cents))
        digest = hashlib.sha1(f"{reference_number}:{amount_cents}".encode("utf-8")).hexdigest()
        return f"SBX-{digest[:16].upper()}"


def get_gateway() -> PaymentGateway:
    return current_app.extensions["payment_gateway"]


def settle_fine(
    reference_number: str,
    driver_id: int,
    method: str,
    gateway: PaymentGateway | None = None,
) -> FinePayment:
    """
    Pay a fine on behalf of its driver.

    Checks the fine is payable before charging, so a DISPUTED or VOID fine
    never reaches the processor. A fine that is already PAID returns its
    payment without charging again.

    Raises:
        InvalidActorError: driver_id is not the fine's driver
        AlreadySettledError / AlreadyDisputedError: fine not payable
        GatewayError: processor declined
    """
    gateway = gateway or get_gateway()

    driver = require_actor(driver_id, ROLE_DRIVER)
    fine = fine_service.get_fine(reference_number)
    if fine.driver_id != driver.id:
        raise InvalidActorError(f"Identity {driver_id} is not the driver on fine {reference_number}")

    if fine.status == FINE_STATUS_PAID:
        payment = fine_service.get_payment(reference_number)
        if payment is not None:
            return payment

    fine_service.check_transition(fine, FINE_STATUS_PAID)
    amount_cents = fine.amount_cents

    try:
        confirmation_id = gateway.initiate_payment(reference_number, amount_cents)
    except GatewayError:
        current_app.logger.warning("Gateway declined payment for fine %s", reference_number)
        raise

    return fine_service.record_payment(
        reference_number,
        amount_cents,
        method,
        confirmation_id,
        recorded_by_id=driver.id,
    )
