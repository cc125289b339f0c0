# Overview: Flask API routes for fine lifecycle operations; parses input and returns JSON responses.

# backend/fineledger/routes/fines.py
"""
Fine Lifecycle API Routes

DESIGN:
- Officers issue fines
- Drivers view, dispute and pay their own fines
- Admins resolve disputes and void fines
- The payment gateway reports settlements through /payments

SECURITY:
- Actor identity and role come from the actor header (see decorators)
- Gateway callbacks authenticate with the shared gateway token
- Every transition is written to the fine_events audit trail
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor, require_gateway_token
from ..errors import FineLedgerError, ValidationError
from ..models import (
    ROLE_ADMIN,
    ROLE_DEPARTMENT_OFFICIAL,
    ROLE_DRIVER,
    ROLE_OFFICER,
)
from ..money import parse_amount_cents
from ..services import fine_service, gateway_service


fines_bp = Blueprint("fines", __name__, url_prefix="/api/fines")


def _can_view(fine) -> bool:
    actor = g.actor
    if actor.role in (ROLE_ADMIN, ROLE_DEPARTMENT_OFFICIAL):
        return True
    if actor.role == ROLE_DRIVER:
        return fine.driver_id == actor.id
    if actor.role == ROLE_OFFICER:
        return fine.officer_id == actor.id
    return False


# =============================================================================
# ISSUANCE
# =============================================================================

@fines_bp.post("")
@require_actor(ROLE_OFFICER)
def issue_fine_route():
    """
    Issue a fine.

    Request body:
    {
        "driver_id": 12,
        "provision_code": "SPEEDING",
        "vehicle_number": "WP CAB-1234",
        "location": "Galle Road, Colombo 03",
        "court": "Colombo Magistrate Court",  (optional)
        "amount_cents": 500000  (optional override)
    }

    Returns:
        201: Fine created in PENDING
        400: Invalid input
        403: Actor or driver invalid
        404: Unknown provision
    """
    try:
        data = request.get_json(silent=True) or {}

        driver_id = data.get("driver_id")
        provision_code = data.get("provision_code")
        if not all([driver_id, provision_code, data.get("vehicle_number"), data.get("location")]):
            raise ValidationError("driver_id, provision_code, vehicle_number and location required")
        if isinstance(driver_id, bool) or not isinstance(driver_id, int):
            raise ValidationError("driver_id must be an integer")

        amount_cents = data.get("amount_cents")
        if amount_cents is not None:
            amount_cents = parse_amount_cents(amount_cents)

        fine = fine_service.issue(
            officer_id=g.actor.id,
            driver_id=driver_id,
            provision_code=provision_code,
            vehicle_number=data.get("vehicle_number"),
            location=data.get("location"),
            court=data.get("court"),
            amount_cents=amount_cents,
        )
        return jsonify({"fine": fine.to_dict()}), 201

    except FineLedgerError as e:
        return jsonify({"error": str(e), "code": e.code}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to issue fine")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# QUERIES
# =============================================================================

@fines_bp.get("/<reference_number>")
@require_actor()
def get_fine_route(reference_number: str):
    try:
        fine = fine_service.get_fine(reference_number)
        if not _can_view(fine):
            return jsonify({"error": "Permission denied"}), 403
        payment = fine_service.get_payment(reference_number)
        return jsonify({
            "fine": fine.to_dict(),
            "payment": payment.to_dict() if payment else None,
        }), 200
    except FineLedgerError as e:
        return jsonify({"error": str(e), "code": e.code}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load fine %s", reference_number)
        return jsonify({"error": "Internal server error"}), 500


@fines_bp.get("/<reference_number>/events")
@require_actor(ROLE_ADMIN, ROLE_DEPARTMENT_OFFICIAL)
def get_fine_events_route(reference_number: str):
    try:
        events = fine_service.get_fine_events(reference_number)
        return jsonify({"events": [e.to_dict() for e in events]}), 200
    except FineLedgerError as e:
        return jsonify({"error": str(e), "code": e.code}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load events for fine %s", reference_number)
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# DISPUTES AND VOIDS
# =============================================================================

@fines_bp.post("/<reference_number>/dispute")
@require_actor(ROLE_DRIVER, ROLE_ADMIN)
def dispute_fine_route(reference_number: str):
    """Request body: {"reason": "..."} (optional)"""
    try:
        data = request.get_json(silent=True) or {}
        fine = fine_service.dispute(reference_number, g.actor.id, reason=data.get("reason"))
        return jsonify({"fine": fine.to_dict()}), 200
    except FineLedgerError as e:
        return jsonify({"error": str(e), "code": e.code}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to dispute fine")
        return jsonify({"error": "Internal server error"}), 500


@fines_bp.post("/<reference_number>/resolve")
@require_actor(ROLE_ADMIN)
def resolve_dispute_route(reference_number: str):
    """Request body: {"outcome": "REOPEN" | "VOID", "reason": "..."}"""
    try:
        data = request.get_json(silent=True) or {}
        fine = fine_service.resolve_dispute(
            reference_number,
            g.actor.id,
            data.get("outcome"),
            reason=data.get("reason"),
        )
        return jsonify({"fine": fine.to_dict()}), 200
    except FineLedgerError as e:
        return jsonify({"error": str(e), "code": e.code}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to resolve dispute")
        return jsonify({"error": "Internal server error"}), 500


@fines_bp.post("/<reference_number>/void")
@require_actor(ROLE_ADMIN)
def void_fine_route(reference_number: str):
    """Request body: {"reason": "duplicate entry"} (required)"""
    try:
        data = request.get_json(silent=True) or {}
        fine = fine_service.void(reference_number, g.actor.id, data.get("reason"))
        return jsonify({"fine": fine.to_dict()}), 200
    except FineLedgerError as e:
        return jsonify({"error": str(e), "code": e.code}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to void fine")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# PAYMENT
# =============================================================================

@fines_bp.post("/<reference_number>/pay")
@require_actor(ROLE_DRIVER)
def pay_fine_route(reference_number: str):
    """
    Driver pays a fine through the configured gateway.

    Request body: {"method": "CARD"}

    Returns:
        201: Payment recorded, fine PAID
        409: Fine not payable (settled or disputed)
        502: Gateway declined
    """
    try:
        data = request.get_json(silent=True) or {}
        payment = gateway_service.settle_fine(
            reference_number,
            g.actor.id,
            data.get("method") or "CARD",
        )
        fine = fine_service.get_fine(reference_number)
        return jsonify({"payment": payment.to_dict(), "fine": fine.to_dict()}), 201
    except FineLedgerError as e:
        return jsonify({"error": str(e), "code": e.code}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to pay fine")
        return jsonify({"error": "Internal server error"}), 500


@fines_bp.post("/<reference_number>/payments")
@require_gateway_token
def record_payment_route(reference_number: str):
    """
    Gateway callback reporting a successful charge.

    Request body:
    {
        "amount_cents": 500000,
        "method": "CARD",
        "confirmation_id": "abc123"
    }

    Safe to deliver more than once: a repeated confirmation_id returns the
    payment already recorded.
    """
    try:
        data = request.get_json(silent=True) or {}
        if data.get("amount_cents") is None or not data.get("confirmation_id"):
            raise ValidationError("amount_cents and confirmation_id required")

        payment = fine_service.record_payment(
            reference_number,
            parse_amount_cents(data.get("amount_cents")),
            data.get("method") or "ONLINE",
            data.get("confirmation_id"),
        )
        return jsonify({"payment": payment.to_dict()}), 201
    except FineLedgerError as e:
        return jsonify({"error": str(e), "code": e.code}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500
