# Overview: Flask API routes for the provision catalog; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import FineLedgerError, ValidationError
from ..models import ROLE_ADMIN
from ..money import decimal_to_cents, parse_amount_cents
from ..services import provision_service


provisions_bp = Blueprint("provisions", __name__, url_prefix="/api/provisions")


@provisions_bp.get("")
@require_actor()
def list_provisions_route():
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    provisions = provision_service.list_provisions(include_inactive=include_inactive)
    return jsonify({"provisions": [p.to_dict() for p in provisions]}), 200


@provisions_bp.get("/<code>")
@require_actor()
def get_provision_route(code: str):
    try:
        provision = provision_service.lookup(code, include_inactive=True)
        return jsonify({"provision": provision.to_dict()}), 200
    except FineLedgerError as e:
        return jsonify({"error": str(e), "code": e.code}), e.status_code


@provisions_bp.put("/<code>")
@require_actor(ROLE_ADMIN)
def upsert_provision_route(code: str):
    """
    Create or update a provision.

    Request body (amount_cents or amount required):
    {
        "description": "Exceeding the speed limit",
        "amount_cents": 500000,
        "amount": "5000.00"
    }

    Fines already issued keep their amount.
    """
    try:
        data = request.get_json(silent=True) or {}
        if data.get("amount_cents") is not None:
            amount_cents = parse_amount_cents(data.get("amount_cents"))
        elif data.get("amount") is not None:
            amount_cents = decimal_to_cents(data.get("amount"))
        else:
            raise ValidationError("amount_cents or amount required")

        provision = provision_service.upsert(
            code,
            data.get("description"),
            amount_cents,
            admin_id=g.actor.id,
        )
        return jsonify({"provision": provision.to_dict()}), 200
    except FineLedgerError as e:
        return jsonify({"error": str(e), "code": e.code}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to upsert provision")
        return jsonify({"error": "Internal server error"}), 500


@provisions_bp.delete("/<code>")
@require_actor(ROLE_ADMIN)
def deactivate_provision_route(code: str):
    """Soft-deactivate; the provision stays readable for issued fines."""
    try:
        provision = provision_service.deactivate(code, admin_id=g.actor.id)
        return jsonify({"provision": provision.to_dict()}), 200
    except FineLedgerError as e:
        return jsonify({"error": str(e), "code": e.code}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to deactivate provision")
        return jsonify({"error": "Internal server error"}), 500
