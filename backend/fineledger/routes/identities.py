# Overview: Flask API routes for the identity registry; parses input and returns JSON responses.

"""
Identity Registry API Routes

SECURITY:
- Registering, listing and deactivating identities is ADMIN only
- Any active identity may read its own record
- /verify is called by the external authentication layer before it
  forwards a request with the actor header
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import FineLedgerError
from ..models import ROLE_ADMIN
from ..services import identity_service


identities_bp = Blueprint("identities", __name__, url_prefix="/api/identities")


@identities_bp.post("")
@require_actor(ROLE_ADMIN)
def register_identity_route():
    """
    Register an officer, driver, admin or department official.

    Request body:
    {
        "role": "OFFICER",
        "external_id": "BADGE-1042",
        "name": "Sgt. N. Perera",
        "contact": "perera@police.local",
        "password": "Password123!"  (optional)
    }

    Returns:
        201: Identity created
        400: Invalid input or weak password
        409: external_id or contact already registered
    """
    try:
        data = request.get_json(silent=True) or {}
        identity = identity_service.register(data.get("role"), data)
        return jsonify({"identity": identity.to_dict()}), 201
    except FineLedgerError as e:
        return jsonify({"error": str(e), "code": e.code}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to register identity")
        return jsonify({"error": "Internal server error"}), 500


@identities_bp.get("")
@require_actor(ROLE_ADMIN)
def list_identities_route():
    try:
        role = request.args.get("role")
        include_inactive = request.args.get("include_inactive", "false").lower() == "true"
        identities = identity_service.list_identities(role=role, include_inactive=include_inactive)
        return jsonify({"identities": [i.to_dict() for i in identities]}), 200
    except FineLedgerError as e:
        return jsonify({"error": str(e), "code": e.code}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list identities")
        return jsonify({"error": "Internal server error"}), 500


@identities_bp.get("/<int:identity_id>")
@require_actor()
def get_identity_route(identity_id: int):
    if g.actor.role != ROLE_ADMIN and g.actor.id != identity_id:
        return jsonify({"error": "Permission denied"}), 403
    try:
        identity = identity_service.resolve(identity_id)
        return jsonify({"identity": identity.to_dict()}), 200
    except FineLedgerError as e:
        return jsonify({"error": str(e), "code": e.code}), e.status_code


@identities_bp.post("/<int:identity_id>/deactivate")
@require_actor(ROLE_ADMIN)
def deactivate_identity_route(identity_id: int):
    """Soft-deactivate an identity. Idempotent."""
    try:
        identity = identity_service.deactivate(identity_id, actor_id=g.actor.id)
        return jsonify({"identity": identity.to_dict()}), 200
    except FineLedgerError as e:
        return jsonify({"error": str(e), "code": e.code}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to deactivate identity")
        return jsonify({"error": "Internal server error"}), 500


@identities_bp.post("/verify")
def verify_credential_route():
    """
    Check an external_id/password pair.

    Returns:
        200: {"identity": {...}} on success
        401: Credentials rejected
    """
    data = request.get_json(silent=True) or {}
    external_id = data.get("external_id")
    password = data.get("password")
    if not external_id or not password:
        return jsonify({"error": "external_id and password required"}), 400

    identity = identity_service.verify_credential(external_id, password)
    if identity is None:
        return jsonify({"error": "Invalid credentials"}), 401
    return jsonify({"identity": identity.to_dict()}), 200
