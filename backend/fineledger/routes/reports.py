# Overview: Flask API routes for reporting; read-only views over the fine ledger.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..errors import FineLedgerError
from ..models import ROLE_ADMIN, ROLE_DEPARTMENT_OFFICIAL, ROLE_DRIVER, ROLE_OFFICER
from ..services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")

_OVERSIGHT_ROLES = (ROLE_ADMIN, ROLE_DEPARTMENT_OFFICIAL)


@reports_bp.get("/drivers/<int:driver_id>")
@require_actor(ROLE_DRIVER, *_OVERSIGHT_ROLES)
def driver_report_route(driver_id: int):
    """A driver's fines (newest first) and balance. Drivers see only their own."""
    if g.actor.role == ROLE_DRIVER and g.actor.id != driver_id:
        return jsonify({"error": "Permission denied"}), 403
    try:
        fines = reporting_service.fines_by_driver(driver_id, status=request.args.get("status"))
        balance = reporting_service.driver_balance(driver_id)
        return jsonify({"fines": [f.to_dict() for f in fines], "balance": balance}), 200
    except FineLedgerError as e:
        return jsonify({"error": str(e), "code": e.code}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build driver report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/officers/<int:officer_id>")
@require_actor(ROLE_OFFICER, *_OVERSIGHT_ROLES)
def officer_report_route(officer_id: int):
    """Fines issued by an officer. Officers see only their own."""
    if g.actor.role == ROLE_OFFICER and g.actor.id != officer_id:
        return jsonify({"error": "Permission denied"}), 403
    try:
        fines = reporting_service.fines_by_officer(officer_id, status=request.args.get("status"))
        return jsonify({"fines": [f.to_dict() for f in fines]}), 200
    except FineLedgerError as e:
        return jsonify({"error": str(e), "code": e.code}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build officer report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/status")
@require_actor(*_OVERSIGHT_ROLES)
def status_report_route():
    try:
        return jsonify({"by_status": reporting_service.fines_by_status()}), 200
    except Exception:
        current_app.logger.exception("Failed to build status report")
        return jsonify({"error": "Internal server error"}), 500


@reports_bp.get("/timeline")
@require_actor(*_OVERSIGHT_ROLES)
def timeline_report_route():
    """
    Query params:
        start, end: ISO-8601 (optional)
        group_by: day | week | month (default day)
    """
    try:
        report = reporting_service.fines_timeline(
            start=request.args.get("start"),
            end=request.args.get("end"),
            group_by=request.args.get("group_by", "day"),
        )
        return jsonify(report), 200
    except FineLedgerError as e:
        return jsonify({"error": str(e), "code": e.code}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to build timeline report")
        return jsonify({"error": "Internal server error"}), 500
