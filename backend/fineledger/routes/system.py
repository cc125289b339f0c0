# backend/fineledger/routes/system.py
"""
System health endpoint.

Reports database reachability and the PAID/payment consistency of the
ledger, so a deployment check catches a corrupted settlement early.
"""

import time

from flask import Blueprint, current_app, jsonify

from ..extensions import db
from ..models import Fine, FinePayment, Identity, Provision, FINE_STATUS_PAID
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def _elapsed_ms(start_time: float) -> float:
    return round((time.time() - start_time) * 1000, 2)


def check_database_health() -> dict:
    """Row counts for the core tables; any failure marks the database unhealthy."""
    start_time = time.time()
    try:
        details = {
            "identities": db.session.query(Identity).count(),
            "provisions": db.session.query(Provision).count(),
            "fines": db.session.query(Fine).count(),
            "payments": db.session.query(FinePayment).count(),
        }
        return {"status": "healthy", "latency_ms": _elapsed_ms(start_time), "details": details}
    except Exception:
        current_app.logger.exception("Database health check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Database error"}


def check_ledger_consistency() -> dict:
    """
    A fine is PAID exactly when it has a payment row.

    Counts violations in both directions. Any violation is reported as
    degraded rather than unhealthy: the service still answers, but the
    ledger needs attention.
    """
    start_time = time.time()
    try:
        paid_without_payment = (
            db.session.query(Fine)
            .outerjoin(FinePayment, FinePayment.fine_id == Fine.id)
            .filter(Fine.status == FINE_STATUS_PAID, FinePayment.id.is_(None))
            .count()
        )
        payment_without_paid = (
            db.session.query(FinePayment)
            .join(Fine, FinePayment.fine_id == Fine.id)
            .filter(Fine.status != FINE_STATUS_PAID)
            .count()
        )
    except Exception:
        current_app.logger.exception("Ledger consistency check failed")
        return {"status": "unhealthy", "latency_ms": _elapsed_ms(start_time), "error": "Database error"}

    violations = paid_without_payment + payment_without_paid
    if violations:
        current_app.logger.error(
            "Ledger inconsistency: %d PAID fines without payment, %d payments on unpaid fines",
            paid_without_payment, payment_without_paid,
        )
    return {
        "status": "degraded" if violations else "healthy",
        "latency_ms": _elapsed_ms(start_time),
        "details": {
            "paid_without_payment": paid_without_payment,
            "payment_without_paid": payment_without_paid,
        },
    }


@system_bp.get("/api/health")
def health():
    database = check_database_health()
    ledger = check_ledger_consistency() if database["status"] == "healthy" else None

    if database["status"] != "healthy":
        status = "unhealthy"
    else:
        status = ledger["status"]

    return jsonify({
        "status": status,
        "checked_at": to_utc_z(utcnow()),
        "database": database,
        "ledger": ledger,
    }), 200 if status != "unhealthy" else 503
