# Overview: Service-layer operations for reporting; read-only projections over the fine ledger.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import (
    Fine,
    FinePayment,
    FINE_STATUS_PENDING,
    FINE_STATUS_DISPUTED,
    FINE_STATUS_PAID,
    VALID_FINE_STATUSES,
)
from ..time_utils import PERIOD_FORMATS, parse_iso_datetime, to_utc_z
from .identity_service import resolve

"""
Reporting reads without locks and never writes. Results may trail the
ledger by in-flight transactions; dashboards tolerate that.
"""


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end, end_of_day=True) if end else None
    except ValueError:
        raise ValidationError("start and end must be ISO-8601 datetimes")
    return start_dt, end_dt


def _validate_status(status: str | None) -> str | None:
    if status is None:
        return None
    status = status.strip().upper()
    if status not in VALID_FINE_STATUSES:
        raise ValidationError(f"Invalid status '{status}'. Must be one of: {', '.join(VALID_FINE_STATUSES)}")
    return status


def fines_by_driver(driver_id: int, status: str | None = None) -> list[Fine]:
    resolve(driver_id)
    query = db.session.query(Fine).filter(Fine.driver_id == driver_id)
    status = _validate_status(status)
    if status:
        query = query.filter(Fine.status == status)
    return query.order_by(Fine.issued_at.desc(), Fine.id.desc()).all()


def fines_by_officer(officer_id: int, status: str | None = None) -> list[Fine]:
    resolve(officer_id)
    query = db.session.query(Fine).filter(Fine.officer_id == officer_id)
    status = _validate_status(status)
    if status:
        query = query.filter(Fine.status == status)
    return query.order_by(Fine.issued_at.desc(), Fine.id.desc()).all()


def fines_by_status() -> dict:
    """Count and total per status; every status appears, zero-filled."""
    rows = db.session.query(
        Fine.status,
        func.count(Fine.id).label("fine_count"),
        func.coalesce(func.sum(Fine.amount_cents), 0).label("total_cents"),
    ).group_by(Fine.status).all()

    by_status = {status: {"count": 0, "total_cents": 0} for status in VALID_FINE_STATUSES}
    for row in rows:
        by_status[row.status] = {
            "count": int(row.fine_count or 0),
            "total_cents": int(row.total_cents or 0),
        }
    return by_status


def fines_timeline(
    *,
    start: str | None = None,
    end: str | None = None,
    group_by: str = "day",
) -> dict:
    """
    Time-bucketed issuance and collection totals.

    Issued figures bucket by Fine.issued_at; collected figures bucket by
    FinePayment.paid_at, so a fine issued in March and paid in April counts
    once in each month.
    """
    start_dt, end_dt = _parse_range(start, end)

    if group_by not in PERIOD_FORMATS:
        raise ValidationError("group_by must be day, week, or month")
    fmt = PERIOD_FORMATS[group_by]

    issued_period = func.strftime(fmt, Fine.issued_at)
    issued_query = db.session.query(
        issued_period.label("period"),
        func.count(Fine.id).label("issued_count"),
        func.coalesce(func.sum(Fine.amount_cents), 0).label("issued_cents"),
    )
    if start_dt:
        issued_query = issued_query.filter(Fine.issued_at >= start_dt)
    if end_dt:
        issued_query = issued_query.filter(Fine.issued_at <= end_dt)

    paid_period = func.strftime(fmt, FinePayment.paid_at)
    paid_query = db.session.query(
        paid_period.label("period"),
        func.count(FinePayment.id).label("paid_count"),
        func.coalesce(func.sum(FinePayment.amount_cents), 0).label("paid_cents"),
    )
    if start_dt:
        paid_query = paid_query.filter(FinePayment.paid_at >= start_dt)
    if end_dt:
        paid_query = paid_query.filter(FinePayment.paid_at <= end_dt)

    periods: dict[str, dict] = {}

    def _row(period: str) -> dict:
        return periods.setdefault(period, {
            "period": period,
            "issued_count": 0,
            "issued_cents": 0,
            "paid_count": 0,
            "paid_cents": 0,
        })

    for row in issued_query.group_by("period").all():
        entry = _row(row.period)
        entry["issued_count"] = int(row.issued_count or 0)
        entry["issued_cents"] = int(row.issued_cents or 0)

    for row in paid_query.group_by("period").all():
        entry = _row(row.period)
        entry["paid_count"] = int(row.paid_count or 0)
        entry["paid_cents"] = int(row.paid_cents or 0)

    return {
        "group_by": group_by,
        "start": to_utc_z(start_dt) if start_dt else None,
        "end": to_utc_z(end_dt) if end_dt else None,
        "rows": [periods[p] for p in sorted(periods)],
    }


def driver_balance(driver_id: int) -> dict:
    """Outstanding, disputed and paid totals for one driver."""
    resolve(driver_id)
    rows = db.session.query(
        Fine.status,
        func.count(Fine.id).label("fine_count"),
        func.coalesce(func.sum(Fine.amount_cents), 0).label("total_cents"),
    ).filter(Fine.driver_id == driver_id).group_by(Fine.status).all()

    totals = {row.status: (int(row.fine_count or 0), int(row.total_cents or 0)) for row in rows}
    pending = totals.get(FINE_STATUS_PENDING, (0, 0))
    disputed = totals.get(FINE_STATUS_DISPUTED, (0, 0))
    paid = totals.get(FINE_STATUS_PAID, (0, 0))

    return {
        "driver_id": driver_id,
        "outstanding_count": pending[0],
        "outstanding_cents": pending[1],
        "disputed_count": disputed[0],
        "disputed_cents": disputed[1],
        "paid_count": paid[0],
        "paid_cents": paid[1],
    }
