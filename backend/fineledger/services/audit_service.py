# Overview: Service-layer operations for the fine audit trail.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..extensions import db
from ..models import Fine, FineEvent
from ..time_utils import utcnow

"""
Fine Audit Invariants

- Append-only: no updates or deletes of existing events.
- Events are written inside the same DB transaction as the transition they
  record, so a rolled-back transition leaves no event behind.
- No business logic here; callers decide whether a transition is legal.
"""

EVENT_ISSUED = "fine.issued"
EVENT_PAID = "fine.paid"
EVENT_DISPUTED = "fine.disputed"
EVENT_REOPENED = "fine.reopened"
EVENT_VOIDED = "fine.voided"


def append_fine_event(
    *,
    fine: Fine,
    event_type: str,
    from_status: str | None,
    to_status: str,
    actor_id: int | None = None,
    reason: Optional[str] = None,
    occurred_at: Optional[datetime] = None,
) -> FineEvent:
    ev = FineEvent(
        fine_id=fine.id,
        event_type=event_type,
        from_status=from_status,
        to_status=to_status,
        actor_id=actor_id,
        reason=reason,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(ev)
    return ev


def list_fine_events(fine_id: int) -> list[FineEvent]:
    return (
        db.session.query(FineEvent)
        .filter_by(fine_id=fine_id)
        .order_by(FineEvent.id.asc())
        .all()
    )
