from __future__ import annotations

from ..extensions import db
from ..money import cents_to_str
from ..time_utils import to_utc_z


FINE_STATUS_PENDING = "PENDING"
FINE_STATUS_PAID = "PAID"
FINE_STATUS_DISPUTED = "DISPUTED"
FINE_STATUS_VOID = "VOID"

VALID_FINE_STATUSES = (
    FINE_STATUS_PENDING,
    FINE_STATUS_PAID,
    FINE_STATUS_DISPUTED,
    FINE_STATUS_VOID,
)


class Fine(db.Model):
    """
    A single issued traffic violation.

    WHY: The fine is the unit of the lifecycle. It is created once by an
    officer, then moves only through fine_service transitions. Fines are
    never deleted; VOID is the terminal "cancelled" state.

    amount_cents is frozen at issue time and provision_code is snapshotted
    alongside the FK so receipts stay readable if the catalog changes.

    CONCURRENCY: version_id is the optimistic lock. Two writers that load
    the same version cannot both commit.
    """
    __tablename__ = "fines"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_fines_amount_positive"),
        db.Index("ix_fines_driver_status", "driver_id", "status"),
        db.Index("ix_fines_officer_issued", "officer_id", "issued_at"),
        db.Index("ix_fines_status_issued", "status", "issued_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable external identifier (e.g., "TF-2026-000042")
    reference_number = db.Column(db.String(32), nullable=False, unique=True)

    officer_id = db.Column(db.Integer, db.ForeignKey("identities.id"), nullable=False, index=True)
    driver_id = db.Column(db.Integer, db.ForeignKey("identities.id"), nullable=False, index=True)
    provision_id = db.Column(db.Integer, db.ForeignKey("provisions.id"), nullable=False, index=True)
    provision_code = db.Column(db.String(64), nullable=False)

    vehicle_number = db.Column(db.String(32), nullable=False, index=True)
    location = db.Column(db.String(255), nullable=False)
    court = db.Column(db.String(255), nullable=True)

    issued_at = db.Column(db.DateTime(timezone=True), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default=FINE_STATUS_PENDING, index=True)

    # Dispute audit trail (latest dispute)
    dispute_reason = db.Column(db.String(255), nullable=True)
    disputed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    disputed_by_id = db.Column(db.Integer, db.ForeignKey("identities.id"), nullable=True)

    # Void audit trail
    void_reason = db.Column(db.String(255), nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    voided_by_id = db.Column(db.Integer, db.ForeignKey("identities.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    officer = db.relationship("Identity", foreign_keys=[officer_id])
    driver = db.relationship("Identity", foreign_keys=[driver_id])
    provision = db.relationship("Provision")

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reference_number": self.reference_number,
            "officer_id": self.officer_id,
            "driver_id": self.driver_id,
            "provision_code": self.provision_code,
            "vehicle_number": self.vehicle_number,
            "location": self.location,
            "court": self.court,
            "issued_at": to_utc_z(self.issued_at),
            "amount_cents": self.amount_cents,
            "amount": cents_to_str(self.amount_cents),
            "status": self.status,
            "dispute_reason": self.dispute_reason,
            "disputed_at": to_utc_z(self.disputed_at) if self.disputed_at else None,
            "disputed_by_id": self.disputed_by_id,
            "void_reason": self.void_reason,
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
            "voided_by_id": self.voided_by_id,
            "version_id": self.version_id,
        }

    def __repr__(self) -> str:
        return f"<Fine {self.reference_number} {self.status}>"


class FinePayment(db.Model):
    """
    Settlement of a fine.

    WHY: A fine is paid in full exactly once. fine_id is unique so the
    database itself rejects a second payment row; confirmation_id is unique
    so a gateway that reports the same success twice maps to one row.
    """
    __tablename__ = "fine_payments"
    __table_args__ = (
        db.UniqueConstraint("fine_id", name="uq_fine_payments_fine"),
        db.UniqueConstraint("confirmation_id", name="uq_fine_payments_confirmation"),
        db.CheckConstraint("amount_cents > 0", name="ck_fine_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    fine_id = db.Column(db.Integer, db.ForeignKey("fines.id"), nullable=False, index=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    method = db.Column(db.String(32), nullable=False)
    confirmation_id = db.Column(db.String(128), nullable=False)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=False)

    # Set when staff record a payment by hand; null for gateway callbacks
    recorded_by_id = db.Column(db.Integer, db.ForeignKey("identities.id"), nullable=True)

    fine = db.relationship("Fine", backref=db.backref("payment", uselist=False, lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "fine_id": self.fine_id,
            "reference_number": self.fine.reference_number if self.fine else None,
            "amount_cents": self.amount_cents,
            "amount": cents_to_str(self.amount_cents),
            "method": self.method,
            "confirmation_id": self.confirmation_id,
            "paid_at": to_utc_z(self.paid_at),
            "recorded_by_id": self.recorded_by_id,
        }


class FineEvent(db.Model):
    """
    Append-only audit row for every fine transition.

    Written in the same transaction as the transition it records.
    """
    __tablename__ = "fine_events"
    __table_args__ = (
        db.Index("ix_fine_events_fine_occurred", "fine_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    fine_id = db.Column(db.Integer, db.ForeignKey("fines.id"), nullable=False, index=True)
    event_type = db.Column(db.String(32), nullable=False, index=True)
    from_status = db.Column(db.String(16), nullable=True)
    to_status = db.Column(db.String(16), nullable=False)
    actor_id = db.Column(db.Integer, db.ForeignKey("identities.id"), nullable=True)
    reason = db.Column(db.String(255), nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    fine = db.relationship("Fine", backref=db.backref("events", lazy=True, order_by="FineEvent.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "fine_id": self.fine_id,
            "event_type": self.event_type,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "actor_id": self.actor_id,
            "reason": self.reason,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class ReferenceSequence(db.Model):
    """
    Atomic counters for fine reference numbers.

    WHY: Prevent race conditions when officers issue fines concurrently.
    One row per scope (prefix + year).
    """
    __tablename__ = "reference_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    scope = db.Column(db.String(32), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "scope": self.scope,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
