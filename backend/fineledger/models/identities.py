from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


ROLE_OFFICER = "OFFICER"
ROLE_DRIVER = "DRIVER"
ROLE_ADMIN = "ADMIN"
ROLE_DEPARTMENT_OFFICIAL = "DEPARTMENT_OFFICIAL"

VALID_ROLES = (ROLE_OFFICER, ROLE_DRIVER, ROLE_ADMIN, ROLE_DEPARTMENT_OFFICIAL)


class Identity(db.Model):
    """
    Officer, driver, admin and department-official records.

    WHY: Every fine names an issuing officer and a driver. Both must stay
    resolvable for as long as the fine exists, so identities are never
    deleted. Deactivation flips is_active and stamps deactivated_at.

    external_id is the natural identifier surfaced in UIs (badge number for
    officers, licence number for drivers). role is fixed at registration.
    """
    __tablename__ = "identities"
    __table_args__ = (
        db.Index("ix_identities_role_active", "role", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    external_id = db.Column(db.String(64), nullable=False, unique=True, index=True)
    role = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    contact = db.Column(db.String(255), nullable=False, unique=True)

    # Bcrypt hash; null for identities without a login
    credential_hash = db.Column(db.String(255), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    deactivated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    deactivated_by_id = db.Column(db.Integer, db.ForeignKey("identities.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "external_id": self.external_id,
            "role": self.role,
            "name": self.name,
            "contact": self.contact,
            "has_credential": self.credential_hash is not None,
            "is_active": self.is_active,
            "deactivated_at": to_utc_z(self.deactivated_at) if self.deactivated_at else None,
            "deactivated_by_id": self.deactivated_by_id,
            "created_at": to_utc_z(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<Identity {self.id} {self.role} {self.external_id}>"
