from __future__ import annotations

from ..extensions import db
from ..money import cents_to_str
from ..time_utils import to_utc_z


class Provision(db.Model):
    """
    Catalog entry: violation code -> description -> default amount.

    WHY: Officers pick a provision instead of typing an amount. Fines copy
    amount_cents at issue time, so editing a provision never rewrites
    history.
    """
    __tablename__ = "provisions"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_provisions_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(64), nullable=False, unique=True, index=True)
    description = db.Column(db.Text, nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)
    updated_by_id = db.Column(db.Integer, db.ForeignKey("identities.id"), nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "description": self.description,
            "amount_cents": self.amount_cents,
            "amount": cents_to_str(self.amount_cents),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
            "updated_by_id": self.updated_by_id,
            "version_id": self.version_id,
        }
