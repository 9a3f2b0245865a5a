from __future__ import annotations

from ..extensions import db
from bizpilot.time_utils import to_utc_z
from ._serialize import decimal_str


class Business(db.Model):
    """
    Ownership root: every product, inventory item and ledger row belongs to
    exactly one Business.

    The pricing settings (hourly_rate, default_margin) and the display
    currency live here and are passed explicitly into the services rather
    than read from process-wide state.
    """
    __tablename__ = "businesses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)

    # Labor rate used by the pricing calculator (currency units per hour)
    hourly_rate = db.Column(db.Numeric(10, 2), nullable=False, default=15)
    # Target margin (%) prefilled for new products
    default_margin = db.Column(db.Numeric(5, 2), nullable=False, default=40)
    currency_code = db.Column(db.String(3), nullable=False, default="ZAR")

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Business id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "hourly_rate": decimal_str(self.hourly_rate),
            "default_margin": decimal_str(self.default_margin),
            "currency_code": self.currency_code,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
