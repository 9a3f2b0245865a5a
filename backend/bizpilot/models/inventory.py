from __future__ import annotations

from ..extensions import db
from bizpilot.time_utils import to_utc_z, to_iso_date
from ._serialize import decimal_str


class InventoryItem(db.Model):
    """
    Stock-keeping record owned by a business.

    LEDGER INVARIANT:
    current_quantity == SUM(InventoryTransaction.quantity_change) for the item,
    and equals resulting_quantity of its most recent transaction.

    current_quantity is a cached total. It is written only by
    inventory_service.create_item (initial stock) and
    inventory_service.adjust_stock (atomic server-side increment). Field
    patches go through update_item, which refuses current_quantity.

    version_id is bumped by both ORM flushes and the atomic increment, so a
    patch built from a stale read fails with StaleDataError.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.Index("ix_inventory_items_business_name", "business_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(16), nullable=False, default="unit")

    current_quantity = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    cost_per_unit = db.Column(db.Numeric(12, 4), nullable=False, default=0)
    # NULL means "never low"
    low_stock_alert = db.Column(db.Numeric(14, 4), nullable=True)

    batch_lot_number = db.Column(db.String(64), nullable=True)
    expiration_date = db.Column(db.Date, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    business = db.relationship("Business", backref=db.backref("inventory_items", lazy=True))
    # Hard delete of an item removes its history as well
    transactions = db.relationship(
        "InventoryTransaction",
        back_populates="inventory_item",
        cascade="all, delete-orphan",
        order_by="InventoryTransaction.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} qty={self.current_quantity}>"

    @property
    def is_low_stock(self) -> bool:
        alert = self.low_stock_alert if self.low_stock_alert is not None else 0
        return self.current_quantity <= alert

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "unit": self.unit,
            "current_quantity": decimal_str(self.current_quantity),
            "cost_per_unit": decimal_str(self.cost_per_unit),
            "low_stock_alert": decimal_str(self.low_stock_alert),
            "is_low_stock": self.is_low_stock,
            "batch_lot_number": self.batch_lot_number,
            "expiration_date": to_iso_date(self.expiration_date),
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryTransaction(db.Model):
    """
    Append-only stock movement. Rows are never updated; they disappear only
    together with their item.
    """
    __tablename__ = "inventory_transactions"

    id = db.Column(db.Integer, primary_key=True)

    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    inventory_id = db.Column(
        db.Integer,
        db.ForeignKey("inventory_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # 'add' | 'remove'
    type = db.Column(db.String(16), nullable=False)

    quantity_change = db.Column(db.Numeric(14, 4), nullable=False)
    resulting_quantity = db.Column(db.Numeric(14, 4), nullable=False)

    notes = db.Column(db.String(255), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    inventory_item = db.relationship("InventoryItem", back_populates="transactions")

    __table_args__ = (
        db.Index("ix_invtx_business_inventory_id", "business_id", "inventory_id", "id"),
        {"sqlite_autoincrement": True},
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "inventory_id": self.inventory_id,
            "type": self.type,
            "quantity_change": decimal_str(self.quantity_change),
            "resulting_quantity": decimal_str(self.resulting_quantity),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
