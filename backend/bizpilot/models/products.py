from __future__ import annotations

from ..extensions import db
from bizpilot.time_utils import to_utc_z
from ._serialize import decimal_str


class Product(db.Model):
    """
    Sellable product with a recipe of ingredient lines.

    PRICING SNAPSHOT:
    total_cost, selling_price and profit_margin are derived values cached at
    save time. They are written only by products_service, which always runs
    the inputs (ingredients, labor_minutes, target_margin and the business
    hourly rate) through pricing.compute_product first. Clients never set
    them directly.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_business_name", "business_id", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)

    labor_minutes = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    target_margin = db.Column(db.Numeric(5, 2), nullable=False, default=40)

    # Cached pricing snapshot
    total_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    selling_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    profit_margin = db.Column(db.Numeric(7, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    business = db.relationship("Business", backref=db.backref("products", lazy=True))
    ingredients = db.relationship(
        "ProductIngredient",
        back_populates="product",
        order_by="ProductIngredient.position",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} business_id={self.business_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "name": self.name,
            "sku": self.sku,
            "ingredients": [i.to_dict() for i in self.ingredients],
            "labor_minutes": decimal_str(self.labor_minutes),
            "target_margin": decimal_str(self.target_margin),
            "total_cost": decimal_str(self.total_cost),
            "selling_price": decimal_str(self.selling_price),
            "profit_margin": decimal_str(self.profit_margin),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductIngredient(db.Model):
    __tablename__ = "product_ingredients"
    __table_args__ = (
        db.Index("ix_product_ingredients_product_position", "product_id", "position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Order of the line inside the recipe (0-based)
    position = db.Column(db.Integer, nullable=False, default=0)

    name = db.Column(db.String(255), nullable=False)
    unit_cost = db.Column(db.Numeric(12, 4), nullable=False, default=0)
    quantity = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    unit = db.Column(db.String(16), nullable=False, default="unit")

    product = db.relationship("Product", back_populates="ingredients")

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "unit_cost": decimal_str(self.unit_cost),
            "quantity": decimal_str(self.quantity),
            "unit": self.unit,
        }
