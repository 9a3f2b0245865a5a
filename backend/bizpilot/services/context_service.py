# Overview: Read-only business snapshot for the dashboard and the assistant.

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Business, InventoryItem, Product
from ..validation import NotFoundError
from ..currency import format_currency, format_percentage

CENT = Decimal("0.01")


@dataclass(frozen=True)
class BusinessSnapshot:
    business_id: int
    business_name: str
    currency_code: str
    hourly_rate: Decimal
    total_products: int
    total_inventory_items: int
    low_stock_items: int
    avg_margin_percent: Decimal
    # Dimensions whose read failed and were reported as defaults
    degraded: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "business_id": self.business_id,
            "business_name": self.business_name,
            "currency_code": self.currency_code,
            "hourly_rate": str(self.hourly_rate),
            "hourly_rate_display": format_currency(self.hourly_rate, self.currency_code),
            "total_products": self.total_products,
            "total_inventory_items": self.total_inventory_items,
            "low_stock_items": self.low_stock_items,
            "avg_margin_percent": str(self.avg_margin_percent),
            "avg_margin_display": format_percentage(self.avg_margin_percent),
            "degraded": list(self.degraded),
        }


def _product_stats(business_id: int, default_margin: Decimal) -> tuple[int, Decimal]:
    margins = [
        m if m is not None else Decimal(0)
        for (m,) in db.session.query(Product.profit_margin).filter_by(business_id=business_id).all()
    ]
    if not margins:
        return 0, default_margin
    avg = sum(margins, Decimal(0)) / len(margins)
    return len(margins), avg.quantize(CENT, rounding=ROUND_HALF_UP)


def _inventory_stats(business_id: int) -> tuple[int, int]:
    rows = (
        db.session.query(InventoryItem.current_quantity, InventoryItem.low_stock_alert)
        .filter_by(business_id=business_id)
        .all()
    )
    # An unset alert threshold counts as 0
    low = sum(1 for qty, alert in rows if qty <= (alert if alert is not None else 0))
    return len(rows), low


def get_snapshot(business_id: int, default_margin: Optional[Any] = None) -> BusinessSnapshot:
    """
    Aggregate counts for one business.

    A failed products read reports zero products and the default margin; a
    failed inventory read reports zero items. The failure is logged and the
    snapshot is still returned. An unknown business raises NotFoundError.
    """
    if default_margin is None:
        default_margin = current_app.config.get("SNAPSHOT_DEFAULT_MARGIN", 40)
    default_margin = Decimal(str(default_margin))

    business = db.session.get(Business, business_id)
    if business is None:
        raise NotFoundError("business not found")
    # Keep plain values; a failed read below rolls back and expires the ORM object
    name, currency_code, hourly_rate = business.name, business.currency_code, business.hourly_rate

    degraded = []

    try:
        total_products, avg_margin = _product_stats(business_id, default_margin)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning("Snapshot: products read failed for business %s", business_id, exc_info=True)
        total_products, avg_margin = 0, default_margin
        degraded.append("products")

    try:
        total_items, low_stock = _inventory_stats(business_id)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.warning("Snapshot: inventory read failed for business %s", business_id, exc_info=True)
        total_items, low_stock = 0, 0
        degraded.append("inventory")

    return BusinessSnapshot(
        business_id=business_id,
        business_name=name,
        currency_code=currency_code,
        hourly_rate=hourly_rate,
        total_products=total_products,
        total_inventory_items=total_items,
        low_stock_items=low_stock,
        avg_margin_percent=avg_margin,
        degraded=tuple(degraded),
    )
