# Overview: Service-layer operations for businesses and their pricing/currency settings.

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Business
from ..validation import NotFoundError
from .concurrency import run_with_retry

BUSINESS_MUTABLE_FIELDS = {"name", "hourly_rate", "default_margin", "currency_code"}


def get_business(business_id: int) -> Business:
    business = db.session.get(Business, business_id)
    if business is None:
        raise NotFoundError("business not found")
    return business


def list_businesses() -> list[Business]:
    return db.session.query(Business).order_by(Business.id.asc()).all()


def create_business(*, patch: dict) -> Business:
    """
    Create a business from a validated patch.

    Settings missing from the patch take the app-level defaults
    (DEFAULT_HOURLY_RATE, DEFAULT_TARGET_MARGIN, DEFAULT_CURRENCY).
    """
    cfg = current_app.config

    def _op():
        business = Business(
            name=patch["name"],
            hourly_rate=patch.get("hourly_rate", Decimal(str(cfg["DEFAULT_HOURLY_RATE"]))),
            default_margin=patch.get("default_margin", Decimal(str(cfg["DEFAULT_TARGET_MARGIN"]))),
            currency_code=patch.get("currency_code", cfg["DEFAULT_CURRENCY"]),
        )
        db.session.add(business)
        db.session.commit()
        return business

    return run_with_retry(_op)


def update_business(business_id: int, *, patch: dict) -> Business:
    """
    Patch business settings. A changed hourly_rate invalidates every cached
    product price, so those are recomputed right after.
    """
    def _op():
        business = get_business(business_id)
        previous_rate = business.hourly_rate
        for k, v in patch.items():
            if k in BUSINESS_MUTABLE_FIELDS:
                setattr(business, k, v)
        db.session.commit()
        return business, previous_rate

    business, previous_rate = run_with_retry(_op)

    if "hourly_rate" in patch and patch["hourly_rate"] != previous_rate:
        from .products_service import reprice_products

        changed = reprice_products(business_id=business_id)
        current_app.logger.info(
            "Hourly rate for business %s changed; repriced %s products", business_id, changed
        )
    return business
