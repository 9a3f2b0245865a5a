# Overview: Pytest coverage for the business context snapshot.

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from bizpilot.services import context_service, inventory_service, products_service
from bizpilot.validation import NotFoundError


def test_empty_business_uses_default_margin(db_session, business):
    snap = context_service.get_snapshot(business.id)
    assert snap.total_products == 0
    assert snap.total_inventory_items == 0
    assert snap.low_stock_items == 0
    assert snap.avg_margin_percent == Decimal("40")
    assert snap.degraded == ()


def test_counts_and_average_margin(db_session, business, other_business, bread, flour):
    products_service.create_product(
        business_id=business.id,
        patch={"name": "Plain roll", "labor_minutes": Decimal("60"), "target_margin": Decimal("20")},
    )
    # At its alert threshold counts as low; no threshold means "alert at 0"
    inventory_service.create_item(
        business_id=business.id,
        fields={"name": "Salt", "low_stock_alert": Decimal("5")},
        initial_quantity=5,
    )
    inventory_service.create_item(business_id=business.id, fields={"name": "Yeast"}, initial_quantity=0)
    inventory_service.create_item(business_id=other_business.id, fields={"name": "Wax"}, initial_quantity=0)

    snap = context_service.get_snapshot(business.id)
    assert snap.business_name == "Corner Bakery"
    assert snap.total_products == 2
    assert snap.total_inventory_items == 3
    assert snap.low_stock_items == 2
    assert snap.avg_margin_percent == Decimal("30.00")


def test_low_stock_follows_adjustments(db_session, business, flour):
    assert context_service.get_snapshot(business.id).low_stock_items == 0
    inventory_service.adjust_stock(business_id=business.id, item_id=flour.id, quantity_change=-85)
    assert context_service.get_snapshot(business.id).low_stock_items == 1


def test_explicit_default_margin(db_session, business):
    assert context_service.get_snapshot(business.id, default_margin=25).avg_margin_percent == Decimal("25")


def test_unknown_business(db_session):
    with pytest.raises(NotFoundError):
        context_service.get_snapshot(9999)


def test_failed_products_read_degrades(db_session, business, flour, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(context_service, "_product_stats", broken)

    snap = context_service.get_snapshot(business.id)
    assert snap.degraded == ("products",)
    assert snap.total_products == 0
    assert snap.avg_margin_percent == Decimal("40")
    # The inventory dimension is still reported
    assert snap.total_inventory_items == 1


def test_failed_inventory_read_degrades(db_session, business, bread, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(context_service, "_inventory_stats", broken)

    snap = context_service.get_snapshot(business.id)
    assert snap.degraded == ("inventory",)
    assert snap.total_inventory_items == 0
    assert snap.low_stock_items == 0
    assert snap.total_products == 1


def test_to_dict_formats_money(db_session, business):
    data = context_service.get_snapshot(business.id).to_dict()
    assert data["hourly_rate_display"] == "R 15,00"
    assert data["avg_margin_display"] == "40.0%"
    assert data["degraded"] == []
