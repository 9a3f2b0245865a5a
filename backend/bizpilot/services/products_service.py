# backend/bizpilot/services/products_service.py
"""
Products Service

PRICING SNAPSHOT: total_cost, selling_price and profit_margin are cached on
the product row. Every write path here (create, update, reprice) recomputes
them with pricing.compute_product from the stored inputs and the owning
business's hourly rate, so the cached values can never be set by a client
and never disagree with the live preview for the same inputs.

All reads and writes are filtered by business_id.
"""
from __future__ import annotations

from typing import Any, Iterable

from ..extensions import db
from ..models import Business, Product, ProductIngredient
from ..validation import (
    NotFoundError,
    ValidationError,
    UNIT_OPTIONS,
    coerce_decimal,
    enforce_rules_product,
)
from .concurrency import run_with_retry
from .pricing import IngredientLine, compute_product

PRODUCT_MUTABLE_FIELDS = {"name", "sku", "labor_minutes", "target_margin"}


def _get_business(business_id: int) -> Business:
    business = db.session.get(Business, business_id)
    if business is None:
        raise NotFoundError("business not found")
    return business


def _get_product(business_id: int, product_id: int) -> Product:
    product = (
        db.session.query(Product)
        .filter_by(id=product_id, business_id=business_id)
        .first()
    )
    if product is None:
        raise NotFoundError("product not found")
    return product


def validate_ingredients(raw: Any) -> list[IngredientLine]:
    """
    Strict validation for persisted recipe lines.

    Unlike the live preview, a saved recipe may not contain negative or
    non-numeric values. Zero-cost lines are kept (they still show in the
    recipe) but contribute nothing to cost.
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValidationError("ingredients must be a list")

    lines = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ValidationError(f"ingredients[{index}] must be an object")
        name = str(entry.get("name") or "").strip()
        if not name:
            raise ValidationError(f"ingredients[{index}].name is required")
        if len(name) > 255:
            raise ValidationError(f"ingredients[{index}].name exceeds max length 255")

        raw_cost = entry.get("unit_cost", entry.get("cost", 0))
        unit_cost = coerce_decimal(raw_cost if raw_cost is not None else 0, f"ingredients[{index}].unit_cost")
        raw_quantity = entry.get("quantity", 0)
        quantity = coerce_decimal(raw_quantity if raw_quantity is not None else 0, f"ingredients[{index}].quantity")
        if unit_cost < 0 or quantity < 0:
            raise ValidationError(f"ingredients[{index}] cost and quantity must be >= 0")

        unit = str(entry.get("unit") or "unit").strip()
        if unit not in UNIT_OPTIONS:
            raise ValidationError(f"ingredients[{index}].unit must be one of: {', '.join(UNIT_OPTIONS)}")

        lines.append(IngredientLine(name=name, unit_cost=unit_cost, quantity=quantity, unit=unit))
    return lines


def _set_ingredients(product: Product, lines: Iterable[IngredientLine]) -> None:
    product.ingredients = [
        ProductIngredient(
            position=position,
            name=line.name,
            unit_cost=line.unit_cost,
            quantity=line.quantity,
            unit=line.unit,
        )
        for position, line in enumerate(lines)
    ]


def _ingredient_lines(product: Product) -> list[IngredientLine]:
    return [
        IngredientLine(name=i.name, unit_cost=i.unit_cost, quantity=i.quantity, unit=i.unit)
        for i in product.ingredients
    ]


def _refresh_pricing(product: Product, business: Business) -> None:
    pricing = compute_product(
        _ingredient_lines(product),
        product.labor_minutes,
        business.hourly_rate,
        product.target_margin,
    )
    product.total_cost = pricing.total_cost
    product.selling_price = pricing.selling_price
    product.profit_margin = pricing.profit_margin


def list_products(*, business_id: int) -> list[Product]:
    return (
        db.session.query(Product)
        .filter_by(business_id=business_id)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )


def get_product(*, business_id: int, product_id: int) -> Product:
    return _get_product(business_id, product_id)


def create_product(*, business_id: int, patch: dict, ingredients: Any = None) -> Product:
    """
    Create a product from a validated patch and its recipe.

    target_margin defaults to the business's default_margin.
    """
    enforce_rules_product(patch)
    lines = validate_ingredients(ingredients)

    def _op():
        business = _get_business(business_id)
        product = Product(
            business_id=business_id,
            name=patch["name"],
            sku=patch.get("sku"),
            labor_minutes=patch.get("labor_minutes") or 0,
            target_margin=patch["target_margin"] if patch.get("target_margin") is not None else business.default_margin,
        )
        _set_ingredients(product, lines)
        _refresh_pricing(product, business)
        db.session.add(product)
        db.session.commit()
        return product

    return run_with_retry(_op)


def update_product(*, business_id: int, product_id: int, patch: dict, ingredients: Any = None) -> Product:
    """
    Update product inputs and re-derive the pricing snapshot.

    ingredients=None keeps the current recipe; a list replaces it.
    """
    enforce_rules_product(patch)
    lines = validate_ingredients(ingredients) if ingredients is not None else None

    def _op():
        business = _get_business(business_id)
        product = _get_product(business_id, product_id)
        for k, v in patch.items():
            if k not in PRODUCT_MUTABLE_FIELDS:
                continue
            if k in ("labor_minutes", "target_margin") and v is None:
                raise ValidationError(f"{k} cannot be null")
            setattr(product, k, v)
        if lines is not None:
            _set_ingredients(product, lines)
        _refresh_pricing(product, business)
        db.session.commit()
        return product

    return run_with_retry(_op)


def delete_product(*, business_id: int, product_id: int) -> None:
    def _op():
        product = _get_product(business_id, product_id)
        db.session.delete(product)
        db.session.commit()

    run_with_retry(_op)


def reprice_products(*, business_id: int) -> int:
    """
    Recompute every product's snapshot, e.g. after the hourly rate changed.
    Returns the number of products whose cached values moved.
    """
    def _op():
        business = _get_business(business_id)
        changed = 0
        for product in list_products(business_id=business_id):
            before = (product.total_cost, product.selling_price, product.profit_margin)
            _refresh_pricing(product, business)
            if (product.total_cost, product.selling_price, product.profit_margin) != before:
                changed += 1
        db.session.commit()
        return changed

    return run_with_retry(_op)
