# backend/bizpilot/routes/products.py
"""
Product catalog routes.

Pricing fields (total_cost, selling_price, profit_margin) are read-only:
they are recomputed from the recipe, labor and target margin on every save.
"""
from flask import Blueprint, request, current_app

from ..models import Product
from ..services import products_service
from ..services.concurrency import PersistenceError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    NotFoundError,
)
from ..decorators import require_business


products_bp = Blueprint("products", __name__, url_prefix="/api/businesses/<int:business_id>/products")

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "sku", "labor_minutes", "target_margin"},
    required_on_create={"name"},
    extra_fields={"ingredients"},
)


@products_bp.get("")
@require_business
def list_products_route(business_id: int):
    items = [p.to_dict() for p in products_service.list_products(business_id=business_id)]
    return {"items": items, "count": len(items)}


@products_bp.post("")
@require_business
def create_product_route(business_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        ingredients = patch.pop("ingredients", None)
        product = products_service.create_product(
            business_id=business_id,
            patch=patch,
            ingredients=ingredients,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except PersistenceError:
        current_app.logger.exception("Failed to create product")
        return {"error": "Failed to create product"}, 503

    return product.to_dict(), 201


@products_bp.get("/<int:product_id>")
@require_business
def get_product_route(business_id: int, product_id: int):
    try:
        product = products_service.get_product(business_id=business_id, product_id=product_id)
    except NotFoundError:
        return {"error": "Product not found"}, 404
    return product.to_dict()


@products_bp.put("/<int:product_id>")
@require_business
def update_product_route(business_id: int, product_id: int):
    """
    Update a product. Omitting "ingredients" keeps the current recipe;
    sending a list replaces it.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        ingredients = patch.pop("ingredients", None)
        product = products_service.update_product(
            business_id=business_id,
            product_id=product_id,
            patch=patch,
            ingredients=ingredients,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError:
        return {"error": "Product not found"}, 404
    except PersistenceError:
        current_app.logger.exception("Failed to update product")
        return {"error": "Failed to update product"}, 503

    return product.to_dict()


@products_bp.delete("/<int:product_id>")
@require_business
def delete_product_route(business_id: int, product_id: int):
    try:
        products_service.delete_product(business_id=business_id, product_id=product_id)
    except NotFoundError:
        return {"error": "Product not found"}, 404
    except PersistenceError:
        current_app.logger.exception("Failed to delete product")
        return {"error": "Failed to delete product"}, 503
    return "", 204
