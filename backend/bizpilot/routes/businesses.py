# Overview: Flask API routes for businesses and their pricing settings.

# backend/bizpilot/routes/businesses.py
"""
Business management routes.

A business owns every product, inventory item and ledger row; its settings
(hourly_rate, default_margin, currency_code) feed the pricing calculator and
the display formatting.
"""
from flask import Blueprint, request, current_app

from ..models import Business
from ..services import business_service
from ..services.concurrency import PersistenceError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_business,
    ValidationError,
    NotFoundError,
)
from ..decorators import require_business

BUSINESS_POLICY = ModelValidationPolicy(
    writable_fields={"name", "hourly_rate", "default_margin", "currency_code"},
    required_on_create={"name"},
)

businesses_bp = Blueprint("businesses", __name__, url_prefix="/api/businesses")


@businesses_bp.get("")
def list_businesses_route():
    items = [b.to_dict() for b in business_service.list_businesses()]
    return {"items": items, "count": len(items)}


@businesses_bp.post("")
def create_business_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Business, payload=payload, policy=BUSINESS_POLICY, partial=False)
        enforce_rules_business(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        business = business_service.create_business(patch=patch)
    except PersistenceError:
        current_app.logger.exception("Failed to create business")
        return {"error": "Failed to create business"}, 503

    return business.to_dict(), 201


@businesses_bp.get("/<int:business_id>")
@require_business
def get_business_route(business_id: int):
    return business_service.get_business(business_id).to_dict()


@businesses_bp.patch("/<int:business_id>")
@require_business
def update_business_route(business_id: int):
    """
    Update business settings.

    Changing hourly_rate reprices every product of the business.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Business, payload=payload, policy=BUSINESS_POLICY, partial=True)
        enforce_rules_business(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        business = business_service.update_business(business_id, patch=patch)
    except NotFoundError:
        return {"error": "Business not found"}, 404
    except PersistenceError:
        current_app.logger.exception("Failed to update business")
        return {"error": "Failed to update business"}, 503

    return business.to_dict()
