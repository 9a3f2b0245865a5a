# backend/bizpilot/routes/inventory.py
"""
Inventory item and stock ledger routes.

current_quantity is never writable here. It is set once by "initial_quantity"
on create and afterwards moves only through /adjust and /bulk-adjust, each of
which appends a ledger transaction in the same DB transaction.

Negative stock follows the ALLOW_NEGATIVE_STOCK setting; clients cannot
override it per request.
"""
from flask import Blueprint, request, current_app

from ..models import InventoryItem
from ..services import inventory_service
from ..services.concurrency import PersistenceError
from ..services.inventory_service import InsufficientStockError
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    ValidationError,
    NotFoundError,
    ConflictError,
)
from ..decorators import require_business


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/businesses/<int:business_id>/inventory")

INVENTORY_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "unit",
        "cost_per_unit",
        "low_stock_alert",
        "batch_lot_number",
        "expiration_date",
    },
    required_on_create={"name"},
    extra_fields={"initial_quantity"},
)

INVENTORY_PATCH_POLICY = ModelValidationPolicy(
    writable_fields=INVENTORY_ITEM_POLICY.writable_fields,
    extra_fields={"expected_version"},
)


def _parse_item_ids(raw) -> list[int]:
    if not isinstance(raw, list) or not raw:
        raise ValidationError("item_ids must be a non-empty list")
    ids = []
    for value in raw:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError("item_ids must contain integers")
        ids.append(value)
    return ids


@inventory_bp.get("")
@require_business
def list_items_route(business_id: int):
    items = [i.to_dict() for i in inventory_service.list_items(business_id=business_id)]
    return {"items": items, "count": len(items)}


@inventory_bp.post("")
@require_business
def create_item_route(business_id: int):
    """
    Create an inventory item.

    Body: item fields plus optional initial_quantity (default 0). The item
    and its "Initial stock" transaction are written together.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=InventoryItem, payload=payload, policy=INVENTORY_ITEM_POLICY, partial=False)
        initial_quantity = patch.pop("initial_quantity", 0)
        item = inventory_service.create_item(
            business_id=business_id,
            fields=patch,
            initial_quantity=initial_quantity,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except PersistenceError:
        current_app.logger.exception("Failed to create inventory item")
        return {"error": "Failed to create inventory item"}, 503

    return item.to_dict(), 201


@inventory_bp.get("/<int:item_id>")
@require_business
def get_item_route(business_id: int, item_id: int):
    try:
        item = inventory_service.get_item(business_id=business_id, item_id=item_id)
    except NotFoundError:
        return {"error": "Inventory item not found"}, 404
    return item.to_dict()


@inventory_bp.patch("/<int:item_id>")
@require_business
def update_item_route(business_id: int, item_id: int):
    """
    Patch descriptive fields.

    Send the version_id you last read as "expected_version" to get a 409
    instead of silently overwriting a concurrent change.
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=InventoryItem, payload=payload, policy=INVENTORY_PATCH_POLICY, partial=True)
        expected_version = patch.pop("expected_version", None)
        if expected_version is not None and (
            isinstance(expected_version, bool) or not isinstance(expected_version, int)
        ):
            raise ValidationError("expected_version must be an integer")
        item = inventory_service.update_item(
            business_id=business_id,
            item_id=item_id,
            patch=patch,
            expected_version=expected_version,
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError:
        return {"error": "Inventory item not found"}, 404
    except ConflictError as e:
        return {"error": str(e)}, 409
    except PersistenceError:
        current_app.logger.exception("Failed to update inventory item")
        return {"error": "Failed to update inventory item"}, 503

    return item.to_dict()


@inventory_bp.delete("/<int:item_id>")
@require_business
def delete_item_route(business_id: int, item_id: int):
    """Deletes the item and its whole transaction history."""
    try:
        inventory_service.delete_item(business_id=business_id, item_id=item_id)
    except NotFoundError:
        return {"error": "Inventory item not found"}, 404
    except PersistenceError:
        current_app.logger.exception("Failed to delete inventory item")
        return {"error": "Failed to delete inventory item"}, 503
    return "", 204


@inventory_bp.post("/<int:item_id>/adjust")
@require_business
def adjust_item_route(business_id: int, item_id: int):
    """
    Apply a signed stock change.

    Body: {quantity_change, notes?}. Returns the updated item and the new
    ledger transaction.
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400

    unknown = set(payload) - {"quantity_change", "notes"}
    if unknown:
        return {"error": f"Field not allowed: {', '.join(sorted(unknown))}"}, 400

    try:
        item, tx = inventory_service.adjust_stock(
            business_id=business_id,
            item_id=item_id,
            quantity_change=payload.get("quantity_change"),
            notes=payload.get("notes"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400
    except NotFoundError:
        return {"error": "Inventory item not found"}, 404
    except InsufficientStockError as e:
        return {"error": str(e)}, 409
    except PersistenceError:
        current_app.logger.exception("Failed to adjust inventory item")
        return {"error": "Failed to adjust inventory item"}, 503

    return {"item": item.to_dict(), "transaction": tx.to_dict()}


@inventory_bp.post("/bulk-adjust")
@require_business
def bulk_adjust_route(business_id: int):
    """
    Apply the same change to several items.

    Each item is committed on its own: 200 when all succeed, 207 when some
    failed. The body lists every item's outcome either way.
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return {"error": "Invalid JSON payload"}, 400

    try:
        item_ids = _parse_item_ids(payload.get("item_ids"))
        result = inventory_service.bulk_adjust(
            business_id=business_id,
            item_ids=item_ids,
            quantity_change=payload.get("quantity_change"),
            notes=payload.get("notes"),
        )
    except ValidationError as e:
        return {"error": str(e)}, 400

    return result.to_dict(), 200 if result.all_succeeded else 207


@inventory_bp.get("/<int:item_id>/transactions")
@require_business
def list_transactions_route(business_id: int, item_id: int):
    limit = request.args.get("limit", type=int)
    if limit is not None and limit <= 0:
        return {"error": "limit must be a positive integer"}, 400

    try:
        txs = inventory_service.list_transactions(business_id=business_id, item_id=item_id, limit=limit)
    except NotFoundError:
        return {"error": "Inventory item not found"}, 404

    return {"transactions": [t.to_dict() for t in txs], "count": len(txs)}
