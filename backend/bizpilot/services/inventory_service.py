# Overview: Service-layer operations for inventory; owns current_quantity and its append-only ledger.

# backend/bizpilot/services/inventory_service.py

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Optional

from flask import current_app
from sqlalchemy import func, update

from ..extensions import db
from ..models import Business, InventoryItem, InventoryTransaction
from ..validation import (
    ConflictError,
    NotFoundError,
    QUANTITY_SCALE,
    ValidationError,
    coerce_quantity,
    enforce_rules_inventory_adjust,
    enforce_rules_inventory_item,
)
from .concurrency import PersistenceError, lock_for_update, run_with_retry
"""
Inventory Ledger Invariants (authoritative)

Ledger model:
- InventoryItem.current_quantity is a cached total; the InventoryTransaction
  rows are the ledger.
- For every item: current_quantity == SUM(quantity_change), and the most
  recent transaction's resulting_quantity == current_quantity.
- Creation writes the item and an "Initial stock" transaction
  (quantity_change == resulting_quantity == initial quantity) in one DB
  transaction.
- Transactions are append-only. They are removed only by deleting their item
  (cascade), never updated.

Adjustments:
- quantity_change must be non-zero; type is 'add' for > 0, 'remove' for < 0.
- The quantity is moved with a single server-side
      UPDATE ... SET current_quantity = current_quantity + :delta
  and read back inside the same DB transaction before the ledger row is
  written. No client-side read-modify-write, so concurrent deltas never
  overwrite each other.
- Negative stock is allowed unless ALLOW_NEGATIVE_STOCK is off or the caller
  passes allow_negative=False; then the UPDATE is conditional on the result
  staying >= 0 and a refused update raises InsufficientStockError.

Failures:
- Lock/stale conflicts are retried (run_with_retry); anything else from the
  store surfaces as PersistenceError. No automatic retry beyond that.
"""

INITIAL_STOCK_NOTE = "Initial stock"

INVENTORY_MUTABLE_FIELDS = {
    "name",
    "unit",
    "cost_per_unit",
    "low_stock_alert",
    "batch_lot_number",
    "expiration_date",
}

TX_ADD = "add"
TX_REMOVE = "remove"


class InsufficientStockError(ConflictError):
    """Adjustment would take current_quantity below zero while that is forbidden."""


def _clean_notes(notes: Optional[str]) -> Optional[str]:
    if notes is None:
        return None
    notes = str(notes).strip()
    if not notes:
        return None
    if len(notes) > 255:
        raise ValidationError("notes exceeds max length 255")
    return notes


def _allow_negative(allow_negative: Optional[bool]) -> bool:
    if allow_negative is not None:
        return allow_negative
    return bool(current_app.config.get("ALLOW_NEGATIVE_STOCK", True))


def _get_item(business_id: int, item_id: int, *, lock: bool = False) -> InventoryItem:
    query = db.session.query(InventoryItem).filter_by(id=item_id, business_id=business_id)
    if lock:
        query = lock_for_update(query)
    item = query.first()
    if item is None:
        raise NotFoundError("inventory item not found")
    return item


def get_item(*, business_id: int, item_id: int) -> InventoryItem:
    return _get_item(business_id, item_id)


def list_items(*, business_id: int) -> list[InventoryItem]:
    return (
        db.session.query(InventoryItem)
        .filter_by(business_id=business_id)
        .order_by(InventoryItem.name.asc(), InventoryItem.id.asc())
        .all()
    )


def create_item(*, business_id: int, fields: dict, initial_quantity: Any = 0) -> InventoryItem:
    """
    Create an item together with its "Initial stock" ledger row.

    Both rows are committed together; if either write fails the whole DB
    transaction is rolled back and no item exists.
    """
    qty = coerce_quantity(initial_quantity if initial_quantity is not None else 0, "initial_quantity")
    if qty < 0:
        raise ValidationError("initial_quantity must be >= 0")

    fields = dict(fields)
    enforce_rules_inventory_item(fields)
    unknown = set(fields) - INVENTORY_MUTABLE_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")
    if not (fields.get("name") or "").strip():
        raise ValidationError("name is required")

    def _op():
        if db.session.get(Business, business_id) is None:
            raise NotFoundError("business not found")

        item = InventoryItem(business_id=business_id, current_quantity=qty, **fields)
        db.session.add(item)
        db.session.flush()  # assigns item.id without committing

        tx = InventoryTransaction(
            business_id=business_id,
            inventory_id=item.id,
            type=TX_ADD,
            quantity_change=qty,
            resulting_quantity=qty,
            notes=INITIAL_STOCK_NOTE,
        )
        db.session.add(tx)
        db.session.commit()
        return item

    item = run_with_retry(_op)
    current_app.logger.info(
        "Created inventory item %s for business %s with initial stock %s",
        item.id, business_id, qty,
    )
    return item


def _apply_delta(business_id: int, item_id: int, delta: Decimal, *, allow_negative: bool) -> Decimal:
    """
    Atomically move current_quantity by delta and return the new quantity.

    Must run inside the caller's DB transaction; the row stays write-locked
    until that transaction ends.
    """
    stmt = update(InventoryItem).where(
        InventoryItem.id == item_id,
        InventoryItem.business_id == business_id,
    )
    if not allow_negative:
        stmt = stmt.where(InventoryItem.current_quantity + delta >= 0)
    stmt = stmt.values(
        current_quantity=InventoryItem.current_quantity + delta,
        version_id=InventoryItem.version_id + 1,
    ).execution_options(synchronize_session=False)

    result = db.session.execute(stmt)
    if not result.rowcount:
        exists = (
            db.session.query(InventoryItem.id)
            .filter_by(id=item_id, business_id=business_id)
            .first()
        )
        if exists is None:
            raise NotFoundError("inventory item not found")
        raise InsufficientStockError("adjustment would make stock negative")

    return (
        db.session.query(InventoryItem.current_quantity)
        .filter_by(id=item_id)
        .scalar()
    )


def adjust_stock(
    *,
    business_id: int,
    item_id: int,
    quantity_change: Any,
    notes: Optional[str] = None,
    allow_negative: Optional[bool] = None,
) -> tuple[InventoryItem, InventoryTransaction]:
    """
    Apply a signed stock change and append its ledger row.

    Returns the refreshed item and the new transaction. Raises
    ValidationError for a zero delta (nothing is written), NotFoundError for
    an unknown item, InsufficientStockError when negative stock is forbidden
    and PersistenceError when the store fails.
    """
    delta = enforce_rules_inventory_adjust(quantity_change)
    notes = _clean_notes(notes)
    allow = _allow_negative(allow_negative)

    def _op():
        new_quantity = _apply_delta(business_id, item_id, delta, allow_negative=allow)

        tx = InventoryTransaction(
            business_id=business_id,
            inventory_id=item_id,
            type=TX_ADD if delta > 0 else TX_REMOVE,
            quantity_change=delta,
            resulting_quantity=new_quantity,
            notes=notes,
        )
        db.session.add(tx)
        db.session.flush()

        # The core UPDATE bypassed the identity map; reload the item
        item = (
            db.session.query(InventoryItem)
            .filter_by(id=item_id)
            .populate_existing()
            .one()
        )
        db.session.commit()
        return item, tx

    item, tx = run_with_retry(_op)
    current_app.logger.info(
        "Adjusted inventory item %s by %s -> %s (tx %s)",
        item_id, delta, tx.resulting_quantity, tx.id,
    )
    return item, tx


@dataclass
class BulkAdjustOutcome:
    item_id: int
    ok: bool
    item: Optional[InventoryItem] = None
    transaction: Optional[InventoryTransaction] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "ok": self.ok,
            "item": self.item.to_dict() if self.item is not None else None,
            "transaction": self.transaction.to_dict() if self.transaction is not None else None,
            "error": self.error,
        }


@dataclass
class BulkAdjustResult:
    results: list[BulkAdjustOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    @property
    def all_succeeded(self) -> bool:
        return self.failed == 0

    def to_dict(self) -> dict:
        return {
            "total": len(self.results),
            "succeeded": self.succeeded,
            "failed": self.failed,
            "results": [r.to_dict() for r in self.results],
        }


def bulk_adjust(
    *,
    business_id: int,
    item_ids: Iterable[int],
    quantity_change: Any,
    notes: Optional[str] = None,
    allow_negative: Optional[bool] = None,
) -> BulkAdjustResult:
    """
    Apply the same delta to several items, one DB transaction per item.

    A failing item is recorded and skipped; it never rolls back or stops
    the others. Duplicate ids are applied once.
    """
    delta = enforce_rules_inventory_adjust(quantity_change)
    notes = _clean_notes(notes)

    ordered_ids = list(dict.fromkeys(item_ids))
    result = BulkAdjustResult()

    for item_id in ordered_ids:
        try:
            item, tx = adjust_stock(
                business_id=business_id,
                item_id=item_id,
                quantity_change=delta,
                notes=notes,
                allow_negative=allow_negative,
            )
        except (ValueError, LookupError, PersistenceError) as exc:
            current_app.logger.warning("Bulk adjust failed for inventory item %s: %s", item_id, exc)
            result.results.append(BulkAdjustOutcome(item_id=item_id, ok=False, error=str(exc)))
            continue
        result.results.append(BulkAdjustOutcome(item_id=item_id, ok=True, item=item, transaction=tx))

    return result


def update_item(
    *,
    business_id: int,
    item_id: int,
    patch: dict,
    expected_version: Optional[int] = None,
) -> InventoryItem:
    """
    Patch descriptive fields of an item.

    current_quantity is refused here; it only moves through adjust_stock.
    When expected_version is given and the stored version differs (someone
    adjusted or edited the item since the caller read it), ConflictError is
    raised instead of overwriting.
    """
    patch = dict(patch)
    enforce_rules_inventory_item(patch)
    unknown = set(patch) - INVENTORY_MUTABLE_FIELDS
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(sorted(unknown))}")

    def _op():
        item = _get_item(business_id, item_id, lock=True)
        if expected_version is not None and item.version_id != expected_version:
            raise ConflictError("inventory item was modified by another request; reload and retry")
        for k, v in patch.items():
            setattr(item, k, v)
        db.session.commit()
        return item

    return run_with_retry(_op)


def delete_item(*, business_id: int, item_id: int) -> None:
    """Hard delete; the item's ledger rows are deleted with it."""
    def _op():
        item = _get_item(business_id, item_id, lock=True)
        db.session.delete(item)
        db.session.commit()

    run_with_retry(_op)
    current_app.logger.info("Deleted inventory item %s for business %s", item_id, business_id)


def list_transactions(
    *, business_id: int, item_id: int, limit: Optional[int] = None
) -> list[InventoryTransaction]:
    """Newest first."""
    _get_item(business_id, item_id)
    if limit is None:
        limit = current_app.config.get("TRANSACTION_PAGE_LIMIT", 200)

    return (
        db.session.query(InventoryTransaction)
        .filter_by(business_id=business_id, inventory_id=item_id)
        .order_by(InventoryTransaction.id.desc())
        .limit(limit)
        .all()
    )


def replay_quantity(item_id: int) -> Decimal:
    """Quantity implied by the ledger alone: SUM(quantity_change)."""
    total = (
        db.session.query(func.coalesce(func.sum(InventoryTransaction.quantity_change), 0))
        .filter(InventoryTransaction.inventory_id == item_id)
        .scalar()
    )
    # SQLite sums Numeric as REAL; snap back to the column scale
    return Decimal(str(total or 0)).quantize(QUANTITY_SCALE)


@dataclass(frozen=True)
class LedgerDrift:
    item_id: int
    business_id: int
    name: str
    stored: Decimal
    replayed: Decimal
    last_resulting: Optional[Decimal]

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "business_id": self.business_id,
            "name": self.name,
            "stored": str(self.stored),
            "replayed": str(self.replayed),
            "last_resulting": str(self.last_resulting) if self.last_resulting is not None else None,
        }


def verify_ledger(*, business_id: Optional[int] = None) -> list[LedgerDrift]:
    """
    Compare every item's cached quantity with its ledger.

    An item drifts when the stored quantity differs from the replayed sum,
    when the latest resulting_quantity differs from it, or when it has no
    ledger rows at all.
    """
    query = db.session.query(InventoryItem).order_by(InventoryItem.id.asc())
    if business_id is not None:
        query = query.filter_by(business_id=business_id)

    drift = []
    for item in query.all():
        replayed = replay_quantity(item.id)
        last_resulting = (
            db.session.query(InventoryTransaction.resulting_quantity)
            .filter_by(inventory_id=item.id)
            .order_by(InventoryTransaction.id.desc())
            .limit(1)
            .scalar()
        )
        stored = Decimal(item.current_quantity)
        if last_resulting is None or stored != replayed or stored != last_resulting:
            drift.append(
                LedgerDrift(
                    item_id=item.id,
                    business_id=item.business_id,
                    name=item.name,
                    stored=stored,
                    replayed=replayed,
                    last_resulting=last_resulting,
                )
            )
    return drift


def repair_item_quantity(item_id: int) -> tuple[Decimal, Decimal]:
    """
    Reset the cached quantity to the ledger replay. Returns (old, new).

    The ledger is the source of truth, so normally no transaction is
    written. An item with no ledger rows at all keeps its stored quantity
    and gets the "Initial stock" row that create_item would have written.
    """
    def _op():
        item = lock_for_update(db.session.query(InventoryItem).filter_by(id=item_id)).first()
        if item is None:
            raise NotFoundError("inventory item not found")
        old = Decimal(item.current_quantity)
        has_ledger = db.session.query(InventoryTransaction.id).filter_by(inventory_id=item_id).first()
        if has_ledger is None:
            db.session.add(InventoryTransaction(
                business_id=item.business_id,
                inventory_id=item.id,
                type=TX_ADD if old >= 0 else TX_REMOVE,
                quantity_change=old,
                resulting_quantity=old,
                notes=INITIAL_STOCK_NOTE,
            ))
            db.session.commit()
            return old, old
        new = replay_quantity(item_id)
        item.current_quantity = new
        db.session.commit()
        return old, new

    old, new = run_with_retry(_op)
    current_app.logger.warning("Repaired inventory item %s quantity %s -> %s", item_id, old, new)
    return old, new
