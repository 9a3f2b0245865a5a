# Overview: Pytest coverage for the inventory stock ledger.

"""
Inventory Ledger Tests

Every test checks the ledger invariant where it applies: the stored
current_quantity equals the replayed SUM(quantity_change) and the newest
transaction's resulting_quantity.
"""

from decimal import Decimal

import pytest

from bizpilot.extensions import db
from bizpilot.models import InventoryItem, InventoryTransaction
from bizpilot.services import inventory_service
from bizpilot.services.inventory_service import InsufficientStockError
from bizpilot.validation import ConflictError, NotFoundError, ValidationError


def _assert_ledger_consistent(item_id):
    db.session.expire_all()
    item = db.session.get(InventoryItem, item_id)
    latest = (
        db.session.query(InventoryTransaction)
        .filter_by(inventory_id=item_id)
        .order_by(InventoryTransaction.id.desc())
        .first()
    )
    assert inventory_service.replay_quantity(item_id) == item.current_quantity
    assert latest.resulting_quantity == item.current_quantity


class TestCreateItem:
    def test_initial_stock_transaction(self, db_session, business, flour):
        assert flour.current_quantity == Decimal("100")
        txs = inventory_service.list_transactions(business_id=business.id, item_id=flour.id)
        assert len(txs) == 1
        assert txs[0].type == "add"
        assert txs[0].quantity_change == Decimal("100")
        assert txs[0].resulting_quantity == Decimal("100")
        assert txs[0].notes == "Initial stock"

    def test_zero_initial_stock_still_writes_ledger_row(self, db_session, business):
        item = inventory_service.create_item(business_id=business.id, fields={"name": "Yeast"})
        txs = inventory_service.list_transactions(business_id=business.id, item_id=item.id)
        assert len(txs) == 1
        assert txs[0].quantity_change == 0
        _assert_ledger_consistent(item.id)

    def test_negative_initial_stock_rejected(self, db_session, business):
        with pytest.raises(ValidationError):
            inventory_service.create_item(business_id=business.id, fields={"name": "Yeast"}, initial_quantity=-1)
        assert db_session.query(InventoryItem).count() == 0

    @pytest.mark.parametrize("qty", ["1.00001", 0.00001])
    def test_initial_stock_beyond_four_decimals_rejected(self, db_session, business, qty):
        with pytest.raises(ValidationError):
            inventory_service.create_item(business_id=business.id, fields={"name": "Yeast"}, initial_quantity=qty)
        assert db_session.query(InventoryItem).count() == 0

    def test_current_quantity_field_rejected(self, db_session, business):
        with pytest.raises(ValidationError):
            inventory_service.create_item(
                business_id=business.id,
                fields={"name": "Yeast", "current_quantity": Decimal("5")},
            )

    def test_unknown_business(self, db_session):
        with pytest.raises(NotFoundError):
            inventory_service.create_item(business_id=9999, fields={"name": "Ghost"})


class TestAdjustStock:
    def test_add_then_remove(self, db_session, business, flour):
        item, tx = inventory_service.adjust_stock(
            business_id=business.id, item_id=flour.id, quantity_change=50, notes="Delivery"
        )
        assert item.current_quantity == Decimal("150")
        assert tx.type == "add"
        assert tx.resulting_quantity == Decimal("150")
        assert tx.notes == "Delivery"

        item, tx = inventory_service.adjust_stock(
            business_id=business.id, item_id=flour.id, quantity_change=-30
        )
        assert item.current_quantity == Decimal("120")
        assert tx.type == "remove"
        assert tx.quantity_change == Decimal("-30")
        assert tx.resulting_quantity == Decimal("120")

        history = inventory_service.list_transactions(business_id=business.id, item_id=flour.id)
        assert [t.resulting_quantity for t in history] == [Decimal("120"), Decimal("150"), Decimal("100")]
        _assert_ledger_consistent(flour.id)

    def test_fractional_quantities(self, db_session, business, flour):
        inventory_service.adjust_stock(business_id=business.id, item_id=flour.id, quantity_change="0.25")
        inventory_service.adjust_stock(business_id=business.id, item_id=flour.id, quantity_change="-0.1")
        _assert_ledger_consistent(flour.id)
        assert db_session.get(InventoryItem, flour.id).current_quantity == Decimal("100.15")

    @pytest.mark.parametrize("delta", [0, "0", "0.0", "0.00001"])
    def test_zero_delta_rejected_without_writing(self, db_session, business, flour, delta):
        with pytest.raises(ValidationError):
            inventory_service.adjust_stock(business_id=business.id, item_id=flour.id, quantity_change=delta)
        assert db_session.query(InventoryTransaction).filter_by(inventory_id=flour.id).count() == 1
        _assert_ledger_consistent(flour.id)

    def test_non_numeric_delta_rejected(self, db_session, business, flour):
        with pytest.raises(ValidationError):
            inventory_service.adjust_stock(business_id=business.id, item_id=flour.id, quantity_change="lots")

    def test_delta_beyond_four_decimals_rejected(self, db_session, business, flour):
        with pytest.raises(ValidationError, match="4 decimal places"):
            inventory_service.adjust_stock(business_id=business.id, item_id=flour.id, quantity_change="1.23456")
        assert db_session.get(InventoryItem, flour.id).current_quantity == Decimal("100")

    def test_adjust_bumps_version(self, db_session, business, flour):
        before = flour.version_id
        item, _ = inventory_service.adjust_stock(business_id=business.id, item_id=flour.id, quantity_change=1)
        assert item.version_id == before + 1

    def test_unknown_item(self, db_session, business):
        with pytest.raises(NotFoundError):
            inventory_service.adjust_stock(business_id=business.id, item_id=9999, quantity_change=1)

    def test_other_business_cannot_adjust(self, db_session, business, other_business, flour):
        with pytest.raises(NotFoundError):
            inventory_service.adjust_stock(business_id=other_business.id, item_id=flour.id, quantity_change=1)
        _assert_ledger_consistent(flour.id)


class TestNegativeStock:
    def test_allowed_by_default(self, db_session, business, flour):
        item, tx = inventory_service.adjust_stock(business_id=business.id, item_id=flour.id, quantity_change=-130)
        assert item.current_quantity == Decimal("-30")
        assert tx.resulting_quantity == Decimal("-30")
        _assert_ledger_consistent(flour.id)

    def test_forbidden_per_call(self, db_session, business, flour):
        with pytest.raises(InsufficientStockError):
            inventory_service.adjust_stock(
                business_id=business.id, item_id=flour.id, quantity_change=-130, allow_negative=False
            )
        assert db_session.query(InventoryTransaction).filter_by(inventory_id=flour.id).count() == 1
        _assert_ledger_consistent(flour.id)
        assert db_session.get(InventoryItem, flour.id).current_quantity == Decimal("100")

    def test_forbidden_by_config_allows_exactly_zero(self, app, db_session, business, flour):
        app.config["ALLOW_NEGATIVE_STOCK"] = False
        item, _ = inventory_service.adjust_stock(business_id=business.id, item_id=flour.id, quantity_change=-100)
        assert item.current_quantity == 0
        with pytest.raises(InsufficientStockError):
            inventory_service.adjust_stock(business_id=business.id, item_id=flour.id, quantity_change=-1)
        _assert_ledger_consistent(flour.id)

    def test_insufficient_stock_is_a_conflict(self):
        assert issubclass(InsufficientStockError, ConflictError)


class TestUpdateAndDelete:
    def test_update_descriptive_fields(self, db_session, business, flour):
        item = inventory_service.update_item(
            business_id=business.id,
            item_id=flour.id,
            patch={"name": "Bread flour", "low_stock_alert": Decimal("150")},
        )
        assert item.name == "Bread flour"
        assert item.is_low_stock is True
        assert item.current_quantity == Decimal("100")

    def test_update_rejects_current_quantity(self, db_session, business, flour):
        with pytest.raises(ValidationError):
            inventory_service.update_item(
                business_id=business.id, item_id=flour.id, patch={"current_quantity": Decimal("5")}
            )
        _assert_ledger_consistent(flour.id)

    def test_stale_expected_version_conflicts(self, db_session, business, flour):
        stale_version = flour.version_id
        inventory_service.adjust_stock(business_id=business.id, item_id=flour.id, quantity_change=5)
        with pytest.raises(ConflictError):
            inventory_service.update_item(
                business_id=business.id,
                item_id=flour.id,
                patch={"name": "Renamed"},
                expected_version=stale_version,
            )
        db_session.expire_all()
        assert db_session.get(InventoryItem, flour.id).name == "Flour"

    def test_delete_removes_history(self, db_session, business, flour):
        inventory_service.adjust_stock(business_id=business.id, item_id=flour.id, quantity_change=5)
        inventory_service.delete_item(business_id=business.id, item_id=flour.id)
        assert db_session.get(InventoryItem, flour.id) is None
        assert db_session.query(InventoryTransaction).filter_by(inventory_id=flour.id).count() == 0

    def test_delete_other_business_item(self, db_session, business, other_business, flour):
        with pytest.raises(NotFoundError):
            inventory_service.delete_item(business_id=other_business.id, item_id=flour.id)


class TestBulkAdjust:
    def test_partial_failure_keeps_successes(self, db_session, business, flour):
        sugar = inventory_service.create_item(business_id=business.id, fields={"name": "Sugar"}, initial_quantity=10)

        result = inventory_service.bulk_adjust(
            business_id=business.id,
            item_ids=[flour.id, 9999, sugar.id],
            quantity_change=5,
            notes="Restock",
        )

        assert len(result.results) == 3
        assert result.succeeded == 2
        assert result.failed == 1
        assert result.all_succeeded is False
        assert [r.ok for r in result.results] == [True, False, True]
        assert result.results[1].error == "inventory item not found"

        _assert_ledger_consistent(flour.id)
        _assert_ledger_consistent(sugar.id)
        assert db_session.get(InventoryItem, sugar.id).current_quantity == Decimal("15")

    def test_failure_from_store_is_recorded(self, db_session, business, flour, monkeypatch):
        sugar = inventory_service.create_item(business_id=business.id, fields={"name": "Sugar"}, initial_quantity=10)
        salt = inventory_service.create_item(business_id=business.id, fields={"name": "Salt"}, initial_quantity=1)

        real_apply = inventory_service._apply_delta

        def flaky_apply(business_id, item_id, delta, *, allow_negative):
            if item_id == sugar.id:
                raise inventory_service.PersistenceError("disk full")
            return real_apply(business_id, item_id, delta, allow_negative=allow_negative)

        monkeypatch.setattr(inventory_service, "_apply_delta", flaky_apply)

        result = inventory_service.bulk_adjust(
            business_id=business.id,
            item_ids=[flour.id, sugar.id, salt.id],
            quantity_change=-1,
        )

        assert (len(result.results), result.succeeded, result.failed) == (3, 2, 1)
        assert result.results[1].item_id == sugar.id
        assert db_session.get(InventoryItem, sugar.id).current_quantity == Decimal("10")
        assert db_session.query(InventoryTransaction).filter_by(inventory_id=sugar.id).count() == 1

    def test_duplicate_ids_applied_once(self, db_session, business, flour):
        result = inventory_service.bulk_adjust(
            business_id=business.id, item_ids=[flour.id, flour.id], quantity_change=1
        )
        assert len(result.results) == 1
        assert db_session.get(InventoryItem, flour.id).current_quantity == Decimal("101")

    def test_zero_delta_rejected_up_front(self, db_session, business, flour):
        with pytest.raises(ValidationError):
            inventory_service.bulk_adjust(business_id=business.id, item_ids=[flour.id], quantity_change=0)

    def test_to_dict_counts(self, db_session, business, flour):
        data = inventory_service.bulk_adjust(
            business_id=business.id, item_ids=[flour.id], quantity_change=2
        ).to_dict()
        assert data["total"] == 1
        assert data["succeeded"] == 1
        assert data["failed"] == 0
        assert data["results"][0]["item"]["current_quantity"] == "102"


class TestLedgerVerification:
    def test_clean_ledger_has_no_drift(self, db_session, business, flour):
        inventory_service.adjust_stock(business_id=business.id, item_id=flour.id, quantity_change=-7)
        assert inventory_service.verify_ledger() == []

    def test_detects_and_repairs_drift(self, db_session, business, flour):
        # Simulate an out-of-band write that bypassed the ledger
        db_session.query(InventoryItem).filter_by(id=flour.id).update({"current_quantity": Decimal("42")})
        db_session.commit()

        drift = inventory_service.verify_ledger(business_id=business.id)
        assert [d.item_id for d in drift] == [flour.id]
        assert drift[0].stored == Decimal("42")
        assert drift[0].replayed == Decimal("100")

        old, new = inventory_service.repair_item_quantity(flour.id)
        assert (old, new) == (Decimal("42"), Decimal("100"))
        assert inventory_service.verify_ledger() == []

    def test_repair_item_without_ledger_rows(self, db_session, business, flour):
        db_session.query(InventoryTransaction).filter_by(inventory_id=flour.id).delete()
        db_session.commit()
        assert [d.item_id for d in inventory_service.verify_ledger()] == [flour.id]

        old, new = inventory_service.repair_item_quantity(flour.id)
        assert (old, new) == (Decimal("100"), Decimal("100"))
        assert inventory_service.verify_ledger() == []
        txs = inventory_service.list_transactions(business_id=business.id, item_id=flour.id)
        assert [(t.quantity_change, t.notes) for t in txs] == [(Decimal("100"), "Initial stock")]
        _assert_ledger_consistent(flour.id)

    def test_list_transactions_limit(self, db_session, business, flour):
        for _ in range(3):
            inventory_service.adjust_stock(business_id=business.id, item_id=flour.id, quantity_change=1)
        txs = inventory_service.list_transactions(business_id=business.id, item_id=flour.id, limit=2)
        assert [t.resulting_quantity for t in txs] == [Decimal("103"), Decimal("102")]
