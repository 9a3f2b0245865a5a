# Overview: Coverage for the flask CLI command groups.

from decimal import Decimal

import pytest

from bizpilot.models import Business, InventoryItem


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


def test_businesses_create_and_list(runner, db_session):
    result = runner.invoke(args=[
        "businesses", "create",
        "--name", "Night Market",
        "--currency", "usd",
        "--hourly-rate", "22.5",
        "--default-margin", "35",
    ])
    assert result.exit_code == 0, result.output
    assert "PASS Created business: Night Market" in result.output

    business = db_session.query(Business).filter_by(name="Night Market").one()
    assert business.currency_code == "USD"
    assert business.hourly_rate == Decimal("22.50")

    result = runner.invoke(args=["businesses", "list"])
    assert result.exit_code == 0
    assert "Night Market" in result.output


def test_businesses_create_rejects_bad_margin(runner, db_session):
    result = runner.invoke(args=["businesses", "create", "--name", "X", "--default-margin", "120"])
    assert result.exit_code != 0
    assert db_session.query(Business).count() == 0


def test_businesses_list_empty(runner, db_session):
    result = runner.invoke(args=["businesses", "list"])
    assert "No businesses found." in result.output


def test_verify_ledger_clean(runner, db_session, flour):
    result = runner.invoke(args=["inventory", "verify-ledger"])
    assert result.exit_code == 0
    assert "no drift" in result.output


def test_verify_ledger_reports_and_fixes_drift(runner, db_session, business, flour):
    db_session.query(InventoryItem).filter_by(id=flour.id).update({"current_quantity": Decimal("7")})
    db_session.commit()

    result = runner.invoke(args=["inventory", "verify-ledger", "--business-id", str(business.id)])
    assert result.exit_code == 1
    assert f"DRIFT item {flour.id}" in result.output

    result = runner.invoke(args=["inventory", "verify-ledger", "--fix"])
    assert result.exit_code == 0
    assert "Repaired 1 item(s)" in result.output

    db_session.expire_all()
    assert db_session.get(InventoryItem, flour.id).current_quantity == Decimal("100")


def test_init_db_is_idempotent(runner, db_session, business):
    result = runner.invoke(args=["system", "init-db"])
    assert result.exit_code == 0
    assert db_session.query(Business).count() == 1
