"""
Pytest fixtures for BizPilot backend tests.

Provides test database setup, business fixtures (two businesses for
isolation checks), and test client.
"""

from decimal import Decimal

import pytest
from bizpilot import create_app
from bizpilot.extensions import db
from bizpilot.models import Business
from bizpilot.services import inventory_service, products_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'AI_COMPLETION_URL': '',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        # Config tweaks made by a test must not leak into the next one
        allow_negative = app.config['ALLOW_NEGATIVE_STOCK']
        ai_url = app.config['AI_COMPLETION_URL']

        yield db.session

        # Cleanup after test
        db.session.rollback()
        app.config['ALLOW_NEGATIVE_STOCK'] = allow_negative
        app.config['AI_COMPLETION_URL'] = ai_url


@pytest.fixture(scope='function')
def business(db_session):
    """Business A: ZAR, R15/h, 40% default margin."""
    b = Business(
        name="Corner Bakery",
        hourly_rate=Decimal("15"),
        default_margin=Decimal("40"),
        currency_code="ZAR",
    )
    db_session.add(b)
    db_session.commit()
    return b


@pytest.fixture(scope='function')
def other_business(db_session):
    """Business B (second owner), used to prove rows never cross businesses."""
    b = Business(
        name="Candle Works",
        hourly_rate=Decimal("20"),
        default_margin=Decimal("50"),
        currency_code="USD",
    )
    db_session.add(b)
    db_session.commit()
    return b


@pytest.fixture(scope='function')
def flour(business):
    """Inventory item with 100 kg initial stock."""
    return inventory_service.create_item(
        business_id=business.id,
        fields={"name": "Flour", "unit": "kg", "cost_per_unit": Decimal("12.50"), "low_stock_alert": Decimal("20")},
        initial_quantity=100,
    )


@pytest.fixture(scope='function')
def bread(business):
    """Product priced at 35.00 cost / 58.33 price / 40.00% margin."""
    return products_service.create_product(
        business_id=business.id,
        patch={"name": "Sourdough", "labor_minutes": Decimal("100"), "target_margin": Decimal("40")},
        ingredients=[{"name": "Flour", "unit_cost": "10", "quantity": "1", "unit": "kg"}],
    )
