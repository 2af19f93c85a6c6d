"""
Pytest fixtures for invtrack backend tests.

Provides the application on an in-memory SQLite database, a test client,
a clean session per test and a few ready-made products.
"""

import pytest
from invtrack import create_app
from invtrack.extensions import db
from invtrack.models import Product

ACTOR = "user-1"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'INVENTORY_TIMEZONE': 'UTC',
        'ALLOW_NEGATIVE_STOCK': False,
        'DB_RETRY_BACKOFF_SECONDS': 0,
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
        app.config['ALLOW_NEGATIVE_STOCK'] = False

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def actor_headers():
    return {"X-Actor-Id": ACTOR}


@pytest.fixture(scope='function')
def product(db_session):
    """Product at quantity 0 with no ledger rows."""
    p = Product(sku="WIDGET-1", name="Widget", cost_price_cents=250, selling_price_cents=499, reorder_level=10)
    db_session.add(p)
    db_session.commit()
    return p


@pytest.fixture(scope='function')
def other_product(db_session):
    p = Product(sku="GADGET-1", name="Gadget", cost_price_cents=1000, selling_price_cents=1999, reorder_level=5)
    db_session.add(p)
    db_session.commit()
    return p


@pytest.fixture(scope='function')
def stocked_product(product):
    """Product seeded with opening stock 100."""
    from invtrack.services import inventory_service

    inventory_service.seed_opening_stock(product.id, 100, actor=ACTOR)
    return product
