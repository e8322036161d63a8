"""
Pytest fixtures for Baz POS backend tests.

Provides test database setup, document seeding helpers, and test client.
"""

import pytest

from bazpos import create_app
from bazpos.extensions import db
from bazpos.services import ledger_store
from bazpos.services.ledger_store import PRODUCTS


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'TX_RETRY_BACKOFF_SECONDS': 0,
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

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def seed(db_session):
    """Write a document straight into the store and commit it."""
    def _seed(collection: str, body: dict) -> dict:
        stored = ledger_store.set_document(collection, body["id"], body)
        db_session.commit()
        return stored
    return _seed


@pytest.fixture(scope='function')
def make_product(seed):
    """Create a product with the given color -> size -> quantity stock."""
    def _make(product_id="P1", name="Linen Shirt", purchase_price=20, quantities=None, **extra):
        colors = {
            color: {"sizes": {size: {"quantity": qty} for size, qty in sizes.items()}}
            for color, sizes in (quantities or {}).items()
        }
        return seed(PRODUCTS, {
            "id": product_id,
            "name": name,
            "purchasePrice": purchase_price,
            "colors": colors,
            **extra,
        })
    return _make
