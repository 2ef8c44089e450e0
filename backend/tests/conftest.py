"""
Pytest fixtures for StockLedger backend tests.

Provides test database setup, product fixtures, and test client.
"""

import pytest
from stockledger import create_app
from stockledger.extensions import db
from stockledger.services.products_service import create_product


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOW_STOCK_THRESHOLD': 5,
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
def make_product(db_session):
    """Factory: create a product (and its summary) through the catalog service."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        patch = {
            "code": f"PRD-{counter['n']:03d}",
            "name": f"Product {counter['n']}",
            "unit": "pcs",
            "category": "general",
        }
        threshold = overrides.pop("low_stock_threshold", None)
        patch.update(overrides)
        return create_product(patch=patch, low_stock_threshold=threshold)

    return _make


@pytest.fixture(scope='function')
def product(make_product):
    """One product with a zero-state summary and the default threshold (5)."""
    return make_product(code="WIDGET-001", name="Widget", unit="pcs", category="hardware")
