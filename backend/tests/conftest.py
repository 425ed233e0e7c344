"""
Pytest fixtures for StockPOS backend tests.

Provides an in-memory database, per-test table cleanup, a test client and
small factories for products.
"""

from datetime import datetime

import pytest
from stockpos import create_app
from stockpos.extensions import db
from stockpos.models import Product

OWNER_A = "owner-a"
OWNER_B = "owner-b"

# Fixed "now" for rules that depend on the calendar day
NOW = datetime(2026, 3, 10, 12, 0, 0)


@pytest.fixture(scope='session')
def app():
    """One app and one in-memory database for the whole run."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BUSINESS_TIMEZONE': 'UTC',
        'NOTIFICATION_DEDUP_SECONDS': 0,
        'SALE_COMMIT_ATTEMPTS': 1,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Empty every table (children first) and hand the session to the test."""
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Leave no half-finished transaction for the next test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: insert a product for OWNER_A unless overridden."""
    def _make(**kwargs) -> Product:
        fields = {
            "owner_id": OWNER_A,
            "name": "Indomie Noodles",
            "category": "Food",
            "stock_quantity": 10,
            "cost_price_cents": 5000,
            "selling_price_cents": 8000,
            "low_stock_threshold": 3,
        }
        fields.update(kwargs)
        product = Product(**fields)
        db_session.add(product)
        db_session.commit()
        return product
    return _make


def owner_headers(owner_id: str = OWNER_A) -> dict:
    """Helper to create identity headers."""
    return {'X-Owner-Id': owner_id}
