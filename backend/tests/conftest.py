"""
Pytest fixtures for SmartMart backend tests.

Provides test database setup, catalog fixtures, and test client.
"""

from decimal import Decimal

import pytest
from smartmart import create_app
from smartmart.config import TestingConfig
from smartmart.extensions import db
from smartmart.models import Category, Supplier, Unit
from smartmart.services.products_service import create_product


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestingConfig)

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
def category(db_session):
    category = Category(name="Beverages")
    db_session.add(category)
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(supplier_name="Acme Wholesale", phone="555-0100")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def unit(db_session):
    unit = Unit(name="pcs")
    db_session.add(unit)
    db_session.commit()
    return unit


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(code, opening_qty=0, cost="5.00", sale="7.50", **fields)."""
    def _make(code, opening_qty=0, cost="5.00", sale="7.50", **fields):
        patch = {
            "code": code,
            "name": fields.pop("name", f"Product {code}"),
            "cost_price": Decimal(cost),
            "sale_price": Decimal(sale),
        }
        patch.update(fields)
        return create_product(patch=patch, opening_qty=opening_qty)
    return _make
