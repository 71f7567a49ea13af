# Overview: Concurrent sale commits against a file-backed SQLite database.

"""
Concurrency Tests

Two tills sell the last unit of the same product at the same moment.
Exactly one sale may commit; the other must fail with insufficient_stock
and leave nothing behind.

Uses a file database (not :memory:) so each thread gets its own
connection and the write lock is real.
"""

import threading
from decimal import Decimal

import pytest

from smartmart import create_app
from smartmart.config import TestingConfig
from smartmart.extensions import db
from smartmart.models import Invoice, Product, StockLedgerEntry
from smartmart.services.errors import InsufficientStockError
from smartmart.services.invoice_service import commit_sale
from smartmart.services.products_service import create_product


@pytest.fixture
def file_app(tmp_path):
    app = create_app(TestingConfig, {
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'concurrency.sqlite3'}",
        "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 15}},
    })
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _race(app, product_id, workers=2):
    barrier = threading.Barrier(workers)
    results = []
    lock = threading.Lock()

    def _sell():
        with app.app_context():
            try:
                barrier.wait()
                invoice = commit_sale({}, [{"product_id": product_id, "quantity": 1, "price": "1.00"}])
                outcome = ("ok", invoice.id)
            except InsufficientStockError as e:
                outcome = ("insufficient_stock", e.kind)
            except Exception as e:
                outcome = ("error", repr(e))
            finally:
                db.session.remove()
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=_sell) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results


def test_last_unit_sold_once(file_app):
    with file_app.app_context():
        product_id = create_product(patch={"code": "LAST-1", "name": "Last one"}, opening_qty=1).id

    results = _race(file_app, product_id)

    assert sorted(r[0] for r in results) == ["insufficient_stock", "ok"]

    with file_app.app_context():
        assert db.session.get(Product, product_id).qty == Decimal("0")
        assert db.session.query(Invoice).count() == 1

        balances = [
            e.balance for e in
            db.session.query(StockLedgerEntry).filter_by(product_id=product_id).order_by(StockLedgerEntry.id)
        ]
        assert balances == [Decimal("1"), Decimal("0")]


def test_concurrent_sales_within_stock_all_commit(file_app):
    with file_app.app_context():
        product_id = create_product(patch={"code": "MANY-1", "name": "Plenty"}, opening_qty=4).id

    results = _race(file_app, product_id, workers=4)

    assert [r[0] for r in results] == ["ok"] * 4

    with file_app.app_context():
        assert db.session.get(Product, product_id).qty == Decimal("0")
        assert db.session.query(Invoice).count() == 4
        assert all(
            e.balance >= 0
            for e in db.session.query(StockLedgerEntry).filter_by(product_id=product_id)
        )
