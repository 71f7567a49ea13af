# Overview: Pytest coverage for the stock ledger, balance resolver and mutation engine.

"""
Stock Ledger Tests

Covers:
- Opening stock realized as a ledger entry (never a direct qty write)
- Running balance / prefix-sum invariant across mixed movements
- Snapshot (Product.qty) always equal to the latest entry balance
- Negative balances rejected with nothing written
- Movement shape validation
- Quantities limited to the stored 2 dp scale
- Manual adjustments to a target quantity
- Ledger rows are immutable
"""

from decimal import Decimal

import pytest

from smartmart.models import Invoice, Product, StockLedgerEntry
from smartmart.models.inventory import (
    TYPE_ADJUSTMENT,
    TYPE_OPENING,
    TYPE_PURCHASE,
    TYPE_RETURN,
    TYPE_SALE,
)
from smartmart.services.errors import (
    InsufficientStockError,
    InvalidInvoiceError,
    InvalidMovementError,
    LedgerImmutabilityError,
    ProductNotFoundError,
)
from smartmart.services.invoice_service import commit_sale
from smartmart.services.stock_ledger_service import (
    adjust_stock,
    get_last_balance,
    list_ledger_entries,
    record_movement,
    register_opening_stock,
    verify_product_ledger,
)


def _entries(db_session, product_id):
    return list_ledger_entries(db_session, product_id)


class TestBalanceResolver:

    def test_no_history_is_zero(self, db_session, make_product):
        p = make_product("P-001")
        assert get_last_balance(db_session, p.id) == Decimal("0")

    def test_unknown_product_is_zero_not_error(self, db_session):
        assert get_last_balance(db_session, 99999) == Decimal("0")

    def test_latest_entry_wins(self, db_session, make_product):
        p = make_product("P-002", opening_qty=10)
        record_movement(db_session, product_id=p.id, transaction_type=TYPE_SALE, qty_out=3)
        db_session.commit()
        assert get_last_balance(db_session, p.id) == Decimal("7")


class TestOpeningStock:

    def test_opening_qty_becomes_opening_entry(self, db_session, make_product):
        p = make_product("OPEN-1", opening_qty=12)

        entries = _entries(db_session, p.id)
        assert len(entries) == 1
        assert entries[0].transaction_type == TYPE_OPENING
        assert entries[0].qty_in == Decimal("12")
        assert entries[0].balance == Decimal("12")
        assert entries[0].transaction_id is None
        assert p.qty == Decimal("12")

    def test_zero_opening_records_nothing(self, db_session, make_product):
        p = make_product("OPEN-2", opening_qty=0)
        assert _entries(db_session, p.id) == []
        assert p.qty == Decimal("0")
        assert register_opening_stock(db_session, p.id, 0) is None

    def test_negative_opening_rejected(self, db_session, make_product):
        with pytest.raises(InvalidMovementError):
            make_product("OPEN-3", opening_qty=-1)
        assert db_session.query(Product).filter_by(code="OPEN-3").first() is None

    def test_sub_cent_opening_rejected(self, db_session, make_product):
        with pytest.raises(InvalidMovementError):
            make_product("OPEN-4", opening_qty="1.005")
        assert db_session.query(Product).filter_by(code="OPEN-4").first() is None


class TestRecordMovement:

    def test_prefix_sum_and_snapshot_hold(self, db_session, make_product):
        p = make_product("MOVE-1", opening_qty=5)
        record_movement(db_session, product_id=p.id, transaction_type=TYPE_PURCHASE, qty_in=10, transaction_id=1)
        record_movement(db_session, product_id=p.id, transaction_type=TYPE_SALE, qty_out=4, transaction_id=1)
        record_movement(db_session, product_id=p.id, transaction_type=TYPE_RETURN, qty_in=1, transaction_id=1)
        record_movement(db_session, product_id=p.id, transaction_type=TYPE_ADJUSTMENT, qty_out=2)
        db_session.commit()

        entries = _entries(db_session, p.id)
        running = Decimal("0")
        for entry in entries:
            running += entry.qty_in - entry.qty_out
            assert entry.balance == running
            assert entry.balance >= 0

        assert [e.balance for e in entries] == [Decimal(x) for x in ("5", "15", "11", "12", "10")]
        assert db_session.get(Product, p.id).qty == Decimal("10")

        report = verify_product_ledger(db_session, p.id)
        assert report["consistent"] is True
        assert report["entries"] == 5

    def test_oversell_raises_and_writes_nothing(self, db_session, make_product):
        p = make_product("MOVE-2", opening_qty=2)

        with pytest.raises(InsufficientStockError) as exc:
            record_movement(db_session, product_id=p.id, transaction_type=TYPE_SALE, qty_out=3)
        db_session.rollback()

        assert Decimal(exc.value.details["available"]) == Decimal("2")
        assert exc.value.kind == "insufficient_stock"
        assert len(_entries(db_session, p.id)) == 1
        assert db_session.get(Product, p.id).qty == Decimal("2")

    def test_selling_exact_balance_reaches_zero(self, db_session, make_product):
        p = make_product("MOVE-3", opening_qty=3)
        entry = record_movement(db_session, product_id=p.id, transaction_type=TYPE_SALE, qty_out=3)
        db_session.commit()
        assert entry.balance == Decimal("0")
        assert db_session.get(Product, p.id).qty == Decimal("0")

    def test_fractional_quantities(self, db_session, make_product):
        p = make_product("MOVE-4", opening_qty="2.5")
        record_movement(db_session, product_id=p.id, transaction_type=TYPE_SALE, qty_out="0.75")
        db_session.commit()
        assert db_session.get(Product, p.id).qty == Decimal("1.75")

    @pytest.mark.parametrize("qty_out", ["0.015", "0.004", "1.255"])
    def test_quantities_below_a_cent_rejected(self, db_session, make_product, qty_out):
        p = make_product("SCALE-1", opening_qty=2)
        with pytest.raises(InvalidMovementError):
            record_movement(db_session, product_id=p.id, transaction_type=TYPE_SALE, qty_out=qty_out)
        db_session.rollback()

        assert len(_entries(db_session, p.id)) == 1
        assert db_session.get(Product, p.id).qty == Decimal("2")
        assert verify_product_ledger(db_session, p.id)["consistent"] is True

    def test_trailing_zero_scale_is_accepted(self, db_session, make_product):
        p = make_product("SCALE-2", opening_qty=2)
        record_movement(db_session, product_id=p.id, transaction_type=TYPE_SALE, qty_out="0.500")
        db_session.commit()
        assert db_session.get(Product, p.id).qty == Decimal("1.5")

    @pytest.mark.parametrize("quantity", ["0.015", "0.004"])
    def test_sale_of_sub_cent_quantity_leaves_ledger_consistent(self, db_session, make_product, quantity):
        p = make_product("SCALE-3", opening_qty=1)
        with pytest.raises(InvalidInvoiceError):
            commit_sale({}, [{"product_id": p.id, "quantity": quantity, "price": "1.00"}])

        assert len(_entries(db_session, p.id)) == 1
        assert db_session.query(Invoice).count() == 0
        assert db_session.get(Product, p.id).qty == Decimal("1")
        assert verify_product_ledger(db_session, p.id)["consistent"] is True

    @pytest.mark.parametrize("tx_type,qty_in,qty_out", [
        (TYPE_SALE, 1, 0),
        (TYPE_SALE, 0, 0),
        (TYPE_PURCHASE, 0, 1),
        (TYPE_OPENING, 1, 1),
        (TYPE_RETURN, 0, 0),
        (TYPE_ADJUSTMENT, 1, 1),
        (TYPE_ADJUSTMENT, 0, 0),
        (TYPE_SALE, 0, -1),
        ("Transfer", 1, 0),
    ])
    def test_wrong_movement_shape_rejected(self, db_session, make_product, tx_type, qty_in, qty_out):
        p = make_product("SHAPE-1", opening_qty=10)
        with pytest.raises(InvalidMovementError):
            record_movement(db_session, product_id=p.id, transaction_type=tx_type, qty_in=qty_in, qty_out=qty_out)
        db_session.rollback()
        assert len(_entries(db_session, p.id)) == 1

    def test_unknown_product(self, db_session):
        with pytest.raises(ProductNotFoundError):
            record_movement(db_session, product_id=424242, transaction_type=TYPE_PURCHASE, qty_in=1)
        db_session.rollback()


class TestAdjustStock:

    def test_adjust_up(self, db_session, make_product):
        p = make_product("ADJ-1", opening_qty=4)
        entry = adjust_stock(p.id, 10, "Counted shelf")

        assert entry.transaction_type == TYPE_ADJUSTMENT
        assert entry.qty_in == Decimal("6")
        assert entry.qty_out == Decimal("0")
        assert entry.balance == Decimal("10")
        assert entry.remarks == "Counted shelf"
        assert db_session.get(Product, p.id).qty == Decimal("10")

    def test_adjust_down(self, db_session, make_product):
        p = make_product("ADJ-2", opening_qty=9)
        entry = adjust_stock(p.id, 1)

        assert entry.qty_out == Decimal("8")
        assert entry.balance == Decimal("1")

    def test_adjust_to_same_qty_is_noop(self, db_session, make_product):
        p = make_product("ADJ-3", opening_qty=3)
        assert adjust_stock(p.id, 3) is None
        assert len(_entries(db_session, p.id)) == 1

    def test_negative_target_rejected(self, db_session, make_product):
        p = make_product("ADJ-4", opening_qty=3)
        with pytest.raises(InvalidMovementError):
            adjust_stock(p.id, -1)
        assert len(_entries(db_session, p.id)) == 1

    def test_sub_cent_target_rejected(self, db_session, make_product):
        p = make_product("ADJ-5", opening_qty=3)
        with pytest.raises(InvalidMovementError):
            adjust_stock(p.id, "2.005")
        assert len(_entries(db_session, p.id)) == 1
        assert db_session.get(Product, p.id).qty == Decimal("3")

    def test_unknown_product(self, db_session):
        with pytest.raises(ProductNotFoundError):
            adjust_stock(31337, 5)


class TestSnapshotAndImmutability:

    def test_qty_is_read_only(self, db_session, make_product):
        p = make_product("RO-1", opening_qty=1)
        with pytest.raises(AttributeError):
            p.qty = Decimal("50")
        with pytest.raises(AttributeError):
            Product(code="RO-2", name="x", qty=Decimal("5"))

    def test_ledger_entry_cannot_be_updated(self, db_session, make_product):
        p = make_product("IMM-1", opening_qty=5)
        entry = db_session.query(StockLedgerEntry).filter_by(product_id=p.id).one()

        entry.balance = Decimal("500")
        with pytest.raises(LedgerImmutabilityError):
            db_session.commit()
        db_session.rollback()

        assert db_session.query(StockLedgerEntry).filter_by(product_id=p.id).one().balance == Decimal("5")

    def test_ledger_entry_cannot_be_deleted(self, db_session, make_product):
        p = make_product("IMM-2", opening_qty=5)
        entry = db_session.query(StockLedgerEntry).filter_by(product_id=p.id).one()

        db_session.delete(entry)
        with pytest.raises(LedgerImmutabilityError):
            db_session.commit()
        db_session.rollback()

        assert db_session.query(StockLedgerEntry).filter_by(product_id=p.id).count() == 1
