from __future__ import annotations

from decimal import Decimal

from sqlalchemy import event

from ..extensions import db
from ..money import decimal_str
from smartmart.time_utils import to_utc_z


# transaction_type values
TYPE_OPENING = "Opening"
TYPE_PURCHASE = "Purchase"
TYPE_SALE = "Sale"
TYPE_RETURN = "Return"
TYPE_ADJUSTMENT = "Adjustment"

TRANSACTION_TYPES = (TYPE_OPENING, TYPE_PURCHASE, TYPE_SALE, TYPE_RETURN, TYPE_ADJUSTMENT)


class StockLedgerEntry(db.Model):
    """
    Append-only stock movement log.

    Invariants:
    - balance = previous balance + qty_in - qty_out (per product, ordered by id)
    - balance >= 0
    - rows are never updated or deleted (see listeners below); corrections
      are new Adjustment entries

    transaction_id points at Invoice.id (Sale, Return) or Purchase.id
    (Purchase); it is NULL for Opening and Adjustment.
    """
    __tablename__ = "stock_ledger"
    __table_args__ = (
        db.Index("ix_stock_ledger_product_id_desc", "product_id", "id"),
        db.Index("ix_stock_ledger_type_txn", "transaction_type", "transaction_id"),
        db.CheckConstraint("qty_in >= 0", name="ck_stock_ledger_qty_in"),
        db.CheckConstraint("qty_out >= 0", name="ck_stock_ledger_qty_out"),
        db.CheckConstraint("balance >= 0", name="ck_stock_ledger_balance"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    transaction_type = db.Column(db.String(16), nullable=False)
    transaction_id = db.Column(db.Integer, nullable=True)

    qty_in = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0"))
    qty_out = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0"))
    balance = db.Column(db.Numeric(18, 2), nullable=False)

    remarks = db.Column(db.String(255), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("ledger_entries", lazy="dynamic"))

    @property
    def net_movement(self) -> Decimal:
        return (self.qty_in or Decimal("0")) - (self.qty_out or Decimal("0"))

    def __repr__(self) -> str:
        return (
            f"<StockLedgerEntry id={self.id} product_id={self.product_id} "
            f"type={self.transaction_type} in={self.qty_in} out={self.qty_out} balance={self.balance}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "transaction_type": self.transaction_type,
            "transaction_id": self.transaction_id,
            "qty_in": decimal_str(self.qty_in),
            "qty_out": decimal_str(self.qty_out),
            "balance": decimal_str(self.balance),
            "remarks": self.remarks,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(StockLedgerEntry, "before_update")
def _block_ledger_update(mapper, connection, target):
    from ..services.errors import LedgerImmutabilityError

    raise LedgerImmutabilityError(
        "Stock ledger entries are immutable; record an Adjustment instead",
        details={"entry_id": target.id, "operation": "UPDATE"},
    )


@event.listens_for(StockLedgerEntry, "before_delete")
def _block_ledger_delete(mapper, connection, target):
    from ..services.errors import LedgerImmutabilityError

    raise LedgerImmutabilityError(
        "Stock ledger entries cannot be deleted",
        details={"entry_id": target.id, "operation": "DELETE"},
    )
