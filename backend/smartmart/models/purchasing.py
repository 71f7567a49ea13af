from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..money import decimal_str
from smartmart.time_utils import to_utc_z, to_iso_date

# payment_status lifecycle: Pending -> Partial/Paid, or Cancelled
PAYMENT_PENDING = "Pending"
PAYMENT_PARTIAL = "Partial"
PAYMENT_PAID = "Paid"
PAYMENT_CANCELLED = "Cancelled"

PAYMENT_STATUSES = (PAYMENT_PENDING, PAYMENT_PARTIAL, PAYMENT_PAID, PAYMENT_CANCELLED)


class Purchase(db.Model):
    """
    Purchase (goods receipt) header.

    Stock and cost effects are final at creation. payment_status moves
    independently and never touches the ledger.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_purchase_date", "purchase_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)

    purchase_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    remarks = db.Column(db.String(255), nullable=True)
    total_amount = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0"))
    paid_amount = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0"))
    due_date = db.Column(db.Date, nullable=True)
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_PENDING, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    supplier = db.relationship("Supplier", backref=db.backref("purchases", lazy=True))

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "supplier_id": self.supplier_id,
            "purchase_date": to_utc_z(self.purchase_date),
            "remarks": self.remarks,
            "total_amount": decimal_str(self.total_amount),
            "paid_amount": decimal_str(self.paid_amount),
            "due_date": to_iso_date(self.due_date),
            "payment_status": self.payment_status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class PurchaseItem(db.Model):
    """
    Purchase line. cost_price is the purchase-time unit cost as submitted,
    not the product's reweighted cost.
    """
    __tablename__ = "purchase_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    cost_price = db.Column(db.Numeric(18, 2), nullable=False)
    sale_price = db.Column(db.Numeric(18, 2), nullable=False)
    quantity = db.Column(db.Numeric(18, 2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    purchase = db.relationship(
        "Purchase",
        backref=db.backref("items", lazy=True, order_by="PurchaseItem.id"),
    )
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "product_id": self.product_id,
            "cost_price": decimal_str(self.cost_price),
            "sale_price": decimal_str(self.sale_price),
            "quantity": decimal_str(self.quantity),
            "created_at": to_utc_z(self.created_at),
        }
