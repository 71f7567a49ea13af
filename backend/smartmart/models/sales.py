from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..money import decimal_str
from smartmart.time_utils import to_utc_z

PAYMENT_METHODS = ("Cash Sale", "Credit Card", "Credit Customer")

DEFAULT_CUSTOMER_NAME = "Cash"


class Customer(db.Model):
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(20), nullable=True)
    address = db.Column(db.Text, nullable=True)
    balance = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0"))

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "address": self.address,
            "balance": decimal_str(self.balance),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Invoice(db.Model):
    """
    Sale invoice.

    Only committed invoices exist as rows: the sale orchestrator creates the
    header, its lines and their Sale ledger entries in one transaction and
    rolls all of them back on any failure.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_invoice_date", "invoice_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    account_id = db.Column(db.String(50), nullable=True)
    cashier_name = db.Column(db.String(100), nullable=True)
    payment_method = db.Column(db.String(32), nullable=False, default="Cash Sale")
    invoice_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    remarks = db.Column(db.String(255), nullable=True)

    discount = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0"))
    tax_percent = db.Column(db.Numeric(18, 3), nullable=False, default=Decimal("0"))
    final_total = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0"))
    paid_amount = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0"))

    is_return = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    customer = db.relationship("Customer", backref=db.backref("invoices", lazy=True))

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "customer_id": self.customer_id,
            "account_id": self.account_id,
            "cashier_name": self.cashier_name,
            "payment_method": self.payment_method,
            "invoice_date": to_utc_z(self.invoice_date),
            "remarks": self.remarks,
            "discount": decimal_str(self.discount),
            "tax_percent": decimal_str(self.tax_percent),
            "final_total": decimal_str(self.final_total),
            "paid_amount": decimal_str(self.paid_amount),
            "is_return": self.is_return,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class InvoiceItem(db.Model):
    """
    Invoice line.

    cost_price is frozen at sale time for profit reporting; later purchase
    reweighting does not change it.
    """
    __tablename__ = "invoice_items"
    __table_args__ = (
        db.CheckConstraint("return_qty <= quantity", name="ck_invoice_items_return_qty"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    price = db.Column(db.Numeric(18, 2), nullable=False)
    quantity = db.Column(db.Numeric(18, 2), nullable=False)
    return_qty = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0"))
    tax_percent = db.Column(db.Numeric(18, 3), nullable=False, default=Decimal("0"))
    cost_price = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0"))

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    invoice = db.relationship(
        "Invoice",
        backref=db.backref("items", lazy=True, order_by="InvoiceItem.id"),
    )
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "product_id": self.product_id,
            "price": decimal_str(self.price),
            "quantity": decimal_str(self.quantity),
            "return_qty": decimal_str(self.return_qty),
            "tax_percent": decimal_str(self.tax_percent),
            "cost_price": decimal_str(self.cost_price),
            "created_at": to_utc_z(self.created_at),
        }
