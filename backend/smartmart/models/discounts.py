from __future__ import annotations

from ..extensions import db
from ..money import decimal_str
from smartmart.time_utils import to_utc_z, to_iso_date

STATUS_ACTIVE = "Active"
STATUS_INACTIVE = "Inactive"
DISCOUNT_STATUSES = (STATUS_ACTIVE, STATUS_INACTIVE)

# ItemDiscount.type
ITEM_PERCENT = "Percent"
ITEM_VALUE = "Value"
ITEM_DISCOUNT_TYPES = (ITEM_PERCENT, ITEM_VALUE)

# BillDiscount.condition_type / BillDiscount.type
CONDITION_ABOVE = "Above"
CONDITION_EQUAL_OR_ABOVE = "EqualOrAbove"
CONDITION_BELOW = "Below"
BILL_CONDITIONS = (CONDITION_ABOVE, CONDITION_EQUAL_OR_ABOVE, CONDITION_BELOW)

BILL_FLAT = "Flat"
BILL_PERCENTAGE = "Percentage"
BILL_DISCOUNT_TYPES = (BILL_FLAT, BILL_PERCENTAGE)


class ItemDiscount(db.Model):
    """
    Product-scoped discount.

    type=Percent: amount is a percent (1..100) of the sale price.
    type=Value: amount is a currency value; never above the sale price.
    """
    __tablename__ = "items_discounts"
    __table_args__ = (
        db.Index("ix_items_discounts_product_status", "product_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    type = db.Column(db.String(16), nullable=False)
    description = db.Column(db.String(255), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship(
        "Product",
        backref=db.backref("item_discounts", lazy=True, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "type": self.type,
            "description": self.description,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "amount": decimal_str(self.amount),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }


class CategoryDiscount(db.Model):
    __tablename__ = "category_discounts"
    __table_args__ = (
        db.Index("ix_category_discounts_category_status", "category_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(
        db.Integer,
        db.ForeignKey("categories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    percent = db.Column(db.Numeric(5, 2), nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship(
        "Category",
        backref=db.backref("discounts", lazy=True, cascade="all, delete-orphan"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "category_id": self.category_id,
            "percent": decimal_str(self.percent),
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }


class BillDiscount(db.Model):
    """
    Whole-invoice discount, triggered when the bill total satisfies
    condition_type against amount (the threshold).
    """
    __tablename__ = "bill_discounts"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    condition_type = db.Column(db.String(16), nullable=False)
    amount = db.Column(db.Numeric(18, 2), nullable=False)
    type = db.Column(db.String(16), nullable=False)
    value = db.Column(db.Numeric(18, 2), nullable=False)
    from_date = db.Column(db.Date, nullable=False)
    to_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE)
    description = db.Column(db.String(255), nullable=True)

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
            "condition_type": self.condition_type,
            "amount": decimal_str(self.amount),
            "type": self.type,
            "value": decimal_str(self.value),
            "from_date": to_iso_date(self.from_date),
            "to_date": to_iso_date(self.to_date),
            "status": self.status,
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
        }
