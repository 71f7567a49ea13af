from __future__ import annotations

from decimal import Decimal

from sqlalchemy.ext.hybrid import hybrid_property

from ..extensions import db
from ..money import decimal_str, quantize_money
from smartmart.time_utils import to_utc_z, to_iso_date


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)

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
            "description": self.description,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Supplier(db.Model):
    """
    Supplier master data.

    Balances are informational; purchases do not post to them.
    """
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    supplier_name = db.Column(db.String(100), nullable=False)
    contact_person = db.Column(db.String(100), nullable=True)
    phone = db.Column(db.String(20), nullable=False)
    email = db.Column(db.String(100), nullable=True)
    address = db.Column(db.Text, nullable=True)
    city = db.Column(db.String(50), nullable=True)
    country = db.Column(db.String(50), nullable=True)
    tax_number = db.Column(db.String(50), nullable=True)
    payment_terms = db.Column(db.String(50), nullable=True)
    bank_details = db.Column(db.Text, nullable=True)

    opening_balance = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0"))
    outstanding_balance = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0"))
    credit_limit = db.Column(db.Numeric(18, 2), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="Active")  # Active, Inactive

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
            "supplier_name": self.supplier_name,
            "contact_person": self.contact_person,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "city": self.city,
            "country": self.country,
            "tax_number": self.tax_number,
            "payment_terms": self.payment_terms,
            "bank_details": self.bank_details,
            "opening_balance": decimal_str(self.opening_balance),
            "outstanding_balance": decimal_str(self.outstanding_balance),
            "credit_limit": decimal_str(self.credit_limit),
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Unit(db.Model):
    """Unit of measure (pcs, kg, box, ...)."""
    __tablename__ = "units"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), nullable=False, unique=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": to_utc_z(self.created_at),
        }


class Product(db.Model):
    """
    Product master data.

    CODE: Product.code is the business key. It is unique and never changes
    after creation (routes do not accept it on update).

    QTY SNAPSHOT:
    The "qty" column caches the balance of the product's latest
    StockLedgerEntry. It is mapped to the private attribute ``_qty`` and
    exposed through a read-only ``qty`` property; the only writer is
    services.stock_ledger_service. Product(qty=...) and ``product.qty = x``
    both raise AttributeError.

    cost_price is the weighted-average unit cost, recomputed on every
    purchase receipt (services.costing_service).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_products_code"),
        db.Index("ix_products_name", "name"),
        db.CheckConstraint("qty >= 0", name="ck_products_qty_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    code = db.Column(db.String(20), nullable=False)
    name = db.Column(db.String(255), nullable=False)

    cost_price = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0"))
    sale_price = db.Column(db.Numeric(18, 2), nullable=False, default=Decimal("0"))

    _qty = db.Column("qty", db.Numeric(18, 2), nullable=False, default=Decimal("0"))

    expiry = db.Column(db.Date, nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    unit_id = db.Column(db.Integer, db.ForeignKey("units.id"), nullable=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    supplier = db.relationship("Supplier", backref=db.backref("products", lazy=True))
    unit = db.relationship("Unit", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @hybrid_property
    def qty(self) -> Decimal:
        return self._qty if self._qty is not None else Decimal("0")

    @qty.inplace.expression
    @classmethod
    def _qty_expression(cls):
        return cls._qty

    @property
    def total_value(self) -> Decimal:
        """Inventory value at current weighted-average cost."""
        return quantize_money((self.cost_price or Decimal("0")) * self.qty)

    def __repr__(self) -> str:
        return f"<Product id={self.id} code={self.code!r} name={self.name!r} qty={self.qty}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "cost_price": decimal_str(self.cost_price),
            "sale_price": decimal_str(self.sale_price),
            "qty": decimal_str(self.qty),
            "total_value": decimal_str(self.total_value),
            "expiry": to_iso_date(self.expiry),
            "category_id": self.category_id,
            "supplier_id": self.supplier_id,
            "unit_id": self.unit_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
