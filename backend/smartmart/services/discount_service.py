# Overview: Discount records (item / category / bill) and the discount resolver.

"""
Discount Resolver

Applicability (all kinds): status == "Active" and start <= as_of <= end,
both bounds inclusive.

Tie-break among applicable records, per kind:
- item, bill:  latest end date, then latest created_at, then highest id
- category:    highest percent, then latest created_at, then highest id

At most one record of each kind is returned; a missing kind means full
price for that dimension. Resolution never writes.

Validation:
- percent values (item Percent, category, bill Percentage) within 1..100
- item Value discounts never above the product's sale price
- start date not after end date
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from ..extensions import db
from ..models import BillDiscount, Category, CategoryDiscount, ItemDiscount, Product
from ..models.discounts import (
    BILL_CONDITIONS,
    BILL_DISCOUNT_TYPES,
    BILL_FLAT,
    BILL_PERCENTAGE,
    CONDITION_ABOVE,
    CONDITION_BELOW,
    CONDITION_EQUAL_OR_ABOVE,
    DISCOUNT_STATUSES,
    ITEM_DISCOUNT_TYPES,
    ITEM_PERCENT,
    ITEM_VALUE,
    STATUS_ACTIVE,
)
from ..money import ZERO, quantize_money, to_decimal
from ..validation import ValidationError
from .concurrency import commit_with_retry
from .errors import InvalidDiscountAmountError, InvalidSalePriceError, NotFoundError, ProductNotFoundError
from smartmart.time_utils import today

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class ResolvedDiscounts:
    item_discount: ItemDiscount | None = None
    category_discount: CategoryDiscount | None = None
    bill_discount: BillDiscount | None = None

    def to_dict(self) -> dict:
        return {
            "item_discount": self.item_discount.to_dict() if self.item_discount else None,
            "category_discount": self.category_discount.to_dict() if self.category_discount else None,
            "bill_discount": self.bill_discount.to_dict() if self.bill_discount else None,
        }


def _as_date(value) -> date:
    if value is None:
        return today()
    if isinstance(value, datetime):
        return value.date()
    return value


# =============================================================================
# Resolution
# =============================================================================

def resolve_item_discount(session, product_id: int, as_of: date) -> ItemDiscount | None:
    return (
        session.query(ItemDiscount)
        .filter(
            ItemDiscount.product_id == product_id,
            ItemDiscount.status == STATUS_ACTIVE,
            ItemDiscount.start_date <= as_of,
            ItemDiscount.end_date >= as_of,
        )
        .order_by(
            ItemDiscount.end_date.desc(),
            ItemDiscount.created_at.desc(),
            ItemDiscount.id.desc(),
        )
        .first()
    )


def resolve_category_discount(session, category_id: int | None, as_of: date) -> CategoryDiscount | None:
    if category_id is None:
        return None
    return (
        session.query(CategoryDiscount)
        .filter(
            CategoryDiscount.category_id == category_id,
            CategoryDiscount.status == STATUS_ACTIVE,
            CategoryDiscount.start_date <= as_of,
            CategoryDiscount.end_date >= as_of,
        )
        .order_by(
            CategoryDiscount.percent.desc(),
            CategoryDiscount.created_at.desc(),
            CategoryDiscount.id.desc(),
        )
        .first()
    )


def resolve_bill_discount(session, as_of: date) -> BillDiscount | None:
    return (
        session.query(BillDiscount)
        .filter(
            BillDiscount.status == STATUS_ACTIVE,
            BillDiscount.from_date <= as_of,
            BillDiscount.to_date >= as_of,
        )
        .order_by(
            BillDiscount.to_date.desc(),
            BillDiscount.created_at.desc(),
            BillDiscount.id.desc(),
        )
        .first()
    )


def resolve_discounts(session, *, product_id: int, category_id: int | None, as_of=None) -> ResolvedDiscounts:
    """Select the applicable item, category and bill discount for a product on as_of (default: today)."""
    as_of = _as_date(as_of)
    return ResolvedDiscounts(
        item_discount=resolve_item_discount(session, product_id, as_of),
        category_discount=resolve_category_discount(session, category_id, as_of),
        bill_discount=resolve_bill_discount(session, as_of),
    )


# =============================================================================
# Pricing helpers
# =============================================================================

def discounted_unit_price(sale_price, resolved: ResolvedDiscounts) -> Decimal:
    """
    Unit price after the item discount, then the category discount on the
    reduced price. Never below zero.
    """
    price = to_decimal(sale_price, "sale_price")

    item = resolved.item_discount
    if item is not None:
        if item.type == ITEM_PERCENT:
            price = price - price * Decimal(item.amount) / HUNDRED
        else:
            price = price - Decimal(item.amount)

    category = resolved.category_discount
    if category is not None:
        price = price - price * Decimal(category.percent) / HUNDRED

    return quantize_money(max(price, ZERO))


def bill_discount_applies(discount: BillDiscount, total) -> bool:
    total = to_decimal(total, "total")
    threshold = Decimal(discount.amount)
    if discount.condition_type == CONDITION_ABOVE:
        return total > threshold
    if discount.condition_type == CONDITION_EQUAL_OR_ABOVE:
        return total >= threshold
    if discount.condition_type == CONDITION_BELOW:
        return total < threshold
    return False


def bill_discount_amount(discount: BillDiscount | None, total) -> Decimal:
    """Discount granted on a bill of `total`; 0 when the condition is not met."""
    total = to_decimal(total, "total")
    if discount is None or not bill_discount_applies(discount, total):
        return ZERO
    if discount.type == BILL_FLAT:
        return quantize_money(min(Decimal(discount.value), total))
    return quantize_money(total * Decimal(discount.value) / HUNDRED)


# =============================================================================
# Validation
# =============================================================================

def _check_percent(value: Decimal, field: str) -> None:
    if value < 1 or value > 100:
        raise InvalidDiscountAmountError(
            f"{field} must be between 1 and 100",
            details={field: str(value)},
        )


def _check_window(start, end, start_field: str, end_field: str) -> None:
    if start is None or end is None:
        raise ValidationError(f"{start_field} and {end_field} are required")
    if start > end:
        raise ValidationError(f"{start_field} must be on or before {end_field}")


def _check_status(status) -> None:
    if status not in DISCOUNT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(DISCOUNT_STATUSES)}")


def validate_item_discount(values: dict, sale_price) -> None:
    if not values.get("description"):
        raise ValidationError("description is required")
    if values.get("type") not in ITEM_DISCOUNT_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(ITEM_DISCOUNT_TYPES)}")
    amount = to_decimal(values.get("amount"), "amount")
    if amount <= 0:
        raise InvalidDiscountAmountError("amount must be > 0", details={"amount": str(amount)})
    if values["type"] == ITEM_PERCENT:
        _check_percent(amount, "amount")
    elif values["type"] == ITEM_VALUE:
        sale_price = to_decimal(sale_price, "sale_price")
        if amount > sale_price:
            raise InvalidDiscountAmountError(
                "Value discount cannot exceed the product's sale price",
                details={"amount": str(amount), "sale_price": str(sale_price)},
            )
    _check_window(values.get("start_date"), values.get("end_date"), "start_date", "end_date")
    _check_status(values.get("status", STATUS_ACTIVE))


def check_sale_price_covers_value_discounts(session, product_id: int, sale_price) -> None:
    """
    Reject a sale price below any Active Value discount on the product.

    Every Active record counts, whatever its date window.
    """
    sale_price = to_decimal(sale_price, "sale_price")
    largest = (
        session.query(db.func.max(ItemDiscount.amount))
        .filter(
            ItemDiscount.product_id == product_id,
            ItemDiscount.type == ITEM_VALUE,
            ItemDiscount.status == STATUS_ACTIVE,
        )
        .scalar()
    )
    if largest is not None and sale_price < Decimal(largest):
        raise InvalidSalePriceError(
            "sale_price cannot be below an active Value discount",
            details={
                "product_id": product_id,
                "sale_price": str(sale_price),
                "discount_amount": str(largest),
            },
        )


def validate_category_discount(values: dict) -> None:
    percent = to_decimal(values.get("percent"), "percent")
    _check_percent(percent, "percent")
    _check_window(values.get("start_date"), values.get("end_date"), "start_date", "end_date")
    _check_status(values.get("status", STATUS_ACTIVE))


def validate_bill_discount(values: dict) -> None:
    if values.get("condition_type") not in BILL_CONDITIONS:
        raise ValidationError(f"condition_type must be one of: {', '.join(BILL_CONDITIONS)}")
    if values.get("type") not in BILL_DISCOUNT_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(BILL_DISCOUNT_TYPES)}")
    threshold = to_decimal(values.get("amount"), "amount")
    if threshold < 0:
        raise InvalidDiscountAmountError("amount must be >= 0", details={"amount": str(threshold)})
    value = to_decimal(values.get("value"), "value")
    if values["type"] == BILL_PERCENTAGE:
        _check_percent(value, "value")
    elif value <= 0:
        raise InvalidDiscountAmountError("value must be > 0", details={"value": str(value)})
    _check_window(values.get("from_date"), values.get("to_date"), "from_date", "to_date")
    _check_status(values.get("status", STATUS_ACTIVE))


# =============================================================================
# CRUD
# =============================================================================

ITEM_FIELDS = ("product_id", "type", "description", "start_date", "end_date", "amount", "status")
CATEGORY_FIELDS = ("category_id", "percent", "start_date", "end_date", "status")
BILL_FIELDS = ("condition_type", "amount", "type", "value", "from_date", "to_date", "status", "description")


def _merged(obj, patch: dict, fields: tuple[str, ...]) -> dict:
    values = {f: getattr(obj, f) for f in fields} if obj is not None else {}
    values.update({k: v for k, v in patch.items() if k in fields})
    return values


def _get_or_404(model, discount_id: int):
    obj = db.session.query(model).filter_by(id=discount_id).first()
    if obj is None:
        raise NotFoundError(f"{model.__name__} {discount_id} not found", details={"id": discount_id})
    return obj


def _save(obj, values: dict) -> None:
    for k, v in values.items():
        setattr(obj, k, v)
    db.session.add(obj)
    commit_with_retry()


def _item_product(product_id) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if product is None:
        raise ProductNotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def create_item_discount(patch: dict) -> ItemDiscount:
    values = _merged(None, patch, ITEM_FIELDS)
    values.setdefault("status", STATUS_ACTIVE)
    product = _item_product(values.get("product_id"))
    validate_item_discount(values, product.sale_price)
    obj = ItemDiscount()
    _save(obj, values)
    return obj


def update_item_discount(discount_id: int, patch: dict) -> ItemDiscount:
    obj = _get_or_404(ItemDiscount, discount_id)
    values = _merged(obj, patch, ITEM_FIELDS)
    product = _item_product(values.get("product_id"))
    validate_item_discount(values, product.sale_price)
    _save(obj, values)
    return obj


def create_category_discount(patch: dict) -> CategoryDiscount:
    values = _merged(None, patch, CATEGORY_FIELDS)
    values.setdefault("status", STATUS_ACTIVE)
    if db.session.query(Category).filter_by(id=values.get("category_id")).first() is None:
        raise NotFoundError("Category not found", details={"category_id": values.get("category_id")})
    validate_category_discount(values)
    obj = CategoryDiscount()
    _save(obj, values)
    return obj


def update_category_discount(discount_id: int, patch: dict) -> CategoryDiscount:
    obj = _get_or_404(CategoryDiscount, discount_id)
    values = _merged(obj, patch, CATEGORY_FIELDS)
    if db.session.query(Category).filter_by(id=values.get("category_id")).first() is None:
        raise NotFoundError("Category not found", details={"category_id": values.get("category_id")})
    validate_category_discount(values)
    _save(obj, values)
    return obj


def create_bill_discount(patch: dict) -> BillDiscount:
    values = _merged(None, patch, BILL_FIELDS)
    values.setdefault("status", STATUS_ACTIVE)
    validate_bill_discount(values)
    obj = BillDiscount()
    _save(obj, values)
    return obj


def update_bill_discount(discount_id: int, patch: dict) -> BillDiscount:
    obj = _get_or_404(BillDiscount, discount_id)
    values = _merged(obj, patch, BILL_FIELDS)
    validate_bill_discount(values)
    _save(obj, values)
    return obj


DISCOUNT_MODELS = {
    "items": ItemDiscount,
    "categories": CategoryDiscount,
    "bills": BillDiscount,
}


def list_discounts(kind: str, *, status: str | None = None, owner_id: int | None = None) -> list:
    model = DISCOUNT_MODELS[kind]
    q = db.session.query(model)
    if status:
        q = q.filter(model.status == status)
    if owner_id is not None:
        if model is ItemDiscount:
            q = q.filter(ItemDiscount.product_id == owner_id)
        elif model is CategoryDiscount:
            q = q.filter(CategoryDiscount.category_id == owner_id)
    return q.order_by(model.id.desc()).all()


def get_discount(kind: str, discount_id: int):
    return _get_or_404(DISCOUNT_MODELS[kind], discount_id)


def delete_discount(kind: str, discount_id: int) -> None:
    obj = _get_or_404(DISCOUNT_MODELS[kind], discount_id)
    db.session.delete(obj)
    commit_with_retry()
