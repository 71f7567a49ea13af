# Overview: Purchase (goods receipt) orchestration and the purchase payment lifecycle.

"""
Purchase Service

RECEIPT: commit_purchase() creates the header, then per line (request
order): lock the product, capture its pre-receipt qty and cost, reweight
the cost, store the new cost_price and sale_price on the product, write the
PurchaseItem with the submitted cost, append a Purchase ledger entry. One
transaction; nothing is visible unless every line succeeds.

PAYMENT: payment_status is independent of the stock side, which is final
at creation.
    Pending -> Partial -> Paid
    Pending/Partial -> Cancelled
Paid and Cancelled are terminal.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from ..extensions import db
from ..models import Purchase, PurchaseItem, Supplier
from ..models.inventory import TYPE_PURCHASE
from ..models.purchasing import (
    PAYMENT_CANCELLED,
    PAYMENT_PAID,
    PAYMENT_PARTIAL,
    PAYMENT_PENDING,
)
from ..money import ZERO, exceeds_scale, quantize_money, to_decimal
from smartmart.time_utils import parse_iso_datetime, utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry
from .costing_service import reweight
from .discount_service import check_sale_price_covers_value_discounts
from .errors import InvalidPurchaseError, InvalidSalePriceError, NotFoundError
from .stock_ledger_service import lock_product, record_movement

logger = logging.getLogger(__name__)

_TERMINAL_STATUSES = {PAYMENT_PAID, PAYMENT_CANCELLED}


def derive_payment_status(paid_amount: Decimal, total_amount: Decimal) -> str:
    if paid_amount <= 0:
        return PAYMENT_PENDING
    if paid_amount >= total_amount:
        return PAYMENT_PAID
    return PAYMENT_PARTIAL


def _normalize_lines(lines) -> list[dict]:
    if not lines:
        raise InvalidPurchaseError("Cannot commit a purchase with no lines")

    normalized = []
    for i, line in enumerate(lines):
        try:
            product_id = int(line["product_id"])
            quantity = to_decimal(line.get("quantity"), f"items[{i}].quantity")
            cost_price = to_decimal(line.get("cost_price"), f"items[{i}].cost_price")
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidPurchaseError(f"Invalid line {i}: {e}", details={"line": i})

        sale_price = line.get("sale_price")
        try:
            sale_price = to_decimal(sale_price, f"items[{i}].sale_price")
        except ValueError:
            raise InvalidSalePriceError(
                f"items[{i}].sale_price must be a number > 0",
                details={"line": i, "sale_price": sale_price},
            )
        if sale_price <= 0:
            raise InvalidSalePriceError(
                f"items[{i}].sale_price must be > 0",
                details={"line": i, "product_id": product_id, "sale_price": str(sale_price)},
            )
        if quantity <= 0:
            raise InvalidPurchaseError(f"items[{i}].quantity must be > 0", details={"line": i})
        if exceeds_scale(quantity):
            raise InvalidPurchaseError(f"items[{i}].quantity is limited to 2 decimal places", details={"line": i})
        if cost_price < 0:
            raise InvalidPurchaseError(f"items[{i}].cost_price must be >= 0", details={"line": i})

        normalized.append({
            "product_id": product_id,
            "quantity": quantity,
            "cost_price": quantize_money(cost_price),
            "sale_price": quantize_money(sale_price),
        })
    return normalized


def commit_purchase(header: dict, lines: list[dict], *, session=None) -> Purchase:
    """
    Commit a goods receipt.

    Args:
        header: supplier_id, purchase_date, remarks, paid_amount, due_date,
            payment_status (all optional)
        lines: [{product_id, quantity, cost_price, sale_price}, ...]

    Returns:
        The committed Purchase.

    Raises:
        InvalidSalePriceError: a line's sale_price is missing, not > 0, or
            below an active Value discount on the product
        InvalidPurchaseError: empty or malformed lines, bad payment values
        ProductNotFoundError: a line names an unknown product
        NotFoundError: unknown supplier
        TransactionConflictError: lock contention survived every retry
    """
    header = dict(header or {})
    items = _normalize_lines(lines)

    total_amount = quantize_money(sum((i["quantity"] * i["cost_price"] for i in items), ZERO))

    try:
        paid_amount = quantize_money(to_decimal(header.get("paid_amount") or ZERO, "paid_amount"))
    except ValueError as e:
        raise InvalidPurchaseError(str(e))
    if paid_amount < 0 or paid_amount > total_amount:
        raise InvalidPurchaseError(
            "paid_amount must be between 0 and the purchase total",
            details={"paid_amount": str(paid_amount), "total_amount": str(total_amount)},
        )

    payment_status = header.get("payment_status") or derive_payment_status(paid_amount, total_amount)
    if payment_status not in (PAYMENT_PENDING, PAYMENT_PARTIAL, PAYMENT_PAID):
        raise InvalidPurchaseError(
            "payment_status must be Pending, Partial or Paid",
            details={"payment_status": payment_status},
        )

    purchase_date = header.get("purchase_date") or utcnow()
    if isinstance(purchase_date, str):
        try:
            purchase_date = parse_iso_datetime(purchase_date) or utcnow()
        except ValueError:
            raise InvalidPurchaseError(
                "purchase_date must be an ISO-8601 datetime",
                details={"purchase_date": purchase_date},
            )
    elif not isinstance(purchase_date, datetime):
        purchase_date = datetime(purchase_date.year, purchase_date.month, purchase_date.day)

    session = session or db.session

    def _op():
        begin_write(session)

        supplier_id = header.get("supplier_id")
        if supplier_id is not None and session.query(Supplier.id).filter(Supplier.id == supplier_id).first() is None:
            raise NotFoundError(f"Supplier {supplier_id} not found", details={"supplier_id": supplier_id})

        purchase = Purchase(
            supplier_id=supplier_id,
            purchase_date=purchase_date,
            remarks=header.get("remarks"),
            due_date=header.get("due_date"),
            total_amount=total_amount,
            paid_amount=paid_amount,
            payment_status=payment_status,
        )
        session.add(purchase)
        session.flush()

        for item in items:
            product = lock_product(session, item["product_id"])

            pre_qty = product.qty
            pre_cost = product.cost_price
            product.cost_price = reweight(pre_qty, pre_cost, item["quantity"], item["cost_price"])
            check_sale_price_covers_value_discounts(session, product.id, item["sale_price"])
            product.sale_price = item["sale_price"]

            session.add(PurchaseItem(
                purchase_id=purchase.id,
                product_id=product.id,
                cost_price=item["cost_price"],
                sale_price=item["sale_price"],
                quantity=item["quantity"],
            ))

            record_movement(
                session,
                product_id=product.id,
                transaction_type=TYPE_PURCHASE,
                qty_in=item["quantity"],
                transaction_id=purchase.id,
                remarks=f"Purchase #{purchase.id}",
            )
            logger.debug(
                "Reweighted product %s cost %s -> %s (qty %s + %s @ %s)",
                product.id, pre_cost, product.cost_price, pre_qty, item["quantity"], item["cost_price"],
            )

        session.commit()
        logger.info(
            "Committed purchase %s: %d lines, total_amount=%s, status=%s",
            purchase.id, len(items), purchase.total_amount, purchase.payment_status,
        )
        return purchase

    return run_with_retry(_op, session=session)


def update_purchase_payment(purchase_id: int, paid_amount=None, cancel: bool = False, *, session=None) -> Purchase:
    """
    Move a purchase through its payment lifecycle.

    cancel=True marks it Cancelled. Otherwise paid_amount (0..total) is
    stored and the status derived from it. Stock and costs are untouched.
    """
    if not cancel:
        if paid_amount is None:
            raise InvalidPurchaseError("paid_amount is required")
        try:
            paid_amount = quantize_money(to_decimal(paid_amount, "paid_amount"))
        except ValueError as e:
            raise InvalidPurchaseError(str(e))

    session = session or db.session

    def _op():
        begin_write(session)
        purchase = lock_for_update(session.query(Purchase).filter(Purchase.id == purchase_id)).first()
        if purchase is None:
            raise NotFoundError(f"Purchase {purchase_id} not found", details={"purchase_id": purchase_id})

        if purchase.payment_status in _TERMINAL_STATUSES:
            raise InvalidPurchaseError(
                f"Purchase {purchase.id} is {purchase.payment_status}",
                details={"payment_status": purchase.payment_status},
            )

        if cancel:
            purchase.payment_status = PAYMENT_CANCELLED
        else:
            total = Decimal(purchase.total_amount)
            if paid_amount < 0 or paid_amount > total:
                raise InvalidPurchaseError(
                    "paid_amount must be between 0 and the purchase total",
                    details={"paid_amount": str(paid_amount), "total_amount": str(total)},
                )
            purchase.paid_amount = paid_amount
            purchase.payment_status = derive_payment_status(paid_amount, total)

        session.commit()
        logger.info("Purchase %s payment status -> %s", purchase.id, purchase.payment_status)
        return purchase

    return run_with_retry(_op, session=session)


def get_purchase(purchase_id: int) -> Purchase:
    purchase = db.session.query(Purchase).filter_by(id=purchase_id).first()
    if purchase is None:
        raise NotFoundError(f"Purchase {purchase_id} not found", details={"purchase_id": purchase_id})
    return purchase


def list_purchases(supplier_id: int | None = None, payment_status: str | None = None) -> list[Purchase]:
    q = db.session.query(Purchase)
    if supplier_id is not None:
        q = q.filter(Purchase.supplier_id == supplier_id)
    if payment_status:
        q = q.filter(Purchase.payment_status == payment_status)
    return q.order_by(Purchase.purchase_date.desc(), Purchase.id.desc()).all()
