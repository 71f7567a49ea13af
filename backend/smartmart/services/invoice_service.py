# Overview: Sale orchestration; commits an invoice, its lines and their Sale ledger entries as one unit.

"""
Invoice Service - sale commit and sales returns

An invoice is either fully committed (header, every line, one Sale ledger
entry per line) or not there at all. Lines lock their products in request
order; the authoritative stock check runs inside record_movement() under
that lock.

Totals:
    gross        = sum(price * quantity)
    tax          = sum(price * quantity * tax_percent / 100)
    final_total  = gross + tax - discount          (2 dp, half-up)

A line without a price sells at the product's discounted unit price for
the invoice date. A header without a discount gets the applicable bill
discount, if any.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from flask import current_app, has_app_context

from ..extensions import db
from ..models import Customer, Invoice, InvoiceItem
from ..models.inventory import TYPE_RETURN, TYPE_SALE
from ..models.sales import PAYMENT_METHODS
from ..money import ZERO, exceeds_scale, quantize_money, to_decimal
from smartmart.time_utils import parse_iso_datetime, utcnow
from .catalog_service import ensure_default_customer
from .concurrency import begin_write, lock_for_update, run_with_retry
from .discount_service import (
    bill_discount_amount,
    discounted_unit_price,
    resolve_bill_discount,
    resolve_discounts,
)
from .errors import InsufficientStockError, InvalidInvoiceError, NotFoundError
from .stock_ledger_service import lock_product, record_movement

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")


def _advisory_check_enabled() -> bool:
    if has_app_context():
        return bool(current_app.config.get("ALLOW_ADVISORY_STOCK_CHECK", True))
    return True


def _normalize_lines(lines) -> list[dict]:
    if not lines:
        raise InvalidInvoiceError("Cannot commit an invoice with no lines")

    normalized = []
    for i, line in enumerate(lines):
        try:
            product_id = int(line["product_id"])
            quantity = to_decimal(line.get("quantity"), f"items[{i}].quantity")
            price = line.get("price")
            price = to_decimal(price, f"items[{i}].price") if price is not None else None
            tax_percent = line.get("tax_percent")
            tax_percent = to_decimal(tax_percent, f"items[{i}].tax_percent") if tax_percent is not None else None
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidInvoiceError(f"Invalid line {i}: {e}", details={"line": i})

        if quantity <= 0:
            raise InvalidInvoiceError(f"items[{i}].quantity must be > 0", details={"line": i})
        if exceeds_scale(quantity):
            raise InvalidInvoiceError(f"items[{i}].quantity is limited to 2 decimal places", details={"line": i})
        if price is not None and price < 0:
            raise InvalidInvoiceError(f"items[{i}].price must be >= 0", details={"line": i})
        if tax_percent is not None and tax_percent < 0:
            raise InvalidInvoiceError(f"items[{i}].tax_percent must be >= 0", details={"line": i})

        normalized.append({
            "product_id": product_id,
            "quantity": quantity,
            "price": quantize_money(price) if price is not None else None,
            "tax_percent": tax_percent,
        })
    return normalized


def _line_amounts(price: Decimal, quantity: Decimal, tax_percent: Decimal) -> tuple[Decimal, Decimal]:
    amount = price * quantity
    return amount, amount * tax_percent / HUNDRED


def commit_sale(header: dict, lines: list[dict], *, session=None) -> Invoice:
    """
    Commit a sale.

    Args:
        header: customer_id, account_id, cashier_name, payment_method,
            invoice_date, remarks, discount, tax_percent, paid_amount
            (all optional)
        lines: [{product_id, quantity, price?, tax_percent?}, ...]

    Returns:
        The committed Invoice.

    Raises:
        InvalidInvoiceError: empty or malformed lines, bad header values
        ProductNotFoundError: a line names an unknown product
        InsufficientStockError: a line exceeds the product's balance
        TransactionConflictError: lock contention survived every retry

    Any failure rolls back the invoice, its lines and every ledger entry.
    """
    header = dict(header or {})
    items = _normalize_lines(lines)

    payment_method = header.get("payment_method") or PAYMENT_METHODS[0]
    if payment_method not in PAYMENT_METHODS:
        raise InvalidInvoiceError(
            f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}",
            details={"payment_method": payment_method},
        )

    try:
        header_discount = header.get("discount")
        header_discount = to_decimal(header_discount, "discount") if header_discount is not None else None
        header_tax = to_decimal(header.get("tax_percent") or ZERO, "tax_percent")
        paid_amount = header.get("paid_amount")
        paid_amount = to_decimal(paid_amount, "paid_amount") if paid_amount is not None else None
    except ValueError as e:
        raise InvalidInvoiceError(str(e))
    if header_discount is not None and header_discount < 0:
        raise InvalidInvoiceError("discount must be >= 0", details={"discount": str(header_discount)})

    invoice_date = header.get("invoice_date") or utcnow()
    if isinstance(invoice_date, str):
        try:
            invoice_date = parse_iso_datetime(invoice_date) or utcnow()
        except ValueError:
            raise InvalidInvoiceError(
                "invoice_date must be an ISO-8601 datetime",
                details={"invoice_date": invoice_date},
            )
    elif not isinstance(invoice_date, datetime):
        invoice_date = datetime(invoice_date.year, invoice_date.month, invoice_date.day)
    as_of = invoice_date.date()
    session = session or db.session

    def _op():
        begin_write(session)

        customer_id = header.get("customer_id")
        if customer_id is None:
            customer_id = ensure_default_customer(session).id
        elif session.query(Customer.id).filter(Customer.id == customer_id).first() is None:
            raise NotFoundError(f"Customer {customer_id} not found", details={"customer_id": customer_id})

        invoice = Invoice(
            customer_id=customer_id,
            account_id=header.get("account_id"),
            cashier_name=header.get("cashier_name"),
            payment_method=payment_method,
            invoice_date=invoice_date,
            remarks=header.get("remarks"),
            tax_percent=header_tax,
        )
        session.add(invoice)
        session.flush()

        gross = ZERO
        tax = ZERO
        for item in items:
            product = lock_product(session, item["product_id"])

            if _advisory_check_enabled() and product.qty < item["quantity"]:
                raise InsufficientStockError(
                    f"Insufficient stock for product {product.code}",
                    details={
                        "product_id": product.id,
                        "code": product.code,
                        "available": str(product.qty),
                        "requested": str(item["quantity"]),
                    },
                )

            price = item["price"]
            if price is None:
                resolved = resolve_discounts(
                    session,
                    product_id=product.id,
                    category_id=product.category_id,
                    as_of=as_of,
                )
                price = discounted_unit_price(product.sale_price, resolved)
            tax_percent = item["tax_percent"] if item["tax_percent"] is not None else header_tax

            session.add(InvoiceItem(
                invoice_id=invoice.id,
                product_id=product.id,
                price=price,
                quantity=item["quantity"],
                tax_percent=tax_percent,
                cost_price=product.cost_price,
            ))

            record_movement(
                session,
                product_id=product.id,
                transaction_type=TYPE_SALE,
                qty_out=item["quantity"],
                transaction_id=invoice.id,
                remarks=f"Invoice #{invoice.id}",
            )

            amount, line_tax = _line_amounts(price, item["quantity"], tax_percent)
            gross += amount
            tax += line_tax

        if header_discount is None:
            discount = bill_discount_amount(resolve_bill_discount(session, as_of), gross)
        else:
            discount = quantize_money(header_discount)

        final_total = quantize_money(gross + tax - discount)
        if final_total < 0:
            raise InvalidInvoiceError(
                "discount exceeds the invoice total",
                details={"discount": str(discount), "total": str(quantize_money(gross + tax))},
            )

        invoice.discount = discount
        invoice.final_total = final_total
        invoice.paid_amount = paid_amount if paid_amount is not None else final_total

        session.commit()
        logger.info(
            "Committed invoice %s: %d lines, final_total=%s",
            invoice.id, len(items), invoice.final_total,
        )
        return invoice

    return run_with_retry(_op, session=session)


def return_invoice_items(invoice_id: int, items: list[dict], remarks: str | None = None, *, session=None) -> Invoice:
    """
    Take goods back against a committed invoice.

    items: [{invoice_item_id, quantity}, ...]. Each returned quantity adds a
    Return ledger entry and raises the line's return_qty (never above the
    sold quantity). The refund (line price plus line tax, less the returned
    amount's pro-rata share of the invoice discount) is taken off
    final_total.
    """
    if not items:
        raise InvalidInvoiceError("No items to return")

    requested = []
    for i, item in enumerate(items):
        try:
            requested.append((int(item["invoice_item_id"]), to_decimal(item.get("quantity"), f"items[{i}].quantity")))
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidInvoiceError(f"Invalid return line {i}: {e}", details={"line": i})
        if requested[-1][1] <= 0:
            raise InvalidInvoiceError(f"items[{i}].quantity must be > 0", details={"line": i})
        if exceeds_scale(requested[-1][1]):
            raise InvalidInvoiceError(f"items[{i}].quantity is limited to 2 decimal places", details={"line": i})

    session = session or db.session

    def _op():
        begin_write(session)
        invoice = lock_for_update(session.query(Invoice).filter(Invoice.id == invoice_id)).first()
        if invoice is None:
            raise NotFoundError(f"Invoice {invoice_id} not found", details={"invoice_id": invoice_id})

        gross = sum((Decimal(it.price) * Decimal(it.quantity) for it in invoice.items), ZERO)
        discount = Decimal(invoice.discount)

        refund = ZERO
        for item_id, qty in requested:
            line = (
                session.query(InvoiceItem)
                .filter(InvoiceItem.id == item_id, InvoiceItem.invoice_id == invoice.id)
                .first()
            )
            if line is None:
                raise InvalidInvoiceError(
                    f"Invoice item {item_id} does not belong to invoice {invoice.id}",
                    details={"invoice_item_id": item_id},
                )

            returnable = Decimal(line.quantity) - Decimal(line.return_qty)
            if qty > returnable:
                raise InvalidInvoiceError(
                    "Return quantity exceeds the quantity sold",
                    details={"invoice_item_id": item_id, "returnable": str(returnable), "requested": str(qty)},
                )

            line.return_qty = Decimal(line.return_qty) + qty
            record_movement(
                session,
                product_id=line.product_id,
                transaction_type=TYPE_RETURN,
                qty_in=qty,
                transaction_id=invoice.id,
                remarks=remarks or f"Return on invoice #{invoice.id}",
            )

            amount, line_tax = _line_amounts(Decimal(line.price), qty, Decimal(line.tax_percent))
            refund += amount + line_tax
            if discount > 0 and gross > 0:
                refund -= discount * amount / gross

        refund = quantize_money(refund)
        invoice.final_total = max(quantize_money(Decimal(invoice.final_total) - refund), ZERO)
        invoice.is_return = True

        session.commit()
        logger.info("Recorded return on invoice %s: refund=%s", invoice.id, refund)
        return invoice

    return run_with_retry(_op, session=session)


def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.query(Invoice).filter_by(id=invoice_id).first()
    if invoice is None:
        raise NotFoundError(f"Invoice {invoice_id} not found", details={"invoice_id": invoice_id})
    return invoice


def list_invoices(
    page: int | None = None,
    per_page: int | None = None,
    customer_id: int | None = None,
    date_from=None,
    date_to=None,
) -> dict:
    """Invoices newest first; same pagination shape as list_products()."""
    q = db.session.query(Invoice)
    if customer_id is not None:
        q = q.filter(Invoice.customer_id == customer_id)
    if date_from is not None:
        q = q.filter(Invoice.invoice_date >= date_from)
    if date_to is not None:
        q = q.filter(Invoice.invoice_date <= date_to)
    q = q.order_by(Invoice.invoice_date.desc(), Invoice.id.desc())

    if page is None:
        invoices = q.all()
        return {"items": [i.to_dict() for i in invoices], "count": len(invoices)}

    per_page = min(per_page or 20, 100)
    page = max(page, 1)
    total = q.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    invoices = q.offset((page - 1) * per_page).limit(per_page).all()
    return {
        "items": [i.to_dict() for i in invoices],
        "count": len(invoices),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }
