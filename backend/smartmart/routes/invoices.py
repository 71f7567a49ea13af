# Overview: Flask API routes for sales invoices; commit, lookup and sales returns.

# backend/smartmart/routes/invoices.py
"""
Invoice routes.

POST /api/invoices
    {
      "customer_id": 1, "payment_method": "Cash Sale", "discount": "0",
      "items": [{"product_id": 3, "quantity": "2", "price": "4.50", "tax_percent": "0"}]
    }
Header fields other than "items" are optional. A line without "price"
sells at the product's discounted price; a header without "discount" gets
the applicable bill discount.
"""
from flask import Blueprint, current_app, request

from ..models import Invoice, InvoiceItem
from ..services.errors import StockError
from ..services.invoice_service import (
    commit_sale,
    get_invoice,
    list_invoices,
    return_invoice_items,
)
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_document_line,
    validate_payload,
)
from smartmart.time_utils import parse_iso_datetime
from . import error_response

INVOICE_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_id", "account_id", "cashier_name", "payment_method",
        "invoice_date", "remarks", "discount", "tax_percent", "paid_amount",
    },
)

INVOICE_LINE_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "quantity", "price", "tax_percent"},
    required_on_create={"product_id", "quantity"},
)

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _parse_lines(rows) -> list[dict]:
    if not isinstance(rows, list) or not rows:
        raise ValidationError("items must be a non-empty list")
    lines = []
    for i, row in enumerate(rows):
        line = validate_payload(model=InvoiceItem, payload=row, policy=INVOICE_LINE_POLICY, partial=False)
        enforce_rules_document_line(line, i)
        lines.append(line)
    return lines


@invoices_bp.post("")
def commit_sale_route():
    payload = request.get_json(silent=True) or {}
    header_payload = {k: v for k, v in payload.items() if k != "items"}

    try:
        header = validate_payload(model=Invoice, payload=header_payload, policy=INVOICE_POLICY, partial=False)
        lines = _parse_lines(payload.get("items"))
        invoice = commit_sale(header, lines)
    except (ValidationError, StockError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to commit sale")
        return {"error": "Internal error"}, 500

    return invoice.to_dict(include_items=True), 201


@invoices_bp.get("")
def list_invoices_route():
    try:
        date_from = parse_iso_datetime(request.args.get("from"))
        date_to = parse_iso_datetime(request.args.get("to"))
    except ValueError:
        return {"error": "from/to must be ISO-8601 datetimes"}, 400

    return list_invoices(
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
        customer_id=request.args.get("customer_id", type=int),
        date_from=date_from,
        date_to=date_to,
    )


@invoices_bp.get("/<int:invoice_id>")
def get_invoice_route(invoice_id: int):
    try:
        return get_invoice(invoice_id).to_dict(include_items=True)
    except StockError as e:
        return error_response(e)


@invoices_bp.post("/<int:invoice_id>/returns")
def return_items_route(invoice_id: int):
    """
    Sales return: {"items": [{"invoice_item_id": 7, "quantity": "1"}], "remarks": "damaged"}.
    """
    payload = request.get_json(silent=True) or {}

    try:
        invoice = return_invoice_items(invoice_id, payload.get("items") or [], payload.get("remarks"))
    except (ValidationError, StockError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to record return on invoice %s", invoice_id)
        return {"error": "Internal error"}, 500

    return invoice.to_dict(include_items=True), 200
