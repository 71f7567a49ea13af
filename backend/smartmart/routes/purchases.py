# Overview: Flask API routes for purchases (goods receipts) and their payment lifecycle.

# backend/smartmart/routes/purchases.py
"""
Purchase routes.

POST /api/purchases
    {
      "supplier_id": 2, "paid_amount": "0",
      "items": [{"product_id": 3, "quantity": "5", "cost_price": "8.00", "sale_price": "11.00"}]
    }
Every line must carry sale_price > 0 (invalid_sale_price otherwise).

PATCH /api/purchases/<id>/payment
    {"paid_amount": "20.00"}  or  {"cancel": true}
"""
from flask import Blueprint, current_app, request

from ..models import Purchase, PurchaseItem
from ..services.errors import StockError
from ..services.purchase_service import (
    commit_purchase,
    get_purchase,
    list_purchases,
    update_purchase_payment,
)
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_document_line,
    validate_payload,
)
from . import error_response

PURCHASE_POLICY = ModelValidationPolicy(
    writable_fields={"supplier_id", "purchase_date", "remarks", "paid_amount", "due_date", "payment_status"},
)

PURCHASE_LINE_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "quantity", "cost_price", "sale_price"},
    required_on_create={"product_id", "quantity", "cost_price"},
)

purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


def _parse_lines(rows) -> list[dict]:
    if not isinstance(rows, list) or not rows:
        raise ValidationError("items must be a non-empty list")
    lines = []
    for i, row in enumerate(rows):
        line = validate_payload(model=PurchaseItem, payload=row, policy=PURCHASE_LINE_POLICY, partial=False)
        enforce_rules_document_line(line, i)
        lines.append(line)
    return lines


@purchases_bp.post("")
def commit_purchase_route():
    payload = request.get_json(silent=True) or {}
    header_payload = {k: v for k, v in payload.items() if k != "items"}

    try:
        header = validate_payload(model=Purchase, payload=header_payload, policy=PURCHASE_POLICY, partial=False)
        lines = _parse_lines(payload.get("items"))
        purchase = commit_purchase(header, lines)
    except (ValidationError, StockError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to commit purchase")
        return {"error": "Internal error"}, 500

    return purchase.to_dict(include_items=True), 201


@purchases_bp.get("")
def list_purchases_route():
    purchases = list_purchases(
        supplier_id=request.args.get("supplier_id", type=int),
        payment_status=request.args.get("payment_status"),
    )
    return {"items": [p.to_dict() for p in purchases], "count": len(purchases)}


@purchases_bp.get("/<int:purchase_id>")
def get_purchase_route(purchase_id: int):
    try:
        return get_purchase(purchase_id).to_dict(include_items=True)
    except StockError as e:
        return error_response(e)


@purchases_bp.patch("/<int:purchase_id>/payment")
def update_payment_route(purchase_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        purchase = update_purchase_payment(
            purchase_id,
            paid_amount=payload.get("paid_amount"),
            cancel=bool(payload.get("cancel")),
        )
    except (ValidationError, StockError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update payment for purchase %s", purchase_id)
        return {"error": "Internal error"}, 500

    return purchase.to_dict(), 200
