# Overview: Flask API routes for stock adjustments and ledger inspection.

# backend/smartmart/routes/inventory.py
from flask import Blueprint, current_app, request

from ..extensions import db
from ..services.errors import StockError
from ..services.products_service import get_product
from ..services.stock_ledger_service import adjust_stock, list_ledger_entries, verify_product_ledger
from ..validation import ValidationError, parse_decimal_field
from . import error_response

inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.post("/<int:product_id>/adjust")
def adjust_route(product_id: int):
    """
    Set stock to an absolute target: {"target_qty": "12", "remarks": "..."}.

    The difference is recorded as one Adjustment ledger entry. A reduction
    below zero is rejected with insufficient_stock.
    """
    payload = request.get_json(silent=True) or {}

    try:
        target_qty = parse_decimal_field(payload, "target_qty")
        entry = adjust_stock(product_id, target_qty, payload.get("remarks"))
    except (ValidationError, StockError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust stock for product %s", product_id)
        return {"error": "Internal error"}, 500

    product = get_product(product_id)
    return {
        "product": product.to_dict(),
        "entry": entry.to_dict() if entry else None,
    }, 200


@inventory_bp.get("/<int:product_id>/ledger")
def ledger_route(product_id: int):
    try:
        product = get_product(product_id)
    except StockError as e:
        return error_response(e)

    entries = list_ledger_entries(db.session, product.id, limit=request.args.get("limit", type=int))
    return {
        "product_id": product.id,
        "qty": str(product.qty),
        "items": [e.to_dict() for e in entries],
        "count": len(entries),
    }


@inventory_bp.get("/<int:product_id>/verify")
def verify_route(product_id: int):
    try:
        return verify_product_ledger(db.session, product_id)
    except StockError as e:
        return error_response(e)
