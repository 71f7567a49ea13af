# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/smartmart/routes/products.py
"""
Product management routes.

QTY: never accepted on create or update. A declared opening_qty on create
is realized as an Opening ledger entry; later changes go through
/api/inventory/<id>/adjust, purchases and sales.

CODE: accepted on create only.
"""
from flask import Blueprint, current_app, request

from ..models import Product
from ..services.errors import StockError
from ..services.products_service import (
    create_product,
    create_products,
    delete_product,
    get_pos_product,
    get_product,
    list_products as list_products_service,
    update_product,
)
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_product,
    parse_decimal_field,
    validate_payload,
)
from smartmart.time_utils import parse_iso_date
from . import error_response

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "code", "name", "cost_price", "sale_price", "expiry",
        "category_id", "supplier_id", "unit_id",
    },
    required_on_create={"code", "name"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_POLICY.writable_fields - {"code"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _parse_create(payload: dict) -> tuple[dict, object]:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    payload = dict(payload)
    opening_qty = parse_decimal_field(payload, "opening_qty", required=False, default=0)
    payload.pop("opening_qty", None)
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)
    return patch, opening_qty


@products_bp.get("")
def list_products():
    """
    List products with optional pagination.

    Query params:
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    - q: str (optional) - search code or name
    - category_id: int (optional)
    """
    return list_products_service(
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
        search=request.args.get("q"),
        category_id=request.args.get("category_id", type=int),
    )


@products_bp.post("")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch, opening_qty = _parse_create(payload)
        created = create_product(patch=patch, opening_qty=opening_qty)
    except (ValidationError, StockError) as e:
        return error_response(e)
    except ValueError as e:
        return {"error": str(e)}, 400

    return created.to_dict(), 201


@products_bp.post("/bulk")
def create_products_route():
    """Create many products at once: {"products": [{...product, opening_qty}, ...]}."""
    payload = request.get_json(silent=True) or {}
    rows = payload.get("products")
    if not isinstance(rows, list) or not rows:
        return {"error": "products must be a non-empty list"}, 400

    try:
        items = []
        for row in rows:
            patch, opening_qty = _parse_create(row)
            items.append({"patch": patch, "opening_qty": opening_qty})
        created = create_products(items)
    except (ValidationError, StockError) as e:
        return error_response(e)
    except ValueError as e:
        return {"error": str(e)}, 400

    return {"items": [p.to_dict() for p in created], "count": len(created)}, 201


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        return get_product(product_id).to_dict()
    except StockError as e:
        return error_response(e)


@products_bp.get("/<code>/pos")
def pos_lookup_route(code: str):
    """Till lookup by code: product, applicable discounts and unit price (optional ?date=YYYY-MM-DD)."""
    try:
        as_of = parse_iso_date(request.args.get("date"))
    except ValueError:
        return {"error": "date must be YYYY-MM-DD"}, 400

    try:
        return get_pos_product(code, as_of=as_of)
    except StockError as e:
        return error_response(e)


@products_bp.put("/<int:product_id>")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = update_product(product_id=product_id, patch=patch)
    except (ValidationError, StockError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product %s", product_id)
        return {"error": "Internal error"}, 500

    return updated.to_dict(), 200


@products_bp.delete("/<int:product_id>")
def delete_product_route(product_id: int):
    try:
        delete_product(product_id=product_id)
    except StockError as e:
        return error_response(e)

    return {"ok": True}, 200
