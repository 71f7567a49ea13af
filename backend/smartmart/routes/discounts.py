# Overview: Flask API routes for item, category and bill discounts and discount resolution.

# backend/smartmart/routes/discounts.py
from flask import Blueprint, current_app, request

from ..extensions import db
from ..models import BillDiscount, CategoryDiscount, ItemDiscount
from ..services import discount_service
from ..services.errors import StockError
from ..services.products_service import get_product
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from smartmart.time_utils import parse_iso_date
from . import error_response

DISCOUNT_POLICIES = {
    "items": (ItemDiscount, ModelValidationPolicy(
        writable_fields={"product_id", "type", "description", "start_date", "end_date", "amount", "status"},
        required_on_create={"product_id", "type", "description", "start_date", "end_date", "amount"},
    )),
    "categories": (CategoryDiscount, ModelValidationPolicy(
        writable_fields={"category_id", "percent", "start_date", "end_date", "status"},
        required_on_create={"category_id", "percent", "start_date", "end_date"},
    )),
    "bills": (BillDiscount, ModelValidationPolicy(
        writable_fields={"condition_type", "amount", "type", "value", "from_date", "to_date", "status", "description"},
        required_on_create={"condition_type", "amount", "type", "value", "from_date", "to_date"},
    )),
}

_CREATE = {
    "items": discount_service.create_item_discount,
    "categories": discount_service.create_category_discount,
    "bills": discount_service.create_bill_discount,
}

_UPDATE = {
    "items": discount_service.update_item_discount,
    "categories": discount_service.update_category_discount,
    "bills": discount_service.update_bill_discount,
}

discounts_bp = Blueprint("discounts", __name__, url_prefix="/api/discounts")


@discounts_bp.get("/resolve")
def resolve_route():
    """
    Discounts applicable to a product on a date.

    Query params:
    - product_id: int (required)
    - date: YYYY-MM-DD (optional, defaults to today)
    """
    product_id = request.args.get("product_id", type=int)
    if product_id is None:
        return {"error": "product_id is required"}, 400
    try:
        as_of = parse_iso_date(request.args.get("date"))
    except ValueError:
        return {"error": "date must be YYYY-MM-DD"}, 400

    try:
        product = get_product(product_id)
    except StockError as e:
        return error_response(e)

    resolved = discount_service.resolve_discounts(
        db.session,
        product_id=product.id,
        category_id=product.category_id,
        as_of=as_of,
    )
    data = resolved.to_dict()
    data["product_id"] = product.id
    data["unit_price"] = str(discount_service.discounted_unit_price(product.sale_price, resolved))
    return data


@discounts_bp.get("/<kind>")
def list_route(kind: str):
    if kind not in DISCOUNT_POLICIES:
        return {"error": "Not found"}, 404
    owner_id = request.args.get("product_id", type=int) or request.args.get("category_id", type=int)
    records = discount_service.list_discounts(kind, status=request.args.get("status"), owner_id=owner_id)
    return {"items": [r.to_dict() for r in records], "count": len(records)}


@discounts_bp.post("/<kind>")
def create_route(kind: str):
    if kind not in DISCOUNT_POLICIES:
        return {"error": "Not found"}, 404
    model, policy = DISCOUNT_POLICIES[kind]
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=model, payload=payload, policy=policy, partial=False)
        created = _CREATE[kind](patch)
    except (ValidationError, StockError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create %s discount", kind)
        return {"error": "Internal error"}, 500

    return created.to_dict(), 201


@discounts_bp.get("/<kind>/<int:discount_id>")
def get_route(kind: str, discount_id: int):
    if kind not in DISCOUNT_POLICIES:
        return {"error": "Not found"}, 404
    try:
        return discount_service.get_discount(kind, discount_id).to_dict()
    except StockError as e:
        return error_response(e)


@discounts_bp.put("/<kind>/<int:discount_id>")
def update_route(kind: str, discount_id: int):
    if kind not in DISCOUNT_POLICIES:
        return {"error": "Not found"}, 404
    model, policy = DISCOUNT_POLICIES[kind]
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=model, payload=payload, policy=policy, partial=True)
        updated = _UPDATE[kind](discount_id, patch)
    except (ValidationError, StockError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update %s discount %s", kind, discount_id)
        return {"error": "Internal error"}, 500

    return updated.to_dict(), 200


@discounts_bp.delete("/<kind>/<int:discount_id>")
def delete_route(kind: str, discount_id: int):
    if kind not in DISCOUNT_POLICIES:
        return {"error": "Not found"}, 404
    try:
        discount_service.delete_discount(kind, discount_id)
    except StockError as e:
        return error_response(e)
    return {"ok": True}, 200
