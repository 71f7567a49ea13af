# Overview: Flask API routes for master data (categories, suppliers, units, customers).

# backend/smartmart/routes/catalog.py
"""
Master data CRUD. Every resource exposes the same five endpoints:

    GET    /api/<resource>
    POST   /api/<resource>
    GET    /api/<resource>/<id>
    PUT    /api/<resource>/<id>
    DELETE /api/<resource>/<id>
"""
from flask import Blueprint, current_app, request

from ..models import Category, Customer, Supplier, Unit
from ..services import catalog_service
from ..services.errors import StockError
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from . import error_response

CATALOG_POLICIES = {
    "categories": (Category, ModelValidationPolicy(
        writable_fields={"name", "description"},
        required_on_create={"name"},
    )),
    "suppliers": (Supplier, ModelValidationPolicy(
        writable_fields={
            "supplier_name", "contact_person", "phone", "email", "address", "city",
            "country", "tax_number", "payment_terms", "bank_details",
            "opening_balance", "outstanding_balance", "credit_limit", "status",
        },
        required_on_create={"supplier_name", "phone"},
    )),
    "units": (Unit, ModelValidationPolicy(
        writable_fields={"name"},
        required_on_create={"name"},
    )),
    "customers": (Customer, ModelValidationPolicy(
        writable_fields={"name", "phone", "address", "balance"},
        required_on_create={"name"},
    )),
}

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


def _resource(resource: str):
    if resource not in CATALOG_POLICIES:
        return None, None
    return CATALOG_POLICIES[resource]


@catalog_bp.get("/<resource>")
def list_records(resource: str):
    model, _ = _resource(resource)
    if model is None:
        return {"error": "Not found"}, 404
    records = catalog_service.list_records(model)
    return {"items": [r.to_dict() for r in records], "count": len(records)}


@catalog_bp.post("/<resource>")
def create_record(resource: str):
    model, policy = _resource(resource)
    if model is None:
        return {"error": "Not found"}, 404
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=model, payload=payload, policy=policy, partial=False)
        created = catalog_service.create_record(model, patch)
    except (ValidationError, StockError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create %s", resource)
        return {"error": "Internal error"}, 500

    return created.to_dict(), 201


@catalog_bp.get("/<resource>/<int:record_id>")
def get_record(resource: str, record_id: int):
    model, _ = _resource(resource)
    if model is None:
        return {"error": "Not found"}, 404
    try:
        return catalog_service.get_record(model, record_id).to_dict()
    except StockError as e:
        return error_response(e)


@catalog_bp.put("/<resource>/<int:record_id>")
def update_record(resource: str, record_id: int):
    model, policy = _resource(resource)
    if model is None:
        return {"error": "Not found"}, 404
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=model, payload=payload, policy=policy, partial=True)
        updated = catalog_service.update_record(model, record_id, patch)
    except (ValidationError, StockError) as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update %s %s", resource, record_id)
        return {"error": "Internal error"}, 500

    return updated.to_dict(), 200


@catalog_bp.delete("/<resource>/<int:record_id>")
def delete_record(resource: str, record_id: int):
    model, _ = _resource(resource)
    if model is None:
        return {"error": "Not found"}, 404
    try:
        catalog_service.delete_record(model, record_id)
    except StockError as e:
        return error_response(e)
    return {"ok": True}, 200
