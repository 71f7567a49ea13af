# Overview: Service-layer operations for categories, suppliers, units and customers.

"""
Catalog Service

Master data only; nothing here touches stock. Records referenced by
products or documents cannot be deleted.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Category, Customer, Invoice, Product, Purchase, Supplier, Unit
from ..models.sales import DEFAULT_CUSTOMER_NAME
from .concurrency import commit_with_retry
from .errors import ConflictError, NotFoundError

CATALOG_MODELS = {
    "categories": Category,
    "suppliers": Supplier,
    "units": Unit,
    "customers": Customer,
}

# (model, fk column name) pairs that block deletion of a catalog record
_DELETE_GUARDS = {
    Category: ((Product, "category_id"),),
    Supplier: ((Product, "supplier_id"), (Purchase, "supplier_id")),
    Unit: ((Product, "unit_id"),),
    Customer: ((Invoice, "customer_id"),),
}


def get_record(model, record_id: int):
    obj = db.session.query(model).filter_by(id=record_id).first()
    if obj is None:
        raise NotFoundError(f"{model.__name__} {record_id} not found", details={"id": record_id})
    return obj


def list_records(model) -> list:
    return db.session.query(model).order_by(model.id.asc()).all()


def _check_unique_unit(name: str, exclude_id: int | None = None) -> None:
    q = db.session.query(Unit).filter(Unit.name == name)
    if exclude_id is not None:
        q = q.filter(Unit.id != exclude_id)
    if q.first():
        raise ConflictError(f"Unit {name!r} already exists", details={"name": name})


def create_record(model, patch: dict):
    if model is Unit and "name" in patch:
        _check_unique_unit(patch["name"])
    obj = model(**patch)
    db.session.add(obj)
    commit_with_retry()
    return obj


def update_record(model, record_id: int, patch: dict):
    obj = get_record(model, record_id)
    if model is Unit and "name" in patch:
        _check_unique_unit(patch["name"], exclude_id=obj.id)
    for k, v in patch.items():
        setattr(obj, k, v)
    commit_with_retry()
    return obj


def delete_record(model, record_id: int) -> None:
    obj = get_record(model, record_id)
    for ref_model, column in _DELETE_GUARDS.get(model, ()):
        if db.session.query(ref_model.id).filter(getattr(ref_model, column) == obj.id).first():
            raise ConflictError(
                f"{model.__name__} {record_id} is referenced by {ref_model.__tablename__}",
                details={"id": record_id, "referenced_by": ref_model.__tablename__},
            )
    db.session.delete(obj)
    commit_with_retry()


def ensure_default_customer(session) -> Customer:
    """
    Walk-in customer used when a sale names none. Created on first use
    inside the caller's transaction (flush, no commit).
    """
    customer = (
        session.query(Customer)
        .filter(Customer.name == DEFAULT_CUSTOMER_NAME)
        .order_by(Customer.id.asc())
        .first()
    )
    if customer is None:
        customer = Customer(name=DEFAULT_CUSTOMER_NAME)
        session.add(customer)
        session.flush()
    return customer
