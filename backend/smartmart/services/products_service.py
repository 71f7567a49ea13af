# Overview: Service-layer operations for products; creation realizes opening stock through the ledger.

# backend/smartmart/services/products_service.py
"""
Products Service

QTY: Product.qty is never written here. A declared opening quantity is
recorded as an Opening ledger entry in the same transaction that inserts
the product, so a product row never exists without its opening history.

CODE: Product.code is unique and immutable; duplicates raise ConflictError.
"""
from __future__ import annotations

import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    Category,
    InvoiceItem,
    Product,
    PurchaseItem,
    StockLedgerEntry,
    Supplier,
    Unit,
)
from ..money import ZERO, to_decimal
from .concurrency import begin_write, run_with_retry
from .discount_service import check_sale_price_covers_value_discounts, discounted_unit_price, resolve_discounts
from .errors import ConflictError, NotFoundError, ProductNotFoundError
from .stock_ledger_service import register_opening_stock

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {
    "name",
    "cost_price",
    "sale_price",
    "expiry",
    "category_id",
    "supplier_id",
    "unit_id",
}
PRODUCT_CREATE_FIELDS = PRODUCT_MUTABLE_FIELDS | {"code"}

_REFERENCES = (
    ("category_id", Category),
    ("supplier_id", Supplier),
    ("unit_id", Unit),
)


def apply_product_patch(p: Product, patch: dict, allowed: set[str] = PRODUCT_MUTABLE_FIELDS) -> None:
    for k, v in patch.items():
        if k not in allowed:
            continue
        setattr(p, k, v)


def _check_references(patch: dict) -> None:
    for field, model in _REFERENCES:
        ref_id = patch.get(field)
        if ref_id is None:
            continue
        if db.session.query(model.id).filter(model.id == ref_id).first() is None:
            raise NotFoundError(f"{model.__name__} {ref_id} not found", details={field: ref_id})


def get_product(product_id: int) -> Product:
    product = db.session.query(Product).filter_by(id=product_id).first()
    if product is None:
        raise ProductNotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def get_product_by_code(code: str) -> Product:
    product = db.session.query(Product).filter_by(code=code).first()
    if product is None:
        raise ProductNotFoundError(f"Product {code!r} not found", details={"code": code})
    return product


def list_products(
    page: int | None = None,
    per_page: int | None = None,
    search: str | None = None,
    category_id: int | None = None,
) -> dict:
    """
    Product listing with optional pagination.

    Args:
        page: Page number (1-indexed). If None, returns all items.
        per_page: Items per page (default 20, max 100)
        search: Case-insensitive match on code or name
        category_id: Filter by category

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product)
    if search:
        like = f"%{search.strip()}%"
        base_query = base_query.filter(or_(Product.code.ilike(like), Product.name.ilike(like)))
    if category_id is not None:
        base_query = base_query.filter(Product.category_id == category_id)
    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = min(per_page or 20, 100)
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def _insert_product(patch: dict, opening_qty) -> Product:
    p = Product()
    apply_product_patch(p, patch, PRODUCT_CREATE_FIELDS)
    db.session.add(p)
    db.session.flush()  # p.id is needed for the Opening entry
    register_opening_stock(db.session, p.id, opening_qty)
    return p


def create_product(*, patch: dict, opening_qty=0) -> Product:
    """
    Create a product and record its opening stock.

    Args:
        patch: validated product fields (code, name, prices, references)
        opening_qty: declared initial quantity; 0 records no ledger entry

    Raises:
        ConflictError: code already exists
        NotFoundError: category/supplier/unit reference does not exist
        InvalidMovementError: negative opening_qty
    """
    code = patch.get("code")
    if not code:
        raise ValueError("code is required")
    opening_qty = to_decimal(opening_qty if opening_qty is not None else ZERO, "opening_qty")

    def _op():
        begin_write(db.session)
        if db.session.query(Product.id).filter(Product.code == code).first():
            raise ConflictError(f"Product code {code!r} already exists", details={"code": code})
        _check_references(patch)
        p = _insert_product(patch, opening_qty)
        db.session.commit()
        logger.info("Created product %s (%s) with opening qty %s", p.id, p.code, opening_qty)
        return p

    try:
        return run_with_retry(_op)
    except IntegrityError:
        # Lost a race on uq_products_code
        raise ConflictError(f"Product code {code!r} already exists", details={"code": code})


def create_products(items: list[dict]) -> list[Product]:
    """
    Bulk create. Each item is {"patch": {...}, "opening_qty": n}.

    All-or-nothing: any duplicate code (against the catalog or within the
    batch) rejects the whole batch and lists every offending code.
    """
    if not items:
        raise ValueError("items must be a non-empty list")

    codes = [item["patch"].get("code") for item in items]
    if any(not c for c in codes):
        raise ValueError("code is required for every product")

    seen: set[str] = set()
    repeated: set[str] = set()
    for c in codes:
        if c in seen:
            repeated.add(c)
        seen.add(c)
    if repeated:
        in_batch = sorted(repeated)
        raise ConflictError("Duplicate product codes in request", details={"codes": in_batch})

    def _op():
        begin_write(db.session)
        existing = sorted(
            row.code for row in db.session.query(Product.code).filter(Product.code.in_(codes)).all()
        )
        if existing:
            raise ConflictError("Product codes already exist", details={"codes": existing})

        created = []
        for item in items:
            _check_references(item["patch"])
            created.append(_insert_product(item["patch"], to_decimal(item.get("opening_qty") or ZERO, "opening_qty")))
        db.session.commit()
        logger.info("Bulk created %d products", len(created))
        return created

    try:
        return run_with_retry(_op)
    except IntegrityError:
        raise ConflictError("Product codes already exist", details={"codes": codes})


def update_product(*, product_id: int, patch: dict) -> Product:
    """
    Update mutable product fields. code and qty are not accepted.
    A sale_price below an active Value discount is rejected.

    Version conflicts with a concurrent stock movement are retried.
    """
    def _op():
        p = get_product(product_id)
        _check_references(patch)
        if patch.get("sale_price") is not None:
            check_sale_price_covers_value_discounts(db.session, p.id, patch["sale_price"])
        apply_product_patch(p, patch)
        db.session.commit()
        return p

    return run_with_retry(_op)


def delete_product(*, product_id: int) -> None:
    """
    Delete a product that has no stock history.

    Raises:
        ProductNotFoundError: no such product
        ConflictError: the product has ledger entries or document lines
    """
    p = get_product(product_id)

    referenced_by = []
    if db.session.query(StockLedgerEntry.id).filter_by(product_id=p.id).first():
        referenced_by.append("stock_ledger")
    if db.session.query(InvoiceItem.id).filter_by(product_id=p.id).first():
        referenced_by.append("invoice_items")
    if db.session.query(PurchaseItem.id).filter_by(product_id=p.id).first():
        referenced_by.append("purchase_items")
    if referenced_by:
        raise ConflictError(
            f"Product {p.code!r} has stock history and cannot be deleted",
            details={"product_id": p.id, "referenced_by": referenced_by},
        )

    db.session.delete(p)
    db.session.commit()
    logger.info("Deleted product %s (%s)", product_id, p.code)


def get_pos_product(code: str, as_of=None) -> dict:
    """Product lookup for the till: product, applicable discounts and discounted unit price."""
    p = get_product_by_code(code)
    resolved = resolve_discounts(db.session, product_id=p.id, category_id=p.category_id, as_of=as_of)
    return {
        "product": p.to_dict(),
        "discounts": resolved.to_dict(),
        "unit_price": str(discounted_unit_price(p.sale_price, resolved)),
    }
