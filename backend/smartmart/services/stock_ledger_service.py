# Overview: Stock ledger, balance resolver and the stock mutation engine.

# backend/smartmart/services/stock_ledger_service.py
"""
Stock Ledger Invariants (authoritative)

Ledger model:
- StockLedgerEntry rows are append-only; each carries the running balance
  after applying its own movement: balance = previous + qty_in - qty_out.
- The "previous" balance is the balance of the product's entry with the
  highest id (0 when the product has no history).
- Product.qty is a cache of that last balance. record_movement() is the
  only code path that writes it.

Transaction context:
- Every function here takes the SQLAlchemy session explicitly. The caller
  owns the transaction: record_movement() flushes but never commits, so a
  multi-line invoice or purchase commits or rolls back as one unit.

Locking:
- record_movement() locks the product row (SELECT ... FOR UPDATE) before it
  reads the previous balance and holds the lock until the caller's commit or
  rollback. Two movements against the same product are therefore strictly
  serialized; movements against different products do not block each other.
- On SQLite the caller opens the transaction with begin_write() instead.

Movement shapes:
- Opening, Purchase, Return: qty_in > 0, qty_out == 0
- Sale:                      qty_out > 0, qty_in == 0
- Adjustment:                exactly one side > 0
"""

from __future__ import annotations

import logging
from decimal import Decimal

from ..extensions import db
from ..models import Product, StockLedgerEntry
from ..models.inventory import (
    TRANSACTION_TYPES,
    TYPE_ADJUSTMENT,
    TYPE_OPENING,
    TYPE_PURCHASE,
    TYPE_RETURN,
    TYPE_SALE,
)
from ..money import ZERO, exceeds_scale, to_decimal
from .concurrency import begin_write, lock_for_update, run_with_retry
from .errors import InsufficientStockError, InvalidMovementError, ProductNotFoundError

logger = logging.getLogger(__name__)

_INBOUND_TYPES = {TYPE_OPENING, TYPE_PURCHASE, TYPE_RETURN}


def get_last_balance(session, product_id: int) -> Decimal:
    """
    Balance of the most recent ledger entry for the product, or 0.

    Read through the caller's session so it sees the caller's locked,
    in-flight state.
    """
    last = (
        session.query(StockLedgerEntry.balance)
        .filter(StockLedgerEntry.product_id == product_id)
        .order_by(StockLedgerEntry.id.desc())
        .limit(1)
        .scalar()
    )
    return Decimal(last) if last is not None else ZERO


def lock_product(session, product_id: int) -> Product:
    """
    Load the product with an exclusive row lock.

    populate_existing() refreshes an already-loaded instance from the locked
    row; pending changes were autoflushed before the SELECT ran.
    """
    product = (
        lock_for_update(session.query(Product).filter(Product.id == product_id))
        .populate_existing()
        .first()
    )
    if product is None:
        raise ProductNotFoundError(
            f"Product {product_id} not found",
            details={"product_id": product_id},
        )
    return product


def _validate_movement(transaction_type: str, qty_in: Decimal, qty_out: Decimal) -> None:
    if transaction_type not in TRANSACTION_TYPES:
        raise InvalidMovementError(
            f"Unknown transaction_type {transaction_type!r}",
            details={"allowed": list(TRANSACTION_TYPES)},
        )
    if qty_in < 0 or qty_out < 0:
        raise InvalidMovementError(
            "qty_in and qty_out must be >= 0",
            details={"qty_in": str(qty_in), "qty_out": str(qty_out)},
        )
    # qty_in, qty_out and balance are stored at 2 dp
    if exceeds_scale(qty_in) or exceeds_scale(qty_out):
        raise InvalidMovementError(
            "quantities are limited to 2 decimal places",
            details={"qty_in": str(qty_in), "qty_out": str(qty_out)},
        )

    if transaction_type in _INBOUND_TYPES:
        ok = qty_in > 0 and qty_out == 0
    elif transaction_type == TYPE_SALE:
        ok = qty_out > 0 and qty_in == 0
    else:
        ok = (qty_in > 0) != (qty_out > 0)

    if not ok:
        raise InvalidMovementError(
            f"{transaction_type} movement has the wrong quantity side",
            details={
                "transaction_type": transaction_type,
                "qty_in": str(qty_in),
                "qty_out": str(qty_out),
            },
        )


def _write_snapshot(product: Product, balance: Decimal) -> None:
    # Sole writer of the qty cache.
    product._qty = balance


def record_movement(
    session,
    *,
    product_id: int,
    transaction_type: str,
    qty_in=0,
    qty_out=0,
    transaction_id: int | None = None,
    remarks: str | None = None,
) -> StockLedgerEntry:
    """
    Append one ledger entry and update the product's qty snapshot.

    Runs inside the caller's transaction (flush, no commit).

    Raises:
        InvalidMovementError: quantities do not fit the movement type
        ProductNotFoundError: no product row
        InsufficientStockError: the new balance would be negative
    """
    qty_in = to_decimal(qty_in, "qty_in")
    qty_out = to_decimal(qty_out, "qty_out")
    _validate_movement(transaction_type, qty_in, qty_out)

    product = lock_product(session, product_id)

    previous = get_last_balance(session, product_id)
    new_balance = previous + qty_in - qty_out
    if new_balance < 0:
        logger.warning(
            "Rejected %s movement for product %s (%s): available=%s requested=%s",
            transaction_type, product.id, product.code, previous, qty_out,
        )
        raise InsufficientStockError(
            f"Insufficient stock for product {product.code}",
            details={
                "product_id": product.id,
                "code": product.code,
                "available": str(previous),
                "requested": str(qty_out),
            },
        )

    entry = StockLedgerEntry(
        product_id=product.id,
        transaction_type=transaction_type,
        transaction_id=transaction_id,
        qty_in=qty_in,
        qty_out=qty_out,
        balance=new_balance,
        remarks=remarks,
    )
    session.add(entry)
    _write_snapshot(product, new_balance)
    session.flush()
    return entry


def register_opening_stock(session, product_id: int, qty, remarks: str | None = None) -> StockLedgerEntry | None:
    """
    Realize a product's declared initial quantity as an Opening entry.

    Zero quantity records nothing. Runs in the caller's transaction.
    """
    qty = to_decimal(qty, "opening_qty")
    if qty < 0:
        raise InvalidMovementError("opening_qty must be >= 0", details={"opening_qty": str(qty)})
    if exceeds_scale(qty):
        raise InvalidMovementError("opening_qty is limited to 2 decimal places", details={"opening_qty": str(qty)})
    if qty == 0:
        return None
    return record_movement(
        session,
        product_id=product_id,
        transaction_type=TYPE_OPENING,
        qty_in=qty,
        remarks=remarks or "Opening stock",
    )


def adjust_stock(product_id: int, target_qty, remarks: str | None = None, *, session=None) -> StockLedgerEntry | None:
    """
    Set a product's stock to target_qty by appending one Adjustment entry
    for the difference.

    Owns its transaction (commit on success, full rollback on failure,
    retried on lock conflicts). Returns None when the balance already
    equals the target.
    """
    target = to_decimal(target_qty, "target_qty")
    if target < 0:
        raise InvalidMovementError("target_qty must be >= 0", details={"target_qty": str(target)})
    if exceeds_scale(target):
        raise InvalidMovementError("target_qty is limited to 2 decimal places", details={"target_qty": str(target)})

    session = session or db.session

    def _op():
        begin_write(session)
        lock_product(session, product_id)
        current = get_last_balance(session, product_id)
        diff = target - current
        if diff == 0:
            session.commit()
            return None

        entry = record_movement(
            session,
            product_id=product_id,
            transaction_type=TYPE_ADJUSTMENT,
            qty_in=diff if diff > 0 else ZERO,
            qty_out=-diff if diff < 0 else ZERO,
            remarks=remarks or f"Stock adjusted from {current} to {target}",
        )
        session.commit()
        logger.info("Adjusted product %s stock from %s to %s (entry %s)", product_id, current, target, entry.id)
        return entry

    return run_with_retry(_op, session=session)


def list_ledger_entries(session, product_id: int, limit: int | None = None) -> list[StockLedgerEntry]:
    """Ledger history for a product, oldest first."""
    q = (
        session.query(StockLedgerEntry)
        .filter(StockLedgerEntry.product_id == product_id)
        .order_by(StockLedgerEntry.id.asc())
    )
    if limit:
        q = q.limit(limit)
    return q.all()


def verify_product_ledger(session, product_id: int) -> dict:
    """
    Re-walk a product's ledger and check the prefix-sum and snapshot invariants.

    Returns a report dict; "consistent" is False when any check fails.
    """
    product = session.query(Product).filter(Product.id == product_id).first()
    if product is None:
        raise ProductNotFoundError(f"Product {product_id} not found", details={"product_id": product_id})

    problems: list[dict] = []
    running = ZERO
    entries = list_ledger_entries(session, product_id)
    for entry in entries:
        running = running + entry.net_movement
        if Decimal(entry.balance) != running:
            problems.append({
                "entry_id": entry.id,
                "problem": "balance_mismatch",
                "expected": str(running),
                "recorded": str(entry.balance),
            })
            running = Decimal(entry.balance)
        if running < 0:
            problems.append({"entry_id": entry.id, "problem": "negative_balance", "recorded": str(running)})

    last_balance = Decimal(entries[-1].balance) if entries else ZERO
    if Decimal(product.qty) != last_balance:
        problems.append({
            "problem": "snapshot_mismatch",
            "snapshot": str(product.qty),
            "last_balance": str(last_balance),
        })

    return {
        "product_id": product.id,
        "code": product.code,
        "entries": len(entries),
        "last_balance": str(last_balance),
        "snapshot": str(product.qty),
        "consistent": not problems,
        "problems": problems,
    }
