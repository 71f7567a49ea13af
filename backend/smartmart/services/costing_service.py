# Overview: Weighted-average cost computation for purchase receipts.

from __future__ import annotations

from decimal import Decimal

from ..money import ZERO, quantize_money, to_decimal


def reweight(current_qty, current_cost, incoming_qty, incoming_unit_cost) -> Decimal:
    """
    New weighted-average unit cost after receiving incoming_qty at
    incoming_unit_cost.

        (current_qty * current_cost + incoming_qty * incoming_unit_cost)
        / (current_qty + incoming_qty)

    rounded half-up to 2 dp. When the combined quantity is zero the incoming
    cost is returned as-is.

    current_qty must be the PRE-receipt quantity; passing the quantity after
    the receipt was applied counts the incoming stock twice.

    Pure function: the caller persists the result.
    """
    current_qty = to_decimal(current_qty, "current_qty")
    current_cost = to_decimal(current_cost if current_cost is not None else ZERO, "current_cost")
    incoming_qty = to_decimal(incoming_qty, "incoming_qty")
    incoming_unit_cost = to_decimal(incoming_unit_cost, "incoming_unit_cost")

    total_qty = current_qty + incoming_qty
    if total_qty == 0:
        return quantize_money(incoming_unit_cost)

    total_cost = current_qty * current_cost + incoming_qty * incoming_unit_cost
    return quantize_money(total_cost / total_qty)
