# Overview: Pytest coverage for weighted-average cost computation.

from decimal import Decimal

import pytest

from smartmart.services.costing_service import reweight


def test_weighted_average_of_existing_and_incoming_stock():
    assert reweight(10, Decimal("5.00"), 5, Decimal("8.00")) == Decimal("6.00")


def test_zero_total_quantity_takes_incoming_cost():
    assert reweight(0, Decimal("3.00"), 0, Decimal("9.99")) == Decimal("9.99")


def test_empty_stock_takes_incoming_cost():
    assert reweight(0, Decimal("0"), 7, Decimal("4.25")) == Decimal("4.25")


def test_missing_current_cost_counts_as_zero():
    assert reweight(0, None, 3, "2.10") == Decimal("2.10")


@pytest.mark.parametrize("current_qty,current_cost,incoming_qty,incoming_cost,expected", [
    (1, "1.00", 1, "1.01", "1.01"),   # 1.005 rounds half-up
    (2, "1.00", 1, "1.01", "1.00"),   # 1.00333...
    (3, "2.00", 1, "2.01", "2.00"),   # 2.0025
    ("1.5", "4.00", "0.5", "8.00", "5.00"),
])
def test_rounds_half_up_to_two_places(current_qty, current_cost, incoming_qty, incoming_cost, expected):
    assert reweight(current_qty, current_cost, incoming_qty, incoming_cost) == Decimal(expected)


def test_using_post_receipt_quantity_double_counts():
    # passing the post-receipt qty counts the received units twice
    pre = reweight(10, "5.00", 5, "8.00")
    post = reweight(15, "5.00", 5, "8.00")
    assert pre == Decimal("6.00")
    assert post != pre


def test_result_is_quantized():
    result = reweight(3, "1.00", 0, "0")
    assert result == Decimal("1.00")
    assert result.as_tuple().exponent == -2
