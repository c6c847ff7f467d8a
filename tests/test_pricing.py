import pytest

from restaurant_api.services.pricing import (
    Settlement,
    compute_subtotal,
    line_total,
    max_redeemable_points,
    settle,
    settle_guest,
)


def test_subtotal_sums_price_times_quantity():
    assert compute_subtotal([(150, 2), (30, 1)]) == 330.0
    assert compute_subtotal([]) == 0.0


def test_subtotal_rounds_to_cents():
    assert compute_subtotal([(0.1, 3)]) == 0.3
    assert line_total(2.675, 2) == 5.35


def test_redeem_and_earn_with_enough_balance():
    result = settle(330, requested_points=30, available_points=50)

    assert result == Settlement(
        subtotal=330.0, points_used=30, discount=30.0, total=300.0, points_earned=3
    )
    assert result.balance_after(50) == 23


def test_redemption_capped_by_balance():
    result = settle(330, requested_points=1000, available_points=50)

    assert result.points_used == 50
    assert result.total == 280.0
    assert result.points_earned == 2


def test_redemption_capped_by_subtotal():
    result = settle(20, requested_points=500, available_points=500)

    assert result.points_used == 20
    assert result.total == 0.0
    assert result.points_earned == 0
    assert result.balance_after(500) == 480


def test_point_value_scales_discount_and_cap():
    result = settle(95, requested_points=100, available_points=100, point_value=10)

    # floor(95 / 10) = 9 points at most
    assert result.points_used == 9
    assert result.discount == 90.0
    assert result.total == 5.0


def test_accrual_is_based_on_total_after_redemption():
    result = settle(199, requested_points=0, available_points=10, points_per_amount=100)
    assert result.points_used == 0
    assert result.points_earned == 1

    result = settle(199, requested_points=100, available_points=100, points_per_amount=100)
    assert result.total == 99.0
    assert result.points_earned == 0


def test_accrual_floor_is_exact_for_decimal_amounts():
    result = settle(0.3, requested_points=0, available_points=0, points_per_amount=0.1)
    assert result.points_earned == 3


def test_negative_inputs_redeem_nothing():
    result = settle(100, requested_points=-5, available_points=-3)
    assert result.points_used == 0
    assert result.total == 100.0


def test_invalid_rates_rejected():
    with pytest.raises(ValueError):
        settle(100, 0, 0, point_value=0)
    with pytest.raises(ValueError):
        settle(100, 0, 0, points_per_amount=-1)


def test_max_redeemable_for_empty_order():
    assert max_redeemable_points(0, 1.0) == 0


def test_guest_settlement_has_no_points():
    result = settle_guest(480)
    assert result.points_used == 0
    assert result.points_earned == 0
    assert result.total == 480.0
