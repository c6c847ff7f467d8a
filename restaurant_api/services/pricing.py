"""
Order Pricing & Loyalty Settlement

Pure arithmetic, no I/O:
    - subtotal: catalog price x quantity, summed over lines
    - redemption: min(requested, balance, floor(subtotal / point_value))
    - accrual: floor(total after redemption / points_per_amount)

Division and flooring go through Decimal so that amounts such as 0.3 / 0.1
floor to 3 rather than 2.
"""

from dataclasses import dataclass
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Iterable, Tuple


@dataclass(frozen=True)
class Settlement:
    """
    Result of settling one order.

    Attributes:
        subtotal: Sum of repriced lines
        points_used: Points redeemed against the subtotal
        discount: Currency value of the redeemed points
        total: Amount to pay after redemption
        points_earned: Points accrued on the total
    """
    subtotal: float
    points_used: int
    discount: float
    total: float
    points_earned: int

    def balance_after(self, balance: int) -> int:
        """Member balance once this settlement is applied."""
        return balance - self.points_used + self.points_earned


def _dec(value: float) -> Decimal:
    return Decimal(str(value))


def _money(value: Decimal) -> float:
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _floor_div(numerator: Decimal, denominator: Decimal) -> int:
    return int((numerator / denominator).to_integral_value(rounding=ROUND_FLOOR))


def line_total(unit_price: float, quantity: int) -> float:
    return _money(_dec(unit_price) * quantity)


def compute_subtotal(lines: Iterable[Tuple[float, int]]) -> float:
    """Sum ``(unit_price, quantity)`` pairs, rounded to cents."""
    total = sum((_dec(price) * qty for price, qty in lines), Decimal("0"))
    return _money(total)


def max_redeemable_points(subtotal: float, point_value: float) -> int:
    if subtotal <= 0:
        return 0
    return _floor_div(_dec(subtotal), _dec(point_value))


def settle(
    subtotal: float,
    requested_points: int,
    available_points: int,
    point_value: float = 1.0,
    points_per_amount: float = 100.0,
) -> Settlement:
    """
    Settle an order against a member balance.

    Args:
        subtotal: Server-side subtotal of the order
        requested_points: Points the customer asked to redeem
        available_points: Member balance (0 for guests)
        point_value: Currency value of one point
        points_per_amount: Spend needed to earn one point

    Returns:
        Settlement: Amounts to record on the order and apply to the member

    Example:
        >>> settle(250, requested_points=30, available_points=20).total
        230.0
    """
    if point_value <= 0 or points_per_amount <= 0:
        raise ValueError("point_value and points_per_amount must be positive")

    used = min(
        max(requested_points, 0),
        max(available_points, 0),
        max_redeemable_points(subtotal, point_value),
    )
    discount = _dec(used) * _dec(point_value)
    remaining = max(_dec(subtotal) - discount, Decimal("0"))
    total = _money(remaining)
    earned = _floor_div(_dec(total), _dec(points_per_amount))

    return Settlement(
        subtotal=_money(_dec(subtotal)),
        points_used=used,
        discount=_money(discount),
        total=total,
        points_earned=max(earned, 0),
    )


def settle_guest(subtotal: float) -> Settlement:
    """Guests neither redeem nor earn points."""
    amount = _money(_dec(subtotal))
    return Settlement(
        subtotal=amount,
        points_used=0,
        discount=0.0,
        total=amount,
        points_earned=0,
    )
