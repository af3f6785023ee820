"""Cart pricing: subtotal, coupon discount and final price.

Pure functions of the item list and the applied coupon.
"""

from collections.abc import Iterable
from decimal import Decimal
from typing import Optional

from .models import CartItem, Coupon, DiscountKind, Totals

ZERO = Decimal("0")


def compute_subtotal(items: Iterable[CartItem]) -> Decimal:
    return sum((item.unit_price for item in items), ZERO)


def compute_discount(subtotal: Decimal, coupon: Optional[Coupon]) -> Decimal:
    """Discount for a subtotal. Never exceeds the subtotal."""
    if coupon is None:
        return ZERO
    if coupon.discount_kind is DiscountKind.PERCENTAGE:
        return subtotal * coupon.value / 100
    if coupon.discount_kind is DiscountKind.FIXED:
        return min(coupon.value, subtotal)
    return ZERO


def compute_totals(items: Iterable[CartItem], coupon: Optional[Coupon]) -> Totals:
    subtotal = compute_subtotal(items)
    discount = compute_discount(subtotal, coupon)
    return Totals(
        subtotal=subtotal,
        discount=discount,
        final_price=max(ZERO, subtotal - discount),
    )
