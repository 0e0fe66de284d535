"""Order pricing.

Pure functions, no database access:
- Line items → subtotal
- Subtotal × tax rate → taxes
- Subtotal + flat shipping + taxes → total

Every component is rounded to cents (ROUND_HALF_UP) before summing, so
``total == subtotal + shipping + taxes`` holds exactly on the stored values.

Example:
- Subtotal: $50.00
- Shipping: $10.00
- Tax (13%): $6.50
- Total: $66.50
"""
from dataclasses import dataclass, replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional
import uuid

from storefront.config import settings

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")


def round_money(value: Decimal) -> Decimal:
    """Round a money amount to cents, half up."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LineItem:
    product_id: uuid.UUID
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return round_money(Decimal(self.unit_price) * self.quantity)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    shipping: Decimal
    taxes: Decimal
    discount: Decimal
    total: Decimal


def calculate_order_totals(
    items: Iterable[LineItem],
    shipping_cost: Optional[Decimal] = None,
    tax_rate: Optional[Decimal] = None,
) -> OrderTotals:
    """
    Price a set of line items.

    An empty item set prices to a zero subtotal; callers reject empty carts
    before getting here.
    """
    if shipping_cost is None:
        shipping_cost = settings.SHIPPING_COST
    if tax_rate is None:
        tax_rate = settings.TAX_RATE

    subtotal = ZERO
    for item in items:
        if item.quantity < 1:
            raise ValueError(f"Quantity must be at least 1 for product {item.product_id}")
        subtotal += item.line_total
    subtotal = round_money(subtotal)

    shipping = round_money(shipping_cost)
    taxes = round_money(subtotal * Decimal(tax_rate))
    total = subtotal + shipping + taxes

    return OrderTotals(
        subtotal=subtotal,
        shipping=shipping,
        taxes=taxes,
        discount=ZERO,
        total=total,
    )


def apply_discount_to_total(totals: OrderTotals, discount_amount: Decimal) -> OrderTotals:
    """Subtract a discount from the total, never going below zero."""
    discount = round_money(discount_amount)
    if discount < ZERO:
        raise ValueError("Discount amount cannot be negative")
    discount = min(discount, totals.total)
    return replace(totals, discount=discount, total=totals.total - discount)
