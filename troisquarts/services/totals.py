"""Order total arithmetic.

Menu prices are tax-inclusive. The discount is taken from the item gross only,
the delivery fee is added afterwards and never discounted, and VAT is backed
out of the final tax-inclusive total::

    gross     = sum(unit_price * quantity)
    discount  = rule(gross), capped at gross
    total     = gross - discount + delivery_fee
    subtotal  = round(total / (1 + tax_rate))
    tax       = total - subtotal

Each derived figure is rounded half-up to cents once; per-line values are never
rounded on their own. ``tax`` is the residual so that ``subtotal + tax == total``.
"""
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Sequence

from ..models.coupon import TYPE_FIXED, TYPE_PERCENTAGE


CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def to_money(value) -> Decimal:
    """Round any number-like value half-up to two decimals."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CartLineItem:
    item_id: str
    name: str
    unit_price: Decimal
    quantity: int

    def __post_init__(self):
        if not isinstance(self.unit_price, Decimal):
            object.__setattr__(self, "unit_price", Decimal(str(self.unit_price)))
        if self.unit_price < 0:
            raise ValueError("unit_price must be >= 0")
        if int(self.quantity) < 1:
            raise ValueError("quantity must be >= 1")

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


@dataclass(frozen=True)
class OrderTotals:
    gross_total: Decimal
    discount_amount: Decimal
    delivery_fee: Decimal
    subtotal: Decimal
    tax_amount: Decimal
    total: Decimal

    def to_dict(self) -> dict:
        return {
            "gross_total": float(self.gross_total),
            "discount_amount": float(self.discount_amount),
            "delivery_fee": float(self.delivery_fee),
            "subtotal": float(self.subtotal),
            "tax_amount": float(self.tax_amount),
            "total": float(self.total),
        }


def gross_total(line_items: Sequence[CartLineItem]) -> Decimal:
    return to_money(sum((li.unit_price * li.quantity for li in line_items), Decimal("0")))


def compute_discount(discount_type: str, discount_value, amount, max_discount=None) -> Decimal:
    """Discount a coupon rule grants on ``amount`` (already known to be applicable)."""
    amount = Decimal(str(amount))
    value = Decimal(str(discount_value or 0))
    if discount_type == TYPE_PERCENTAGE:
        discount = to_money(amount * value / Decimal("100"))
    elif discount_type == TYPE_FIXED:
        discount = to_money(value)
    else:
        raise ValueError(f"unknown discount type: {discount_type}")
    if max_discount is not None:
        discount = min(discount, to_money(max_discount))
    discount = min(discount, to_money(amount))
    return max(discount, ZERO)


def calculate_totals(
    line_items: Sequence[CartLineItem],
    tax_rate,
    coupon=None,
    delivery_fee=ZERO,
) -> OrderTotals:
    """Turn a cart snapshot into the four persisted money figures.

    ``coupon`` is any object exposing ``discount_type``, ``discount_value`` and
    ``max_discount``; validity checks belong to the caller.
    """
    if not line_items:
        raise ValueError("line_items must not be empty")
    rate = Decimal(str(tax_rate))
    if rate < 0:
        raise ValueError("tax_rate must be >= 0")
    fee = to_money(delivery_fee or 0)
    if fee < 0:
        raise ValueError("delivery_fee must be >= 0")

    gross = gross_total(line_items)
    discount = ZERO
    if coupon is not None:
        discount = compute_discount(
            coupon.discount_type,
            coupon.discount_value,
            gross,
            getattr(coupon, "max_discount", None),
        )

    total = to_money(gross - discount + fee)
    subtotal = to_money(total / (Decimal("1") + rate))
    tax = total - subtotal
    if subtotal < 0 or tax < 0:
        raise ValueError("computed amounts must not be negative")

    return OrderTotals(
        gross_total=gross,
        discount_amount=discount,
        delivery_fee=fee,
        subtotal=subtotal,
        tax_amount=tax,
        total=total,
    )

