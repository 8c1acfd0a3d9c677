"""
Price Engine

Pure computation of cart totals from line items and coupon state.
Amounts are Decimals quantized the same way on every call, so two calls with
the same inputs produce equal results down to the serialized form.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

from ..core.config import Settings
from ..models.cart import CartLineItem, CartTotals

CENTS = Decimal("0.01")
UNITS = Decimal("1")


@dataclass(frozen=True)
class PricingRules:
    """Store-wide pricing parameters"""
    free_shipping_threshold: Decimal = Decimal("500")
    flat_shipping_fee: Decimal = Decimal("40")
    tax_rate: Decimal = Decimal("0.05")
    coupon_discount_rate: Decimal = Decimal("0.10")
    coupon_codes: tuple[str, ...] = ("WELCOME10",)
    default_currency: str = "INR"

    @classmethod
    def from_settings(cls, settings: Settings) -> "PricingRules":
        return cls(
            free_shipping_threshold=Decimal(settings.free_shipping_threshold),
            flat_shipping_fee=Decimal(settings.flat_shipping_fee),
            tax_rate=Decimal(settings.tax_rate),
            coupon_discount_rate=Decimal(settings.coupon_discount_rate),
            coupon_codes=tuple(code.strip().upper() for code in settings.coupon_codes),
            default_currency=settings.default_currency,
        )


DEFAULT_RULES = PricingRules()


def normalize_coupon(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def is_known_coupon(code: Optional[str], rules: PricingRules = DEFAULT_RULES) -> bool:
    """Check a coupon code against the known codes (trimmed, case-insensitive)"""
    normalized = normalize_coupon(code)
    return bool(normalized) and normalized in rules.coupon_codes


def _round_units(amount: Decimal) -> Decimal:
    return amount.quantize(UNITS, rounding=ROUND_HALF_UP).quantize(CENTS)


def compute_totals(
    items: Iterable[CartLineItem],
    coupon_applied: bool = False,
    rules: PricingRules = DEFAULT_RULES,
) -> CartTotals:
    """
    Compute cart totals.

    Args:
        items: Current line items
        coupon_applied: Whether a known coupon is active on the cart
        rules: Pricing parameters

    Returns:
        Totals; shipping is free only strictly above the threshold
    """
    items = list(items)

    subtotal = sum(
        (Decimal(item.quantity) * item.effective_unit_price for item in items),
        Decimal("0"),
    ).quantize(CENTS, rounding=ROUND_HALF_UP)

    shipping = Decimal("0") if subtotal > rules.free_shipping_threshold else rules.flat_shipping_fee
    tax = _round_units(subtotal * rules.tax_rate)
    discount = _round_units(subtotal * rules.coupon_discount_rate) if coupon_applied else Decimal("0")

    return CartTotals(
        subtotal=subtotal,
        shipping_cost=shipping.quantize(CENTS),
        tax=tax,
        discount=discount.quantize(CENTS),
        total=(subtotal + shipping + tax - discount).quantize(CENTS),
        item_count=sum(item.quantity for item in items),
        currency=items[0].currency if items else rules.default_currency,
    )
