"""Cart store for one shopping session"""

import logging
from typing import Callable, Optional

from ..models.cart import CartLineItem, CartTotals, ProductRef, VariantRef
from .pricing import DEFAULT_RULES, PricingRules, compute_totals, is_known_coupon, normalize_coupon

logger = logging.getLogger(__name__)

MIN_QUANTITY = 1
MAX_QUANTITY = 10

CartListener = Callable[["CartStore"], None]


def clamp_quantity(quantity: int) -> int:
    return max(MIN_QUANTITY, min(MAX_QUANTITY, int(quantity)))


class CartStore:
    """
    Owns the cart line items.

    Line items are frozen; every mutation builds a new tuple and swaps it in
    with a single assignment before listeners run, so a reader always sees
    either the old cart or the new one. Totals are never stored.
    """

    def __init__(self, rules: PricingRules = DEFAULT_RULES):
        self.rules = rules
        self._items: tuple[CartLineItem, ...] = ()
        self._coupon_code: Optional[str] = None
        self._listeners: list[CartListener] = []

    # ==================== Reads ====================

    @property
    def items(self) -> tuple[CartLineItem, ...]:
        return self._items

    def snapshot(self) -> tuple[CartLineItem, ...]:
        """Current line items; safe to hold across awaits"""
        return self._items

    @property
    def is_empty(self) -> bool:
        return not self._items

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self._items)

    @property
    def coupon_code(self) -> Optional[str]:
        return self._coupon_code

    @property
    def coupon_applied(self) -> bool:
        return self._coupon_code is not None

    @property
    def totals(self) -> CartTotals:
        return compute_totals(self._items, self.coupon_applied, self.rules)

    def subject_ids(self) -> tuple[set[str], set[str]]:
        """Distinct product ids (lines without variant) and variant ids"""
        product_ids = {item.product_id for item in self._items if not item.variant_id}
        variant_ids = {item.variant_id for item in self._items if item.variant_id}
        return product_ids, variant_ids

    def find(self, product_id: str, variant_id: Optional[str] = None) -> Optional[CartLineItem]:
        return next(
            (item for item in self._items if item.matches(product_id, variant_id)),
            None,
        )

    # ==================== Subscriptions ====================

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        """Register a listener called after every mutation; returns an unsubscribe"""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, items: tuple[CartLineItem, ...]) -> None:
        self._items = items
        for listener in list(self._listeners):
            listener(self)

    # ==================== Mutations ====================

    def add(
        self,
        product: ProductRef,
        variant: Optional[VariantRef] = None,
        quantity: int = 1,
    ) -> CartLineItem:
        """Add a product, merging into an existing line for the same product+variant"""
        if quantity < MIN_QUANTITY:
            raise ValueError(f"quantity must be >= {MIN_QUANTITY}")

        variant_id = variant.id if variant else None
        existing = self.find(product.id, variant_id)

        if existing:
            line = existing.model_copy(
                update={"quantity": clamp_quantity(existing.quantity + quantity)}
            )
            items = tuple(line if item is existing else item for item in self._items)
        else:
            if variant is not None and variant.price is not None:
                unit_price = variant.price
                discount_price = None
            else:
                unit_price = product.price
                discount_price = product.discount_price

            line = CartLineItem(
                product_id=product.id,
                variant_id=variant_id,
                product_name=product.name,
                quantity=clamp_quantity(quantity),
                unit_price=unit_price,
                discount_unit_price=discount_price,
                currency=product.currency,
            )
            items = self._items + (line,)

        logger.debug(f"Cart add {product.id}/{variant_id} -> qty {line.quantity}")
        self._commit(items)
        return line

    def remove(self, product_id: str, variant_id: Optional[str] = None) -> bool:
        """Remove the lines of a product (only the given variant if one is passed)"""
        items = tuple(
            item for item in self._items
            if not (
                item.product_id == product_id
                and (variant_id is None or item.variant_id == variant_id)
            )
        )
        if len(items) == len(self._items):
            return False

        logger.debug(f"Cart remove {product_id}/{variant_id}")
        self._commit(items)
        return True

    def set_quantity(
        self,
        product_id: str,
        quantity: int,
        variant_id: Optional[str] = None,
    ) -> bool:
        """Set line quantity, clamped to the allowed range; 0 or less removes"""
        if quantity <= 0:
            return self.remove(product_id, variant_id)

        quantity = clamp_quantity(quantity)
        changed = False
        items = []
        for item in self._items:
            if item.product_id == product_id and (variant_id is None or item.variant_id == variant_id):
                item = item.model_copy(update={"quantity": quantity})
                changed = True
            items.append(item)

        if not changed:
            return False

        self._commit(tuple(items))
        return True

    def clear(self) -> None:
        """Drop every line item and the coupon"""
        self._coupon_code = None
        self._commit(())

    # ==================== Coupons ====================

    def apply_coupon(self, code: str) -> bool:
        """Apply a coupon if it is a known code"""
        if not is_known_coupon(code, self.rules):
            logger.info(f"Rejected coupon code {code!r}")
            return False

        self._coupon_code = normalize_coupon(code)
        self._commit(self._items)
        return True

    def remove_coupon(self) -> None:
        self._coupon_code = None
        self._commit(self._items)
