"""Cart models"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ProductRef(BaseModel):
    """Product as handed over by the catalogue UI"""
    id: str
    name: str = ""
    price: Decimal = Field(ge=0)
    discount_price: Optional[Decimal] = Field(default=None, ge=0)
    currency: str = "INR"


class VariantRef(BaseModel):
    """Selected product variant (colour, size, ...)"""
    id: str
    name: str = ""
    price: Optional[Decimal] = Field(default=None, ge=0)


class CartLineItem(BaseModel):
    """One product (+variant) entry in the cart"""
    model_config = ConfigDict(frozen=True)

    product_id: str
    variant_id: Optional[str] = None
    product_name: str = ""
    quantity: int = Field(ge=1, le=10)
    unit_price: Decimal = Field(ge=0)
    discount_unit_price: Optional[Decimal] = Field(default=None, ge=0)
    currency: str = "INR"

    @property
    def subject_id(self) -> str:
        """Inventory subject this line is reconciled against"""
        return self.variant_id or self.product_id

    @property
    def effective_unit_price(self) -> Decimal:
        if self.discount_unit_price is not None:
            return self.discount_unit_price
        return self.unit_price

    def matches(self, product_id: str, variant_id: Optional[str] = None) -> bool:
        return self.product_id == product_id and self.variant_id == variant_id


class CartTotals(BaseModel):
    """Totals derived from the line items and coupon state"""
    model_config = ConfigDict(frozen=True)

    subtotal: Decimal
    shipping_cost: Decimal
    tax: Decimal
    discount: Decimal
    total: Decimal
    item_count: int
    currency: str


class AddToCartRequest(BaseModel):
    """Request to add item to cart"""
    product: ProductRef
    variant: Optional[VariantRef] = None
    quantity: int = Field(default=1, gt=0)


class UpdateCartItemRequest(BaseModel):
    """Request to update cart item quantity (0 or less removes the line)"""
    quantity: int
    variant_id: Optional[str] = None


class ApplyCouponRequest(BaseModel):
    """Request to apply a coupon code"""
    code: str


class CartResponse(BaseModel):
    """Cart API response"""
    items: list[CartLineItem]
    totals: CartTotals
    coupon_code: Optional[str] = None
    coupon_applied: bool = False
    message: Optional[str] = None
