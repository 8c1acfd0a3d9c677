# Storefront Models

from .cart import (
    ProductRef,
    VariantRef,
    CartLineItem,
    CartTotals,
    AddToCartRequest,
    UpdateCartItemRequest,
    ApplyCouponRequest,
    CartResponse,
)
from .inventory import StockStatus, AvailabilitySnapshot, AvailabilityView
from .checkout import (
    CheckoutState,
    Address,
    AddressType,
    AddressForm,
    CheckoutData,
    OrderAddress,
    OrderItemRequest,
    OrderRequest,
    OrderResponse,
    PaymentRequest,
    PaymentResult,
    OrderConfirmation,
    SubmissionStatus,
    SubmissionOutcome,
    CheckoutUpdateRequest,
    PaymentVerifyRequest,
    CheckoutResponse,
    PAYMENT_REQUIRED_FIELDS,
    PAYMENT_PROVIDERS,
)

__all__ = [
    "ProductRef",
    "VariantRef",
    "CartLineItem",
    "CartTotals",
    "AddToCartRequest",
    "UpdateCartItemRequest",
    "ApplyCouponRequest",
    "CartResponse",
    "StockStatus",
    "AvailabilitySnapshot",
    "AvailabilityView",
    "CheckoutState",
    "Address",
    "AddressType",
    "AddressForm",
    "CheckoutData",
    "OrderAddress",
    "OrderItemRequest",
    "OrderRequest",
    "OrderResponse",
    "PaymentRequest",
    "PaymentResult",
    "OrderConfirmation",
    "SubmissionStatus",
    "SubmissionOutcome",
    "CheckoutUpdateRequest",
    "PaymentVerifyRequest",
    "CheckoutResponse",
    "PAYMENT_REQUIRED_FIELDS",
    "PAYMENT_PROVIDERS",
]
