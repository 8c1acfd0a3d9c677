# Storefront Services

from .pricing import PricingRules, compute_totals, is_known_coupon
from .cart_store import CartStore
from .api_client import StorefrontApiClient, handle_api_error
from .availability import AvailabilityReconciler, use_availability
from .order_submitter import OrderSubmitter
from .checkout import CheckoutMachine
from .payment_processor import HttpPaymentProcessor

__all__ = [
    "PricingRules",
    "compute_totals",
    "is_known_coupon",
    "CartStore",
    "StorefrontApiClient",
    "handle_api_error",
    "AvailabilityReconciler",
    "use_availability",
    "OrderSubmitter",
    "CheckoutMachine",
    "HttpPaymentProcessor",
]
