"""
Checkout error taxonomy

Every failure on the way from cart to order is one of these. They are raised
inside the checkout pipeline and caught at the submission boundary, where
they become the user-facing ``payment_error`` on the checkout data.
"""

from typing import Optional


class CheckoutError(Exception):
    """Base exception for checkout pipeline errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(CheckoutError):
    """Address or payment fields are incomplete"""

    def __init__(self, field_errors: dict[str, str], message: Optional[str] = None):
        super().__init__(message or "Please complete the highlighted fields.")
        self.field_errors = field_errors


class AvailabilityConflict(CheckoutError):
    """One or more cart items cannot be fulfilled right now"""

    def __init__(self, unavailable: set[str], unknown: Optional[set[str]] = None):
        unknown = unknown or set()
        if unavailable:
            message = (
                "Some items in your cart are out of stock or exceed the available "
                f"quantity: {', '.join(sorted(unavailable))}"
            )
        else:
            message = (
                "We could not confirm stock for: "
                f"{', '.join(sorted(unknown))}. Please try again shortly."
            )
        super().__init__(message)
        self.unavailable = set(unavailable)
        self.unknown = set(unknown)


class SubmissionFailure(CheckoutError):
    """The order service call failed"""
    pass


class UnknownOrderResponse(SubmissionFailure):
    """The order service answered without an order id"""

    def __init__(self, response: Optional[dict] = None):
        super().__init__(
            "Your order may have been placed but we did not receive a confirmation. "
            "Please contact support before trying again."
        )
        self.response = response


class OrderMismatch(CheckoutError):
    """The cart no longer matches the order created for it"""

    def __init__(self, order_id: Optional[str] = None):
        super().__init__(
            "Your cart has changed since your order was created. "
            "Restore the original items or restart checkout to place a new order."
        )
        self.order_id = order_id


class PaymentFailure(CheckoutError):
    """The payment processor reported a failure for an existing order"""

    def __init__(self, message: Optional[str] = None, order_id: Optional[str] = None):
        super().__init__(message or "Payment failed. Please try again.")
        self.order_id = order_id


class ApiError(Exception):
    """Error returned by (or while reaching) the commerce backend"""

    def __init__(
        self,
        status: int,
        message: str,
        code: Optional[str] = None,
        errors: Optional[dict[str, list[str]]] = None,
        details: Optional[object] = None,
    ):
        super().__init__(message)
        self.status = status
        self.message = message
        self.code = code
        self.errors = errors
        self.details = details
