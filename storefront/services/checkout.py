"""
Checkout State Machine

    cart -> information -> payment -> submitted -> success
                              ^          |  \\
                              |          |   awaiting_payment -> success
                              +- failed <+---------+

Each forward step has a gate. Submission is delegated to the OrderSubmitter;
the machine owns the state, the checkout data and the session token that
makes late results from a reset checkout harmless.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Optional
from urllib.parse import urlencode

from ..core.config import Settings, settings as default_settings
from ..core.errors import ApiError, AvailabilityConflict, CheckoutError, OrderMismatch, PaymentFailure, ValidationError
from ..models.cart import CartLineItem, CartTotals
from ..models.checkout import (
    PAYMENT_REQUIRED_FIELDS,
    CheckoutData,
    CheckoutState,
    OrderConfirmation,
    SubmissionOutcome,
    SubmissionStatus,
)
from .addresses import form_errors
from .availability import AvailabilityReconciler
from .cart_store import CartStore
from .contracts import PaymentCompleteCallback, PaymentErrorCallback
from .order_submitter import OrderSubmitter

logger = logging.getLogger(__name__)

ORDER_SUCCESS_PATH = "/order-success"
PAYMENT_ERROR_MESSAGE = "Payment processing failed. Please try again."


def order_lines(items: Iterable[CartLineItem]) -> set[tuple[str, Optional[str], int]]:
    return {(item.product_id, item.variant_id, item.quantity) for item in items}


@dataclass(frozen=True)
class Transition:
    from_state: CheckoutState
    to_state: CheckoutState
    at: datetime


class CheckoutMachine:
    """Checkout flow for one shopping session"""

    def __init__(
        self,
        cart: CartStore,
        reconciler: AvailabilityReconciler,
        submitter: OrderSubmitter,
        settings: Settings = default_settings,
    ):
        self.cart = cart
        self.reconciler = reconciler
        self.submitter = submitter
        self.settings = settings

        self.state = CheckoutState.CART
        self.data = CheckoutData()
        self.token = 0
        self.history: list[Transition] = []
        self.confirmation: Optional[OrderConfirmation] = None

        self._unsubscribe = cart.subscribe(self._on_cart_change)

    def _transition(self, new_state: CheckoutState) -> None:
        if new_state == self.state:
            return
        self.history.append(Transition(self.state, new_state, datetime.now(timezone.utc)))
        logger.info(f"Checkout {self.state.value} -> {new_state.value}")
        self.state = new_state

    def _on_cart_change(self, cart: CartStore) -> None:
        if cart.is_empty and self.state not in (CheckoutState.CART, CheckoutState.SUCCESS):
            logger.info("Cart emptied, resetting checkout")
            self.reset()

    def detach(self) -> None:
        self._unsubscribe()

    # ==================== Checkout data ====================

    def update_checkout_data(self, **updates: Any) -> CheckoutData:
        """Merge form updates into the checkout data"""
        new_order_id = updates.get("order_id")
        if self.data.order_id and "order_id" in updates and new_order_id != self.data.order_id:
            raise ValueError("order_id cannot change once the order has been created")

        if self.data.order_id and "payment_method" in updates:
            method = (updates["payment_method"] or "").strip().lower()
            if method != self.data.order_payment_method:
                raise ValidationError(
                    {"payment_method": "The payment method cannot change once your order has been created."},
                    message="Restart checkout to pay with a different method.",
                )

        self.data = CheckoutData.model_validate({**self.data.model_dump(), **updates})
        return self.data

    def reset(self) -> None:
        """Discard checkout data; results of in-flight calls are ignored afterwards"""
        self.token += 1
        self.data = CheckoutData()
        self._transition(CheckoutState.CART)

    # ==================== Gates ====================

    def step1_errors(self) -> dict[str, str]:
        cities, states = self.settings.known_cities, self.settings.known_states
        errors = form_errors(self.data.shipping, "shipping", cities, states)
        if not self.data.use_same_address_for_billing:
            errors.update(form_errors(self.data.billing, "billing", cities, states))
        return errors

    def step2_errors(self) -> dict[str, str]:
        method = (self.data.payment_method or "").strip().lower()
        if not method:
            return {"payment_method": "Please select a payment method."}

        required = PAYMENT_REQUIRED_FIELDS.get(method, ())
        return {
            f"payment_data.{field}": "This field is required."
            for field in required
            if not (self.data.payment_data.get(field) or "").strip()
        }

    def validation_errors(self) -> dict[str, str]:
        errors = {}
        if self.cart.is_empty:
            errors["cart"] = "Your cart is empty."
        errors.update(self.step1_errors())
        errors.update(self.step2_errors())
        return errors

    @property
    def is_step1_complete(self) -> bool:
        return not self.step1_errors()

    @property
    def is_step2_complete(self) -> bool:
        return not self.step2_errors()

    @property
    def is_checkout_enabled(self) -> bool:
        if self.cart.is_empty or not self.is_step1_complete or not self.is_step2_complete:
            return False
        unavailable, unknown = self.reconciler.conflicts(self.cart.items)
        return not unavailable and not unknown

    # ==================== Steps ====================

    def begin(self) -> bool:
        """Enter the information step; stays at cart while the cart is empty"""
        if self.cart.is_empty:
            self._transition(CheckoutState.CART)
            return False

        if self.state == CheckoutState.SUCCESS:
            self.confirmation = None
            self.reset()
        if self.state == CheckoutState.CART:
            self._transition(CheckoutState.INFORMATION)
        return True

    def continue_to_payment(self) -> None:
        """Leave the information step; raises ValidationError if the address is incomplete"""
        if self.cart.is_empty:
            self._transition(CheckoutState.CART)
            raise ValidationError({"cart": "Your cart is empty."})
        if self.state not in (CheckoutState.INFORMATION, CheckoutState.PAYMENT):
            raise ValidationError({"state": "Checkout has not been started."})

        errors = self.step1_errors()
        if errors:
            raise ValidationError(errors)
        self._transition(CheckoutState.PAYMENT)

    def back_to_information(self) -> None:
        if self.state == CheckoutState.PAYMENT:
            self._transition(CheckoutState.INFORMATION)

    async def submit(self) -> SubmissionOutcome:
        """Place the order; repeated calls while one is running are ignored"""
        if self.state in (CheckoutState.AWAITING_PAYMENT, CheckoutState.SUCCESS):
            return SubmissionOutcome(status=SubmissionStatus.IGNORED, order_id=self.data.order_id)
        return await self.submitter.submit(self)

    # ==================== Submission hooks ====================

    async def ensure_submittable(self) -> None:
        """Final gate before an order is created"""
        if self.cart.is_empty:
            self._transition(CheckoutState.CART)
            raise ValidationError({"cart": "Your cart is empty."})
        if self.state != CheckoutState.PAYMENT:
            raise ValidationError({"state": "Please complete the delivery information first."})

        errors = self.validation_errors()
        if errors:
            raise ValidationError(errors)

        if self.data.order_id:
            # Stock is already held by the existing order
            if order_lines(self.cart.items) != set(self.data.order_lines):
                raise OrderMismatch(self.data.order_id)
            return

        await self.reconciler.refresh()
        unavailable, unknown = self.reconciler.conflicts(self.cart.items)
        if unavailable or unknown:
            raise AvailabilityConflict(unavailable, unknown)

    def mark_submitted(self) -> None:
        self.data = self.data.model_copy(update={"payment_error": None})
        self._transition(CheckoutState.SUBMITTED)

    def record_order(
        self,
        order_id: str,
        order_number: Optional[str],
        payment_method: str,
        totals: CartTotals,
        items: Iterable[CartLineItem],
    ) -> None:
        """Store the created order along with the terms it was placed on"""
        if self.data.order_id and self.data.order_id != order_id:
            raise ValueError("order_id cannot change once the order has been created")
        self.data = self.data.model_copy(update={
            "order_id": order_id,
            "order_number": order_number,
            "payment_method": payment_method,
            "order_payment_method": payment_method,
            "order_amount": totals.total,
            "order_currency": totals.currency,
            "order_lines": sorted(order_lines(items), key=str),
        })

    def await_payment(self) -> None:
        self.data = self.data.model_copy(update={"payment_started": True})
        self._transition(CheckoutState.AWAITING_PAYMENT)

    def complete(
        self,
        order_id: str,
        order_number: Optional[str] = None,
        payment_id: Optional[str] = None,
    ) -> OrderConfirmation:
        """Finish the checkout; the redirect is built from the stored order id"""
        if self.data.order_id != order_id:
            raise ValueError(f"order {order_id} does not belong to this checkout")

        params = {"orderId": self.data.order_id}
        if order_number:
            params["orderNumber"] = order_number
        if payment_id:
            params["paymentId"] = payment_id

        self.confirmation = OrderConfirmation(
            order_id=self.data.order_id,
            order_number=order_number,
            payment_id=payment_id,
            redirect_url=f"{ORDER_SUCCESS_PATH}?{urlencode(params)}",
            placed_at=datetime.now(timezone.utc),
        )
        self._transition(CheckoutState.SUCCESS)
        logger.info(f"Order {order_id} placed")

        self.token += 1
        self.data = CheckoutData()
        self.cart.clear()
        return self.confirmation

    def fail_submission(self, message: str) -> None:
        """Record a user-facing error and return to the payment step if a submission was running"""
        self.data = self.data.model_copy(update={"payment_error": message, "payment_started": False})
        if self.state in (CheckoutState.SUBMITTED, CheckoutState.AWAITING_PAYMENT):
            self._transition(CheckoutState.FAILED)
            self._transition(CheckoutState.PAYMENT)

    def outcome_status(self) -> SubmissionStatus:
        if self.state == CheckoutState.SUCCESS:
            return SubmissionStatus.SUCCESS
        if self.state == CheckoutState.AWAITING_PAYMENT:
            return SubmissionStatus.AWAITING_PAYMENT
        return SubmissionStatus.FAILED

    # ==================== Payment processor callbacks ====================

    async def on_payment_complete(self, success: bool, data: dict[str, Any]) -> None:
        """Processor finished; ``data`` carries ``orderId`` and ``paymentId``"""
        if self.state != CheckoutState.AWAITING_PAYMENT:
            logger.warning(f"Ignoring payment completion in state {self.state.value}")
            return

        order_id = data.get("orderId") or self.data.order_id
        if order_id != self.data.order_id:
            logger.warning(f"Ignoring payment completion for foreign order {order_id}")
            return

        if success:
            self.complete(order_id, self.data.order_number, data.get("paymentId"))
        else:
            self.fail_submission(PaymentFailure(order_id=order_id).message)

    async def on_payment_error(self, error: Exception) -> None:
        if self.state != CheckoutState.AWAITING_PAYMENT:
            logger.warning(f"Ignoring payment error in state {self.state.value}: {error}")
            return

        if isinstance(error, (CheckoutError, ApiError)):
            message = error.message
            logger.error(f"Payment failed for order {self.data.order_id}: {message}")
        else:
            message = PAYMENT_ERROR_MESSAGE
            logger.error(f"Payment failed for order {self.data.order_id}: {error!r}")
        self.fail_submission(message)

    def payment_callbacks(self, token: int) -> tuple[PaymentCompleteCallback, PaymentErrorCallback]:
        """Callbacks bound to the current checkout session"""

        async def on_complete(success: bool, data: dict[str, Any]) -> None:
            if token != self.token:
                logger.warning("Dropping payment completion for a reset checkout")
                return
            await self.on_payment_complete(success, data)

        async def on_error(error: Exception) -> None:
            if token != self.token:
                logger.warning(f"Dropping payment error for a reset checkout: {error}")
                return
            await self.on_payment_error(error)

        return on_complete, on_error
