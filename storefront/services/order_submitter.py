"""
Order Submitter

Turns a completed checkout into exactly one upstream order and, for online
payment methods, hands the order over to the payment processor.
"""

import contextlib
import logging
from typing import TYPE_CHECKING, Iterable, Iterator

from ..core.config import Settings, settings as default_settings
from ..core.errors import ApiError, CheckoutError, UnknownOrderResponse
from ..models.cart import CartLineItem
from ..models.checkout import (
    PAYMENT_PROVIDERS,
    CheckoutData,
    OrderItemRequest,
    OrderRequest,
    PaymentRequest,
    SubmissionOutcome,
    SubmissionStatus,
)
from .addresses import to_order_address
from .contracts import OrderService, PaymentProcessor

if TYPE_CHECKING:
    from .checkout import CheckoutMachine

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An error occurred during checkout."


class OrderSubmitter:
    """
    Submits the order for one checkout session.

    At most one create-order call is outstanding at a time; extra submit
    calls while it is in flight return an ``ignored`` outcome. Once the
    checkout holds an order id it is reused and never requested again.
    """

    def __init__(
        self,
        orders: OrderService,
        processor: PaymentProcessor,
        settings: Settings = default_settings,
    ):
        self.orders = orders
        self.processor = processor
        self.settings = settings
        self._in_flight = False
        self._payment_attempts = 0

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @contextlib.contextmanager
    def _submission_guard(self) -> Iterator[None]:
        self._in_flight = True
        try:
            yield
        finally:
            self._in_flight = False

    # ==================== Request building ====================

    def build_order_request(self, data: CheckoutData, items: Iterable[CartLineItem]) -> OrderRequest:
        """Build the create-order body from checkout data and a cart snapshot"""
        cities, states = self.settings.known_cities, self.settings.known_states
        shipping = to_order_address(data.shipping, self.settings.default_country, cities, states)
        billing = (
            shipping
            if data.use_same_address_for_billing
            else to_order_address(data.billing, self.settings.default_country, cities, states)
        )
        return OrderRequest(
            items=[
                OrderItemRequest(
                    product_id=item.product_id,
                    variant_id=item.variant_id,
                    quantity=item.quantity,
                )
                for item in items
            ],
            shipping_address=shipping,
            billing_address=billing,
            payment_method=data.payment_method.strip().lower(),
        )

    def build_payment_request(self, order: CheckoutData, payment_data: dict[str, str]) -> PaymentRequest:
        """Charge for an existing order on the terms it was created with"""
        method = order.order_payment_method
        self._payment_attempts += 1
        return PaymentRequest(
            order_id=order.order_id,
            amount=order.order_amount,
            currency=order.order_currency,
            payment_method=method,
            provider=PAYMENT_PROVIDERS.get(method, "STRIPE"),
            payment_data=dict(payment_data),
            idempotency_key=f"{order.order_id}-{self._payment_attempts}",
        )

    # ==================== Submission ====================

    async def submit(self, checkout: "CheckoutMachine") -> SubmissionOutcome:
        """
        Submit the checkout.

        Every failure ends up in ``checkout_data.payment_error``; nothing is
        raised to the caller. The checkout data is read once per attempt, so
        form edits made while the order is being created apply to the next
        attempt only.
        """
        if self._in_flight:
            logger.info("Order submission already in flight, ignoring")
            return SubmissionOutcome(status=SubmissionStatus.IGNORED, order_id=checkout.data.order_id)

        with self._submission_guard():
            token = checkout.token
            try:
                await checkout.ensure_submittable()
                checkout.mark_submitted()
                data = checkout.data

                if data.order_id:
                    logger.info(f"Reusing order {data.order_id} for a new payment attempt")
                else:
                    items = checkout.cart.snapshot()
                    totals = checkout.cart.totals
                    request = self.build_order_request(data, items)
                    logger.info(
                        f"Creating order: {len(request.items)} items, "
                        f"payment method {request.payment_method}"
                    )
                    response = await self.orders.create_order(request)
                    if not response.id:
                        raise UnknownOrderResponse(response.model_dump())

                    if checkout.token != token:
                        logger.warning(f"Checkout was reset while order {response.id} was created; ignoring result")
                        return SubmissionOutcome(status=SubmissionStatus.IGNORED, order_id=response.id)

                    checkout.record_order(
                        response.id,
                        response.order_number,
                        payment_method=request.payment_method,
                        totals=totals,
                        items=items,
                    )
                    logger.info(f"Order created with ID: {response.id}, Number: {response.order_number}")

            except CheckoutError as e:
                return self._failed(checkout, token, e.message)
            except ApiError as e:
                logger.error(f"Order creation failed: {e.status} - {e.message}")
                return self._failed(checkout, token, e.message)
            except Exception as e:
                logger.error(f"Error during checkout: {e}", exc_info=True)
                return self._failed(checkout, token, GENERIC_ERROR_MESSAGE)

            order = checkout.data
            order_id = order.order_id
            order_number = order.order_number

            if order.order_payment_method == "cod":
                checkout.complete(order_id, order_number)
                return SubmissionOutcome(
                    status=SubmissionStatus.SUCCESS,
                    order_id=order_id,
                    order_number=order_number,
                )

            checkout.await_payment()
            payment_request = self.build_payment_request(order, data.payment_data)
            on_complete, on_error = checkout.payment_callbacks(checkout.token)
            logger.info(f"Handing order {order_id} to payment processor ({payment_request.provider})")
            try:
                await self.processor.process_payment(payment_request, on_complete, on_error)
            except Exception as e:
                logger.error(f"Payment hand-off failed for order {order_id}: {e}")
                await on_error(e)

            return SubmissionOutcome(
                status=checkout.outcome_status(),
                order_id=order_id,
                order_number=order_number,
                error=checkout.data.payment_error,
            )

    def _failed(self, checkout: "CheckoutMachine", token: int, message: str) -> SubmissionOutcome:
        if checkout.token != token:
            logger.warning("Checkout was reset during submission; dropping error")
            return SubmissionOutcome(status=SubmissionStatus.IGNORED)
        checkout.fail_submission(message)
        return SubmissionOutcome(
            status=SubmissionStatus.FAILED,
            order_id=checkout.data.order_id,
            error=message,
        )
