"""
Payment processor hand-off

Starts a payment intent for an order that already exists and reports the
outcome through the callbacks it was given. Gateways that confirm later
(card 3-D Secure, UPI collect requests) leave the payment pending until the
storefront relays the gateway's verification data.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..core.errors import PaymentFailure
from ..models.checkout import PaymentRequest
from .api_client import StorefrontApiClient
from .contracts import PaymentCompleteCallback, PaymentErrorCallback

logger = logging.getLogger(__name__)

SUCCESS_STATUSES = {"SUCCEEDED", "SUCCESS", "COMPLETED", "PAID", "CAPTURED"}
FAILURE_STATUSES = {"FAILED", "DECLINED", "CANCELLED"}


@dataclass
class PendingPayment:
    order_id: str
    on_complete: PaymentCompleteCallback
    on_error: PaymentErrorCallback


class HttpPaymentProcessor:
    """Payment processor backed by the commerce API payment endpoints"""

    def __init__(self, client: StorefrontApiClient):
        self.client = client
        self._pending: dict[str, PendingPayment] = {}

    async def process_payment(
        self,
        request: PaymentRequest,
        on_complete: PaymentCompleteCallback,
        on_error: PaymentErrorCallback,
    ) -> None:
        """Create the payment intent; completes now or waits for verification"""
        try:
            result = await self.client.create_payment_intent(request)
        except Exception as e:
            logger.error(f"Payment intent failed for order {request.order_id}: {e}")
            await on_error(e)
            return

        status = (result.status or "").upper()
        data = {"orderId": request.order_id, "paymentId": result.payment_id}

        if status in SUCCESS_STATUSES:
            await on_complete(True, data)
        elif status in FAILURE_STATUSES:
            await on_complete(False, data)
        elif result.payment_id:
            self._pending[result.payment_id] = PendingPayment(request.order_id, on_complete, on_error)
            logger.info(f"Payment {result.payment_id} for order {request.order_id} awaiting gateway")
        else:
            await on_error(PaymentFailure("Payment provider did not return a payment reference.", order_id=request.order_id))

    def is_pending(self, payment_id: str) -> bool:
        return payment_id in self._pending

    def pending_order_id(self, payment_id: str) -> Optional[str]:
        """Order a pending payment belongs to, or None if nothing is pending under this id"""
        pending = self._pending.get(payment_id)
        return pending.order_id if pending else None

    async def verify(
        self,
        payment_id: str,
        provider_payment_id: str,
        signature: Optional[str] = None,
    ) -> bool:
        """
        Verify a pending payment with the gateway data and fire its callback.

        Returns:
            True if the payment succeeded

        Raises:
            KeyError: if no payment with this id is pending
        """
        pending = self._pending.pop(payment_id)

        try:
            result = await self.client.verify_payment(payment_id, provider_payment_id, signature)
        except Exception as e:
            logger.error(f"Payment verification failed for {payment_id}: {e}")
            await pending.on_error(e)
            return False

        success = (result.status or "").upper() in SUCCESS_STATUSES
        await pending.on_complete(success, {"orderId": pending.order_id, "paymentId": payment_id})
        return success
