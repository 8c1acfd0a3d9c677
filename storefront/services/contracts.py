"""Boundary contracts for the external inventory, order and payment services"""

from typing import Any, Awaitable, Callable, Iterable, Protocol

from ..models.checkout import OrderRequest, OrderResponse, PaymentRequest
from ..models.inventory import AvailabilitySnapshot

PaymentCompleteCallback = Callable[[bool, dict[str, Any]], Awaitable[None]]
PaymentErrorCallback = Callable[[Exception], Awaitable[None]]


class InventoryService(Protocol):
    async def get_availability(
        self,
        product_ids: Iterable[str],
        variant_ids: Iterable[str],
    ) -> dict[str, AvailabilitySnapshot]:
        """Batch availability keyed by product or variant id; may be partial"""
        ...


class OrderService(Protocol):
    async def create_order(self, order: OrderRequest) -> OrderResponse:
        ...


class PaymentProcessor(Protocol):
    async def process_payment(
        self,
        request: PaymentRequest,
        on_complete: PaymentCompleteCallback,
        on_error: PaymentErrorCallback,
    ) -> None:
        """Start a payment; the outcome arrives through one of the callbacks"""
        ...
