"""Pytest fixtures for the storefront checkout pipeline."""

import asyncio
from decimal import Decimal

import pytest

from storefront.core.config import Settings
from storefront.models import (
    AddressForm,
    AvailabilitySnapshot,
    OrderResponse,
    ProductRef,
    StockStatus,
)
from storefront.services.availability import AvailabilityReconciler
from storefront.services.cart_store import CartStore
from storefront.services.checkout import CheckoutMachine
from storefront.services.order_submitter import OrderSubmitter


class FakeInventory:
    """Inventory service answering from an in-memory stock table"""

    def __init__(self, stock=None):
        self.stock = dict(stock or {})
        self.calls = []
        self.error = None
        self.delay = 0

    async def get_availability(self, product_ids, variant_ids):
        product_ids, variant_ids = set(product_ids), set(variant_ids)
        self.calls.append((product_ids, variant_ids))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error

        return {
            subject: AvailabilitySnapshot(
                subject_id=subject,
                stock_status=self.stock[subject][0],
                available_quantity=self.stock[subject][1],
            )
            for subject in product_ids | variant_ids
            if subject in self.stock
        }


class FakeOrders:
    """Order service that numbers orders sequentially"""

    def __init__(self):
        self.requests = []
        self.errors = []
        self.delay = 0
        self.missing_id = False

    async def create_order(self, order):
        self.requests.append(order)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.errors:
            raise self.errors.pop(0)
        if self.missing_id:
            return OrderResponse(status="PENDING")

        n = len(self.requests)
        return OrderResponse(id=f"order-{n}", order_number=f"ORD-{n:04d}", status="PENDING")


class FakePaymentProcessor:
    """
    Payment processor that keeps the callbacks it was given.

    ``outcome`` of None leaves the payment pending; "success" and "failure"
    complete it immediately; an exception instance is raised from the call.
    """

    def __init__(self, outcome=None):
        self.outcome = outcome
        self.requests = []
        self.callbacks = []

    async def process_payment(self, request, on_complete, on_error):
        self.requests.append(request)
        self.callbacks.append((on_complete, on_error))

        if self.outcome == "success":
            await on_complete(True, {"orderId": request.order_id, "paymentId": f"pay-{len(self.requests)}"})
        elif self.outcome == "failure":
            await on_complete(False, {"orderId": request.order_id})
        elif isinstance(self.outcome, Exception):
            raise self.outcome

    async def complete(self, success=True, payment_id="pay-1"):
        on_complete, _ = self.callbacks[-1]
        await on_complete(success, {"orderId": self.requests[-1].order_id, "paymentId": payment_id})

    async def fail(self, error):
        _, on_error = self.callbacks[-1]
        await on_error(error)


KURTA = ProductRef(id="p1", name="Cotton Kurta", price=Decimal("600.00"))


@pytest.fixture
def settings() -> Settings:
    return Settings(availability_polling=False)


@pytest.fixture
def inventory() -> FakeInventory:
    return FakeInventory({
        "p1": (StockStatus.IN_STOCK, 10),
        "p2": (StockStatus.IN_STOCK, 5),
        "v1": (StockStatus.LOW_STOCK, 2),
    })


@pytest.fixture
def orders() -> FakeOrders:
    return FakeOrders()


@pytest.fixture
def processor() -> FakePaymentProcessor:
    return FakePaymentProcessor()


@pytest.fixture
def cart() -> CartStore:
    return CartStore()


@pytest.fixture
def reconciler(inventory, cart) -> AvailabilityReconciler:
    reconciler = AvailabilityReconciler(inventory)
    cart.subscribe(lambda store: reconciler.track(store.items))
    return reconciler


@pytest.fixture
def machine(cart, reconciler, orders, processor, settings) -> CheckoutMachine:
    submitter = OrderSubmitter(orders, processor, settings=settings)
    return CheckoutMachine(cart, reconciler, submitter, settings=settings)


@pytest.fixture
def shipping_form() -> AddressForm:
    return AddressForm(
        manual=True,
        full_name="Asha Verma",
        phone_number="9876543210",
        pincode="462016",
        street="12 MG Road",
        locality="Arera Colony",
        city="Bhopal",
        state="Madhya Pradesh",
    )


@pytest.fixture
def ready_checkout(machine, cart, shipping_form) -> CheckoutMachine:
    """Checkout at the payment step with one in-stock item worth 600"""
    cart.add(KURTA)
    machine.begin()
    machine.update_checkout_data(shipping=shipping_form)
    machine.continue_to_payment()
    return machine
