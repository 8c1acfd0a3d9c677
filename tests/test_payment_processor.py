"""Tests for the HTTP payment processor."""
from decimal import Decimal

import httpx
import pytest

from storefront.core.errors import ApiError, PaymentFailure
from storefront.models import PaymentRequest
from storefront.services.api_client import StorefrontApiClient
from storefront.services.payment_processor import HttpPaymentProcessor


class Recorder:
    def __init__(self):
        self.completed = []
        self.errors = []

    async def on_complete(self, success, data):
        self.completed.append((success, data))

    async def on_error(self, error):
        self.errors.append(error)


def _processor(responses) -> HttpPaymentProcessor:
    """Processor whose backend answers each path from ``responses``"""

    def handler(request: httpx.Request) -> httpx.Response:
        status, body = responses[request.url.path]
        return httpx.Response(status, json=body)

    client = StorefrontApiClient(
        base_url="http://commerce.test/api",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return HttpPaymentProcessor(client)


def _request(method="card") -> PaymentRequest:
    return PaymentRequest(
        order_id="o-1",
        amount=Decimal("630.00"),
        currency="INR",
        payment_method=method,
        provider="STRIPE",
        idempotency_key="o-1-1",
    )


@pytest.mark.asyncio
async def test_immediate_success():
    processor = _processor({"/api/payments/create-intent": (200, {"paymentId": "pay-1", "status": "SUCCEEDED"})})
    recorder = Recorder()

    await processor.process_payment(_request(), recorder.on_complete, recorder.on_error)

    assert recorder.completed == [(True, {"orderId": "o-1", "paymentId": "pay-1"})]
    assert recorder.errors == []


@pytest.mark.asyncio
async def test_immediate_decline():
    processor = _processor({"/api/payments/create-intent": (200, {"paymentId": "pay-1", "status": "declined"})})
    recorder = Recorder()

    await processor.process_payment(_request(), recorder.on_complete, recorder.on_error)

    assert recorder.completed[0][0] is False


@pytest.mark.asyncio
async def test_pending_payment_completes_on_verify():
    processor = _processor({
        "/api/payments/create-intent": (200, {"data": {"paymentId": "pay-9", "status": "REQUIRES_ACTION"}}),
        "/api/payments/verify": (200, {"data": {"paymentId": "pay-9", "status": "CAPTURED"}}),
    })
    recorder = Recorder()

    await processor.process_payment(_request("upi"), recorder.on_complete, recorder.on_error)
    assert recorder.completed == []
    assert processor.is_pending("pay-9")
    assert processor.pending_order_id("pay-9") == "o-1"
    assert processor.pending_order_id("pay-10") is None

    assert await processor.verify("pay-9", "gw-123", "sig") is True
    assert recorder.completed == [(True, {"orderId": "o-1", "paymentId": "pay-9"})]
    assert not processor.is_pending("pay-9")
    assert processor.pending_order_id("pay-9") is None


@pytest.mark.asyncio
async def test_verify_unknown_payment():
    processor = _processor({})

    with pytest.raises(KeyError):
        await processor.verify("nope", "gw-1")


@pytest.mark.asyncio
async def test_intent_failure_goes_to_error_callback():
    processor = _processor({"/api/payments/create-intent": (402, {"message": "Card expired"})})
    recorder = Recorder()

    await processor.process_payment(_request(), recorder.on_complete, recorder.on_error)

    assert recorder.completed == []
    assert isinstance(recorder.errors[0], ApiError)
    assert recorder.errors[0].message == "Card expired"


@pytest.mark.asyncio
async def test_missing_payment_reference_is_an_error():
    processor = _processor({"/api/payments/create-intent": (200, {"status": "PENDING"})})
    recorder = Recorder()

    await processor.process_payment(_request(), recorder.on_complete, recorder.on_error)

    assert len(recorder.errors) == 1
    assert isinstance(recorder.errors[0], PaymentFailure)
    assert recorder.completed == []
