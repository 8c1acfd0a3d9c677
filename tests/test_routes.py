"""Tests for the storefront HTTP API."""
import time
from decimal import Decimal

import httpx
import pytest
from fastapi.testclient import TestClient

from storefront.core.config import Settings
from storefront.core.session import SessionManager
from storefront.main import app
from storefront.routes.deps import get_session_manager
from storefront.services.api_client import StorefrontApiClient
from storefront.services.payment_processor import HttpPaymentProcessor

KURTA = {"id": "p1", "name": "Cotton Kurta", "price": "600.00"}

SHIPPING = {
    "manual": True,
    "full_name": "Asha Verma",
    "phone_number": "9876543210",
    "pincode": "462016",
    "street": "12 MG Road",
    "locality": "Arera Colony",
    "city": "Bhopal",
    "state": "Madhya Pradesh",
}


@pytest.fixture
def manager(inventory, orders, processor, settings):
    return SessionManager(inventory, orders, processor, settings)


@pytest.fixture
def client(manager):
    app.dependency_overrides[get_session_manager] = lambda: manager
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _new_session(client) -> str:
    response = client.post("/api/sessions")
    assert response.status_code == 200
    return response.json()["session_id"]


def _ready_for_payment(client, session_id, **checkout_fields):
    client.post(f"/api/sessions/{session_id}/cart/items", json={"product": KURTA})
    assert client.post(f"/api/sessions/{session_id}/checkout/begin").status_code == 200
    client.patch(f"/api/sessions/{session_id}/checkout", json={"shipping": SHIPPING, **checkout_fields})
    response = client.post(f"/api/sessions/{session_id}/checkout/information/continue")
    assert response.json()["state"] == "payment"


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_unknown_session(client):
    assert client.get("/api/sessions/missing/cart").status_code == 404
    assert client.post("/api/sessions/missing/checkout/submit").status_code == 404


def test_cart_endpoints(client):
    session_id = _new_session(client)
    base = f"/api/sessions/{session_id}/cart"

    body = client.post(f"{base}/items", json={"product": KURTA, "quantity": 2}).json()
    assert Decimal(body["totals"]["total"]) == Decimal("1260.00")
    assert body["totals"]["item_count"] == 2

    body = client.post(f"{base}/coupon", json={"code": "welcome10"}).json()
    assert body["coupon_applied"] is True
    assert Decimal(body["totals"]["discount"]) == Decimal("120.00")

    assert client.post(f"{base}/coupon", json={"code": "BOGUS"}).status_code == 400

    body = client.put(f"{base}/items/p1", json={"quantity": 1}).json()
    assert Decimal(body["totals"]["subtotal"]) == Decimal("600.00")

    assert client.put(f"{base}/items/nope", json={"quantity": 1}).status_code == 404

    body = client.delete(f"{base}/coupon").json()
    assert body["coupon_applied"] is False

    body = client.delete(f"{base}/items/p1").json()
    assert body["items"] == []
    assert client.delete(f"{base}/items/p1").status_code == 404


def test_add_rejects_zero_quantity(client):
    session_id = _new_session(client)

    response = client.post(f"/api/sessions/{session_id}/cart/items", json={"product": KURTA, "quantity": 0})

    assert response.status_code == 422


def test_availability_endpoint(client):
    session_id = _new_session(client)
    client.post(f"/api/sessions/{session_id}/cart/items", json={"product": KURTA})

    body = client.get(f"/api/sessions/{session_id}/availability", params={"refresh": True}).json()

    assert body["product_availability"]["p1"]["stock_status"] == "IN_STOCK"
    assert body["unavailable"] == []
    assert body["unknown"] == []


def test_begin_with_empty_cart(client):
    session_id = _new_session(client)

    assert client.post(f"/api/sessions/{session_id}/checkout/begin").status_code == 400


def test_continue_reports_field_errors(client):
    session_id = _new_session(client)
    client.post(f"/api/sessions/{session_id}/cart/items", json={"product": KURTA})
    client.post(f"/api/sessions/{session_id}/checkout/begin")

    response = client.post(f"/api/sessions/{session_id}/checkout/information/continue")

    assert response.status_code == 422
    assert "shipping.selected_address" in response.json()["detail"]["field_errors"]


def test_cash_on_delivery_checkout(client, orders):
    session_id = _new_session(client)
    _ready_for_payment(client, session_id)

    body = client.post(f"/api/sessions/{session_id}/checkout/submit").json()

    assert body["outcome"]["status"] == "success"
    assert body["checkout"]["state"] == "success"
    assert body["checkout"]["confirmation"]["redirect_url"].startswith("/order-success?orderId=order-1")
    assert len(orders.requests) == 1
    assert client.get(f"/api/sessions/{session_id}/cart").json()["items"] == []


def test_reset_checkout_keeps_cart(client):
    session_id = _new_session(client)
    _ready_for_payment(client, session_id)

    body = client.post(f"/api/sessions/{session_id}/checkout/reset").json()

    assert body["state"] == "cart"
    assert len(client.get(f"/api/sessions/{session_id}/cart").json()["items"]) == 1


def test_delete_session(client):
    session_id = _new_session(client)

    assert client.delete(f"/api/sessions/{session_id}").status_code == 200
    assert client.delete(f"/api/sessions/{session_id}").status_code == 404


def test_online_payment_verified_by_gateway(inventory, orders, settings):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/create-intent"):
            return httpx.Response(200, json={"paymentId": "pay-5", "status": "REQUIRES_ACTION"})
        return httpx.Response(200, json={"paymentId": "pay-5", "status": "SUCCEEDED"})

    api = StorefrontApiClient(
        base_url="http://commerce.test/api",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    manager = SessionManager(inventory, orders, HttpPaymentProcessor(api), settings)
    app.dependency_overrides[get_session_manager] = lambda: manager
    try:
        with TestClient(app) as client:
            session_id = _new_session(client)
            _ready_for_payment(
                client,
                session_id,
                payment_method="upi",
                payment_data={"upiId": "asha@okbank"},
            )

            body = client.post(f"/api/sessions/{session_id}/checkout/submit").json()
            assert body["outcome"]["status"] == "awaiting_payment"

            verify_url = f"/api/sessions/{session_id}/checkout/payment/verify"
            assert client.post(verify_url, json={"payment_id": "other", "provider_payment_id": "gw"}).status_code == 404

            other_session = _new_session(client)
            other_url = f"/api/sessions/{other_session}/checkout/payment/verify"
            response = client.post(other_url, json={"payment_id": "pay-5", "provider_payment_id": "gw-1"})
            assert response.status_code == 404

            body = client.post(verify_url, json={"payment_id": "pay-5", "provider_payment_id": "gw-1"}).json()
            assert body["state"] == "success"
            assert "paymentId=pay-5" in body["confirmation"]["redirect_url"]
    finally:
        app.dependency_overrides.clear()


def test_badge_availability(client, inventory):
    session_id = _new_session(client)
    url = f"/api/sessions/{session_id}/availability/badges"

    body = client.get(url, params={"product_id": ["p1", "p9"], "variant_id": ["v1"]}).json()

    assert body["product_availability"]["p1"]["stock_status"] == "IN_STOCK"
    assert "p9" not in body["product_availability"]
    assert body["variant_availability"]["v1"]["available_quantity"] == 2

    client.get(url, params={"product_id": ["p1", "p9"], "variant_id": ["v1"]})
    assert len(inventory.calls) == 1


def test_null_checkout_fields_are_ignored(client):
    session_id = _new_session(client)
    url = f"/api/sessions/{session_id}/checkout"

    response = client.patch(url, json={
        "payment_method": None,
        "payment_data": None,
        "use_same_address_for_billing": None,
    })

    assert response.status_code == 200
    data = response.json()["checkout_data"]
    assert data["payment_method"] == "cod"
    assert data["use_same_address_for_billing"] is True


def test_payment_method_cannot_change_after_order_is_created(client, orders, processor):
    processor.outcome = "failure"
    session_id = _new_session(client)
    _ready_for_payment(client, session_id, payment_method="upi", payment_data={"upiId": "asha@okbank"})

    body = client.post(f"/api/sessions/{session_id}/checkout/submit").json()
    assert body["outcome"]["status"] == "failed"
    assert body["checkout"]["checkout_data"]["order_id"] == "order-1"

    response = client.patch(f"/api/sessions/{session_id}/checkout", json={"payment_method": "cod"})

    assert response.status_code == 422
    assert "payment_method" in response.json()["detail"]["field_errors"]

    body = client.post(f"/api/sessions/{session_id}/checkout/submit").json()
    assert body["outcome"]["status"] == "failed"
    assert len(orders.requests) == 1
    assert [r.payment_method for r in processor.requests] == ["upi", "upi"]


def test_badges_fetch_once_while_polling(inventory, orders, processor):
    manager = SessionManager(inventory, orders, processor, Settings(availability_polling=True))
    app.dependency_overrides[get_session_manager] = lambda: manager
    try:
        with TestClient(app) as client:
            session_id = _new_session(client)

            response = client.get(f"/api/sessions/{session_id}/availability/badges", params={"product_id": ["p1"]})
            assert response.json()["product_availability"]["p1"]["stock_status"] == "IN_STOCK"
            time.sleep(0.05)

            assert inventory.calls == [({"p1"}, set())]
            client.delete(f"/api/sessions/{session_id}")
    finally:
        app.dependency_overrides.clear()
