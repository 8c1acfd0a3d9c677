"""
Commerce API Client

HTTP client for the storefront backend: inventory, orders and payments.
Adds the customer's bearer token to every request and turns HTTP failures
into ApiError.
"""

import json
import logging
from typing import Any, Iterable, Optional

import httpx

from ..core.errors import ApiError
from ..models.checkout import OrderRequest, OrderResponse, PaymentRequest, PaymentResult
from ..models.inventory import AvailabilitySnapshot, StockStatus

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGES = {
    400: "Invalid request. Please check your input.",
    401: "Please sign in to continue.",
    403: "You do not have permission to perform this action.",
    404: "The requested resource was not found.",
    409: "This request conflicts with the current state of the resource.",
    422: "Some of the submitted data is invalid.",
    429: "Too many requests. Please try again later.",
    500: "Something went wrong on our end. Please try again later.",
    503: "Service temporarily unavailable. Please try again later.",
}


def default_error_message(status: int) -> str:
    return DEFAULT_ERROR_MESSAGES.get(status, "An unexpected error occurred.")


def handle_api_error(error: Exception) -> ApiError:
    """
    Convert an httpx error into an ApiError.

    Understands the three error body shapes the backend produces:
    ``{statusCode, message}``, ``{data: {message, details}}`` and a plain
    ``{message}``.
    """
    if isinstance(error, ApiError):
        return error

    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        status = response.status_code
        try:
            data = response.json()
        except ValueError:
            data = None

        if not isinstance(data, dict):
            return ApiError(status=status, message=default_error_message(status))

        details = None
        if data.get("statusCode") and data.get("message"):
            message = data["message"]
            if isinstance(message, list):
                message = ". ".join(str(m) for m in message)
            errors = data.get("errors")
        elif isinstance(data.get("data"), dict) and data["data"].get("message"):
            message = data["data"]["message"]
            details = data["data"].get("details")
            errors = data["data"].get("errors")
        elif data.get("message"):
            message = data["message"]
            errors = data.get("errors")
        else:
            message = default_error_message(status)
            errors = None

        return ApiError(
            status=status,
            message=str(message),
            code=data.get("code") or data.get("error"),
            errors=errors,
            details=details,
        )

    if isinstance(error, httpx.RequestError):
        return ApiError(
            status=0,
            message="No response from server. Please check your connection.",
        )

    return ApiError(status=0, message=str(error) or "An unexpected error occurred.")


def unwrap(payload: Any) -> Any:
    """Strip the optional ``{"data": ...}`` envelope"""
    if isinstance(payload, dict) and isinstance(payload.get("data"), (dict, list)):
        return payload["data"]
    return payload


class StorefrontApiClient:
    """
    Client for the commerce backend.

    Implements the inventory and order boundary contracts, plus the raw
    payment-intent calls used by the payment processor.
    """

    def __init__(
        self,
        base_url: str,
        auth_token: Optional[str] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the API client.

        Args:
            base_url: Base URL of the commerce API
            auth_token: Customer bearer token, if signed in
            timeout: Request timeout in seconds
            http_client: Pre-built client (tests pass one with a mock transport)
        """
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Close HTTP client"""
        await self._http_client.aclose()

    def _generate_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        body: Optional[dict] = None,
    ) -> Any:
        """Make an HTTP request and return the decoded JSON body"""
        url = f"{self.base_url}{path}"
        body_str = json.dumps(body, default=str) if body is not None else None

        try:
            response = await self._http_client.request(
                method=method,
                url=url,
                headers=self._generate_headers(),
                content=body_str,
            )
            if response.status_code >= 400:
                logger.error(f"Request failed: {method} {path} {response.status_code} - {response.text}")
                response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise handle_api_error(e) from e

    # ==================== Inventory APIs ====================

    async def get_availability(
        self,
        product_ids: Iterable[str],
        variant_ids: Iterable[str],
    ) -> dict[str, AvailabilitySnapshot]:
        """Get availability for products and variants in one request"""
        product_ids = sorted(set(product_ids))
        variant_ids = sorted(set(variant_ids))
        body: dict[str, list[str]] = {}
        if product_ids:
            body["productIds"] = product_ids
        if variant_ids:
            body["variantIds"] = variant_ids

        payload = unwrap(await self._request("POST", "/inventory/availability/batch", body=body))

        snapshots: dict[str, AvailabilitySnapshot] = {}
        for entry in payload.get("products") or []:
            snapshot = self._parse_availability(entry, entry.get("productId"))
            if snapshot:
                snapshots[snapshot.subject_id] = snapshot
        for entry in payload.get("variants") or []:
            snapshot = self._parse_availability(entry, entry.get("variantId"))
            if snapshot:
                snapshots[snapshot.subject_id] = snapshot
        return snapshots

    @staticmethod
    def _parse_availability(entry: dict, subject_id: Optional[str]) -> Optional[AvailabilitySnapshot]:
        if not subject_id:
            return None
        try:
            status = StockStatus(str(entry.get("stockStatus", "")).upper())
        except ValueError:
            logger.warning(f"Unknown stock status for {subject_id}: {entry.get('stockStatus')}")
            return None
        return AvailabilitySnapshot(
            subject_id=subject_id,
            product_id=entry.get("productId"),
            stock_status=status,
            available_quantity=max(0, int(entry.get("availableQuantity") or 0)),
            updated_at=entry.get("updatedAt"),
        )

    # ==================== Order APIs ====================

    async def create_order(self, order: OrderRequest) -> OrderResponse:
        """Create an order for the signed-in customer"""
        payload = await self._request(
            "POST",
            "/orders/user-order",
            body=order.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        return OrderResponse.model_validate(unwrap(payload) or {})

    # ==================== Payment APIs ====================

    async def create_payment_intent(self, request: PaymentRequest) -> PaymentResult:
        """Create a payment intent for an existing order"""
        body = request.model_dump(mode="json", by_alias=True, exclude_none=True)
        body["metadata"] = body.pop("paymentData", {})
        payload = await self._request("POST", "/payments/create-intent", body=body)
        return PaymentResult.model_validate(unwrap(payload) or {})

    async def verify_payment(
        self,
        payment_id: str,
        provider_payment_id: str,
        signature: Optional[str] = None,
    ) -> PaymentResult:
        """Verify a payment after the gateway reports back"""
        body = {"paymentId": payment_id, "providerPaymentId": provider_payment_id}
        if signature:
            body["signature"] = signature
        payload = await self._request("POST", "/payments/verify", body=body)
        return PaymentResult.model_validate(unwrap(payload) or {})
