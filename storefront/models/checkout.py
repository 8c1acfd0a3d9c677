"""Checkout models"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CheckoutState(str, Enum):
    CART = "cart"
    INFORMATION = "information"
    PAYMENT = "payment"
    SUBMITTED = "submitted"
    AWAITING_PAYMENT = "awaiting_payment"
    SUCCESS = "success"
    FAILED = "failed"


class AddressType(str, Enum):
    HOME = "Home"
    WORK = "Work"


# Fields each payment method must carry in payment_data
PAYMENT_REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "card": ("cardNumber", "cardExpiry", "cardCvv", "nameOnCard"),
    "upi": ("upiId",),
    "cod": (),
}

PAYMENT_PROVIDERS: dict[str, str] = {
    "card": "STRIPE",
    "upi": "UPI",
    "cod": "COD",
}


class Address(BaseModel):
    """Saved address from the customer's address book"""
    id: Optional[str] = None
    name: str
    mobile_number: str
    street: str
    locality: str = ""
    city: str
    state: str
    zip_code: str
    landmark: Optional[str] = None
    alternate_phone: Optional[str] = None
    address_type: AddressType = AddressType.HOME
    country: str = "India"
    is_default: bool = False


class AddressForm(BaseModel):
    """One side (shipping or billing) of the information step"""
    selected_address_id: Optional[str] = None
    selected_address: Optional[Address] = None
    manual: bool = False

    full_name: str = ""
    phone_number: str = ""
    pincode: str = ""
    street: str = ""
    locality: str = ""
    city: str = ""
    state: str = ""
    landmark: str = ""
    # Legacy single-block address as typed by the customer
    address_text: str = ""


class CheckoutData(BaseModel):
    """Everything the checkout steps collect, plus submission state"""
    shipping: AddressForm = Field(default_factory=AddressForm)
    billing: AddressForm = Field(default_factory=AddressForm)
    use_same_address_for_billing: bool = True

    payment_method: str = "cod"
    payment_data: dict[str, str] = Field(
        default_factory=lambda: {"deliveryInstructions": "", "timeSlot": "anytime"}
    )

    order_id: Optional[str] = None
    order_number: Optional[str] = None
    # Terms the order was created with; payment retries charge exactly these
    order_payment_method: Optional[str] = None
    order_amount: Optional[Decimal] = None
    order_currency: Optional[str] = None
    order_lines: list[tuple[str, Optional[str], int]] = Field(default_factory=list)
    payment_started: bool = False
    payment_error: Optional[str] = None


class WireModel(BaseModel):
    """Body exchanged with the commerce backend (camelCase on the wire)"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderAddress(WireModel):
    name: str
    mobile_number: str
    zip_code: str
    street: str
    locality: str = ""
    city: str
    state: str
    country: str
    landmark: str = ""


class OrderItemRequest(WireModel):
    product_id: str
    variant_id: Optional[str] = None
    quantity: int = Field(gt=0)


class OrderRequest(WireModel):
    items: list[OrderItemRequest]
    shipping_address: OrderAddress
    billing_address: OrderAddress
    payment_method: str


class OrderResponse(WireModel):
    id: Optional[str] = None
    order_number: Optional[str] = None
    status: Optional[str] = None


class PaymentRequest(WireModel):
    order_id: str
    amount: Decimal
    currency: str
    payment_method: str
    provider: str
    payment_data: dict[str, str] = {}
    idempotency_key: Optional[str] = None


class PaymentResult(WireModel):
    payment_id: Optional[str] = None
    order_id: Optional[str] = None
    status: str = "PENDING"
    client_secret: Optional[str] = None
    provider: Optional[str] = None


class OrderConfirmation(BaseModel):
    """Placed order, available once the order id is stored"""
    order_id: str
    order_number: Optional[str] = None
    payment_id: Optional[str] = None
    redirect_url: str
    placed_at: datetime


class SubmissionStatus(str, Enum):
    SUCCESS = "success"
    AWAITING_PAYMENT = "awaiting_payment"
    FAILED = "failed"
    IGNORED = "ignored"


class SubmissionOutcome(BaseModel):
    """Result of one submit attempt"""
    status: SubmissionStatus
    order_id: Optional[str] = None
    order_number: Optional[str] = None
    error: Optional[str] = None


# ==================== API schemas ====================


class CheckoutUpdateRequest(BaseModel):
    """Partial update of the checkout form (submission state is not writable)"""
    shipping: Optional[AddressForm] = None
    billing: Optional[AddressForm] = None
    use_same_address_for_billing: Optional[bool] = None
    payment_method: Optional[str] = None
    payment_data: Optional[dict[str, str]] = None


class PaymentVerifyRequest(BaseModel):
    """Gateway callback data for a pending online payment"""
    payment_id: str
    provider_payment_id: str
    signature: Optional[str] = None


class CheckoutResponse(BaseModel):
    """Checkout API response"""
    state: CheckoutState
    checkout_data: CheckoutData
    is_step1_complete: bool
    is_step2_complete: bool
    is_checkout_enabled: bool
    confirmation: Optional[OrderConfirmation] = None
    message: Optional[str] = None
