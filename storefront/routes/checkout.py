"""Checkout API routes"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..core.errors import ValidationError
from ..core.session import SessionManager, ShoppingSession
from ..models.checkout import (
    CheckoutResponse,
    CheckoutUpdateRequest,
    PaymentVerifyRequest,
    SubmissionOutcome,
)
from .deps import get_session_manager, get_shopping_session

router = APIRouter(prefix="/api/sessions", tags=["Checkout"])


class SubmitResponse(BaseModel):
    """Submit result plus the checkout it left behind"""
    outcome: SubmissionOutcome
    checkout: CheckoutResponse


def checkout_response(session: ShoppingSession, message: Optional[str] = None) -> CheckoutResponse:
    checkout = session.checkout
    return CheckoutResponse(
        state=checkout.state,
        checkout_data=checkout.data,
        is_step1_complete=checkout.is_step1_complete,
        is_step2_complete=checkout.is_step2_complete,
        is_checkout_enabled=checkout.is_checkout_enabled,
        confirmation=checkout.confirmation,
        message=message,
    )


@router.get("/{session_id}/checkout", response_model=CheckoutResponse)
async def get_checkout(session: ShoppingSession = Depends(get_shopping_session)):
    """Current checkout state and form data"""
    return checkout_response(session)


@router.post("/{session_id}/checkout/begin", response_model=CheckoutResponse)
async def begin_checkout(session: ShoppingSession = Depends(get_shopping_session)):
    """Move from the cart to the information step"""
    if not session.checkout.begin():
        raise HTTPException(status_code=400, detail="Your cart is empty.")
    return checkout_response(session)


@router.patch("/{session_id}/checkout", response_model=CheckoutResponse)
async def update_checkout(
    request: CheckoutUpdateRequest,
    session: ShoppingSession = Depends(get_shopping_session),
):
    """Merge address and payment form fields into the checkout; null fields are left unchanged"""
    try:
        session.checkout.update_checkout_data(**request.model_dump(exclude_unset=True, exclude_none=True))
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={"message": e.message, "field_errors": e.field_errors},
        )
    return checkout_response(session)


@router.post("/{session_id}/checkout/information/continue", response_model=CheckoutResponse)
async def continue_to_payment(session: ShoppingSession = Depends(get_shopping_session)):
    """Validate the delivery information and open the payment step"""
    try:
        session.checkout.continue_to_payment()
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={"message": e.message, "field_errors": e.field_errors},
        )
    return checkout_response(session)


@router.post("/{session_id}/checkout/payment/back", response_model=CheckoutResponse)
async def back_to_information(session: ShoppingSession = Depends(get_shopping_session)):
    """Return from the payment step to the information step"""
    session.checkout.back_to_information()
    return checkout_response(session)


@router.post("/{session_id}/checkout/submit", response_model=SubmitResponse)
async def submit_checkout(session: ShoppingSession = Depends(get_shopping_session)):
    """
    Place the order.

    Failures are reported in the outcome and in ``checkout_data.payment_error``
    rather than as HTTP errors, so the UI can keep the customer on the payment step.
    """
    outcome = await session.checkout.submit()
    return SubmitResponse(outcome=outcome, checkout=checkout_response(session))


@router.post("/{session_id}/checkout/reset", response_model=CheckoutResponse)
async def reset_checkout(session: ShoppingSession = Depends(get_shopping_session)):
    """Abandon the checkout; the cart is kept"""
    session.checkout.reset()
    return checkout_response(session, message="Checkout reset")


@router.post("/{session_id}/checkout/payment/verify", response_model=CheckoutResponse)
async def verify_payment(
    request: PaymentVerifyRequest,
    session: ShoppingSession = Depends(get_shopping_session),
    manager: SessionManager = Depends(get_session_manager),
):
    """Relay the gateway's confirmation for a pending online payment"""
    processor = manager.payment_processor
    pending_order_id = getattr(processor, "pending_order_id", None)
    order_id = session.checkout.data.order_id
    # Only the session that owns the order may settle its payment
    if pending_order_id is None or not order_id or pending_order_id(request.payment_id) != order_id:
        raise HTTPException(status_code=404, detail="Payment not found")

    await processor.verify(request.payment_id, request.provider_payment_id, request.signature)
    return checkout_response(session)
