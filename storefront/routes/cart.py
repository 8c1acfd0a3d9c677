"""Cart API routes"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..core.session import SessionManager, ShoppingSession
from ..models.cart import AddToCartRequest, ApplyCouponRequest, CartResponse, UpdateCartItemRequest
from ..models.inventory import AvailabilityView
from .deps import get_session_manager, get_shopping_session

router = APIRouter(prefix="/api/sessions", tags=["Cart"])


def cart_response(session: ShoppingSession, message: Optional[str] = None) -> CartResponse:
    cart = session.cart
    return CartResponse(
        items=list(cart.items),
        totals=cart.totals,
        coupon_code=cart.coupon_code,
        coupon_applied=cart.coupon_applied,
        message=message,
    )


@router.post("")
async def create_session(manager: SessionManager = Depends(get_session_manager)):
    """Start a shopping session"""
    session = manager.create_session()
    return {"session_id": session.session_id}


@router.delete("/{session_id}")
async def delete_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
):
    """Delete a session"""
    if await manager.delete_session(session_id):
        return {"message": "Session deleted"}
    raise HTTPException(status_code=404, detail="Session not found")


@router.get("/{session_id}/cart", response_model=CartResponse)
async def get_cart(session: ShoppingSession = Depends(get_shopping_session)):
    """Cart contents with freshly computed totals"""
    return cart_response(session)


@router.post("/{session_id}/cart/items", response_model=CartResponse)
async def add_to_cart(
    request: AddToCartRequest,
    session: ShoppingSession = Depends(get_shopping_session),
):
    """Add an item to the cart"""
    line = session.cart.add(request.product, request.variant, request.quantity)
    return cart_response(session, message=f"Added {request.quantity}x {line.product_name or line.product_id} to cart")


@router.put("/{session_id}/cart/items/{product_id}", response_model=CartResponse)
async def update_cart_item(
    product_id: str,
    request: UpdateCartItemRequest,
    session: ShoppingSession = Depends(get_shopping_session),
):
    """Update item quantity in cart"""
    if not session.cart.set_quantity(product_id, request.quantity, request.variant_id):
        raise HTTPException(status_code=404, detail="Item not in cart")
    return cart_response(session, message="Cart updated")


@router.delete("/{session_id}/cart/items/{product_id}", response_model=CartResponse)
async def remove_from_cart(
    product_id: str,
    variant_id: Optional[str] = None,
    session: ShoppingSession = Depends(get_shopping_session),
):
    """Remove an item from the cart"""
    if not session.cart.remove(product_id, variant_id):
        raise HTTPException(status_code=404, detail="Item not in cart")
    return cart_response(session, message="Item removed")


@router.delete("/{session_id}/cart", response_model=CartResponse)
async def clear_cart(session: ShoppingSession = Depends(get_shopping_session)):
    """Clear all items from cart"""
    session.cart.clear()
    return cart_response(session, message="Cart cleared")


@router.post("/{session_id}/cart/coupon", response_model=CartResponse)
async def apply_coupon(
    request: ApplyCouponRequest,
    session: ShoppingSession = Depends(get_shopping_session),
):
    """Apply a coupon code"""
    if not session.cart.apply_coupon(request.code):
        raise HTTPException(status_code=400, detail="Invalid coupon code")
    return cart_response(session, message="Coupon successfully applied!")


@router.delete("/{session_id}/cart/coupon", response_model=CartResponse)
async def remove_coupon(session: ShoppingSession = Depends(get_shopping_session)):
    """Remove the applied coupon"""
    session.cart.remove_coupon()
    return cart_response(session, message="Coupon removed")


@router.get("/{session_id}/availability", response_model=AvailabilityView)
async def get_availability(
    refresh: bool = False,
    session: ShoppingSession = Depends(get_shopping_session),
):
    """Availability of the cart's products and variants"""
    if refresh:
        await session.reconciler.refresh()
    return session.reconciler.view(session.cart.items)


@router.get("/{session_id}/availability/badges", response_model=AvailabilityView)
async def get_badge_availability(
    product_id: list[str] = Query(default=[]),
    variant_id: list[str] = Query(default=[]),
    session: ShoppingSession = Depends(get_shopping_session),
):
    """Stock badges for the products currently on screen"""
    badges = session.badges
    if badges.track_ids(product_id, variant_id) or badges.last_fetched_at is None:
        await badges.refresh()
    return badges.view()
