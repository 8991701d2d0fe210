# storefront/routers/cart.py
from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from storefront.core.auth import require_auth
from storefront.core.errors import error_response
from storefront.database import get_session
from storefront.models.user import User
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.schemas.cart import (
    CartAddRequest,
    CartDetailEnvelope,
    CartEnvelope,
    CartRemoveRequest,
)
from storefront.services.cart_service import CartService

router = APIRouter(prefix="/cart", tags=["Cart"])

cart_repo = CartRepository()
product_repo = ProductRepository()
service = CartService(cart_repo, product_repo)


@router.post("/add", response_model=CartEnvelope)
def add_to_cart(
    payload: CartAddRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Add a product to the current user's cart.

    Returns the updated cart.
    """
    cart = service.add_item(session, current_user.id, payload)
    return CartEnvelope(
        message="Product added to cart successfully",
        cart=cart,
        username=current_user.full_name,
    )


@router.get(
    "",
    response_model=CartDetailEnvelope,
    responses={status.HTTP_404_NOT_FOUND: {"description": "Cart not found"}},
)
def get_my_cart(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Get the current user's cart with product details.

    A user without a cart gets a plain 404 envelope, not an error.
    """
    cart = service.get_cart(session, current_user.id)
    if cart is None:
        return error_response(status.HTTP_404_NOT_FOUND, "Cart not found")

    return CartDetailEnvelope(
        message="Cart retrieved successfully",
        cart=cart,
        username=current_user.full_name,
    )


@router.post("/remove", response_model=CartEnvelope)
def remove_from_cart(
    payload: CartRemoveRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Remove a product from the current user's cart.

    Returns the updated cart.
    """
    cart = service.remove_item(session, current_user.id, payload)
    return CartEnvelope(
        message="Product removed from cart successfully",
        cart=cart,
        username=current_user.full_name,
    )
