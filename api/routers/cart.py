"""
Cart API Endpoints.

The cart belongs to whoever is calling right now: the logged-in user, or the
guest session named by the `X-Cart-Session` header.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_cart_session, get_core, get_identity
from api.errors import raise_for_failure
from api.models import CartItemRequest, CartQuantityRequest, CartResponse
from domain.errors import CoreError
from domain.identity import Identity
from services.container import CoreServices

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/cart", response_model=CartResponse, summary="Get Cart")
def get_cart(
    actor: Identity = Depends(get_identity),
    session_key: Optional[str] = Depends(get_cart_session),
    core: CoreServices = Depends(get_core),
):
    try:
        return CartResponse.from_domain(core.carts.get_cart(actor, session_key))
    except CoreError as e:
        raise_for_failure(e.failure, actor)
    except Exception:
        logger.exception("Cart lookup failed")
        raise HTTPException(
            status_code=500,
            detail="Failed to fetch cart"
        )


@router.post(
    "/cart/items",
    response_model=CartResponse,
    summary="Add To Cart",
    description="Add units of a product. The unit price is captured the first time the product is added."
)
def add_cart_item(
    request: CartItemRequest,
    actor: Identity = Depends(get_identity),
    session_key: Optional[str] = Depends(get_cart_session),
    core: CoreServices = Depends(get_core),
):
    """
    **Example request:**
    ```json
    {"product_id": "oleo-cbd-30ml", "quantity": 2, "unit_price": "249.90"}
    ```
    """
    try:
        cart = core.carts.add_to_cart(
            actor,
            request.product_id,
            request.unit_price,
            quantity=request.quantity,
            session_key=session_key,
        )
        return CartResponse.from_domain(cart)
    except CoreError as e:
        raise_for_failure(e.failure, actor)
    except Exception:
        logger.exception("Cart add failed")
        raise HTTPException(
            status_code=500,
            detail="Failed to add item to cart"
        )


@router.put(
    "/cart/items/{product_id}",
    response_model=CartResponse,
    summary="Set Item Quantity",
    description="Set a line's quantity. Zero or less removes the line."
)
def set_cart_item_quantity(
    product_id: str,
    request: CartQuantityRequest,
    actor: Identity = Depends(get_identity),
    session_key: Optional[str] = Depends(get_cart_session),
    core: CoreServices = Depends(get_core),
):
    try:
        cart = core.carts.set_quantity(actor, product_id, request.quantity, session_key=session_key)
        return CartResponse.from_domain(cart)
    except CoreError as e:
        raise_for_failure(e.failure, actor)
    except Exception:
        logger.exception("Cart quantity update failed")
        raise HTTPException(
            status_code=500,
            detail="Failed to update cart item"
        )


@router.delete("/cart/items/{product_id}", response_model=CartResponse, summary="Remove From Cart")
def remove_cart_item(
    product_id: str,
    actor: Identity = Depends(get_identity),
    session_key: Optional[str] = Depends(get_cart_session),
    core: CoreServices = Depends(get_core),
):
    try:
        return CartResponse.from_domain(core.carts.remove_from_cart(actor, product_id, session_key=session_key))
    except CoreError as e:
        raise_for_failure(e.failure, actor)
    except Exception:
        logger.exception("Cart removal failed")
        raise HTTPException(
            status_code=500,
            detail="Failed to remove item from cart"
        )


@router.delete("/cart", response_model=CartResponse, summary="Clear Cart")
def clear_cart(
    actor: Identity = Depends(get_identity),
    session_key: Optional[str] = Depends(get_cart_session),
    core: CoreServices = Depends(get_core),
):
    try:
        return CartResponse.from_domain(core.carts.clear_cart(actor, session_key))
    except CoreError as e:
        raise_for_failure(e.failure, actor)
    except Exception:
        logger.exception("Cart clear failed")
        raise HTTPException(
            status_code=500,
            detail="Failed to clear cart"
        )
