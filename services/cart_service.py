"""
Cart service.

Every operation resolves the owner key from the identity it is given, at call
time. Nothing about the previous caller is kept, so a login or logout inside
the same browsing session immediately switches to the other owner's cart.
Anonymous and authenticated carts are swapped, never merged.

Mutations are serialized per owner key; different owners never wait on each
other.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from domain.cart import Cart, cart_key_for
from domain.errors import InvalidInputError
from domain.identity import Identity
from repositories.cart_repository import CartRepository
from services.locks import KeyedLocks

logger = logging.getLogger(__name__)


def _as_price(value: Union[Decimal, str, int, float]) -> Decimal:
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise InvalidInputError("unit_price must be a decimal amount", field="unit_price") from None
    if not price.is_finite():
        raise InvalidInputError("unit_price must be a finite amount", field="unit_price")
    return price


class CartService:
    def __init__(self, carts: CartRepository, locks: Optional[KeyedLocks] = None) -> None:
        self._carts = carts
        self._locks = locks or KeyedLocks()

    def _load(self, key: str) -> Cart:
        return self._carts.load(key) or Cart.empty(key)

    def get_cart(self, identity: Identity, session_key: Optional[str] = None) -> Cart:
        return self._load(cart_key_for(identity, session_key))

    def add_to_cart(
        self,
        identity: Identity,
        product_id: str,
        unit_price: Union[Decimal, str, int, float],
        quantity: int = 1,
        session_key: Optional[str] = None,
    ) -> Cart:
        """Add units of a product, capturing its price on first add."""

        key = cart_key_for(identity, session_key)
        price = _as_price(unit_price)
        with self._locks.hold(key):
            cart = self._load(key).with_item(product_id, quantity, price)
            self._carts.store(cart)
        logger.debug("Cart item added", extra={"owner_key": key, "product_id": product_id})
        return cart

    def remove_from_cart(
        self,
        identity: Identity,
        product_id: str,
        session_key: Optional[str] = None,
    ) -> Cart:
        key = cart_key_for(identity, session_key)
        with self._locks.hold(key):
            cart = self._load(key).without_item(product_id)
            self._carts.store(cart)
        return cart

    def set_quantity(
        self,
        identity: Identity,
        product_id: str,
        quantity: int,
        session_key: Optional[str] = None,
    ) -> Cart:
        """Set a line's quantity; zero or less removes it."""

        key = cart_key_for(identity, session_key)
        with self._locks.hold(key):
            cart = self._load(key).with_quantity(product_id, quantity)
            self._carts.store(cart)
        return cart

    def clear_cart(self, identity: Identity, session_key: Optional[str] = None) -> Cart:
        key = cart_key_for(identity, session_key)
        with self._locks.hold(key):
            self._carts.delete(key)
        return Cart.empty(key)


__all__ = ["CartService"]
