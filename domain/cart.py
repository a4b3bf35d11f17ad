"""
Domain: shopping cart.

A Cart maps product ids to a quantity and the unit price captured when the
product was first added. Carts are owned by a storage key derived from the
acting identity: `user:<id>` when authenticated, `guest:<session key>`
otherwise. Switching identity switches carts; carts are never merged.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Mapping, Optional

from .errors import InvalidInputError
from .identity import Identity


def cart_key_for(identity: Optional[Identity], session_key: Optional[str] = None) -> str:
    """
    Resolve the storage key for the acting identity.

    Must be called on every cart operation; a key is never reused across an
    identity change.
    """

    if identity is not None and not identity.is_anonymous:
        return f"user:{identity.user_id}"
    if session_key and session_key.strip():
        return f"guest:{session_key.strip()}"
    raise InvalidInputError("An anonymous cart requires a session key", field="session_key")


@dataclass(frozen=True, slots=True)
class CartLine:
    product_id: str
    quantity: int
    unit_price: Decimal

    def __post_init__(self) -> None:
        if not self.product_id:
            raise InvalidInputError("product_id is required", field="product_id")
        if self.quantity <= 0:
            raise InvalidInputError("quantity must be positive", field="quantity")
        if not self.unit_price.is_finite() or self.unit_price < 0:
            raise InvalidInputError("unit_price must be a finite, non-negative amount", field="unit_price")

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class Cart:
    owner_key: str
    lines: Mapping[str, CartLine]

    @staticmethod
    def empty(owner_key: str) -> "Cart":
        return Cart(owner_key=owner_key, lines={})

    @property
    def total(self) -> Decimal:
        return sum((line.subtotal for line in self.lines.values()), Decimal("0"))

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines.values())

    def _with_lines(self, lines: Dict[str, CartLine]) -> "Cart":
        return Cart(owner_key=self.owner_key, lines=lines)

    def with_item(self, product_id: str, quantity: int, unit_price: Decimal) -> "Cart":
        """Add `quantity` units; an existing line keeps its original unit price."""

        if quantity <= 0:
            raise InvalidInputError("quantity must be positive", field="quantity")
        lines = dict(self.lines)
        existing = lines.get(product_id)
        if existing is None:
            lines[product_id] = CartLine(product_id, quantity, Decimal(unit_price))
        else:
            lines[product_id] = CartLine(product_id, existing.quantity + quantity, existing.unit_price)
        return self._with_lines(lines)

    def without_item(self, product_id: str) -> "Cart":
        if product_id not in self.lines:
            return self
        lines = dict(self.lines)
        del lines[product_id]
        return self._with_lines(lines)

    def with_quantity(self, product_id: str, quantity: int) -> "Cart":
        """Set a line's quantity; zero or less removes the line."""

        if quantity <= 0:
            return self.without_item(product_id)
        existing = self.lines.get(product_id)
        if existing is None:
            raise InvalidInputError(f"Product '{product_id}' is not in the cart", field="product_id")
        lines = dict(self.lines)
        lines[product_id] = CartLine(product_id, quantity, existing.unit_price)
        return self._with_lines(lines)

    def cleared(self) -> "Cart":
        return Cart.empty(self.owner_key)
