"""
Cart repository (persistence).

Carts are stored whole under their owner key. Callers must resolve the key
from the acting identity before every call (see domain.cart.cart_key_for);
this module never guesses an owner.
"""

from __future__ import annotations

import threading
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Protocol

from domain.cart import Cart, CartLine
from repositories.rows import response_rows

_CARTS_TABLE: str = "carts"


class CartRepository(Protocol):
    def load(self, owner_key: str) -> Optional[Cart]: ...

    def store(self, cart: Cart) -> None: ...

    def delete(self, owner_key: str) -> None: ...


class InMemoryCartRepository:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._carts: Dict[str, Cart] = {}

    def load(self, owner_key: str) -> Optional[Cart]:
        with self._lock:
            return self._carts.get(owner_key)

    def store(self, cart: Cart) -> None:
        with self._lock:
            self._carts[cart.owner_key] = cart

    def delete(self, owner_key: str) -> None:
        with self._lock:
            self._carts.pop(owner_key, None)


def _cart_to_row(cart: Cart) -> dict[str, Any]:
    return {
        "owner_key": cart.owner_key,
        "items": [
            {
                "product_id": line.product_id,
                "quantity": line.quantity,
                "unit_price": str(line.unit_price),
            }
            for line in cart.lines.values()
        ],
    }


def _row_to_cart(row: Mapping[str, Any]) -> Cart:
    lines = {}
    for item in row.get("items") or []:
        line = CartLine(
            product_id=str(item["product_id"]),
            quantity=int(item["quantity"]),
            unit_price=Decimal(str(item["unit_price"])),
        )
        lines[line.product_id] = line
    return Cart(owner_key=str(row["owner_key"]), lines=lines)


class SupabaseCartRepository:
    def __init__(self, client: Any) -> None:
        self._client = client

    def load(self, owner_key: str) -> Optional[Cart]:
        response = (
            self._client.table(_CARTS_TABLE)
            .select("*")
            .eq("owner_key", owner_key)
            .limit(1)
            .execute()
        )
        rows = response_rows(response, "fetch cart")
        if not rows:
            return None
        return _row_to_cart(rows[0])

    def store(self, cart: Cart) -> None:
        response = (
            self._client.table(_CARTS_TABLE)
            .upsert(_cart_to_row(cart), on_conflict="owner_key")
            .execute()
        )
        response_rows(response, "store cart")

    def delete(self, owner_key: str) -> None:
        response = self._client.table(_CARTS_TABLE).delete().eq("owner_key", owner_key).execute()
        response_rows(response, "delete cart")


__all__ = ["CartRepository", "InMemoryCartRepository", "SupabaseCartRepository"]
