"""
Tests for `services/cart_service.py`.

Carts follow the identity of each call: a login or logout swaps carts, never
merges them, and one owner's cart is never read or written for another.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest

from domain.errors import InvalidInputError
from domain.identity import ANONYMOUS

SESSION = "browser-session-1"


def test_login_swaps_to_existing_user_cart(cart_service, patient) -> None:
    """Scenario: guest adds A, user logs in with a stored cart holding B, sees only B."""

    cart_service.add_to_cart(patient, "product-b", Decimal("50.00"))
    cart_service.add_to_cart(ANONYMOUS, "product-a", Decimal("10.00"), session_key=SESSION)

    # Same browser session, now logged in
    cart = cart_service.get_cart(patient, session_key=SESSION)

    assert list(cart.lines) == ["product-b"]
    assert cart.owner_key == f"user:{patient.user_id}"


def test_logout_swaps_back_to_guest_cart(cart_service, patient) -> None:
    cart_service.add_to_cart(ANONYMOUS, "product-a", Decimal("10.00"), session_key=SESSION)
    cart_service.add_to_cart(patient, "product-b", Decimal("50.00"), session_key=SESSION)

    guest = cart_service.get_cart(ANONYMOUS, session_key=SESSION)

    assert list(guest.lines) == ["product-a"]


def test_users_never_see_each_other(cart_service, patient, other_patient) -> None:
    cart_service.add_to_cart(patient, "oil-30", Decimal("249.90"), quantity=2)
    cart_service.clear_cart(other_patient)
    cart_service.set_quantity(other_patient, "oil-30", 0)

    assert cart_service.get_cart(other_patient).lines == {}
    assert cart_service.get_cart(patient).lines["oil-30"].quantity == 2


def test_anonymous_without_session_key(cart_service) -> None:
    with pytest.raises(InvalidInputError):
        cart_service.get_cart(ANONYMOUS)
    with pytest.raises(InvalidInputError):
        cart_service.add_to_cart(ANONYMOUS, "oil-30", Decimal("1"))


def test_quantity_updates_and_removal(cart_service, patient) -> None:
    cart_service.add_to_cart(patient, "oil-30", "249.90")
    cart_service.add_to_cart(patient, "gummies", 89)

    cart = cart_service.set_quantity(patient, "oil-30", 3)
    assert cart.lines["oil-30"].quantity == 3
    assert cart.total == Decimal("838.70")

    cart = cart_service.remove_from_cart(patient, "gummies")
    assert list(cart.lines) == ["oil-30"]

    cart = cart_service.set_quantity(patient, "oil-30", 0)
    assert cart.lines == {}


def test_clear_cart(cart_service, patient) -> None:
    cart_service.add_to_cart(patient, "oil-30", "10")

    assert cart_service.clear_cart(patient).lines == {}
    assert cart_service.get_cart(patient).lines == {}


@pytest.mark.parametrize("price", ["free", "NaN", "Infinity", "-Infinity"])
def test_invalid_price(cart_service, patient, price) -> None:
    with pytest.raises(InvalidInputError) as exc:
        cart_service.add_to_cart(patient, "oil-30", price)
    assert exc.value.field == "unit_price"


def test_concurrent_adds_for_one_owner_are_serialized(cart_service, patient) -> None:
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda _: cart_service.add_to_cart(patient, "oil-30", "10"), range(40)))

    assert cart_service.get_cart(patient).lines["oil-30"].quantity == 40


def test_concurrent_owners_are_independent(cart_service, patient, other_patient) -> None:
    def add(identity):
        for _ in range(20):
            cart_service.add_to_cart(identity, "oil-30", "10")

    with ThreadPoolExecutor(max_workers=2) as pool:
        list(pool.map(add, [patient, other_patient]))

    assert cart_service.get_cart(patient).item_count == 20
    assert cart_service.get_cart(other_patient).item_count == 20
