"""
Tests for `domain/cart.py`.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from domain.cart import Cart, CartLine, cart_key_for
from domain.errors import InvalidInputError
from domain.identity import ANONYMOUS, Identity, Role


def test_cart_key_follows_identity() -> None:
    patient = Identity(user_id="p1", role=Role.PATIENT)

    assert cart_key_for(patient) == "user:p1"
    assert cart_key_for(patient, "browser-abc") == "user:p1"
    assert cart_key_for(ANONYMOUS, "browser-abc") == "guest:browser-abc"


def test_anonymous_cart_requires_session_key() -> None:
    with pytest.raises(InvalidInputError):
        cart_key_for(ANONYMOUS)
    with pytest.raises(InvalidInputError):
        cart_key_for(ANONYMOUS, "  ")


def test_existing_line_keeps_original_price() -> None:
    cart = Cart.empty("user:p1").with_item("oil-30", 1, Decimal("100.00"))

    cart = cart.with_item("oil-30", 2, Decimal("120.00"))

    assert cart.lines["oil-30"] == CartLine("oil-30", 3, Decimal("100.00"))
    assert cart.total == Decimal("300.00")
    assert cart.item_count == 3


def test_total_sums_every_line() -> None:
    cart = (
        Cart.empty("user:p1")
        .with_item("oil-30", 2, Decimal("249.90"))
        .with_item("gummies", 1, Decimal("89.90"))
    )

    assert cart.total == Decimal("589.70")
    assert Cart.empty("user:p1").total == Decimal("0")


def test_with_quantity_zero_removes_line() -> None:
    cart = Cart.empty("user:p1").with_item("oil-30", 2, Decimal("10"))

    assert cart.with_quantity("oil-30", 5).lines["oil-30"].quantity == 5
    assert "oil-30" not in cart.with_quantity("oil-30", 0).lines
    assert "oil-30" not in cart.with_quantity("oil-30", -1).lines


def test_with_quantity_unknown_product() -> None:
    with pytest.raises(InvalidInputError):
        Cart.empty("user:p1").with_quantity("missing", 2)


def test_invalid_lines_rejected() -> None:
    with pytest.raises(InvalidInputError):
        Cart.empty("user:p1").with_item("oil-30", 0, Decimal("10"))
    with pytest.raises(InvalidInputError):
        Cart.empty("user:p1").with_item("oil-30", 1, Decimal("-1"))
    with pytest.raises(InvalidInputError):
        Cart.empty("user:p1").with_item("oil-30", 1, Decimal("NaN"))


def test_carts_are_immutable_values() -> None:
    empty = Cart.empty("user:p1")
    filled = empty.with_item("oil-30", 1, Decimal("10"))

    assert empty.lines == {}
    assert filled.cleared().lines == {}
    assert filled.without_item("missing") is filled
