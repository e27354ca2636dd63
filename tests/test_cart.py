"""Tests for the cart store."""

import json
import logging

import pytest

from funkos.cart import CartStore


def test_empty_cart_totals(storage):
    """An empty cart has zero total and zero count."""
    cart = CartStore(storage)
    assert cart.items == []
    assert cart.get_cart_total() == 0
    assert cart.get_cart_count() == 0


def test_cart_total_and_count(storage, product_factory):
    """Total sums price * quantity; count sums units."""
    cart = CartStore(storage)
    cart.add_to_cart(product_factory(1, price=10, stock=9), 2)
    cart.add_to_cart(product_factory(2, price=5, stock=9), 3)

    assert cart.get_cart_total() == 35
    assert cart.get_cart_count() == 5


def test_repeated_add_never_exceeds_stock(storage, product_factory):
    """Repeated adds of any size stay within the product stock."""
    product = product_factory(1, stock=4)
    cart = CartStore(storage)

    for requested in (1, 2, 3, 7, 1, 1):
        cart.add_to_cart(product, requested)
        line = cart.get_line(1)
        assert line is not None
        assert line.quantity <= product.stock

    assert cart.get_line(1).quantity == 4


def test_add_first_time_clamps_to_stock(storage, product_factory):
    cart = CartStore(storage)
    cart.add_to_cart(product_factory(1, stock=2), 10)
    assert cart.get_line(1).quantity == 2


def test_add_out_of_stock_product_leaves_no_line(storage, product_factory):
    """A product with zero stock never produces a zero-quantity line."""
    cart = CartStore(storage)
    cart.add_to_cart(product_factory(1, stock=0))
    assert cart.get_line(1) is None
    assert len(cart) == 0


def test_add_rejects_non_positive_quantity(storage, product_factory):
    cart = CartStore(storage)
    with pytest.raises(ValueError, match="positive"):
        cart.add_to_cart(product_factory(1), 0)


def test_add_keeps_single_line_per_product(storage, product_factory):
    cart = CartStore(storage)
    product = product_factory(1, stock=10)
    cart.add_to_cart(product)
    cart.add_to_cart(product, 2)

    assert len(cart) == 1
    assert cart.get_line(1).quantity == 3


def test_add_refreshes_product_snapshot(storage, product_factory):
    """Re-adding uses the latest stock and stores the latest snapshot."""
    cart = CartStore(storage)
    cart.add_to_cart(product_factory(1, stock=2), 2)
    restocked = product_factory(1, stock=5, price=12)
    cart.add_to_cart(restocked, 2)

    line = cart.get_line(1)
    assert line.quantity == 4
    assert line.product.stock == 5
    assert line.product.price == 12


def test_update_quantity_zero_removes_line(storage, product_factory):
    """update_quantity(id, 0) behaves like remove_from_cart(id)."""
    cart = CartStore(storage)
    cart.add_to_cart(product_factory(1))
    cart.add_to_cart(product_factory(2))

    cart.update_quantity(1, 0)

    assert cart.get_line(1) is None
    assert [line.product_id for line in cart.items] == [2]


def test_update_quantity_negative_removes_line(storage, product_factory):
    cart = CartStore(storage)
    cart.add_to_cart(product_factory(1))
    cart.update_quantity(1, -3)
    assert cart.get_line(1) is None


def test_update_quantity_clamps_to_line_stock(storage, product_factory):
    cart = CartStore(storage)
    cart.add_to_cart(product_factory(1, stock=3))
    cart.update_quantity(1, 99)
    assert cart.get_line(1).quantity == 3


def test_update_quantity_absent_product_is_noop(storage, product_factory):
    cart = CartStore(storage)
    cart.add_to_cart(product_factory(1))
    cart.update_quantity(42, 2)
    assert [line.product_id for line in cart.items] == [1]


def test_remove_absent_product_is_noop(storage):
    cart = CartStore(storage)
    cart.remove_from_cart(42)
    assert cart.items == []


def test_clear_cart_is_idempotent(storage, product_factory):
    """Clearing twice leaves the cart empty with no error."""
    cart = CartStore(storage)
    cart.add_to_cart(product_factory(1))

    cart.clear_cart()
    assert cart.items == []
    cart.clear_cart()
    assert cart.items == []
    assert json.loads(storage.get("cart")) == []


def test_update_keeps_insertion_order(storage, product_factory):
    cart = CartStore(storage)
    for product_id in (3, 1, 2):
        cart.add_to_cart(product_factory(product_id))
    cart.update_quantity(1, 4)
    cart.add_to_cart(product_factory(3))

    assert [line.product_id for line in cart.items] == [3, 1, 2]


def test_round_trip_through_storage(storage, product_factory):
    """A new store hydrated from the same storage sees the same lines in order."""
    cart = CartStore(storage)
    cart.add_to_cart(product_factory(5, stock=9), 2)
    cart.add_to_cart(product_factory(1, stock=9), 1)
    cart.add_to_cart(product_factory(3, stock=9), 4)
    cart.remove_from_cart(1)

    hydrated = CartStore(storage)

    assert [(l.product_id, l.quantity) for l in hydrated.items] == [(5, 2), (3, 4)]


def test_every_mutation_persists(storage, product_factory):
    cart = CartStore(storage, storage_key="my-cart")
    cart.add_to_cart(product_factory(1, stock=9), 2)

    payload = json.loads(storage.get("my-cart"))
    assert payload[0]["quantity"] == 2
    assert payload[0]["product"]["product_id"] == 1


@pytest.mark.parametrize(
    "raw",
    [
        "not json at all",
        '{"product_id": 1}',
        '[{"product": {"product_id": 1}, "quantity": 1}]',
        '[{"product_id": 1, "product_name": "A", "price": 1, "stock": 1, "sku": "A", "quantity": 5}]',
        '[{"product_id": 1, "product_name": "A", "price": 1, "stock": 3, "sku": "A", "quantity": 1},'
        ' {"product_id": 1, "product_name": "A", "price": 1, "stock": 3, "sku": "A", "quantity": 2}]',
    ],
)
def test_malformed_storage_hydrates_empty(storage, caplog, raw):
    """Malformed persisted carts are logged and treated as empty."""
    storage.set("cart", raw)
    with caplog.at_level(logging.WARNING, logger="funkos.cart"):
        cart = CartStore(storage)

    assert cart.items == []
    assert "Error loading cart" in caplog.text


def test_hydrates_flat_legacy_lines(storage):
    """Carts persisted as flat product dicts with a quantity key still load."""
    storage.set(
        "cart",
        json.dumps(
            [
                {
                    "product_id": 7,
                    "product_name": "Groot",
                    "price": 8.5,
                    "stock": 4,
                    "sku": "FK-007",
                    "licence": "Marvel",
                    "quantity": 2,
                }
            ]
        ),
    )

    cart = CartStore(storage)

    line = cart.get_line(7)
    assert line.quantity == 2
    assert line.product.licence_name == "Marvel"
    assert cart.get_cart_total() == 17


def test_subscribers_notified_on_each_mutation(storage, product_factory):
    """Listeners get a bare notification and re-read the store."""
    cart = CartStore(storage)
    seen: list[int] = []
    unsubscribe = cart.subscribe(lambda: seen.append(cart.get_cart_count()))

    cart.add_to_cart(product_factory(1, stock=9), 2)
    cart.update_quantity(1, 5)
    cart.remove_from_cart(1)
    cart.clear_cart()
    unsubscribe()
    cart.add_to_cart(product_factory(2))

    assert seen == [2, 5, 0, 0]


def test_failing_subscriber_does_not_break_mutation(storage, product_factory, caplog):
    cart = CartStore(storage)
    calls: list[str] = []

    def broken() -> None:
        raise RuntimeError("badge exploded")

    cart.subscribe(broken)
    cart.subscribe(lambda: calls.append("ok"))

    with caplog.at_level(logging.ERROR, logger="funkos.events"):
        cart.add_to_cart(product_factory(1))

    assert cart.get_cart_count() == 1
    assert calls == ["ok"]
    assert "cart listener failed" in caplog.text


def test_checkout_reports_totals_and_empties_cart(storage, product_factory):
    cart = CartStore(storage)
    cart.add_to_cart(product_factory(1, price=10.0), 2)
    cart.add_to_cart(product_factory(2, price=2.5), 1)
    seen = []
    cart.subscribe(lambda: seen.append(len(cart)))

    summary = cart.checkout()

    assert summary.count == 3
    assert summary.total == pytest.approx(22.5)
    assert cart.items == []
    assert json.loads(storage.get("cart")) == []
    assert seen == [0]


def test_checkout_empty_cart_does_nothing(storage):
    cart = CartStore(storage)
    seen = []
    cart.subscribe(lambda: seen.append(True))

    assert cart.checkout() is None
    assert seen == []
    assert storage.get("cart") is None
