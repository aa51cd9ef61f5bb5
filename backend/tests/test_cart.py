"""Tests for the in-memory cart reducer."""

from types import SimpleNamespace

import pytest

from restopos.services.cart import Cart


def _item(item_id, price, available=True, active=True):
    return SimpleNamespace(id=item_id, price=price, is_available=available, is_active=active)


@pytest.fixture
def catalog():
    return {
        1: _item(1, 45000),
        2: _item(2, 25000),
        3: _item(3, 60000, available=False),
        4: _item(4, 30000, active=False),
    }


class TestAddLine:

    def test_new_item_starts_at_quantity_one(self, catalog):
        cart = Cart(catalog)
        assert cart.add_line(1) is True
        assert len(cart) == 1
        assert cart.lines[0].quantity == 1

    def test_adding_again_increments(self, catalog):
        cart = Cart(catalog)
        cart.add_line(1)
        cart.add_line(1)
        assert len(cart) == 1
        assert cart.lines[0].quantity == 2

    def test_unavailable_item_is_noop(self, catalog):
        cart = Cart(catalog)
        assert cart.add_line(3) is False
        assert cart.add_line(4) is False
        assert len(cart) == 0

    def test_unknown_item_is_noop(self, catalog):
        cart = Cart(catalog)
        assert cart.add_line(99) is False
        assert cart.total() == 0


class TestQuantityAndTotal:

    def test_set_quantity(self, catalog):
        cart = Cart(catalog)
        cart.add_line(1)
        cart.set_quantity(1, 3)
        assert cart.total() == 135000

    def test_zero_or_negative_removes_line(self, catalog):
        cart = Cart(catalog)
        cart.add_line(1)
        cart.add_line(2)
        cart.set_quantity(1, 0)
        cart.set_quantity(2, -1)
        assert len(cart) == 0

    def test_total_reads_live_prices(self, catalog):
        cart = Cart(catalog)
        cart.add_line(1)
        cart.add_line(2)
        assert cart.total() == 70000

        catalog[1].price = 50000
        assert cart.total() == 75000

    def test_clear(self, catalog):
        cart = Cart(catalog)
        cart.add_line(1)
        cart.clear()
        assert len(cart) == 0
        assert cart.total() == 0


class TestOrderInterop:

    def test_load_order_merges_lines_per_item(self, catalog):
        committed = [
            SimpleNamespace(menu_item_id=1, quantity=2, notes=None),
            SimpleNamespace(menu_item_id=2, quantity=1, notes="less ice"),
            SimpleNamespace(menu_item_id=1, quantity=1, notes=None),
        ]
        cart = Cart(catalog)
        cart.add_line(2)
        cart.load_order(committed)

        quantities = {line.menu_item_id: line.quantity for line in cart.lines}
        assert quantities == {1: 3, 2: 1}

    def test_to_order_lines(self, catalog):
        cart = Cart(catalog)
        cart.add_line(1, notes="no onion")
        cart.add_line(1)
        assert cart.to_order_lines() == [
            {"menu_item_id": 1, "quantity": 2, "notes": "no onion"},
        ]
