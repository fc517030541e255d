"""
Tests for the cart store in storefront/services/cart.py
"""
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from storefront.exceptions import Forbidden, InsufficientStock, NotFound, OutOfStock
from storefront.models import CartItem
from storefront.services import cart as cart_service


def _rows(db, user):
    db.expire_all()
    return db.execute(
        select(func.count(CartItem.id)).where(CartItem.user_id == user.id)
    ).scalar_one()


class TestAddItem:
    """Adding products to the cart."""

    def test_add_creates_line(self, db, make_user, make_product):
        user = make_user()
        product = make_product(price="25.50", stock=5)

        line = cart_service.add_item(db, user.id, product.id, 2)

        assert line.product_id == product.id
        assert line.quantity == 2
        assert line.line_total == Decimal("51.00")
        assert _rows(db, user) == 1

    def test_repeated_add_accumulates_on_one_row(self, db, make_user, make_product):
        user = make_user()
        product = make_product(stock=10)

        cart_service.add_item(db, user.id, product.id, 2)
        line = cart_service.add_item(db, user.id, product.id, 3)

        assert line.quantity == 5
        assert _rows(db, user) == 1

    def test_out_of_stock(self, db, make_user, make_product):
        user = make_user()
        product = make_product(stock=0)

        with pytest.raises(OutOfStock) as exc_info:
            cart_service.add_item(db, user.id, product.id, 1)

        assert exc_info.value.message == "Product is out of stock."
        assert exc_info.value.field == "quantity"
        assert _rows(db, user) == 0

    def test_quantity_above_stock(self, db, make_user, make_product):
        user = make_user()
        product = make_product(stock=3)

        with pytest.raises(InsufficientStock) as exc_info:
            cart_service.add_item(db, user.id, product.id, 4)

        assert exc_info.value.requested == 4
        assert exc_info.value.available == 3
        assert _rows(db, user) == 0

    def test_accumulated_quantity_above_stock(self, db, make_user, make_product):
        """The quantity already in the cart counts against stock."""
        user = make_user()
        product = make_product(stock=5)
        cart_service.add_item(db, user.id, product.id, 4)

        with pytest.raises(InsufficientStock) as exc_info:
            cart_service.add_item(db, user.id, product.id, 2)

        assert exc_info.value.requested == 6
        view = cart_service.list_items(db, user.id)
        assert [line.quantity for line in view.items] == [4]

    def test_unknown_product(self, db, make_user):
        user = make_user()

        with pytest.raises(NotFound):
            cart_service.add_item(db, user.id, 9999, 1)

    def test_carts_are_per_user(self, db, make_user, make_product):
        alice, bob = make_user(), make_user()
        product = make_product(stock=10)

        cart_service.add_item(db, alice.id, product.id, 1)
        cart_service.add_item(db, bob.id, product.id, 2)

        assert cart_service.list_items(db, alice.id).count == 1
        assert cart_service.list_items(db, bob.id).count == 2


class TestUpdateItem:
    """Overwriting the quantity of a cart line."""

    def test_update_overwrites_quantity(self, db, make_user, make_product):
        user = make_user()
        product = make_product(stock=10)
        line = cart_service.add_item(db, user.id, product.id, 2)

        updated = cart_service.update_item(db, user.id, line.id, 7)

        assert updated.quantity == 7

    def test_update_above_stock(self, db, make_user, make_product):
        user = make_user()
        product = make_product(stock=4)
        line = cart_service.add_item(db, user.id, product.id, 2)

        with pytest.raises(InsufficientStock):
            cart_service.update_item(db, user.id, line.id, 5)

        assert cart_service.list_items(db, user.id).items[0].quantity == 2

    def test_update_foreign_item_forbidden(self, db, make_user, make_product):
        owner, intruder = make_user(), make_user()
        product = make_product(stock=10)
        line = cart_service.add_item(db, owner.id, product.id, 1)

        with pytest.raises(Forbidden):
            cart_service.update_item(db, intruder.id, line.id, 3)

        assert cart_service.list_items(db, owner.id).items[0].quantity == 1

    def test_update_missing_item(self, db, make_user):
        user = make_user()

        with pytest.raises(NotFound):
            cart_service.update_item(db, user.id, 12345, 1)


class TestRemoveItem:
    """Removing cart lines."""

    def test_remove_own_item(self, db, make_user, make_product):
        user = make_user()
        product = make_product()
        line = cart_service.add_item(db, user.id, product.id, 1)

        cart_service.remove_item(db, user.id, line.id)

        assert _rows(db, user) == 0

    def test_remove_foreign_item_forbidden(self, db, make_user, make_product):
        owner, intruder = make_user(), make_user()
        product = make_product()
        line = cart_service.add_item(db, owner.id, product.id, 1)

        with pytest.raises(Forbidden):
            cart_service.remove_item(db, intruder.id, line.id)

        assert _rows(db, owner) == 1


class TestListItems:
    """Cart listing and subtotal."""

    def test_subtotal_sums_price_times_quantity(self, db, make_user, make_product):
        user = make_user()
        a = make_product(name="A", price="50.00", stock=10)
        b = make_product(name="B", price="15.00", stock=5)
        cart_service.add_item(db, user.id, a.id, 2)
        cart_service.add_item(db, user.id, b.id, 1)

        view = cart_service.list_items(db, user.id)

        assert [line.product.name for line in view.items] == ["A", "B"]
        assert view.subtotal == Decimal("115.00")
        assert view.count == 3

    def test_empty_cart(self, db, make_user):
        user = make_user()

        view = cart_service.list_items(db, user.id)

        assert view.items == []
        assert view.subtotal == Decimal("0.00")
