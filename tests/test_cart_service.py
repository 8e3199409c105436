"""Unit tests for CartService: keeping cart counts and product stock in lockstep."""
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from app.core.errors import InternalFailure, InvalidState, NotFound
from app.models.product import Product
from app.services.cart_service import CartService


@pytest.fixture
def cart(db_session):
    return CartService(db_session)


class TestAddToCart:

    def test_first_add_creates_item_and_reserves_one_unit(self, cart, make_product, reload_product):
        product = make_product(stock=3)

        created, cart_item, updated = cart.add_to_cart(product.id)

        assert created is True
        assert cart_item.product_id == product.id
        assert cart_item.count == 1
        assert updated.stock == 2
        assert reload_product(product.id).stock == 2

    def test_repeat_add_increments_count(self, cart, make_product, reload_product, cart_rows):
        product = make_product(stock=3)
        cart.add_to_cart(product.id)

        created, cart_item, _ = cart.add_to_cart(product.id)

        assert created is False
        assert cart_item.count == 2
        assert reload_product(product.id).stock == 1
        assert len(cart_rows()) == 1

    def test_unknown_product_is_not_found(self, cart, cart_rows):
        with pytest.raises(NotFound):
            cart.add_to_cart(999)
        assert cart_rows() == []

    def test_first_add_with_zero_stock_is_not_checked(self, cart, make_product, reload_product):
        # Current behaviour: only repeat adds check stock, so stock goes negative here.
        product = make_product(stock=0)

        created, cart_item, _ = cart.add_to_cart(product.id)

        assert created is True
        assert cart_item.count == 1
        assert reload_product(product.id).stock == -1

    def test_repeat_add_with_zero_stock_fails_without_mutation(self, cart, make_product,
                                                               reload_product, cart_rows):
        product = make_product(stock=1)
        cart.add_to_cart(product.id)
        assert reload_product(product.id).stock == 0

        with pytest.raises(InvalidState):
            cart.add_to_cart(product.id)

        assert reload_product(product.id).stock == 0
        assert cart_rows()[0].count == 1

    def test_repeat_add_after_unchecked_first_add_fails(self, cart, make_product,
                                                        reload_product, cart_rows):
        product = make_product(stock=0)
        cart.add_to_cart(product.id)
        assert reload_product(product.id).stock == -1

        with pytest.raises(InvalidState):
            cart.add_to_cart(product.id)

        assert reload_product(product.id).stock == -1
        assert cart_rows()[0].count == 1

    def test_failed_commit_rolls_back_both_writes(self, cart, db_session, make_product,
                                                  reload_product, cart_rows):
        product = make_product(stock=4)
        failure = OperationalError("COMMIT", {}, Exception("database is locked"))

        with patch.object(db_session, "commit", side_effect=failure):
            with pytest.raises(InternalFailure):
                cart.add_to_cart(product.id)

        assert reload_product(product.id).stock == 4
        assert cart_rows() == []


class TestDeleteFromCart:

    def test_add_then_delete_restores_stock(self, cart, make_product, reload_product, cart_rows):
        product = make_product(stock=5)
        cart.add_to_cart(product.id)
        cart.add_to_cart(product.id)
        _, cart_item, _ = cart.add_to_cart(product.id)
        assert reload_product(product.id).stock == 2

        deleted = cart.delete_from_cart(cart_item.id)

        assert deleted["id"] == cart_item.id
        assert deleted["count"] == 3
        assert reload_product(product.id).stock == 5
        assert cart_rows() == []

    def test_unknown_cart_item_is_not_found(self, cart, make_product, reload_product, cart_rows):
        product = make_product(stock=2)
        cart.add_to_cart(product.id)

        with pytest.raises(NotFound):
            cart.delete_from_cart(12345)

        assert reload_product(product.id).stock == 1
        assert len(cart_rows()) == 1

    def test_missing_product_is_not_found(self, cart, db_session, make_product, cart_rows):
        product = make_product(stock=2)
        _, cart_item, _ = cart.add_to_cart(product.id)
        db_session.query(Product).filter(Product.id == product.id).delete()
        db_session.commit()

        with pytest.raises(NotFound, match="product table"):
            cart.delete_from_cart(cart_item.id)

        assert len(cart_rows()) == 1


class TestListAndCount:

    def test_empty_cart(self, cart):
        assert cart.list_cart_items() == []
        assert cart.count_cart_items() == 0

    def test_list_joins_product_details(self, cart, make_product):
        keyboard = make_product(stock=2, title="Keyboard")
        mouse = make_product(stock=2, title="Mouse", price=300.0)
        cart.add_to_cart(keyboard.id)
        cart.add_to_cart(mouse.id)
        cart.add_to_cart(mouse.id)

        items = cart.list_cart_items()

        assert [item["productDetails"]["title"] for item in items] == ["Keyboard", "Mouse"]
        assert items[1]["count"] == 2
        assert items[1]["productDetails"]["stock"] == 0
        assert cart.count_cart_items() == 2

    def test_list_drops_items_without_product(self, cart, db_session, make_product):
        kept = make_product(stock=1, title="Kept")
        orphan = make_product(stock=1, title="Orphan")
        cart.add_to_cart(kept.id)
        cart.add_to_cart(orphan.id)
        db_session.query(Product).filter(Product.id == orphan.id).delete()
        db_session.commit()

        items = cart.list_cart_items()

        assert [item["productId"] for item in items] == [kept.id]
        # The orphaned row still counts as a cart item
        assert cart.count_cart_items() == 2
