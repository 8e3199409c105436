# app/services/cart_service.py
# Бизнес-логика корзины: count позиции и stock товара меняются вместе,
# в одной транзакции, чтобы сбой между записями не рассинхронизировал их.
import logging

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import InternalFailure, InvalidState, NotFound
from app.models.cart import CartItem
from app.models.product import Product

logger = logging.getLogger(__name__)


class CartService:
    """Сервис корзины поверх сессии SQLAlchemy."""

    def __init__(self, db: Session):
        self.db = db

    def _commit(self, failure_message: str) -> None:
        """Коммитит текущую единицу работы или откатывает её целиком."""
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"{failure_message}: {e}")
            raise InternalFailure(failure_message) from e

    def add_to_cart(self, product_id: int) -> tuple[bool, CartItem, Product]:
        """
        Резервирует одну единицу товара в корзине.

        Args:
            product_id: ID товара

        Returns:
            (created, cart_item, product): created=True, если позиция создана впервые

        Raises:
            NotFound: товара нет
            InvalidState: позиция уже есть, а свободного остатка нет (stock <= 0)
        """
        product = self.db.get(Product, product_id)
        if product is None:
            raise NotFound("Product not found")

        cart_item = self.db.query(CartItem).filter(CartItem.product_id == product_id).first()

        if cart_item is not None:
            if product.stock <= 0:
                raise InvalidState("We don't have enough stock remaining")
            cart_item.count += 1
            created = False
        else:
            # Первое добавление не проверяет остаток: stock может уйти в минус
            cart_item = CartItem(product_id=product_id, count=1)
            self.db.add(cart_item)
            created = True

        product.stock -= 1
        self._commit("Something went wrong while updating the product in the cart")
        self.db.refresh(cart_item)
        self.db.refresh(product)

        logger.info(
            f"Cart item {cart_item.id}: product {product_id} count={cart_item.count}, stock={product.stock}"
        )
        return created, cart_item, product

    def delete_from_cart(self, cart_item_id: int) -> dict:
        """Удаляет позицию и возвращает её count обратно в stock товара."""
        cart_item = self.db.get(CartItem, cart_item_id)
        if cart_item is None:
            raise NotFound("Product not found in the cart")

        product = self.db.get(Product, cart_item.product_id)
        if product is None:
            raise NotFound("Product not found in the product table")

        deleted = cart_item.as_dict()
        product.stock += cart_item.count
        self.db.delete(cart_item)
        self._commit("Something went wrong while deleting the product from the cart")

        logger.info(f"Cart item {cart_item_id} deleted, product {product.id} stock={product.stock}")
        return deleted

    def list_cart_items(self) -> list[dict]:
        """Позиции корзины с данными товара (inner join: позиции без товара отбрасываются)."""
        try:
            rows = (
                self.db.query(CartItem, Product)
                .join(Product, CartItem.product_id == Product.id)
                .order_by(CartItem.id)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch cart items: {e}")
            raise InternalFailure("Something went wrong while fetching cart items") from e

        items = []
        for cart_item, product in rows:
            item = cart_item.as_dict()
            item["productDetails"] = product.as_dict()
            items.append(item)
        return items

    def count_cart_items(self) -> int:
        """Число позиций в корзине. Ноль — корректный результат, а не ошибка."""
        try:
            return self.db.query(func.count(CartItem.id)).scalar() or 0
        except SQLAlchemyError as e:
            logger.error(f"Failed to count cart items: {e}")
            raise InternalFailure("Something went wrong while getting cart count") from e
