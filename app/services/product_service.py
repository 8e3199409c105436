# app/services/product_service.py
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import InternalFailure, NotFound
from app.models.product import Product

logger = logging.getLogger(__name__)


class ProductService:
    """Минимальный каталог товаров, на которые ссылается корзина."""

    def __init__(self, db: Session):
        self.db = db

    def list_products(self) -> list[Product]:
        return self.db.query(Product).order_by(Product.id).all()

    def get_product(self, product_id: int) -> Product:
        product = self.db.get(Product, product_id)
        if product is None:
            raise NotFound("Product not found")
        return product

    def create_product(self, title: str, price: float, stock: int = 0,
                       description: str | None = None, image_path: str | None = None) -> Product:
        product = Product(
            title=title,
            description=description,
            price=price,
            stock=stock,
            image_path=image_path,
        )
        self.db.add(product)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create product: {e}")
            raise InternalFailure("Something went wrong while creating the product") from e
        self.db.refresh(product)
        return product
