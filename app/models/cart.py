# app/models/cart.py
# Модель CartItem — позиция корзины, резервирующая count единиц товара.
from sqlalchemy import Column, Integer, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from datetime import datetime
from app.db.base import Base

class CartItem(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    count = Column(Integer, nullable=False, default=1)
    added_at = Column(DateTime, default=datetime.utcnow)

    product = relationship("Product")

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "count": self.count,
            "addedAt": self.added_at.isoformat() if self.added_at else None,
        }
