# app/models/product.py
# Модель Product — товар каталога со счётчиком свободного остатка (stock).
from sqlalchemy import Column, Integer, String, Float, DateTime, Text
from datetime import datetime
from app.db.base import Base

class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False, default=0.0)
    # Количество незарезервированных единиц; меняется только вместе с корзиной
    stock = Column(Integer, nullable=False, default=0)
    image_path = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def as_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "price": self.price,
            "stock": self.stock,
            "imagePath": self.image_path,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
