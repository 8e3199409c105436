# app/schemas/product.py
from typing import Optional

from pydantic import BaseModel, Field


class ProductCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    price: float = Field(ge=0)
    stock: int = Field(default=0, ge=0)
    image_path: Optional[str] = None
