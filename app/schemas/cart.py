# app/schemas/cart.py
# Pydantic-схемы тел запросов корзины и оплаты.
from typing import Optional

from pydantic import BaseModel, Field


class PaymentInitiateRequest(BaseModel):
    amount: float = Field(gt=0)
    # Пустые значения заменяются на "test 1"/"test 2" в сервисе оплаты
    remarks1: Optional[str] = None
    remarks2: Optional[str] = None


class PaymentListenRequest(BaseModel):
    wsUrl: str = Field(min_length=1)
