# app/api/cart.py
# Роуты корзины и оплаты через QR.
import asyncio
import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from app.core.responses import api_response
from app.db.session import get_db
from app.schemas.cart import PaymentInitiateRequest, PaymentListenRequest
from app.services.cart_service import CartService
from app.services.payment import PaymentGateway, get_payment_gateway

logger = logging.getLogger(__name__)

router = APIRouter()

# Как часто проверять, не отключился ли клиент, пока ждём оплату
DISCONNECT_POLL_INTERVAL = 0.5


def get_cart_service(db: Session = Depends(get_db)) -> CartService:
    return CartService(db)


# Роуты оплаты объявлены до /{product_id}, чтобы пути не пересекались
@router.post("/payment/initiate")
async def initiate_payment(body: PaymentInitiateRequest,
                           gateway: PaymentGateway = Depends(get_payment_gateway)):
    """Запрашивает QR и адрес WebSocket для подтверждения оплаты."""
    return await gateway.initiate_payment(body.amount, body.remarks1, body.remarks2)


async def _wait_for_disconnect(request: Request) -> None:
    while not await request.is_disconnected():
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)


@router.post("/payment/listen")
async def listen_for_payment(body: PaymentListenRequest, request: Request,
                             gateway: PaymentGateway = Depends(get_payment_gateway)):
    """
    Ждёт первое JSON-сообщение из WebSocket платёжного API и отдаёт его клиенту.
    Сокет закрывается, когда пришёл ответ, истёк таймаут или клиент отключился.
    """
    listener = asyncio.create_task(gateway.listen_for_payment(body.wsUrl))
    watcher = asyncio.create_task(_wait_for_disconnect(request))
    try:
        done, _ = await asyncio.wait({listener, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        pending = [task for task in (listener, watcher) if not task.done()]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    if listener in done:
        return JSONResponse(content=listener.result())

    logger.info(f"Client disconnected, stopped listening on {body.wsUrl}")
    # 499: клиент закрыл запрос, ответ никто не прочитает
    return Response(status_code=499)


@router.get("")
def get_all_cart_items(cart: CartService = Depends(get_cart_service)):
    items = cart.list_cart_items()
    return api_response(status.HTTP_200_OK, items, "Products fetched from Cart successfully")


@router.get("/count")
def get_cart_count(cart: CartService = Depends(get_cart_service)):
    count = cart.count_cart_items()
    return api_response(status.HTTP_200_OK, count, "Products count fetched from Cart Successfully")


@router.post("/{product_id}")
def add_to_cart(product_id: int, cart: CartService = Depends(get_cart_service)):
    created, cart_item, product = cart.add_to_cart(product_id)
    if created:
        return api_response(
            status.HTTP_201_CREATED,
            {"addedToCart": cart_item.as_dict(), "updatedProduct": product.as_dict()},
            "Product added to Cart successfully",
        )
    return api_response(status.HTTP_200_OK, cart_item.as_dict(), "Product count updated in Cart successfully")


@router.delete("/{cart_item_id}")
def delete_from_cart(cart_item_id: int, cart: CartService = Depends(get_cart_service)):
    deleted = cart.delete_from_cart(cart_item_id)
    return api_response(status.HTTP_200_OK, deleted, "Product deleted from Cart Successfully")
