# app/services/payment.py
# Мост к платёжному API мерчанта: подписанный HMAC-SHA512 запрос динамического QR
# и ожидание подтверждения оплаты через WebSocket, адрес которого выдаёт тот же API.
import asyncio
import hashlib
import hmac
import json
import logging
import time
from functools import lru_cache
from typing import Any, Callable, Optional

import httpx
import websockets
from websockets.exceptions import WebSocketException

from app.core.config import DEFAULT_PAYMENT_API_URL, Settings, settings
from app.core.errors import ExternalFailure, InternalFailure, PaymentTimeout

logger = logging.getLogger(__name__)

DEFAULT_REMARKS1 = "test 1"
DEFAULT_REMARKS2 = "test 2"


def normalize_amount(amount):
    """100.0 -> 100, чтобы сумма в подписи и в теле запроса совпадала с тем, что ввёл клиент."""
    if isinstance(amount, float) and amount.is_integer():
        return int(amount)
    return amount


def build_signature_message(amount, merchant_code: str, prn, remarks1: str, remarks2: str) -> str:
    """Каноническая строка для подписи. Завершающая запятая обязательна."""
    return f"{normalize_amount(amount)},{merchant_code},{prn},{remarks1},{remarks2},"


def generate_hmac_sha512(message: str, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha512).hexdigest()


def generate_prn() -> int:
    """PRN — текущее время в миллисекундах, одноразовый идентификатор платежа."""
    return int(time.time() * 1000)


def _reject_constant(name: str):
    raise ValueError(f"Invalid JSON constant: {name}")


def decode_message(raw) -> Any:
    """
    Декодирует кадр WebSocket (UTF-8) и разбирает JSON.

    Raises:
        ValueError: кадр не UTF-8, не JSON или содержит NaN/Infinity
    """
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    return json.loads(raw, parse_constant=_reject_constant)


class PaymentGateway:
    """Клиент платёжного API. Учётные данные передаются при создании, а не читаются из окружения."""

    def __init__(
        self,
        secret: str,
        merchant_code: str,
        username: str,
        password: str,
        api_url: str = DEFAULT_PAYMENT_API_URL,
        request_timeout: float = 30.0,
        listen_timeout: float = 300.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        connect: Optional[Callable] = None,
    ):
        self.secret = secret
        self.merchant_code = merchant_code
        self.username = username
        self.password = password
        self.api_url = api_url
        self.request_timeout = request_timeout
        self.listen_timeout = listen_timeout
        self._transport = transport
        self._connect = connect or websockets.connect

    @classmethod
    def from_settings(cls, config: Settings) -> "PaymentGateway":
        return cls(
            secret=config.MERCHANT_SECRET,
            merchant_code=config.MERCHANT_CODE,
            username=config.MERCHANT_USERNAME,
            password=config.MERCHANT_PASSWORD,
            api_url=config.PAYMENT_API_URL,
            request_timeout=config.PAYMENT_REQUEST_TIMEOUT,
            listen_timeout=config.PAYMENT_LISTEN_TIMEOUT,
        )

    @property
    def configured(self) -> bool:
        return all((self.secret, self.merchant_code, self.username, self.password))

    def sign(self, amount, prn, remarks1: str, remarks2: str) -> str:
        message = build_signature_message(amount, self.merchant_code, prn, remarks1, remarks2)
        return generate_hmac_sha512(message, self.secret)

    async def initiate_payment(self, amount, remarks1: Optional[str] = None,
                               remarks2: Optional[str] = None, prn: Optional[int] = None) -> dict:
        """
        Запрашивает у API динамический QR для суммы amount.

        Returns:
            {"qrMessage": ..., "wsUrl": ..., "prn": ...}

        Raises:
            InternalFailure: не заданы учётные данные мерчанта
            ExternalFailure: любая сетевая ошибка или ошибка API (без повторов)
        """
        if not self.configured:
            raise InternalFailure("Payment gateway is not configured")

        amount = normalize_amount(amount)
        remarks1 = remarks1 or DEFAULT_REMARKS1
        remarks2 = remarks2 or DEFAULT_REMARKS2
        if prn is None:
            prn = generate_prn()

        payload = {
            "amount": amount,
            "remarks1": remarks1,
            "remarks2": remarks2,
            "prn": prn,
            "merchantCode": self.merchant_code,
            "dataValidation": self.sign(amount, prn, remarks1, remarks2),
            "username": self.username,
            "password": self.password,
        }

        try:
            async with httpx.AsyncClient(timeout=self.request_timeout, transport=self._transport) as client:
                response = await client.post(self.api_url, json=payload)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Payment API returned {e.response.status_code}: {e.response.text}")
            raise ExternalFailure("Error initiating payment.") from e
        except httpx.HTTPError as e:
            logger.error(f"Payment API request failed: {e!r}")
            raise ExternalFailure("Error initiating payment.") from e
        except ValueError as e:
            logger.error(f"Payment API returned a non-JSON body: {e}")
            raise ExternalFailure("Error initiating payment.") from e

        if not isinstance(body, dict) or not body.get("qrMessage") or not body.get("merchantWebSocketUrl"):
            logger.error(f"Payment API response has no QR or WebSocket URL: {body}")
            raise ExternalFailure("Error initiating payment.")

        logger.info(f"Payment initiated, prn={prn}")
        return {
            "qrMessage": body["qrMessage"],
            "wsUrl": body["merchantWebSocketUrl"],
            "prn": prn,
        }

    async def listen_for_payment(self, ws_url: str) -> Any:
        """
        Ждёт первый кадр, который разбирается как JSON, и возвращает его.
        Кадры, которые не разбираются, пишутся в лог и пропускаются.

        Raises:
            PaymentTimeout: за listen_timeout секунд JSON не пришёл
            ExternalFailure: ошибка соединения или сокет закрылся раньше
        """
        try:
            return await asyncio.wait_for(self._receive_first_json(ws_url), timeout=self.listen_timeout)
        except asyncio.TimeoutError as e:
            logger.warning(f"No payment message from {ws_url} within {self.listen_timeout}s")
            raise PaymentTimeout() from e

    async def _receive_first_json(self, ws_url: str) -> Any:
        try:
            async with self._connect(ws_url) as ws:
                logger.info("WebSocket connection opened")
                async for raw in ws:
                    try:
                        data = decode_message(raw)
                    except ValueError as e:
                        logger.error(f"Failed to parse WebSocket message as JSON: {e}")
                        continue
                    logger.info(f"Decoded WebSocket message: {data}")
                    return data
        except (OSError, WebSocketException) as e:
            logger.error(f"WebSocket error: {e!r}")
            raise ExternalFailure("Payment confirmation channel failed") from e

        logger.info("WebSocket connection closed")
        raise ExternalFailure("WebSocket closed before a payment message was received")


@lru_cache
def get_payment_gateway() -> PaymentGateway:
    """Зависимость FastAPI: шлюз, собранный из глобальных settings."""
    return PaymentGateway.from_settings(settings)
