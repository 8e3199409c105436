# app/core/errors.py
# Иерархия ошибок API и обработчики исключений FastAPI.
# NotFound/InvalidState — ошибки клиента (4xx, сообщение уходит как есть).
# InternalFailure/ExternalFailure — 5xx, клиенту отдаётся общее сообщение, детали в логах.
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.core.config import settings

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Базовая ошибка API со статусом и сообщением для клиента."""

    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: str | None = None, errors: list | None = None, status_code: int | None = None):
        self.message = message or self.default_message
        self.errors = errors or []
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class InvalidState(ApiError):
    status_code = 400
    default_message = "Invalid state"


class InternalFailure(ApiError):
    """Запись в БД не удалась или сервис не сконфигурирован."""

    status_code = 500
    default_message = "Something went wrong"


class ExternalFailure(ApiError):
    """Ошибка платёжного API или WebSocket."""

    status_code = 500
    default_message = "Payment provider error"


class PaymentTimeout(ExternalFailure):
    status_code = 504
    default_message = "Timed out waiting for payment confirmation"


def error_body(status_code: int, message: str, errors: list | None = None) -> dict:
    return {
        "statusCode": status_code,
        "data": None,
        "message": message,
        "success": False,
        "errors": errors or [],
    }


async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, exc.message, exc.errors),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    """Глобальный обработчик ошибок."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    message = str(exc) if settings.ENVIRONMENT == "development" else "Internal server error"
    return JSONResponse(status_code=500, content=error_body(500, message))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
