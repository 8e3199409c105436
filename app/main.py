# app/main.py
# Точка входа FastAPI. Создание таблиц выполняется в lifespan с обработкой ошибок.

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.db.session import engine
from app.db.base import Base
from app.core.config import settings
from app.core.errors import register_exception_handlers
from app.api import cart as cart_router
from app.api import products as products_router

# Импорт моделей, чтобы SQLAlchemy видел их определения
import app.models.product
import app.models.cart

# Настройка логирования
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


def ensure_cart_schema(retries: int = 5, delay: int = 2) -> bool:
    """
    Создаёт таблицы products и cart_items, если их ещё нет.
    БД в контейнере может подняться позже API, поэтому пробуем несколько раз.

    Returns:
        True, если схема готова; False, если БД так и не ответила
    """
    tables = ", ".join(sorted(Base.metadata.tables))
    for attempt in range(1, retries + 1):
        try:
            Base.metadata.create_all(bind=engine)
            logger.info(f"🛒 Cart schema ready ({tables}) on attempt {attempt}")
            return True
        except Exception as e:
            logger.warning(f"Cart schema not ready, attempt {attempt}/{retries}: {e}")
            if attempt < retries:
                time.sleep(delay)
    logger.error(f"❌ Cart database unreachable after {retries} attempts")
    return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Управление жизненным циклом приложения."""
    # Startup
    logger.info("🚀 Cart API starting up...")
    if not ensure_cart_schema(retries=5, delay=2):
        if settings.ENVIRONMENT in ("production", "prod"):
            raise RuntimeError("Cart API cannot start without the products/cart_items schema")
        logger.error("⚠️ Cart schema missing, cart and product endpoints will fail until the database is reachable")

    yield

    # Shutdown
    logger.info("🛑 Cart API shutting down...")
    engine.dispose()
    logger.info("✅ Cart database pool disposed")


app = FastAPI(
    title="Cart API",
    description="Корзина товаров и оплата через динамический QR",
    version="1.0.0",
    lifespan=lifespan
)

# CORS: в development открыто всем, иначе только CORS_ORIGINS
if settings.ENVIRONMENT == "development":
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

register_exception_handlers(app)

app.include_router(cart_router.router, prefix="/api/cart", tags=["cart"])
app.include_router(products_router.router, prefix="/api/products", tags=["products"])


@app.get("/", tags=["health"])
async def root():
    """Базовый health check."""
    return {
        "status": "ok",
        "service": "Cart API",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health", tags=["health"])
async def health():
    return {
        "status": "healthy",
        "version": "1.0.0"
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level=settings.LOG_LEVEL.lower()
    )
