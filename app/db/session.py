# app/db/session.py
# Engine и фабрика сессий для хранилища корзины.
# По умолчанию Postgres; тесты и локальный запуск работают на SQLite.

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from app.core.config import settings

DATABASE_URL = settings.DATABASE_URL
IS_SQLITE = DATABASE_URL.startswith("sqlite")

# Синхронные эндпоинты корзины выполняются в пуле потоков, а SQLite по умолчанию
# запрещает использовать соединение из другого потока
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if IS_SQLITE else {},
    pool_pre_ping=not IS_SQLITE,
)

# Одна сессия на запрос; CartService сам решает, когда коммитить
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Зависимость FastAPI: сессия живёт ровно один запрос."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
