"""
Shared fixtures for the cart API tests.

The application is exercised against an in-memory SQLite database shared through
a StaticPool, and against a payment gateway whose HTTP transport and WebSocket
connector are replaced with in-process fakes.
"""
import os

# Must be set before app.core.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "development"

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.db.session import get_db
from app.main import app
from app.models.cart import CartItem
from app.models.product import Product
from app.services.payment import PaymentGateway, get_payment_gateway
from tests.fakes import FakeConnector


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_product(db_session):
    """Factory persisting a product with the given stock."""

    def _make(stock: int = 5, title: str = "Keyboard", price: float = 1200.0) -> Product:
        product = Product(title=title, price=price, stock=stock)
        db_session.add(product)
        db_session.commit()
        db_session.refresh(product)
        return product

    return _make


@pytest.fixture
def reload_product(db_session):
    """Reads the current state of a product, bypassing the session identity map."""

    def _reload(product_id: int) -> Product:
        db_session.expire_all()
        return db_session.get(Product, product_id)

    return _reload


@pytest.fixture
def cart_rows(db_session):
    def _rows() -> list[CartItem]:
        db_session.expire_all()
        return db_session.query(CartItem).order_by(CartItem.id).all()

    return _rows


@pytest.fixture
def payment_api():
    """Records requests to the merchant API and answers with a canned response."""

    class PaymentApi:
        def __init__(self):
            self.requests = []
            self.status_code = 200
            self.body = {
                "qrMessage": "000201010212QR",
                "merchantWebSocketUrl": "wss://ws.example.test/merchant/1",
            }
            self.error = None

        def handler(self, request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            if self.error is not None:
                raise self.error
            return httpx.Response(self.status_code, json=self.body)

    return PaymentApi()


@pytest.fixture
def ws_connector():
    return FakeConnector(frames=[b'{"paymentSuccess": true, "prn": 1700000000000}'])


@pytest.fixture
def gateway(payment_api, ws_connector):
    return PaymentGateway(
        secret="s",
        merchant_code="M1",
        username="merchant-user",
        password="merchant-pass",
        api_url="https://merchant.example.test/qr",
        listen_timeout=1.0,
        transport=httpx.MockTransport(payment_api.handler),
        connect=ws_connector,
    )


@pytest.fixture
def test_client(session_factory, gateway):
    """TestClient with the database and the payment gateway overridden."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
