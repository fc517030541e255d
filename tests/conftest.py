"""
Pytest configuration and fixtures for tests.

Every test runs against a fresh in-memory SQLite database. The payment
provider is replaced by an httpx.MockTransport and notifications are
recorded instead of mailed.
"""

import os
import tempfile
from decimal import Decimal
from urllib.parse import parse_qs

# Settings are read at import time, so configure them before importing the app
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "storefront-test-logs"))
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("MAIL_HOST", "")
os.environ.setdefault("ADMIN_EMAIL", "admin@example.com")
os.environ.setdefault("BASE_URL", "http://testserver")

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.db import Base, get_db
from storefront.deps import hash_password
from storefront.main import create_app
from storefront.models import CartItem, Product, User
from storefront.services.notifications import NotificationQueue
from storefront.services.payment import PaymentGateway

import storefront.models  # noqa: F401  (register tables)


TEST_PASSWORD = "secret-password"


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def engine():
    """In-memory SQLite engine shared across threads (TestClient runs the app elsewhere)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


# ============================================================================
# Data helpers
# ============================================================================

@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(name: str | None = None, is_admin: bool = False) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            name=name or f"User {n}",
            email=f"user{n}@example.com",
            password_hash=hash_password(TEST_PASSWORD),
            is_admin=is_admin,
        )
        db.add(user)
        db.commit()
        return user

    return _make_user


@pytest.fixture
def make_product(db):
    def _make_product(
        name: str = "Widget",
        price: str = "10.00",
        stock: int = 10,
        description: str = "A product",
    ) -> Product:
        product = Product(
            name=name,
            description=description,
            price=Decimal(price),
            stock_quantity=stock,
        )
        db.add(product)
        db.commit()
        return product

    return _make_product


@pytest.fixture
def put_in_cart(db):
    """Insert a cart row directly, bypassing the cart service checks."""

    def _put_in_cart(user: User, product: Product, quantity: int) -> CartItem:
        item = CartItem(user_id=user.id, product_id=product.id, quantity=quantity)
        db.add(item)
        db.commit()
        return item

    return _put_in_cart


@pytest.fixture
def stock_of(db):
    def _stock_of(product: Product) -> int:
        db.expire_all()
        return db.get(Product, product.id).stock_quantity

    return _stock_of


# ============================================================================
# Notifications
# ============================================================================

@pytest.fixture
def sent_mail():
    return []


@pytest.fixture
def notifications(sent_mail):
    """Queue that is never started; tests inspect `pending` and call drain()."""

    def sender(to, subject, body):
        sent_mail.append({"to": to, "subject": subject, "body": body})
        return True

    return NotificationQueue(sender=sender)


# ============================================================================
# Payment provider
# ============================================================================

class FakePaymentProvider:
    """Minimal stand-in for the hosted checkout-session API."""

    def __init__(self):
        self.sessions: dict[str, dict] = {}
        self.requests: list[httpx.Request] = []
        self.fail_with: int | None = None

    def add_session(
        self,
        session_id: str,
        payment_status: str = "paid",
        amount_total: int | None = None,
        user_id: int | None = None,
    ):
        self.sessions[session_id] = {
            "id": session_id,
            "object": "checkout.session",
            "payment_status": payment_status,
            "amount_total": amount_total,
            "payment_intent": f"pi_{session_id}",
            "metadata": {} if user_id is None else {"user_id": str(user_id)},
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with:
            return httpx.Response(self.fail_with, json={"error": {"message": "boom"}})

        if request.method == "POST" and request.url.path == "/v1/checkout/sessions":
            session_id = f"cs_test_{len(self.sessions) + 1}"
            form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
            self.add_session(session_id, payment_status="unpaid")
            self.sessions[session_id]["metadata"] = {
                k[len("metadata["):-1]: v for k, v in form.items() if k.startswith("metadata[")
            }
            return httpx.Response(
                200,
                json={**self.sessions[session_id], "url": f"https://pay.example/{session_id}"},
            )

        prefix = "/v1/checkout/sessions/"
        if request.method == "GET" and request.url.path.startswith(prefix):
            session = self.sessions.get(request.url.path[len(prefix):])
            if session is None:
                return httpx.Response(404, json={"error": {"message": "No such session"}})
            return httpx.Response(200, json=session)

        return httpx.Response(404)


@pytest.fixture
def payment_provider():
    return FakePaymentProvider()


@pytest.fixture
def gateway(payment_provider):
    return PaymentGateway(
        api_base="https://payments.test",
        secret_key="sk_test_123",
        currency="usd",
        transport=httpx.MockTransport(payment_provider.handler),
    )


# ============================================================================
# Web client
# ============================================================================

@pytest.fixture
def app(session_factory, notifications, gateway):
    app = create_app(notifications=notifications, payment_gateway=gateway)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return app


@pytest.fixture
def client(app):
    # not used as a context manager: the lifespan (worker thread) stays off
    return TestClient(app, follow_redirects=False)


@pytest.fixture
def login(client):
    def _login(user: User) -> TestClient:
        response = client.post(
            "/login", data={"email": user.email, "password": TEST_PASSWORD}
        )
        assert response.status_code == 302
        return client

    return _login
