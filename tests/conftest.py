# tests/conftest.py
import os

# Settings are read at import time; give the app a throwaway database.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

import uuid

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from storefront.core.config import get_settings
from storefront.database import get_session
from storefront.main import app
from storefront.models.product import Product
from storefront.models.user import User
from storefront.repositories.cart_repo import CartRepository
from storefront.repositories.product_repo import ProductRepository
from storefront.services.cart_service import CartService


def make_token(sub: str, email: str, **claims) -> str:
    settings = get_settings()
    return jwt.encode(
        {"sub": sub, "email": email, **claims},
        settings.JWT_SECRET,
        algorithm=settings.JWT_ALG,
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    def _get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def server_error_client(client):
    """Client that returns 500 responses instead of re-raising app errors."""
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def service():
    return CartService(CartRepository(), ProductRepository())


@pytest.fixture
def make_product(session):
    def _make(price: float = 100.0, title: str = "Sourdough loaf", **fields) -> Product:
        product = Product(title=title, price=price, **fields)
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    return _make


@pytest.fixture
def user(session):
    user = User(id=uuid.uuid4(), email="jane@example.com", full_name="Jane Doe")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def auth_headers(user):
    token = make_token(str(user.id), user.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def token_factory():
    return make_token
