"""
Shared pytest fixtures.

Every test gets a fresh SQLite database file; the schema is dropped and
recreated around each test so no state leaks between them.
"""

import os
import tempfile
from decimal import Decimal

# Must be set before the storefront package reads its configuration
_DB_DIR = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["EVENTS_ENABLED"] = "false"
os.environ["ADMIN_USERNAME"] = "admin"
os.environ["ADMIN_PASSWORD"] = "admin-password"

import pytest
from fastapi.testclient import TestClient

from storefront.database import SessionLocal, engine
from storefront.main import app
from storefront.models import Base, Product, User


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture(autouse=True)
def _reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    """Session for arranging and inspecting data directly."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


# ============================================================================
# DATA FACTORIES
# ============================================================================


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(username: str = None, role: str = "user") -> User:
        counter["n"] += 1
        username = username or f"customer{counter['n']}"
        user = User(
            username=username,
            email=f"{username}@example.com",
            hashed_password="not-a-real-hash",
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_product(db):
    def _make_product(name: str = "Widget", price: str = "10.00", stock: int = 5) -> Product:
        product = Product(name=name, price=Decimal(price), stock=stock)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make_product


@pytest.fixture
def customer(make_user) -> User:
    return make_user("alice")


# ============================================================================
# HTTP FIXTURES
# ============================================================================


@pytest.fixture
def client():
    # entering the context runs the startup hook, which creates the admin
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def admin_headers(client) -> dict:
    response = client.post(
        "/users/login",
        data={"username": "admin", "password": "admin-password"},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def customer_headers(client) -> dict:
    response = client.post(
        "/users/register",
        data={"username": "bob", "email": "bob@example.com", "password": "bob-password"},
    )
    assert response.status_code == 201
    response = client.post(
        "/users/login",
        data={"username": "bob", "password": "bob-password"},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
