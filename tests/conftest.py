"""
Shared fixtures: an in-process MongoDB (mongomock) and a TestClient wired to it.
"""
import mongomock
import pytest
from fastapi.testclient import TestClient

from catalog import create_product
from database import ensure_indexes, get_db
from main import app
from schemas import CheckoutRequest, CustomerContact, Product
from settings import get_settings


@pytest.fixture
def db():
    database = mongomock.MongoClient().storefront_test
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def pho(db):
    return create_product(db, Product(name="Pho", price=65000, category="Noodles", stock=50, min_stock=5))


@pytest.fixture
def banh_mi(db):
    return create_product(db, Product(name="Banh Mi", price=30000, category="Bread", stock=20, min_stock=5))


@pytest.fixture
def checkout_request():
    return CheckoutRequest(
        customer=CustomerContact(name="Nguyen Van An", phone="0901234567", email="an@example.com"),
        payment_method="cod",
        delivery_method="standard",
    )


@pytest.fixture
def cheap_shipping(monkeypatch):
    monkeypatch.setenv("FLAT_SHIPPING_FEE", "15000")
    monkeypatch.setenv("FREE_SHIPPING_THRESHOLD", "100000")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
