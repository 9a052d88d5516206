"""Shared pytest fixtures: an in-memory Mongo database and an API client bound to it."""
import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from auth import create_token, hash_password
from database import create_document, ensure_indexes, get_db
from main import app
from schemas import Product, User


@pytest.fixture
def db():
    database = mongomock.MongoClient()["watchstore_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def _spec():
    return {
        "case_material": "Stainless Steel",
        "case_size": "40mm",
        "dial_color": "Black",
        "movement": "Automatic",
        "water_resistance": "100m",
        "strap_material": "Leather",
        "strap_color": "Brown",
        "crystal": "Sapphire Crystal",
    }


@pytest.fixture
def make_product(db):
    """Insert a product and return its id."""
    def _make(**overrides):
        data = {
            "name": "Test Watch",
            "brand": "Acme",
            "price": 100.0,
            "description": "A dependable test watch.",
            "images": ["https://img.example.com/watch.jpg"],
            "category": "classic",
            "specifications": _spec(),
            "stock": 10,
        }
        data.update(overrides)
        return create_document(db, "product", Product(**data))
    return _make


@pytest.fixture
def make_user(db):
    """Insert an account and return (user document, auth headers)."""
    def _make(email="shopper@example.com", role="user", is_active=True, password="secret123"):
        user = User(
            email=email,
            password_hash=hash_password(password),
            first_name="Test",
            last_name="User",
            role=role,
            is_active=is_active,
        )
        user_id = create_document(db, "user", user)
        doc = db["user"].find_one({"_id": ObjectId(user_id)})
        return doc, {"Authorization": f"Bearer {create_token(doc)}"}
    return _make


@pytest.fixture
def shopper(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@example.com", role="admin")


@pytest.fixture
def shipping_address():
    return {
        "first_name": "John",
        "last_name": "Doe",
        "address": "123 Main St",
        "city": "New York",
        "state": "NY",
        "zip_code": "10001",
        "country": "USA",
        "phone": "+1234567890",
    }
