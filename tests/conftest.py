import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("STRIPE_SECRET_KEY", None)

import pytest
from fastapi.testclient import TestClient

import main
from database import Base, SessionLocal, engine


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(monkeypatch):
    # the bearer token doubles as the identity-provider subject
    def verify_token(token):
        if token == "invalid":
            return None
        return {"user_id": token, "email": f"{token}@example.com", "first_name": token.title()}

    monkeypatch.setattr(main.auth_service, "verify_token", verify_token)
    return TestClient(main.app)


def bearer(user_id):
    return {"Authorization": f"Bearer {user_id}"}


def product_payload(**overrides):
    payload = {
        "title": "Vintage denim jacket",
        "description": "Barely worn, size M",
        "price": 10,
        "originalPrice": 60,
        "category": "clothing",
        "condition": "very-good",
        "conditionRating": 8,
        "images": ["https://img.example.com/jacket.jpg"],
        "carbonSaved": 3.5,
        "ecoScore": "A",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def create_product(client):
    def _create(seller="seller", **overrides):
        response = client.post("/api/products", json=product_payload(**overrides), headers=bearer(seller))
        assert response.status_code == 201, response.text
        return response.json()
    return _create


@pytest.fixture
def add_to_cart(client):
    def _add(user, product_id, quantity=1):
        response = client.post(
            "/api/cart",
            json={"productId": product_id, "quantity": quantity},
            headers=bearer(user),
        )
        assert response.status_code == 201, response.text
        return response.json()
    return _add
