"""
Shared fixtures.

The environment is pinned before the application is imported: a throwaway
SQLite database, mock providers that never fail or sleep, and Celery in
eager mode.
"""

import os
import tempfile
import uuid

_WORKDIR = tempfile.mkdtemp(prefix="marketplace-tests-")

os.environ.update({
    "ENV_MODE": "development",
    "DATABASE_URL": f"sqlite+aiosqlite:///{os.path.join(_WORKDIR, 'test.db')}",
    "JWT_SECRET": "test-secret-do-not-use",
    "ADMIN_EMAIL": "admin@example.com",
    "ADMIN_PASSWORD": "admin-password",
    "MOCK_FAILURE_RATE": "0",
    "MOCK_MIN_LATENCY": "0",
    "MOCK_MAX_LATENCY": "0",
    "CELERY_TASK_ALWAYS_EAGER": "true",
    "REPORTS_DIRECTORY": os.path.join(_WORKDIR, "reports"),
    "REDIS_URL": "redis://localhost:6399/0",
})

import pytest
from fastapi.testclient import TestClient

from marketplace.main import app


@pytest.fixture(scope="session")
def client():
    with TestClient(app) as c:
        yield c


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def register(client: TestClient, role: str = "CLIENT", **fields) -> dict:
    """Register a fresh account and return the {token, user} payload."""
    payload = {
        "email": f"{role.lower()}-{uuid.uuid4().hex[:10]}@example.com",
        "password": "secret123",
        "first_name": fields.pop("first_name", "Awa"),
        "last_name": fields.pop("last_name", "Diallo"),
        "phone": fields.pop("phone", "+33612345678"),
        "role": role,
        **fields,
    }
    response = client.post("/api/auth/register", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture(scope="session")
def admin_token(client) -> str:
    response = client.post(
        "/api/auth/login",
        json={"email": "admin@example.com", "password": "admin-password"},
    )
    assert response.status_code == 200, response.text
    return response.json()["token"]


@pytest.fixture
def restaurant(client, admin_token) -> dict:
    """Approved restaurateur with one restaurant and two dishes."""
    owner = register(
        client,
        "RESTAURATEUR",
        additional_data={
            "restaurant": {
                "name": "Chez Mama Africa",
                "address": "12 rue Myrha",
                "city": "Paris",
                "postal_code": "75018",
                "phone": "+33100000000",
                "cuisine_type": "Sénégalaise",
            }
        },
    )
    user_id = owner["user"]["id"]
    approved = client.put(f"/api/users/restaurateur/{user_id}/approve", headers=auth(admin_token))
    assert approved.status_code == 200, approved.text

    profile = client.get(f"/api/users/restaurateur/{user_id}", headers=auth(owner["token"])).json()
    restaurant_id = profile["restaurants"][0]["id"]

    dishes = []
    for name, price in (("Thiéboudienne", 12.5), ("Bissap", 4.0)):
        response = client.post(
            "/api/menu/",
            json={"restaurant_id": restaurant_id, "name": name, "price": price},
            headers=auth(owner["token"]),
        )
        assert response.status_code == 201, response.text
        dishes.append(response.json())

    return {"owner": owner, "restaurant_id": restaurant_id, "dishes": dishes}


@pytest.fixture
def courier(client, admin_token) -> dict:
    """Approved courier."""
    account = register(client, "LIVREUR", additional_data={"vehicle_type": "bike"})
    response = client.put(
        f"/api/users/livreur/{account['user']['id']}/approve",
        headers=auth(admin_token),
    )
    assert response.status_code == 200, response.text
    return account


@pytest.fixture
def placed_order(client, restaurant) -> dict:
    """A client order: 2 x 12.50 + 1 x 4.00."""
    buyer = register(client, "CLIENT", additional_data={"address": "3 rue Polonceau", "city": "Paris"})
    thieb, bissap = restaurant["dishes"]
    response = client.post(
        "/api/orders/",
        json={
            "restaurant_id": restaurant["restaurant_id"],
            "items": [
                {"menu_item_id": thieb["id"], "quantity": 2},
                {"menu_item_id": bissap["id"], "quantity": 1},
            ],
            "delivery_address": "3 rue Polonceau",
            "delivery_city": "Paris",
            "delivery_postal_code": "75018",
        },
        headers=auth(buyer["token"]),
    )
    assert response.status_code == 201, response.text
    return {"client": buyer, "order": response.json(), **restaurant}
