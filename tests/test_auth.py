"""
Tests for registration, login and token verification.
"""

from tests.conftest import auth, register


# =============================================================================
# REGISTER / LOGIN
# =============================================================================

class TestRegister:

    def test_client_gets_token_and_profile(self, client):
        data = register(client, "CLIENT", additional_data={"city": "Lyon"})
        assert data["token"]
        assert data["user"]["role"] == "CLIENT"
        assert data["user"]["client"]["city"] == "Lyon"
        assert "password" not in data["user"]

    def test_email_is_lowercased(self, client):
        data = register(client, "CLIENT", email="Mixed.Case@Example.com")
        assert data["user"]["email"] == "mixed.case@example.com"

    def test_duplicate_email(self, client):
        register(client, "CLIENT", email="twice@example.com")
        response = client.post(
            "/api/auth/register",
            json={
                "email": "TWICE@example.com",
                "password": "secret123",
                "first_name": "A",
                "last_name": "B",
            },
        )
        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Email already exists"}

    def test_admin_cannot_self_register(self, client):
        response = client.post(
            "/api/auth/register",
            json={
                "email": "root@example.com",
                "password": "secret123",
                "first_name": "A",
                "last_name": "B",
                "role": "ADMIN",
            },
        )
        assert response.status_code == 403

    def test_invalid_role_is_a_validation_error(self, client):
        response = client.post(
            "/api/auth/register",
            json={
                "email": "bad-role@example.com",
                "password": "secret123",
                "first_name": "A",
                "last_name": "B",
                "role": "CHEF",
            },
        )
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_restaurateur_starts_unapproved_with_seed_restaurant(self, client):
        data = register(client, "RESTAURATEUR", additional_data={"restaurant": {"city": "Dakar"}})
        assert data["user"]["restaurateur"]["is_approved"] is False

        profile = client.get(
            f"/api/users/restaurateur/{data['user']['id']}",
            headers=auth(data["token"]),
        ).json()
        assert len(profile["restaurants"]) == 1
        assert profile["restaurants"][0]["name"] == "Restaurant sans nom"
        assert profile["restaurants"][0]["city"] == "Dakar"


class TestLogin:

    def test_round_trip(self, client):
        created = register(client, "LIVREUR", email="rider@example.com")
        response = client.post(
            "/api/auth/login",
            json={"email": "rider@example.com", "password": "secret123"},
        )
        assert response.status_code == 200
        assert response.json()["user"]["id"] == created["user"]["id"]

    def test_wrong_password(self, client):
        register(client, "CLIENT", email="locked@example.com")
        response = client.post(
            "/api/auth/login",
            json={"email": "locked@example.com", "password": "nope"},
        )
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid credentials"

    def test_unknown_email(self, client):
        response = client.post(
            "/api/auth/login",
            json={"email": "ghost@example.com", "password": "secret123"},
        )
        assert response.status_code == 401


# =============================================================================
# VERIFY
# =============================================================================

def test_verify_returns_current_user(client):
    data = register(client, "CLIENT")
    response = client.get("/api/auth/verify", headers=auth(data["token"]))
    assert response.status_code == 200
    assert response.json()["user"]["email"] == data["user"]["email"]


def test_missing_token(client):
    response = client.get("/api/auth/verify")
    assert response.status_code == 401
    assert response.json()["success"] is False


def test_garbage_token(client):
    response = client.get("/api/auth/verify", headers=auth("not-a-jwt"))
    assert response.status_code == 401


def test_update_own_user(client):
    data = register(client, "CLIENT")
    response = client.put(
        f"/api/users/{data['user']['id']}",
        json={"first_name": "Fatou"},
        headers=auth(data["token"]),
    )
    assert response.status_code == 200
    assert response.json()["first_name"] == "Fatou"


def test_update_other_user_forbidden(client):
    me = register(client, "CLIENT")
    other = register(client, "CLIENT")
    response = client.put(
        f"/api/users/{other['user']['id']}",
        json={"first_name": "Nope"},
        headers=auth(me["token"]),
    )
    assert response.status_code == 403
