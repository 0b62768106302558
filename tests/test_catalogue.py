"""
Tests for restaurants, menu items and categories.
"""

import uuid

from tests.conftest import auth, register


# =============================================================================
# RESTAURANTS
# =============================================================================

class TestRestaurants:

    def test_public_list_is_an_array(self, client):
        response = client.get("/api/restaurants/")
        assert response.status_code == 200
        assert isinstance(response.json(), list)

    def test_filters(self, client, restaurant):
        by_city = client.get("/api/restaurants/", params={"city": "Paris"}).json()
        assert restaurant["restaurant_id"] in [r["id"] for r in by_city]

        by_cuisine = client.get("/api/restaurants/", params={"cuisine_type": "sénégalaise"}).json()
        assert restaurant["restaurant_id"] in [r["id"] for r in by_cuisine]

        elsewhere = client.get("/api/restaurants/", params={"city": "Nowhere"}).json()
        assert elsewhere == []

    def test_detail_includes_menu(self, client, restaurant):
        detail = client.get(f"/api/restaurants/{restaurant['restaurant_id']}").json()
        assert sorted(i["name"] for i in detail["menu_items"]) == ["Bissap", "Thiéboudienne"]

    def test_unknown_restaurant(self, client):
        response = client.get("/api/restaurants/missing")
        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_owner_creates_and_updates(self, client, restaurant):
        token = restaurant["owner"]["token"]
        created = client.post(
            "/api/restaurants/",
            json={
                "name": "Le Maquis",
                "address": "4 rue Dejean",
                "city": "Paris",
                "postal_code": "75018",
                "phone": "+33100000001",
                "cuisine_type": "Ivoirienne",
            },
            headers=auth(token),
        )
        assert created.status_code == 201

        updated = client.put(
            f"/api/restaurants/{created.json()['id']}",
            json={"description": "Alloco et garba"},
            headers=auth(token),
        )
        assert updated.status_code == 200
        assert updated.json()["description"] == "Alloco et garba"

    def test_client_cannot_create(self, client):
        buyer = register(client, "CLIENT")
        response = client.post(
            "/api/restaurants/",
            json={
                "name": "Nope",
                "address": "x",
                "city": "x",
                "postal_code": "x",
                "phone": "x",
                "cuisine_type": "x",
            },
            headers=auth(buyer["token"]),
        )
        assert response.status_code == 403

    def test_other_owner_cannot_update(self, client, restaurant):
        intruder = register(client, "RESTAURATEUR")
        response = client.put(
            f"/api/restaurants/{restaurant['restaurant_id']}",
            json={"name": "Hijacked"},
            headers=auth(intruder["token"]),
        )
        assert response.status_code == 403

    def test_delete_with_orders_deactivates(self, client, placed_order):
        restaurant_id = placed_order["restaurant_id"]
        response = client.delete(
            f"/api/restaurants/{restaurant_id}",
            headers=auth(placed_order["owner"]["token"]),
        )
        assert response.status_code == 204

        detail = client.get(f"/api/restaurants/{restaurant_id}")
        assert detail.status_code == 200
        assert detail.json()["is_active"] is False


# =============================================================================
# MENU
# =============================================================================

class TestMenu:

    def test_list_by_restaurant(self, client, restaurant):
        items = client.get(f"/api/menu/restaurant/{restaurant['restaurant_id']}").json()
        assert len(items) == 2

    def test_price_must_be_positive(self, client, restaurant):
        response = client.post(
            "/api/menu/",
            json={"restaurant_id": restaurant["restaurant_id"], "name": "Free", "price": 0},
            headers=auth(restaurant["owner"]["token"]),
        )
        assert response.status_code == 400

    def test_update_price(self, client, restaurant):
        item_id = restaurant["dishes"][1]["id"]
        response = client.put(
            f"/api/menu/{item_id}",
            json={"price": 4.5},
            headers=auth(restaurant["owner"]["token"]),
        )
        assert response.status_code == 200
        assert response.json()["price"] == 4.5

    def test_delete_unordered_item(self, client, restaurant):
        item_id = restaurant["dishes"][1]["id"]
        response = client.delete(f"/api/menu/{item_id}", headers=auth(restaurant["owner"]["token"]))
        assert response.status_code == 204
        assert client.get(f"/api/menu/{item_id}").status_code == 404

    def test_delete_ordered_item_marks_unavailable(self, client, placed_order):
        item_id = placed_order["dishes"][0]["id"]
        response = client.delete(f"/api/menu/{item_id}", headers=auth(placed_order["owner"]["token"]))
        assert response.status_code == 204

        item = client.get(f"/api/menu/{item_id}").json()
        assert item["is_available"] is False


# =============================================================================
# CATEGORIES
# =============================================================================

class TestCategories:

    def test_slug_and_collision(self, client, restaurant):
        token = restaurant["owner"]["token"]
        tag = uuid.uuid4().hex[:6]

        first = client.post("/api/categories/", json={"name": f"Plats épicés {tag}"}, headers=auth(token))
        assert first.status_code == 201
        assert first.json()["slug"] == f"plats-epices-{tag}"

        second = client.post("/api/categories/", json={"name": f"Plats  Épicés! {tag}"}, headers=auth(token))
        assert second.status_code == 201
        assert second.json()["slug"] == f"plats-epices-{tag}-2"

    def test_blank_name(self, client, admin_token):
        response = client.post("/api/categories/", json={"name": "   "}, headers=auth(admin_token))
        assert response.status_code == 400
        assert response.json()["error"] == "Category name is required"

    def test_name_without_letters(self, client, admin_token):
        response = client.post("/api/categories/", json={"name": "!!!"}, headers=auth(admin_token))
        assert response.status_code == 400
        assert response.json()["error"] == "Category name is invalid"

    def test_pending_restaurateur_is_refused(self, client):
        pending = register(client, "RESTAURATEUR")
        response = client.post("/api/categories/", json={"name": "Desserts"}, headers=auth(pending["token"]))
        assert response.status_code == 403
        assert response.json()["error"] == "Compte restaurateur en attente de validation admin"

    def test_active_filter_update_and_delete(self, client, admin_token):
        tag = uuid.uuid4().hex[:6]
        created = client.post(
            "/api/categories/",
            json={"name": f"Boissons {tag}", "is_active": False},
            headers=auth(admin_token),
        ).json()

        active = client.get("/api/categories/", params={"active": "true"}).json()
        assert created["id"] not in [c["id"] for c in active]

        renamed = client.put(
            f"/api/categories/{created['id']}",
            json={"name": f"Jus {tag}", "is_active": True},
            headers=auth(admin_token),
        ).json()
        assert renamed["slug"] == f"jus-{tag}"
        assert renamed["is_active"] is True

        response = client.delete(f"/api/categories/{created['id']}", headers=auth(admin_token))
        assert response.status_code == 204
        assert created["id"] not in [c["id"] for c in client.get("/api/categories/").json()]
