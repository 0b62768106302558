"""
Tests for the public AI and geolocation endpoints, loyalty and health.
"""

from tests.conftest import auth, register


# =============================================================================
# SYSTEM
# =============================================================================

def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["documentation"] == "/docs"


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["database"] == "healthy"
    assert data["status"] in ("operational", "degraded")


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/nothing-here")
    assert response.status_code == 404
    assert response.json()["success"] is False


# =============================================================================
# AI
# =============================================================================

class TestAI:

    def test_sentiment_labels(self, client):
        good = client.post("/api/ai/sentiment-analysis", json={"review": "great food, excellent service"}).json()
        assert good["sentiment"] == "positive"

        bad = client.post("/api/ai/sentiment-analysis", json={"review": "terrible cold awful"}).json()
        assert bad["sentiment"] == "negative"

    def test_delivery_time_prediction(self, client):
        # Saturday 12:30 -> rush hour and weekend
        response = client.post(
            "/api/ai/delivery-time-prediction",
            json={"order_size": 10, "timestamp": "2024-06-08T12:30:00"},
        )
        data = response.json()
        assert data["predicted_delivery_time"] == round(30 * 1.1 * 1.3 * 1.2)
        assert data["estimated_range"] == [data["predicted_delivery_time"] - 5, data["predicted_delivery_time"] + 10]

    def test_fraud_detection(self, client):
        data = client.post("/api/ai/fraud-detection", json={"amount": 250, "order_frequency": 12}).json()
        assert data["risk_score"] == 50
        assert data["risk_level"] == "medium"
        assert data["recommendation"] == "approve"

    def test_recommendations_need_a_subject(self, client):
        response = client.post("/api/ai/recommendations/restaurants", json={})
        assert response.status_code == 400
        assert response.json()["error"] == "user_id or preferences is required"

    def test_restaurant_recommendations_rank_cuisine_first(self, client, restaurant):
        response = client.post(
            "/api/ai/recommendations/restaurants",
            json={"preferences": {"favorite_cuisines": ["Sénégalaise"]}, "limit": 50},
        )
        assert response.status_code == 200
        ranked = response.json()["recommendations"]
        top = next(r for r in ranked if r["restaurant_id"] == restaurant["restaurant_id"])
        assert "Cuisine Sénégalaise" in top["reasons"]
        assert ranked[0]["score"] >= top["score"]

    def test_dish_recommendations(self, client, restaurant):
        response = client.post(
            "/api/ai/recommendations/dishes",
            json={
                "restaurant_id": restaurant["restaurant_id"],
                "preferences": {"favorite_dishes": ["bissap"]},
            },
        )
        ranked = response.json()["recommendations"]
        assert ranked[0]["name"] == "Bissap"

    def test_chat_and_menu_suggestions(self, client):
        chat = client.post("/api/ai/chat", json={"message": "Un plat végétarien ?"})
        assert chat.status_code == 200
        assert chat.json()["response"]

        menu = client.post("/api/ai/menu-suggestions", json={"cuisine_type": "Italienne"})
        assert menu.status_code == 200
        assert menu.json()["cuisine_type"] == "Italienne"


# =============================================================================
# GEO
# =============================================================================

class TestGeo:

    def test_geocode_is_deterministic(self, client):
        first = client.post("/api/geo/geocode", json={"address": "12 rue Myrha, Paris"}).json()
        second = client.post("/api/geo/geocode", json={"address": "12 rue Myrha, Paris"}).json()
        assert (first["lat"], first["lng"]) == (second["lat"], second["lng"])
        assert first["formatted_address"]

    def test_reverse_geocode(self, client):
        response = client.post("/api/geo/reverse-geocode", json={"lat": 48.8566, "lng": 2.3522})
        assert response.status_code == 200

    def test_distance(self, client):
        response = client.post(
            "/api/geo/distance",
            json={"origin": "12 rue Myrha, Paris", "destination": "3 rue Polonceau, Paris"},
        )
        assert response.status_code == 200

    def test_out_of_range_coordinates(self, client):
        response = client.post("/api/geo/reverse-geocode", json={"lat": 123, "lng": 0})
        assert response.status_code == 400

    def test_route_through_waypoints(self, client):
        direct = client.post(
            "/api/geo/route",
            json={"origin": "12 rue Myrha, Paris", "destination": "3 rue Polonceau, Paris"},
        ).json()
        assert len(direct["steps"]) == 1
        assert direct["polyline"]

        detour = client.post(
            "/api/geo/route",
            json={
                "origin": "12 rue Myrha, Paris",
                "destination": "3 rue Polonceau, Paris",
                "waypoints": ["Gare du Nord, Paris"],
            },
        ).json()
        assert len(detour["steps"]) == 2
        assert detour["distance_km"] >= direct["distance_km"]

    def test_nearby_stays_inside_radius(self, client):
        response = client.post(
            "/api/geo/nearby",
            json={"location": {"lat": 48.8566, "lng": 2.3522}, "radius": 800},
        )
        assert response.status_code == 200
        places = response.json()["places"]
        assert places
        assert all(p["distance_m"] <= 800 for p in places)

    def test_nearby_rejects_bad_location(self, client):
        response = client.post("/api/geo/nearby", json={"location": {"lat": 95, "lng": 0}})
        assert response.status_code == 400


# =============================================================================
# LOYALTY
# =============================================================================

class TestLoyalty:

    def test_account_rewards_and_subscription(self, client, admin_token):
        user = register(client, "CLIENT")
        user_id = user["user"]["id"]
        headers = auth(user["token"])

        created = client.post("/api/loyalty/account", json={"user_id": user_id}, headers=headers)
        assert created.status_code == 201
        assert created.json()["tier"] == "BRONZE"

        # Clients cannot grant themselves points
        forbidden = client.post(
            "/api/loyalty/points/add",
            json={"user_id": user_id, "order_amount": 250},
            headers=headers,
        )
        assert forbidden.status_code == 403

        added = client.post(
            "/api/loyalty/points/add",
            json={"user_id": user_id, "order_amount": 250},
            headers=auth(admin_token),
        ).json()
        assert added["points_earned"] == 250
        assert added["tier"] == "SILVER"

        account = client.get(f"/api/loyalty/account/{user_id}", headers=headers).json()
        assert account["multiplier"] == 1.25
        assert account["next_tier"] == {"tier": "GOLD", "threshold": 500}

        too_expensive = client.post(
            "/api/loyalty/rewards/redeem",
            json={"user_id": user_id, "reward_id": "r1"},
            headers=headers,
        )
        assert too_expensive.status_code == 400

        redeemed = client.post(
            "/api/loyalty/rewards/redeem",
            json={"user_id": user_id, "reward_id": "r4"},
            headers=headers,
        ).json()
        assert redeemed["remaining_points"] == 50
        assert redeemed["code"].startswith("REWARD-")

        subscribed = client.post(
            "/api/loyalty/subscription/subscribe",
            json={"user_id": user_id, "plan": "BASIC"},
            headers=headers,
        ).json()
        assert subscribed["bonus_points"] == 100

        cancelled = client.post("/api/loyalty/subscription/cancel", json={"user_id": user_id}, headers=headers)
        assert cancelled.status_code == 200

    def test_subscription_bonus_once_per_period(self, client):
        user = register(client, "CLIENT")
        user_id = user["user"]["id"]
        headers = auth(user["token"])

        def subscribe(plan):
            return client.post(
                "/api/loyalty/subscription/subscribe",
                json={"user_id": user_id, "plan": plan},
                headers=headers,
            )

        first = subscribe("VIP")
        assert first.status_code == 200
        assert first.json()["bonus_points"] == 500

        assert subscribe("VIP").status_code == 400

        switched = subscribe("PREMIUM").json()
        assert switched["bonus_points"] == 0
        assert switched["points"] == 500

        account = client.get(f"/api/loyalty/account/{user_id}", headers=headers).json()
        assert account["points"] == 500

    def test_referral(self, client):
        referrer = register(client, "CLIENT")
        newcomer = register(client, "CLIENT")

        code = client.get(
            f"/api/loyalty/referral/code/{referrer['user']['id']}",
            headers=auth(referrer["token"]),
        ).json()["referral_code"]

        response = client.post(
            "/api/loyalty/referral/apply",
            json={"user_id": newcomer["user"]["id"], "referral_code": code},
            headers=auth(newcomer["token"]),
        )
        assert response.status_code == 200

        again = client.post(
            "/api/loyalty/referral/apply",
            json={"user_id": newcomer["user"]["id"], "referral_code": code},
            headers=auth(newcomer["token"]),
        )
        assert again.status_code == 400

    def test_plans_and_rewards_are_public(self, client):
        assert len(client.get("/api/loyalty/rewards").json()) == 4
        plans = client.get("/api/loyalty/subscription/plans").json()
        assert [p["plan"] for p in plans] == ["FREE", "BASIC", "PREMIUM", "VIP"]
