"""
End-to-end order lifecycle: order -> payment -> courier -> delivery.
"""

import pytest

from tests.conftest import auth, register


def _pay(client, order_id, token, **extra):
    return client.post(
        "/api/payments/process",
        json={"order_id": order_id, "payment_method": "CARD", **extra},
        headers=auth(token),
    )


class TestPlaceOrder:

    def test_total_comes_from_menu_prices(self, placed_order):
        order = placed_order["order"]
        assert order["status"] == "PENDING"
        assert order["total_amount"] == pytest.approx(29.0)
        assert len(order["items"]) == 2
        assert order["payment"]["status"] == "PENDING"
        assert order["delivery"]["status"] == "WAITING"
        assert order["delivery"]["pickup_address"] == "12 rue Myrha, Paris"
        assert order["delivery"]["estimated_time"] > 0

    def test_unknown_menu_item(self, client, restaurant):
        buyer = register(client, "CLIENT")
        response = client.post(
            "/api/orders/",
            json={
                "restaurant_id": restaurant["restaurant_id"],
                "items": [{"menu_item_id": "does-not-exist", "quantity": 1}],
                "delivery_address": "1 rue X",
                "delivery_city": "Paris",
                "delivery_postal_code": "75001",
            },
            headers=auth(buyer["token"]),
        )
        assert response.status_code == 400

    def test_empty_items_rejected(self, client, restaurant):
        buyer = register(client, "CLIENT")
        response = client.post(
            "/api/orders/",
            json={
                "restaurant_id": restaurant["restaurant_id"],
                "items": [],
                "delivery_address": "1 rue X",
                "delivery_city": "Paris",
                "delivery_postal_code": "75001",
            },
            headers=auth(buyer["token"]),
        )
        assert response.status_code == 400

    def test_courier_cannot_order(self, client, restaurant, courier):
        response = client.post(
            "/api/orders/",
            json={
                "restaurant_id": restaurant["restaurant_id"],
                "items": [{"menu_item_id": restaurant["dishes"][0]["id"], "quantity": 1}],
                "delivery_address": "1 rue X",
                "delivery_city": "Paris",
                "delivery_postal_code": "75001",
            },
            headers=auth(courier["token"]),
        )
        assert response.status_code == 403

    def test_visibility(self, client, placed_order):
        order_id = placed_order["order"]["id"]

        mine = client.get("/api/orders/me", headers=auth(placed_order["client"]["token"])).json()
        assert [o["id"] for o in mine] == [order_id]

        owner = client.get(
            f"/api/orders/restaurant/{placed_order['restaurant_id']}",
            headers=auth(placed_order["owner"]["token"]),
        ).json()
        assert order_id in [o["id"] for o in owner]

        stranger = register(client, "CLIENT")
        response = client.get(f"/api/orders/{order_id}", headers=auth(stranger["token"]))
        assert response.status_code == 403

    def test_client_summary(self, client, placed_order):
        summary = client.get(
            "/api/orders/client/me/summary",
            headers=auth(placed_order["client"]["token"]),
        ).json()
        assert summary["orders_count"] == 1
        assert summary["active_orders"] == 1


class TestPayment:

    def test_card_payment_confirms_order(self, client, placed_order):
        order_id = placed_order["order"]["id"]
        response = _pay(client, order_id, placed_order["client"]["token"])
        assert response.status_code == 200, response.text
        payment = response.json()
        assert payment["status"] == "COMPLETED"
        assert payment["transaction_id"].startswith("pi_")

        order = client.get(f"/api/orders/{order_id}", headers=auth(placed_order["client"]["token"])).json()
        assert order["status"] == "CONFIRMED"

    def test_cash_payment_gets_generated_reference(self, client, placed_order):
        response = client.post(
            "/api/payments/process",
            json={"order_id": placed_order["order"]["id"], "payment_method": "CASH"},
            headers=auth(placed_order["client"]["token"]),
        )
        assert response.status_code == 200
        assert response.json()["transaction_id"].startswith("CASH-")

    @pytest.mark.parametrize("method", ["cash", "PAYPAL", ""])
    def test_non_card_methods_are_cash(self, client, placed_order, method):
        response = client.post(
            "/api/payments/process",
            json={"order_id": placed_order["order"]["id"], "payment_method": method},
            headers=auth(placed_order["client"]["token"]),
        )
        assert response.status_code == 200
        assert response.json()["payment_method"] == "CASH"

    def test_second_payment_rejected(self, client, placed_order):
        token = placed_order["client"]["token"]
        assert _pay(client, placed_order["order"]["id"], token).status_code == 200
        response = _pay(client, placed_order["order"]["id"], token)
        assert response.status_code == 400
        assert response.json()["error"] == "Payment already completed"

    def test_payment_notifies_client_and_owner(self, client, placed_order):
        _pay(client, placed_order["order"]["id"], placed_order["client"]["token"])

        for token in (placed_order["client"]["token"], placed_order["owner"]["token"]):
            count = client.get("/api/notifications/me/unread-count", headers=auth(token)).json()
            assert count["unread_count"] >= 1

    def test_refund_by_owner(self, client, placed_order):
        order_id = placed_order["order"]["id"]
        _pay(client, order_id, placed_order["client"]["token"])
        response = client.post(f"/api/payments/refund/{order_id}", headers=auth(placed_order["owner"]["token"]))
        assert response.status_code == 200
        assert response.json()["status"] == "REFUNDED"

    def test_webhook_completes_intent(self, client, placed_order):
        order_id = placed_order["order"]["id"]
        token = placed_order["client"]["token"]
        intent = client.post("/api/payments/create-intent", json={"order_id": order_id}, headers=auth(token))
        assert intent.status_code == 200
        intent_id = intent.json()["payment_intent_id"]

        response = client.post(
            "/api/payments/webhook",
            json={"type": "payment_intent.succeeded", "data": {"object": {"id": intent_id}}},
        )
        assert response.json() == {"received": True, "handled": True}

        payment = client.get(f"/api/payments/order/{order_id}", headers=auth(token)).json()
        assert payment["status"] == "COMPLETED"


class TestDelivery:

    def test_full_lifecycle(self, client, admin_token, placed_order, courier):
        order_id = placed_order["order"]["id"]
        delivery_id = placed_order["order"]["delivery"]["id"]
        client_token = placed_order["client"]["token"]
        rider = auth(courier["token"])

        # Unpaid orders are not offered to couriers
        available = client.get("/api/deliveries/available", headers=rider).json()
        assert delivery_id not in [d["id"] for d in available]
        assert client.put(f"/api/deliveries/{delivery_id}/accept", headers=rider).status_code == 400

        assert _pay(client, order_id, client_token).status_code == 200

        available = client.get("/api/deliveries/available", headers=rider).json()
        assert delivery_id in [d["id"] for d in available]

        accepted = client.put(f"/api/deliveries/{delivery_id}/accept", headers=rider)
        assert accepted.status_code == 200, accepted.text
        assert accepted.json()["status"] == "ACCEPTED"
        assert accepted.json()["livreur_id"] == courier["user"]["livreur"]["id"]

        # Second courier loses the race
        rival = register(client, "LIVREUR")
        client.put(f"/api/users/livreur/{rival['user']['id']}/approve", headers=auth(admin_token))
        lost = client.put(f"/api/deliveries/{delivery_id}/accept", headers=auth(rival["token"]))
        assert lost.status_code == 409

        # Rival is not assigned
        response = client.put(
            f"/api/deliveries/{delivery_id}/status",
            json={"status": "PICKED_UP"},
            headers=auth(rival["token"]),
        )
        assert response.status_code == 403

        order = client.get(f"/api/orders/{order_id}", headers=auth(client_token)).json()
        assert order["status"] == "IN_DELIVERY"

        for step in ("PICKED_UP", "ON_ROUTE", "DELIVERED"):
            response = client.put(
                f"/api/deliveries/{delivery_id}/status",
                json={"status": step},
                headers=rider,
            )
            assert response.status_code == 200, response.text
            assert response.json()["status"] == step

        delivered = response.json()
        assert delivered["completed_at"] is not None
        assert delivered["actual_time"] is not None

        order = client.get(f"/api/orders/{order_id}", headers=auth(client_token)).json()
        assert order["status"] == "DELIVERED"

        # Loyalty: floor(29.00) x 1.0 for a bronze client
        account = client.get(
            f"/api/loyalty/account/{placed_order['client']['user']['id']}",
            headers=auth(client_token),
        ).json()
        assert account["points"] == 29
        assert account["lifetime_spent"] == pytest.approx(29.0)

        # Courier payout: 3.50 + 8% x 29.00 = 5.82 gross, 15% commission
        metrics = client.get("/api/deliveries/livreur/me/metrics", headers=rider).json()
        assert metrics["earnings"]["total"] == pytest.approx(4.95)
        assert metrics["payouts"][0]["gross"] == pytest.approx(5.82)
        assert metrics["stats"]["deliveries_count"] == 1
        assert metrics["can_withdraw"] is False

        # Delivered orders are final
        response = client.put(
            f"/api/orders/{order_id}/cancel",
            headers=auth(client_token),
        )
        assert response.status_code == 400

    def test_unapproved_courier_cannot_accept(self, client, placed_order):
        _pay(client, placed_order["order"]["id"], placed_order["client"]["token"])
        newcomer = register(client, "LIVREUR")
        response = client.put(
            f"/api/deliveries/{placed_order['order']['delivery']['id']}/accept",
            headers=auth(newcomer["token"]),
        )
        assert response.status_code == 403
        assert response.json()["error"] == "Compte livreur en attente de validation admin"

    def test_client_cannot_list_available(self, client, placed_order):
        response = client.get("/api/deliveries/available", headers=auth(placed_order["client"]["token"]))
        assert response.status_code == 403

    def test_courier_drop_returns_delivery_to_pool(self, client, admin_token, placed_order, courier):
        order_id = placed_order["order"]["id"]
        delivery_id = placed_order["order"]["delivery"]["id"]
        client_token = placed_order["client"]["token"]
        _pay(client, order_id, client_token)

        assert client.put(f"/api/deliveries/{delivery_id}/accept", headers=auth(courier["token"])).status_code == 200

        dropped = client.put(
            f"/api/deliveries/{delivery_id}/status",
            json={"status": "CANCELLED"},
            headers=auth(courier["token"]),
        )
        assert dropped.status_code == 200, dropped.text
        assert dropped.json()["status"] == "WAITING"
        assert dropped.json()["livreur_id"] is None

        order = client.get(f"/api/orders/{order_id}", headers=auth(client_token)).json()
        assert order["status"] == "READY"

        replacement = register(client, "LIVREUR")
        client.put(f"/api/users/livreur/{replacement['user']['id']}/approve", headers=auth(admin_token))
        retaken = client.put(f"/api/deliveries/{delivery_id}/accept", headers=auth(replacement["token"]))
        assert retaken.status_code == 200, retaken.text

    def test_taken_delivery_visible_to_its_courier_only(self, client, admin_token, placed_order, courier):
        delivery_id = placed_order["order"]["delivery"]["id"]
        _pay(client, placed_order["order"]["id"], placed_order["client"]["token"])

        other = register(client, "LIVREUR")
        client.put(f"/api/users/livreur/{other['user']['id']}/approve", headers=auth(admin_token))
        assert client.get(f"/api/deliveries/{delivery_id}", headers=auth(other["token"])).status_code == 200

        client.put(f"/api/deliveries/{delivery_id}/accept", headers=auth(courier["token"]))
        mine = client.get(f"/api/deliveries/{delivery_id}", headers=auth(courier["token"]))
        assert mine.status_code == 200
        assert mine.json()["status"] == "ACCEPTED"
        assert client.get(f"/api/deliveries/{delivery_id}", headers=auth(other["token"])).status_code == 403

    def test_cancel_after_pickup_cancels_order(self, client, placed_order, courier):
        order_id = placed_order["order"]["id"]
        delivery_id = placed_order["order"]["delivery"]["id"]
        rider = auth(courier["token"])
        _pay(client, order_id, placed_order["client"]["token"])
        client.put(f"/api/deliveries/{delivery_id}/accept", headers=rider)
        client.put(f"/api/deliveries/{delivery_id}/status", json={"status": "PICKED_UP"}, headers=rider)

        response = client.put(f"/api/deliveries/{delivery_id}/status", json={"status": "CANCELLED"}, headers=rider)
        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"

        order = client.get(f"/api/orders/{order_id}", headers=auth(placed_order["client"]["token"])).json()
        assert order["status"] == "CANCELLED"
    def test_courier_reports_issue(self, client, admin_token, placed_order, courier):
        delivery_id = placed_order["order"]["delivery"]["id"]
        _pay(client, placed_order["order"]["id"], placed_order["client"]["token"])
        client.put(f"/api/deliveries/{delivery_id}/accept", headers=auth(courier["token"]))

        response = client.post(
            "/api/deliveries/support/report",
            json={"type": "CUSTOMER", "message": "Le client ne répond pas", "delivery_id": delivery_id},
            headers=auth(courier["token"]),
        )
        assert response.status_code == 201, response.text
        ticket = response.json()
        assert ticket["category"] == "CUSTOMER"
        assert ticket["priority"] == "HIGH"
        assert ticket["related_delivery_id"] == delivery_id
        assert ticket["related_user_id"] == placed_order["client"]["user"]["id"]

        queue = client.get(
            "/api/orders/admin/support/tickets",
            params={"priority": "HIGH"},
            headers=auth(admin_token),
        ).json()
        assert ticket["id"] in [t["id"] for t in queue]

    def test_report_on_foreign_delivery_forbidden(self, client, placed_order, courier):
        response = client.post(
            "/api/deliveries/support/report",
            json={"type": "SAFETY", "message": "Rue bloquée", "delivery_id": placed_order["order"]["delivery"]["id"]},
            headers=auth(courier["token"]),
        )
        assert response.status_code == 403

        clients_cannot = client.post(
            "/api/deliveries/support/report",
            json={"type": "OTHER", "message": "?"},
            headers=auth(placed_order["client"]["token"]),
        )
        assert clients_cannot.status_code == 403



class TestOrderStatus:

    def test_owner_moves_order_to_ready(self, client, placed_order):
        order_id = placed_order["order"]["id"]
        _pay(client, order_id, placed_order["client"]["token"])

        for step in ("PREPARING", "READY"):
            response = client.put(
                f"/api/orders/{order_id}/status",
                json={"status": step},
                headers=auth(placed_order["owner"]["token"]),
            )
            assert response.status_code == 200, response.text
            assert response.json()["status"] == step

    def test_unpaid_order_cannot_be_confirmed(self, client, placed_order, courier):
        order_id = placed_order["order"]["id"]
        response = client.put(
            f"/api/orders/{order_id}/status",
            json={"status": "CONFIRMED"},
            headers=auth(placed_order["owner"]["token"]),
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Order is not paid yet"

        available = client.get("/api/deliveries/available", headers=auth(courier["token"])).json()
        assert placed_order["order"]["delivery"]["id"] not in [d["id"] for d in available]

    @pytest.mark.parametrize("status", ["IN_DELIVERY", "DELIVERED"])
    def test_delivery_statuses_are_reserved(self, client, placed_order, status):
        order_id = placed_order["order"]["id"]
        _pay(client, order_id, placed_order["client"]["token"])
        response = client.put(
            f"/api/orders/{order_id}/status",
            json={"status": status},
            headers=auth(placed_order["owner"]["token"]),
        )
        assert response.status_code == 400

        order = client.get(f"/api/orders/{order_id}", headers=auth(placed_order["client"]["token"])).json()
        assert order["status"] == "CONFIRMED"
        assert order["delivery"]["status"] == "WAITING"

    def test_invalid_status_value(self, client, placed_order):
        response = client.put(
            f"/api/orders/{placed_order['order']['id']}/status",
            json={"status": "TELEPORTED"},
            headers=auth(placed_order["owner"]["token"]),
        )
        assert response.status_code == 400

    def test_cancel_cancels_delivery(self, client, placed_order):
        order_id = placed_order["order"]["id"]
        token = placed_order["client"]["token"]
        response = client.put(f"/api/orders/{order_id}/cancel", headers=auth(token))
        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"
        assert response.json()["delivery"]["status"] == "CANCELLED"

        again = client.put(f"/api/orders/{order_id}/cancel", headers=auth(token))
        assert again.status_code == 400

        paid = _pay(client, order_id, token)
        assert paid.status_code == 400
