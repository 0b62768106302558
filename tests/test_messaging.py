"""
Tests for the notification inbox and the order chat REST endpoints.
"""

import asyncio

from marketplace.database import async_session_maker
from marketplace.models import UserRole
from marketplace.services import chat as chat_store
from tests.conftest import auth, register


# =============================================================================
# NOTIFICATIONS
# =============================================================================

def _send(client, admin_token, user_id, title="Info"):
    response = client.post(
        "/api/notifications/send",
        json={"user_id": user_id, "title": title, "message": "Message"},
        headers=auth(admin_token),
    )
    assert response.status_code == 201
    return response.json()


class TestNotifications:

    def test_unread_count_and_mark_read(self, client, admin_token):
        user = register(client, "CLIENT")
        headers = auth(user["token"])
        first = _send(client, admin_token, user["user"]["id"], "Un")
        _send(client, admin_token, user["user"]["id"], "Deux")

        assert client.get("/api/notifications/me/unread-count", headers=headers).json() == {"unread_count": 2}

        response = client.put(f"/api/notifications/{first['id']}/read", headers=headers)
        assert response.status_code == 200
        assert response.json()["is_read"] is True

        unread = client.get("/api/notifications/me", params={"unread_only": "true"}, headers=headers).json()
        assert [n["title"] for n in unread] == ["Deux"]

        assert client.put("/api/notifications/me/read-all", headers=headers).json() == {"updated": 1}
        assert client.get("/api/notifications/me/unread-count", headers=headers).json() == {"unread_count": 0}

    def test_cannot_read_someone_elses(self, client, admin_token):
        owner = register(client, "CLIENT")
        other = register(client, "CLIENT")
        notification = _send(client, admin_token, owner["user"]["id"])
        response = client.put(f"/api/notifications/{notification['id']}/read", headers=auth(other["token"]))
        assert response.status_code == 403

    def test_send_is_admin_only(self, client):
        user = register(client, "CLIENT")
        response = client.post(
            "/api/notifications/send",
            json={"user_id": user["user"]["id"], "title": "x", "message": "y"},
            headers=auth(user["token"]),
        )
        assert response.status_code == 403


# =============================================================================
# CHAT
# =============================================================================

async def _save(order_id: str, sender_id: str, role: UserRole, body: str) -> None:
    async with async_session_maker() as db:
        await chat_store.save_message(db, order_id, sender_id, role, body)


class TestChat:

    def test_history_unread_and_read(self, client, placed_order):
        order_id = placed_order["order"]["id"]
        buyer = placed_order["client"]
        owner = placed_order["owner"]

        asyncio.run(_save(order_id, owner["user"]["id"], UserRole.RESTAURATEUR, "Votre commande part bientôt"))

        history = client.get(f"/api/chat/{order_id}/history", headers=auth(buyer["token"])).json()
        assert [m["message"] for m in history["messages"]] == ["Votre commande part bientôt"]

        unread_url = f"/api/chat/{order_id}/unread/{buyer['user']['id']}"
        assert client.get(unread_url, headers=auth(buyer["token"])).json() == {"unread_count": 1}

        response = client.post(
            f"/api/chat/{order_id}/read",
            json={"user_id": buyer["user"]["id"]},
            headers=auth(buyer["token"]),
        )
        assert response.json()["updated"] == 1
        assert client.get(unread_url, headers=auth(buyer["token"])).json() == {"unread_count": 0}

    def test_outsider_is_refused(self, client, placed_order):
        stranger = register(client, "CLIENT")
        response = client.get(
            f"/api/chat/{placed_order['order']['id']}/history",
            headers=auth(stranger["token"]),
        )
        assert response.status_code == 403

    def test_unknown_order(self, client, admin_token):
        response = client.get("/api/chat/missing/history", headers=auth(admin_token))
        assert response.status_code == 404

    def test_delete_history(self, client, placed_order):
        order_id = placed_order["order"]["id"]
        token = placed_order["client"]["token"]
        asyncio.run(_save(order_id, placed_order["client"]["user"]["id"], UserRole.CLIENT, "Bonjour"))

        response = client.delete(f"/api/chat/{order_id}", headers=auth(token))
        assert response.json() == {"success": True, "deleted": 1}
        assert client.get(f"/api/chat/{order_id}/history", headers=auth(token)).json() == {"messages": []}
