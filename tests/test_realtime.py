"""
Tests for the Socket.IO gateway.

The handlers are called directly against a recording stand-in for the
server's session, room and emit calls.
"""

import asyncio
from collections import defaultdict
from types import SimpleNamespace

import pytest
import socketio

from marketplace.models import DeliveryStatus, OrderStatus
from marketplace.services import realtime
from tests.conftest import register


class RecordingServer:

    def __init__(self):
        self.sessions = {}
        self.members = defaultdict(set)
        self.emitted = []

    async def save_session(self, sid, session):
        self.sessions[sid] = session

    async def get_session(self, sid):
        return self.sessions[sid]

    async def enter_room(self, sid, room):
        self.members[sid].add(room)

    async def leave_room(self, sid, room):
        self.members[sid].discard(room)

    def rooms(self, sid):
        return [sid, *self.members[sid]]

    async def emit(self, event, data=None, to=None, room=None, skip_sid=None):
        self.emitted.append((event, data, to or room))

    def events(self, name):
        return [(data, target) for event, data, target in self.emitted if event == name]


@pytest.fixture
def server(monkeypatch):
    recorder = RecordingServer()
    for name in ("save_session", "get_session", "enter_room", "leave_room", "rooms", "emit"):
        monkeypatch.setattr(realtime.sio, name, getattr(recorder, name))
    return recorder


def _connect(sid, token):
    asyncio.run(realtime.connect(sid, {}, {"token": token}))


# =============================================================================
# CONNECTION
# =============================================================================

class TestConnect:

    def test_missing_token_refused(self, server):
        with pytest.raises(socketio.exceptions.ConnectionRefusedError):
            asyncio.run(realtime.connect("sid-1", {}, None))
        assert server.sessions == {}

    def test_bad_token_refused(self, server):
        with pytest.raises(socketio.exceptions.ConnectionRefusedError):
            _connect("sid-1", "not-a-jwt")
        assert server.sessions == {}

    def test_joins_personal_room(self, client, server):
        user = register(client, "CLIENT")
        _connect("sid-1", user["token"])

        assert server.sessions["sid-1"] == {"user_id": user["user"]["id"], "role": "CLIENT"}
        assert f"user:{user['user']['id']}" in server.members["sid-1"]


# =============================================================================
# ROOMS
# =============================================================================

class TestRooms:

    def test_participants_join_order_and_delivery(self, client, server, placed_order):
        order = placed_order["order"]
        _connect("buyer", placed_order["client"]["token"])

        asyncio.run(realtime.join_order("buyer", {"order_id": order["id"]}))
        asyncio.run(realtime.join_delivery("buyer", {"delivery_id": order["delivery"]["id"]}))

        assert {f"order:{order['id']}", f"delivery:{order['delivery']['id']}"} <= server.members["buyer"]

    def test_outsider_refused(self, client, server, placed_order):
        order = placed_order["order"]
        _connect("stranger", register(client, "CLIENT")["token"])

        asyncio.run(realtime.join_order("stranger", {"order_id": order["id"]}))
        asyncio.run(realtime.join_delivery("stranger", order["delivery"]["id"]))
        asyncio.run(realtime.join_restaurant("stranger", {"restaurant_id": placed_order["restaurant_id"]}))

        assert server.members["stranger"] == {f"user:{server.sessions['stranger']['user_id']}"}
        assert len(server.events("join-error")) == 3

    def test_only_owner_joins_restaurant(self, client, server, restaurant):
        _connect("owner", restaurant["owner"]["token"])
        asyncio.run(realtime.join_restaurant("owner", {"restaurant_id": restaurant["restaurant_id"]}))
        assert f"restaurant:{restaurant['restaurant_id']}" in server.members["owner"]

    def test_couriers_room_needs_courier_role(self, client, server, courier):
        _connect("rider", courier["token"])
        _connect("buyer", register(client, "CLIENT")["token"])

        asyncio.run(realtime.join_couriers("rider"))
        asyncio.run(realtime.join_couriers("buyer"))

        assert realtime.COURIERS_ROOM in server.members["rider"]
        assert realtime.COURIERS_ROOM not in server.members["buyer"]


# =============================================================================
# PUBLISHERS
# =============================================================================

class TestPublishers:

    def test_order_update_fan_out(self, server):
        order = SimpleNamespace(
            id="o1",
            status=OrderStatus.READY,
            restaurant_id="r1",
            client_id="c1",
            client=SimpleNamespace(user_id="u1"),
            total_amount=29.0,
            updated_at=None,
        )
        asyncio.run(realtime.emit_order_update(order))

        updates = server.events("order:update")
        assert [target for _, target in updates] == ["order:o1", "restaurant:r1", "user:u1"]
        assert updates[0][0]["status"] == "READY"

    def test_delivery_update_fan_out(self, server):
        delivery = SimpleNamespace(
            id="d1",
            order_id="o1",
            status=DeliveryStatus.WAITING,
            livreur_id=None,
            pickup_address="12 rue Myrha",
            delivery_address="3 rue Polonceau",
            updated_at=None,
        )
        asyncio.run(realtime.emit_delivery_update(delivery))

        targets = [target for _, target in server.events("delivery:update")]
        assert targets == ["delivery:d1", "order:o1", realtime.COURIERS_ROOM]

    def test_failed_emit_is_swallowed(self, monkeypatch):
        async def broken(*args, **kwargs):
            raise RuntimeError("redis down")

        monkeypatch.setattr(realtime.sio, "emit", broken)
        notification = SimpleNamespace(id="n1", user_id="u1", title="Info", message="Message", sent_at=None)
        asyncio.run(realtime.emit_notification(notification))


# =============================================================================
# CHAT
# =============================================================================

class TestChatEvents:

    def test_join_then_send(self, client, server, placed_order):
        order_id = placed_order["order"]["id"]
        _connect("buyer", placed_order["client"]["token"])

        asyncio.run(realtime.join_chat("buyer", {"order_id": order_id}))
        assert f"chat:{order_id}" in server.members["buyer"]
        assert server.events("chat-history") == [([], "buyer")]

        asyncio.run(realtime.send_message("buyer", {"order_id": order_id, "message": "  Bonjour  "}))
        [(payload, target)] = server.events("new-message")
        assert target == f"chat:{order_id}"
        assert payload["message"] == "Bonjour"
        assert payload["sender_role"] == "CLIENT"

    def test_outsider_cannot_chat(self, client, server, placed_order):
        order_id = placed_order["order"]["id"]
        _connect("stranger", register(client, "CLIENT")["token"])

        asyncio.run(realtime.join_chat("stranger", {"order_id": order_id}))
        asyncio.run(realtime.send_message("stranger", {"order_id": order_id, "message": "Salut"}))
        asyncio.run(realtime.typing("stranger", {"order_id": order_id, "is_typing": True}))

        assert len(server.events("chat-error")) == 2
        assert server.events("new-message") == []
        assert server.events("user-typing") == []
