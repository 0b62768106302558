"""
Real-time Gateway (Socket.IO)

A python-socketio AsyncServer mounted around the FastAPI app. Connections
authenticate with the same JWT as the REST API, passed as `auth.token`.

Rooms:
    user:{user_id}              joined automatically on connect
    order:{order_id}            join-order (order participants)
    restaurant:{restaurant_id}  join-restaurant (owner)
    delivery:{delivery_id}      join-delivery (order participants)
    couriers                    join-couriers (LIVREUR/ADMIN)
    chat:{order_id}             join-chat (order participants)

Order participants are the client, the restaurant owner and the assigned
courier; admins may join any room. A refused join answers join-error.

Published events are best effort: a failed emit is logged and never fails
the request that triggered it. Clients refetch over REST when they need an
authoritative state.
"""

import logging
from typing import Optional

import jwt
import socketio
from sqlalchemy import select

from marketplace.core.config import get_settings
from marketplace.core.security import TokenConfigError, decode_access_token
from marketplace.database import async_session_maker
from marketplace.models import Delivery, Notification, Order, Restaurant, UserRole
from marketplace.services import chat as chat_store

logger = logging.getLogger(__name__)
settings = get_settings()

_cors = settings.cors_origins_list
sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins="*" if _cors == ["*"] else _cors,
    logger=False,
    engineio_logger=False,
)

COURIERS_ROOM = "couriers"


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


# =============================================================================
# PUBLISHERS
# =============================================================================

async def _emit(event: str, payload: dict, rooms: list[str]) -> None:
    for room in rooms:
        try:
            await sio.emit(event, payload, room=room)
        except Exception:
            logger.exception(f"Failed to emit {event} to {room}")


async def emit_order_update(order: Order) -> None:
    """Publish order:update to the order, its restaurant and its client."""
    payload = {
        "order_id": order.id,
        "status": order.status.value,
        "restaurant_id": order.restaurant_id,
        "client_id": order.client_id,
        "total_amount": order.total_amount,
        "updated_at": _iso(order.updated_at),
    }
    rooms = [f"order:{order.id}", f"restaurant:{order.restaurant_id}"]
    if order.client is not None:
        rooms.append(f"user:{order.client.user_id}")
    await _emit("order:update", payload, rooms)


async def emit_delivery_update(delivery: Delivery) -> None:
    """Publish delivery:update to the delivery, its order and the couriers pool."""
    payload = {
        "delivery_id": delivery.id,
        "order_id": delivery.order_id,
        "status": delivery.status.value,
        "livreur_id": delivery.livreur_id,
        "pickup_address": delivery.pickup_address,
        "delivery_address": delivery.delivery_address,
        "updated_at": _iso(delivery.updated_at),
    }
    await _emit(
        "delivery:update",
        payload,
        [f"delivery:{delivery.id}", f"order:{delivery.order_id}", COURIERS_ROOM],
    )


async def emit_notification(notification: Notification) -> None:
    payload = {
        "id": notification.id,
        "title": notification.title,
        "message": notification.message,
        "sent_at": _iso(notification.sent_at),
    }
    await _emit("notification:new", payload, [f"user:{notification.user_id}"])


# =============================================================================
# CONNECTION
# =============================================================================

@sio.event
async def connect(sid, environ, auth):
    token = (auth or {}).get("token") if isinstance(auth, dict) else None
    if not token:
        raise socketio.exceptions.ConnectionRefusedError("Unauthorized")

    try:
        payload = decode_access_token(token)
    except (jwt.InvalidTokenError, TokenConfigError):
        raise socketio.exceptions.ConnectionRefusedError("Invalid token")

    user_id = payload.get("userId")
    await sio.save_session(sid, {"user_id": user_id, "role": payload.get("role")})
    await sio.enter_room(sid, f"user:{user_id}")
    logger.debug(f"Socket connected: {sid} (user {user_id})")


@sio.event
async def disconnect(sid):
    logger.debug(f"Socket disconnected: {sid}")


# =============================================================================
# SUBSCRIPTIONS
# =============================================================================

def _room_id(data, key: str) -> Optional[str]:
    if isinstance(data, dict):
        return data.get(key)
    if isinstance(data, str):
        return data
    return None


async def _order_participant(session: dict, order_id: str) -> bool:
    """Client, restaurant owner and assigned courier of the order, or an admin."""
    if session.get("role") == UserRole.ADMIN.value:
        return True
    async with async_session_maker() as db:
        participants = await chat_store.participant_ids(db, order_id)
    return bool(participants) and session.get("user_id") in participants


async def _delivery_participant(session: dict, delivery_id: str) -> bool:
    if session.get("role") == UserRole.ADMIN.value:
        return True
    async with async_session_maker() as db:
        result = await db.execute(select(Delivery.order_id).where(Delivery.id == delivery_id))
        order_id = result.scalar_one_or_none()
        if order_id is None:
            return False
        participants = await chat_store.participant_ids(db, order_id)
    return bool(participants) and session.get("user_id") in participants


async def _restaurant_owner(session: dict, restaurant_id: str) -> bool:
    if session.get("role") == UserRole.ADMIN.value:
        return True
    async with async_session_maker() as db:
        result = await db.execute(select(Restaurant).where(Restaurant.id == restaurant_id))
        restaurant = result.scalar_one_or_none()
    return restaurant is not None and restaurant.restaurateur.user_id == session.get("user_id")


async def _refuse(sid, room: str) -> None:
    logger.warning(f"Socket {sid} refused from {room}")
    await sio.emit("join-error", {"room": room, "error": "Forbidden"}, to=sid)


@sio.on("join-order")
async def join_order(sid, data):
    order_id = _room_id(data, "order_id")
    if not order_id:
        return
    room = f"order:{order_id}"
    if not await _order_participant(await sio.get_session(sid), order_id):
        await _refuse(sid, room)
        return
    await sio.enter_room(sid, room)


@sio.on("join-restaurant")
async def join_restaurant(sid, data):
    restaurant_id = _room_id(data, "restaurant_id")
    if not restaurant_id:
        return
    room = f"restaurant:{restaurant_id}"
    if not await _restaurant_owner(await sio.get_session(sid), restaurant_id):
        await _refuse(sid, room)
        return
    await sio.enter_room(sid, room)


@sio.on("join-delivery")
async def join_delivery(sid, data):
    delivery_id = _room_id(data, "delivery_id")
    if not delivery_id:
        return
    room = f"delivery:{delivery_id}"
    if not await _delivery_participant(await sio.get_session(sid), delivery_id):
        await _refuse(sid, room)
        return
    await sio.enter_room(sid, room)


@sio.on("join-couriers")
async def join_couriers(sid, data=None):
    session = await sio.get_session(sid)
    if session.get("role") in (UserRole.LIVREUR.value, UserRole.ADMIN.value):
        await sio.enter_room(sid, COURIERS_ROOM)
    else:
        await _refuse(sid, COURIERS_ROOM)


# =============================================================================
# CHAT
# =============================================================================

def _message_payload(message) -> dict:
    return {
        "id": message.id,
        "order_id": message.order_id,
        "sender_id": message.sender_id,
        "sender_role": message.sender_role.value,
        "message": message.message,
        "timestamp": _iso(message.timestamp),
        "read": message.read,
    }


@sio.on("join-chat")
async def join_chat(sid, data):
    order_id = _room_id(data, "order_id")
    session = await sio.get_session(sid)
    if not order_id or not await _order_participant(session, order_id):
        await sio.emit("chat-error", {"error": "Forbidden"}, to=sid)
        return

    room = f"chat:{order_id}"
    await sio.enter_room(sid, room)

    async with async_session_maker() as db:
        history = await chat_store.get_history(db, order_id)

    await sio.emit("chat-history", [_message_payload(m) for m in history], to=sid)
    await sio.emit(
        "user-joined",
        {"user_id": session["user_id"], "role": session.get("role")},
        room=room,
    )


@sio.on("send-message")
async def send_message(sid, data):
    if not isinstance(data, dict):
        return
    order_id = data.get("order_id")
    text = (data.get("message") or "").strip()
    session = await sio.get_session(sid)
    if not order_id or not text or not await _order_participant(session, order_id):
        await sio.emit("chat-error", {"error": "Message rejected"}, to=sid)
        return

    async with async_session_maker() as db:
        message = await chat_store.save_message(
            db,
            order_id=order_id,
            sender_id=session["user_id"],
            sender_role=UserRole(session["role"]),
            message=text,
        )

    await sio.emit("new-message", _message_payload(message), room=f"chat:{order_id}")


@sio.on("typing")
async def typing(sid, data):
    if not isinstance(data, dict) or not data.get("order_id"):
        return
    room = f"chat:{data['order_id']}"
    if room not in sio.rooms(sid):
        return
    session = await sio.get_session(sid)
    await sio.emit(
        "user-typing",
        {"user_id": session["user_id"], "is_typing": bool(data.get("is_typing"))},
        room=room,
        skip_sid=sid,
    )


@sio.on("mark-read")
async def mark_read(sid, data):
    if not isinstance(data, dict) or not data.get("order_id"):
        return
    session = await sio.get_session(sid)
    order_id = data["order_id"]
    if not await _order_participant(session, order_id):
        return

    async with async_session_maker() as db:
        await chat_store.mark_read(db, order_id, session["user_id"])

    await sio.emit(
        "message-read",
        {"message_id": data.get("message_id"), "reader_id": session["user_id"]},
        room=f"chat:{order_id}",
    )


@sio.on("leave-chat")
async def leave_chat(sid, data):
    order_id = _room_id(data, "order_id")
    if not order_id:
        return
    room = f"chat:{order_id}"
    if room not in sio.rooms(sid):
        return
    session = await sio.get_session(sid)
    await sio.leave_room(sid, room)
    await sio.emit("user-left", {"user_id": session["user_id"]}, room=room)
