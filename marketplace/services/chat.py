"""
Order chat storage.

Messages between the client, the restaurant and the courier of one order
are stored as ChatMessage rows. Used by the /api/chat router and by the
Socket.IO chat events.
"""

import logging
from typing import Optional, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models import ChatMessage, Order, UserRole

logger = logging.getLogger(__name__)


async def get_history(db: AsyncSession, order_id: str) -> Sequence[ChatMessage]:
    result = await db.execute(
        select(ChatMessage)
        .where(ChatMessage.order_id == order_id)
        .order_by(ChatMessage.timestamp.asc())
    )
    return result.scalars().all()


async def save_message(
    db: AsyncSession,
    order_id: str,
    sender_id: str,
    sender_role: UserRole,
    message: str,
) -> ChatMessage:
    chat_message = ChatMessage(
        order_id=order_id,
        sender_id=sender_id,
        sender_role=sender_role,
        message=message,
    )
    db.add(chat_message)
    await db.commit()
    logger.debug(f"Chat message {chat_message.id} saved for order {order_id}")
    return chat_message


async def delete_history(db: AsyncSession, order_id: str) -> int:
    result = await db.execute(delete(ChatMessage).where(ChatMessage.order_id == order_id))
    await db.commit()
    return result.rowcount or 0


async def mark_read(db: AsyncSession, order_id: str, user_id: str) -> int:
    """Mark every message not sent by user_id as read."""
    result = await db.execute(
        update(ChatMessage)
        .where(
            ChatMessage.order_id == order_id,
            ChatMessage.sender_id != user_id,
            ChatMessage.read.is_(False),
        )
        .values(read=True)
    )
    await db.commit()
    return result.rowcount or 0


async def unread_count(db: AsyncSession, order_id: str, user_id: str) -> int:
    result = await db.execute(
        select(func.count(ChatMessage.id)).where(
            ChatMessage.order_id == order_id,
            ChatMessage.sender_id != user_id,
            ChatMessage.read.is_(False),
        )
    )
    return result.scalar() or 0


async def participant_ids(db: AsyncSession, order_id: str) -> Optional[set[str]]:
    """User ids allowed in the order chat, or None when the order does not exist."""
    result = await db.execute(select(Order).where(Order.id == order_id))
    order = result.scalar_one_or_none()
    if not order:
        return None

    ids = {order.client.user_id, order.restaurant.restaurateur.user_id}
    if order.delivery and order.delivery.livreur:
        ids.add(order.delivery.livreur.user_id)
    return ids
