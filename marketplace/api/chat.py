"""
Order Chat Endpoints

REST access to the chat history that the Socket.IO gateway writes.
Only participants of the order (client, restaurateur, courier) and admins
may read or change it.
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.access import forbidden, not_found
from marketplace.core.security import ensure_self_or_admin, get_current_user
from marketplace.database import get_db
from marketplace.models import User, UserRole
from marketplace.schemas import ChatMessageResponse, ChatReadRequest
from marketplace.services import chat as chat_store

router = APIRouter(prefix="/api/chat", tags=["Chat"])


async def _ensure_participant(db: AsyncSession, user: User, order_id: str) -> None:
    participants = await chat_store.participant_ids(db, order_id)
    if participants is None:
        raise not_found("Order")
    if user.role != UserRole.ADMIN and user.id not in participants:
        raise forbidden()


@router.get("/{order_id}/history")
async def chat_history(
    order_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    await _ensure_participant(db, user, order_id)
    messages = await chat_store.get_history(db, order_id)
    return {"messages": [ChatMessageResponse.model_validate(m) for m in messages]}


@router.delete("/{order_id}")
async def delete_chat(
    order_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    await _ensure_participant(db, user, order_id)
    deleted = await chat_store.delete_history(db, order_id)
    return {"success": True, "deleted": deleted}


@router.post("/{order_id}/read")
async def mark_read(
    order_id: str,
    data: ChatReadRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    ensure_self_or_admin(user, data.user_id)
    await _ensure_participant(db, user, order_id)
    updated = await chat_store.mark_read(db, order_id, data.user_id)
    return {"success": True, "updated": updated}


@router.get("/{order_id}/unread/{user_id}")
async def unread(
    order_id: str,
    user_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict[str, int]:
    ensure_self_or_admin(user, user_id)
    await _ensure_participant(db, user, order_id)
    return {"unread_count": await chat_store.unread_count(db, order_id, user_id)}
