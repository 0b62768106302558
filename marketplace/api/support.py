"""
Support Endpoints

Support tickets (any authenticated user opens one, admins triage them) and
the admin audit trail. Mounted under the admin back-office prefix.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.access import not_found
from marketplace.core.security import get_current_user, require_roles
from marketplace.database import get_db
from marketplace.models import SupportTicket, TicketPriority, TicketStatus, User, UserRole
from marketplace.schemas import (
    AuditLogCreate,
    AuditLogResponse,
    ErrorResponse,
    SupportTicketCreate,
    SupportTicketResponse,
    SupportTicketUpdate,
)
from marketplace.services import support

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders/admin", tags=["Support"])

admin_only = require_roles(UserRole.ADMIN)


# =============================================================================
# TICKETS
# =============================================================================

@router.post(
    "/support/tickets",
    response_model=SupportTicketResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_ticket(
    data: SupportTicketCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> SupportTicketResponse:
    ticket = await support.open_ticket(
        db,
        user,
        subject=data.subject,
        message=data.message,
        category=data.category.upper(),
        priority=data.priority,
        related_user_id=data.related_user_id,
    )
    await db.commit()
    return SupportTicketResponse.model_validate(ticket)


@router.get("/support/tickets", response_model=List[SupportTicketResponse])
async def list_tickets(
    status_filter: Optional[TicketStatus] = Query(None, alias="status"),
    priority: Optional[TicketPriority] = Query(None),
    _: User = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> List[SupportTicketResponse]:
    tickets = await support.list_tickets(db, status=status_filter, priority=priority)
    return [SupportTicketResponse.model_validate(t) for t in tickets]


@router.put(
    "/support/tickets/{ticket_id}",
    response_model=SupportTicketResponse,
    responses={404: {"model": ErrorResponse}},
)
async def update_ticket(
    ticket_id: str,
    data: SupportTicketUpdate,
    user: User = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> SupportTicketResponse:
    result = await db.execute(select(SupportTicket).where(SupportTicket.id == ticket_id))
    ticket = result.scalar_one_or_none()
    if not ticket:
        raise not_found("Ticket")

    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in changes.items():
        setattr(ticket, field, value)

    await support.record_audit(
        db,
        user.id,
        "SUPPORT_TICKET_UPDATED",
        entity_type="SupportTicket",
        entity_id=ticket.id,
        details={field: getattr(value, "value", value) for field, value in changes.items()},
    )
    await db.commit()
    await db.refresh(ticket)
    return SupportTicketResponse.model_validate(ticket)


# =============================================================================
# AUDIT TRAIL
# =============================================================================

@router.post("/audit-logs", response_model=AuditLogResponse, status_code=status.HTTP_201_CREATED)
async def create_audit_log(
    data: AuditLogCreate,
    user: User = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> AuditLogResponse:
    entry = await support.record_audit(
        db,
        user.id,
        data.action,
        entity_type=data.entity_type,
        entity_id=data.entity_id,
        details=data.details,
    )
    await db.commit()
    return AuditLogResponse.model_validate(entry)


@router.get("/audit-logs", response_model=List[AuditLogResponse])
async def list_audit_logs(
    action: Optional[str] = Query(None),
    actor_user_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    _: User = Depends(admin_only),
    db: AsyncSession = Depends(get_db),
) -> List[AuditLogResponse]:
    entries = await support.list_audit_logs(db, action=action, actor_user_id=actor_user_id, limit=limit)
    return [AuditLogResponse.model_validate(e) for e in entries]
