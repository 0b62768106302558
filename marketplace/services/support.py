"""
Support tickets and the admin audit trail.

Tickets come from any user through the support form and from couriers
reporting a problem on the road. Audit entries record back-office actions;
the helpers only flush, callers commit.
"""

import logging
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models import (
    AuditLog,
    Delivery,
    IssueType,
    SupportTicket,
    TicketPriority,
    TicketStatus,
    User,
)

logger = logging.getLogger(__name__)

ISSUE_PRIORITIES = {
    IssueType.SAFETY: TicketPriority.URGENT,
    IssueType.CUSTOMER: TicketPriority.HIGH,
    IssueType.RESTAURANT: TicketPriority.MEDIUM,
    IssueType.VEHICLE: TicketPriority.HIGH,
    IssueType.OTHER: TicketPriority.LOW,
}

ISSUE_SUBJECTS = {
    IssueType.SAFETY: "Problème de sécurité",
    IssueType.CUSTOMER: "Problème avec un client",
    IssueType.RESTAURANT: "Problème avec un restaurant",
    IssueType.VEHICLE: "Problème de véhicule",
    IssueType.OTHER: "Signalement livreur",
}


async def record_audit(
    db: AsyncSession,
    actor_user_id: Optional[str],
    action: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
) -> AuditLog:
    entry = AuditLog(
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
    )
    db.add(entry)
    await db.flush()
    logger.info(f"Audit: {action} on {entity_type or '-'} {entity_id or ''} by {actor_user_id}")
    return entry


async def open_ticket(
    db: AsyncSession,
    reporter: User,
    subject: str,
    message: str,
    category: str = "GENERAL",
    priority: TicketPriority = TicketPriority.MEDIUM,
    related_user_id: Optional[str] = None,
    related_delivery_id: Optional[str] = None,
) -> SupportTicket:
    ticket = SupportTicket(
        reporter_id=reporter.id,
        subject=subject,
        message=message,
        category=category,
        priority=priority,
        related_user_id=related_user_id,
        related_delivery_id=related_delivery_id,
    )
    db.add(ticket)
    await db.flush()
    logger.info(f"🎫 Ticket {ticket.id} opened by {reporter.email} ({category}, {priority.value})")
    return ticket


async def report_issue(
    db: AsyncSession,
    reporter: User,
    issue: IssueType,
    message: str,
    delivery: Optional[Delivery] = None,
) -> SupportTicket:
    """Turn a courier report into a ticket prioritised by issue type."""
    related_user_id = None
    if issue == IssueType.CUSTOMER and delivery is not None and delivery.order.client is not None:
        related_user_id = delivery.order.client.user_id

    return await open_ticket(
        db,
        reporter,
        subject=ISSUE_SUBJECTS[issue],
        message=message,
        category=issue.value,
        priority=ISSUE_PRIORITIES[issue],
        related_user_id=related_user_id,
        related_delivery_id=delivery.id if delivery is not None else None,
    )


async def list_tickets(
    db: AsyncSession,
    status: Optional[TicketStatus] = None,
    priority: Optional[TicketPriority] = None,
) -> Sequence[SupportTicket]:
    query = select(SupportTicket).order_by(SupportTicket.created_at.desc())
    if status:
        query = query.where(SupportTicket.status == status)
    if priority:
        query = query.where(SupportTicket.priority == priority)
    result = await db.execute(query)
    return result.scalars().all()


async def list_audit_logs(
    db: AsyncSession,
    action: Optional[str] = None,
    actor_user_id: Optional[str] = None,
    limit: int = 100,
) -> Sequence[AuditLog]:
    query = select(AuditLog).order_by(AuditLog.created_at.desc()).limit(limit)
    if action:
        query = query.where(AuditLog.action == action)
    if actor_user_id:
        query = query.where(AuditLog.actor_user_id == actor_user_id)
    result = await db.execute(query)
    return result.scalars().all()
