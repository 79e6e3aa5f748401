"""Notification service — CRUD operations and fire-and-forget dispatch helpers."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet.common.constants import NotificationType
from timesheet.common.exceptions import ForbiddenException, NotFoundException
from timesheet.notifications.models import Notification

logger = logging.getLogger(__name__)


# ── Core service ────────────────────────────────────────────────────


class NotificationService:
    """Async notification operations."""

    @staticmethod
    async def create_notification(
        db: AsyncSession,
        *,
        recipient_id: uuid.UUID,
        type: NotificationType = NotificationType.info,
        title: str,
        message: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
    ) -> Notification:
        """Create a new notification and flush to DB."""
        notification = Notification(
            recipient_id=recipient_id,
            type=type,
            title=title,
            message=message,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        db.add(notification)
        await db.flush()
        return notification

    @staticmethod
    async def get_notifications(
        db: AsyncSession,
        employee_id: uuid.UUID,
        *,
        is_read: Optional[bool] = None,
        limit: int = 50,
    ) -> Sequence[Notification]:
        """Return an employee's notifications, newest first."""
        query = (
            select(Notification)
            .where(Notification.recipient_id == employee_id)
            .order_by(Notification.created_at.desc())
            .limit(limit)
        )
        if is_read is not None:
            query = query.where(Notification.is_read == is_read)
        result = await db.execute(query)
        return result.scalars().all()

    @staticmethod
    async def mark_read(
        db: AsyncSession,
        notification_id: uuid.UUID,
        employee_id: uuid.UUID,
    ) -> Notification:
        """Mark a single notification as read. Verifies ownership."""
        notification = await db.get(Notification, notification_id)
        if notification is None:
            raise NotFoundException("Notification", notification_id)
        if notification.recipient_id != employee_id:
            raise ForbiddenException("You can only mark your own notifications as read.")

        notification.is_read = True
        notification.read_at = datetime.now(timezone.utc)
        await db.flush()
        return notification

    @staticmethod
    async def mark_all_read(db: AsyncSession, employee_id: uuid.UUID) -> int:
        """Bulk-mark all unread notifications as read. Returns count updated."""
        result = await db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == employee_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=datetime.now(timezone.utc))
        )
        await db.flush()
        return result.rowcount  # type: ignore[return-value]

    @staticmethod
    async def get_unread_count(db: AsyncSession, employee_id: uuid.UUID) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.recipient_id == employee_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()


# ── Fire-and-forget dispatch ────────────────────────────────────────
# Callers are state transitions; a failed notification must never undo one.


async def dispatch_notification(
    db: AsyncSession,
    *,
    recipient_id: Optional[uuid.UUID],
    type: NotificationType = NotificationType.info,
    title: str,
    message: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[uuid.UUID] = None,
) -> Optional[Notification]:
    """Create a notification inside a savepoint; log and return None on failure."""
    if recipient_id is None:
        return None
    try:
        async with db.begin_nested():
            return await NotificationService.create_notification(
                db,
                recipient_id=recipient_id,
                type=type,
                title=title,
                message=message,
                entity_type=entity_type,
                entity_id=entity_id,
            )
    except Exception:
        logger.exception(
            "Notification '%s' to %s failed; continuing", title, recipient_id,
        )
        return None


async def notify_request_submitted(db: AsyncSession, leave_request, manager_id) -> None:
    """Tell the employee's manager a request awaits review."""
    await dispatch_notification(
        db,
        recipient_id=manager_id,
        type=NotificationType.action_required,
        title=f"New {leave_request.request_type} request",
        message=(
            f"A {leave_request.request_type} request from {leave_request.from_date} to "
            f"{leave_request.to_date} ({leave_request.duration} day(s)) requires your review."
        ),
        entity_type="leave_request",
        entity_id=leave_request.id,
    )


async def notify_status_change(db: AsyncSession, leave_request) -> None:
    """Tell the employee their request moved to a new status."""
    await dispatch_notification(
        db,
        recipient_id=leave_request.employee_id,
        type=NotificationType.approval,
        title=f"Request {leave_request.status.value}",
        message=(
            f"Your {leave_request.request_type} request from {leave_request.from_date} to "
            f"{leave_request.to_date} is now '{leave_request.status.value}'."
        ),
        entity_type="leave_request",
        entity_id=leave_request.id,
    )
