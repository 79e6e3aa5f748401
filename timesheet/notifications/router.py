"""Notification endpoints — list, mark read, unread count."""


import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet.common.actor import Actor, get_actor
from timesheet.database import get_db
from timesheet.notifications.schemas import NotificationResponse
from timesheet.notifications.service import NotificationService

router = APIRouter(prefix="", tags=["notifications"])


# ── GET / — list current user's notifications ───────────────────────

@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    is_read: Optional[bool] = Query(default=None, description="Filter by read status"),
    limit: int = Query(50, ge=1, le=200),
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    return await NotificationService.get_notifications(
        db, actor.employee_id, is_read=is_read, limit=limit,
    )


# ── GET /unread-count — badge count ─────────────────────────────────
# Registered before /{notification_id}/read so "unread-count" is not parsed as a UUID.

@router.get("/unread-count")
async def unread_count(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.get_unread_count(db, actor.employee_id)
    return {"data": {"count": count}}


@router.put("/read-all")
async def mark_all_read(
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    count = await NotificationService.mark_all_read(db, actor.employee_id)
    return {"message": "All notifications marked as read", "data": {"count": count}}


@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: uuid.UUID,
    actor: Actor = Depends(get_actor),
    db: AsyncSession = Depends(get_db),
):
    notification = await NotificationService.mark_read(db, notification_id, actor.employee_id)
    return {
        "message": "Notification marked as read",
        "data": NotificationResponse.model_validate(notification),
    }
