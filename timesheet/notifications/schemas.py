"""Notification Pydantic schemas for responses."""


import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from timesheet.common.constants import NotificationType


class NotificationResponse(BaseModel):
    """Single notification in API responses."""

    id: uuid.UUID
    type: NotificationType
    title: str
    message: str
    entity_type: Optional[str] = None
    entity_id: Optional[uuid.UUID] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}
