"""Attendance Pydantic v2 schemas — ledger entries and timesheet blockers."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from timesheet.common.constants import AttendanceStatus, WorkLocation


# ═════════════════════════════════════════════════════════════════════
# Attendance ledger
# ═════════════════════════════════════════════════════════════════════


class AttendanceEntry(BaseModel):
    """One day's attendance as entered by an employee or corrected by a manager.

    Sending every field as null clears the day.
    """

    total_hours: Optional[Decimal] = Field(None, ge=0, le=24)
    work_location: Optional[WorkLocation] = None
    first_half: Optional[str] = Field(None, max_length=30)
    second_half: Optional[str] = Field(None, max_length=30)
    # Honoured for managers/admins only; employees get the derived status
    status: Optional[AttendanceStatus] = None

    @property
    def is_clear(self) -> bool:
        return (
            self.total_hours is None
            and self.work_location is None
            and self.first_half is None
            and self.second_half is None
            and self.status is None
        )


class AttendanceRecordOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    working_date: date
    total_hours: Optional[Decimal] = None
    work_location: Optional[WorkLocation] = None
    status: Optional[AttendanceStatus] = None
    first_half: Optional[str] = None
    second_half: Optional[str] = None
    source_request_id: Optional[uuid.UUID] = None
    updated_at: Optional[datetime] = None


# ═════════════════════════════════════════════════════════════════════
# Timesheet blockers
# ═════════════════════════════════════════════════════════════════════


class BlockerCreate(BaseModel):
    employee_id: uuid.UUID
    blocked_from: date
    blocked_to: date
    reason: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def validate_range(self) -> "BlockerCreate":
        if self.blocked_to < self.blocked_from:
            raise ValueError("blocked_to must be on or after blocked_from.")
        return self


class BlockerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    blocked_from: date
    blocked_to: date
    blocked_by: Optional[uuid.UUID] = None
    reason: Optional[str] = None
    blocked_at: Optional[datetime] = None


class BackfillResult(BaseModel):
    job: str
    target: str
    updated: int
