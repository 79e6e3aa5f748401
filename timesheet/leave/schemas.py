"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request  → request bodies (write)
  - *Out                → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from timesheet.common.constants import (
    COMPOSITE_SEPARATOR,
    Activity,
    HalfDayType,
    LeaveStatus,
    RequestType,
)
from timesheet.leave.state_machine import LeaveAction

# Activity tag written into a half for each request type
TYPE_ACTIVITY: dict[str, str] = {
    RequestType.leave.value: Activity.leave.value,
    RequestType.work_from_home.value: Activity.wfh.value,
    RequestType.client_visit.value: Activity.client_visit.value,
    RequestType.half_day.value: Activity.leave.value,
    **{a.value: a.value for a in Activity},
}


def split_composite(request_type: str) -> list[str]:
    return [part.strip() for part in request_type.split(COMPOSITE_SEPARATOR.strip())]


def is_composite(request_type: str) -> bool:
    return len(split_composite(request_type)) == 2


def _validate_request_type(value: str) -> str:
    value = value.strip()
    parts = split_composite(value)
    if len(parts) > 2 or any(part not in TYPE_ACTIVITY for part in parts):
        raise ValueError(
            f"Unknown request type '{value}'. Use one of "
            f"{[t.value for t in RequestType]} or a composite 'A + B'."
        )
    return COMPOSITE_SEPARATOR.join(parts)


# ═════════════════════════════════════════════════════════════════════
# Requests (write)
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Submission body. Halves are derived from the type when omitted."""

    employee_id: Optional[uuid.UUID] = None
    request_type: str = Field(..., min_length=1, max_length=80)
    from_date: date
    to_date: date
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    is_half_day: bool = False
    half_day_type: Optional[HalfDayType] = None
    first_half: Optional[str] = Field(None, max_length=30)
    second_half: Optional[str] = Field(None, max_length=30)

    @field_validator("request_type")
    @classmethod
    def check_request_type(cls, v: str) -> str:
        return _validate_request_type(v)

    @model_validator(mode="after")
    def validate_request(self) -> "LeaveRequestCreate":
        if self.to_date < self.from_date:
            raise ValueError("to_date must be on or after from_date.")
        if self.request_type == RequestType.half_day.value or is_composite(self.request_type):
            self.is_half_day = True
        if (
            self.is_half_day
            and self.half_day_type is None
            and not is_composite(self.request_type)
            and not (self.first_half and self.second_half)
        ):
            raise ValueError("half_day_type is required for half-day requests.")
        return self


class LeaveChanges(BaseModel):
    """Proposed replacement values for a modification."""

    request_type: Optional[str] = Field(None, max_length=80)
    first_half: Optional[str] = Field(None, max_length=30)
    second_half: Optional[str] = Field(None, max_length=30)
    is_half_day: Optional[bool] = None
    half_day_type: Optional[HalfDayType] = None
    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None

    @field_validator("request_type")
    @classmethod
    def check_request_type(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _validate_request_type(v)

    @model_validator(mode="after")
    def require_change(self) -> "LeaveChanges":
        if not any(
            v is not None
            for v in (self.request_type, self.first_half, self.second_half, self.is_half_day, self.half_day_type)
        ):
            raise ValueError("A modification must change the type or at least one half.")
        return self


class TransitionRequest(BaseModel):
    action: LeaveAction
    remarks: Optional[str] = Field(None, max_length=1000)


class CancelDatesRequest(BaseModel):
    dates: list[date] = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=1000)


class ModifyDatesRequest(BaseModel):
    dates: list[date] = Field(..., min_length=1)
    changes: LeaveChanges


# ═════════════════════════════════════════════════════════════════════
# Responses (read)
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    request_type: str
    from_date: date
    to_date: date
    title: Optional[str] = None
    description: Optional[str] = None
    status: LeaveStatus
    duration: Decimal
    first_half: str
    second_half: str
    is_half_day: bool
    half_day_type: Optional[HalfDayType] = None
    submitted_date: date
    cancellation_requested_on: Optional[date] = None
    parent_id: Optional[uuid.UUID] = None
    pending_changes: Optional[dict[str, Any]] = None
    reviewed_by: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    reviewer_remarks: Optional[str] = None
    is_read: bool = False
    is_read_employee: bool = True
    created_at: Optional[datetime] = None


class ReconciliationOut(BaseModel):
    reconciled_dates: list[date] = []
    failed_dates: list[date] = []
    complete: bool = True


class TransitionOut(BaseModel):
    request: LeaveRequestOut
    reconciliation: Optional[ReconciliationOut] = None


class ClearAttendanceOut(BaseModel):
    request_id: uuid.UUID
    cleared_days: int


class TypeStats(BaseModel):
    applied: int = 0
    approved: int = 0
    rejected: int = 0
    total: Decimal = Decimal("0")


class LeaveStatsOut(BaseModel):
    employee_id: uuid.UUID
    year: int
    month: int
    by_type: dict[str, TypeStats]
