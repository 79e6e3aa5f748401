"""Attendance status deriver and priority resolver — pure functions, no DB.

Hours table (per day, from the two half-day activity tags):
  both halves work   → 9 h → Full Day
  one half works     → 6 h → Half Day
  neither half works → 0 h → Leave

Write priority on a single day: Leave (3) > Client Visit (2) > WFH (1) > rest (0).
"""

from __future__ import annotations

import enum
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional, Protocol, Union

from timesheet.common.constants import (
    FULL_DAY_HOURS,
    HALF_DAY_HOURS,
    AttendanceStatus,
    WorkLocation,
)

WORK_KEYWORDS = ("office", "wfh", "work from home", "client visit", "present")
NON_WORK_TAGS = frozenset({"leave", "absent"})

HoursLike = Union[int, float, Decimal, None]


class CalendarLike(Protocol):
    def is_holiday(self, day: date) -> bool: ...

    def is_weekend(self, day: date) -> bool: ...


def _text(value: object) -> str:
    if value is None:
        return ""
    raw = value.value if isinstance(value, enum.Enum) else value
    return str(raw).strip().lower()


# ── Hours ───────────────────────────────────────────────────────────

def is_work_half(value: object) -> bool:
    """A half counts as work unless empty / Leave / Absent, and it names a work keyword."""
    text = _text(value)
    if not text or text in NON_WORK_TAGS:
        return False
    return any(keyword in text for keyword in WORK_KEYWORDS)


def calculate_total_hours(first_half: object, second_half: object) -> int:
    worked = int(is_work_half(first_half)) + int(is_work_half(second_half))
    if worked == 2:
        return FULL_DAY_HOURS
    if worked == 1:
        return HALF_DAY_HOURS
    return 0


def status_for_hours(hours: HoursLike) -> AttendanceStatus:
    """Reconciler mapping: 9 → Full Day, 6 → Half Day, 0 → Leave."""
    value = Decimal(str(hours or 0))
    if value >= FULL_DAY_HOURS:
        return AttendanceStatus.full_day
    if value > 0:
        return AttendanceStatus.half_day
    return AttendanceStatus.leave


def location_for_halves(first_half: object, second_half: object) -> Optional[WorkLocation]:
    """Day-level location when both halves agree on WFH / Client Visit, else None (office)."""
    first, second = _text(first_half), _text(second_half)
    if first != second:
        return None
    if first in ("wfh", "work from home"):
        return WorkLocation.wfh
    if first == "client visit":
        return WorkLocation.client_visit
    return None


# ── Status ──────────────────────────────────────────────────────────

def determine_status(
    hours: HoursLike,
    day: date,
    work_location: Optional[Union[WorkLocation, str]],
    today: date,
    calendar: CalendarLike,
) -> AttendanceStatus:
    """Status for an employee-entered day; first matching rule wins."""
    no_hours = hours is None or Decimal(str(hours)) == 0
    location = _text(work_location)

    if location in ("wfh", "client visit") and no_hours:
        return AttendanceStatus.not_updated
    if no_hours:
        if calendar.is_holiday(day):
            return AttendanceStatus.holiday
        if calendar.is_weekend(day):
            return AttendanceStatus.weekend
        if day <= today:
            return AttendanceStatus.absent
        return AttendanceStatus.not_updated
    if Decimal(str(hours)) >= HALF_DAY_HOURS:
        return AttendanceStatus.full_day
    return AttendanceStatus.half_day


# ── Priority ────────────────────────────────────────────────────────

def priority(
    status: Optional[Union[AttendanceStatus, str]],
    work_location: Optional[Union[WorkLocation, str]],
) -> int:
    if _text(status) == "leave":
        return 3
    location = _text(work_location)
    if location == "client visit":
        return 2
    if location == "wfh":
        return 1
    return 0


def should_apply_write(
    *,
    existing_status: Optional[Union[AttendanceStatus, str]],
    existing_location: Optional[Union[WorkLocation, str]],
    incoming_status: Optional[Union[AttendanceStatus, str]],
    incoming_location: Optional[Union[WorkLocation, str]],
    privileged: bool,
    is_clear: bool = False,
) -> bool:
    """False when a lower-priority, non-admin, non-clear write would downgrade the day."""
    if privileged or is_clear or existing_status is None:
        return True
    return priority(incoming_status, incoming_location) >= priority(
        existing_status, existing_location,
    )


# ── Month lock ──────────────────────────────────────────────────────

def is_editable_month(target: date, now: datetime, cutoff_hour: int = 18) -> bool:
    """Current/future month always; previous month only on the 1st before the cut-off."""
    today = now.date()
    if (target.year, target.month) >= (today.year, today.month):
        return True
    previous = today.replace(day=1) - timedelta(days=1)
    if (target.year, target.month) == (previous.year, previous.month):
        return today.day == 1 and now.hour < cutoff_hour
    return False
