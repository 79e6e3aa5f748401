"""Enums and constants for the timesheet engine — stored as VARCHAR values."""

from __future__ import annotations

import enum


# ── Roles ───────────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    manager = "manager"
    admin = "admin"


PRIVILEGED_ROLES = frozenset({UserRole.manager, UserRole.admin})


# ── Leave ───────────────────────────────────────────────────────────

class LeaveStatus(str, enum.Enum):
    pending = "Pending"
    approved = "Approved"
    rejected = "Rejected"
    cancelled = "Cancelled"
    requesting_cancellation = "Requesting for Cancellation"
    requesting_modification = "Requesting for Modification"
    cancellation_approved = "Cancellation Approved"
    cancellation_rejected = "Cancellation Rejected"
    modification_approved = "Modification Approved"
    modification_rejected = "Modification Rejected"
    modification_cancelled = "Modification Cancelled"
    request_modified = "Request Modified"


# Statuses that still hold half-day slots for conflict detection
ACTIVE_LEAVE_STATUSES = frozenset({
    LeaveStatus.pending,
    LeaveStatus.approved,
    LeaveStatus.request_modified,
})

# Statuses whose attendance has been written by the reconciler
GRANTED_LEAVE_STATUSES = frozenset({
    LeaveStatus.approved,
    LeaveStatus.request_modified,
    LeaveStatus.modification_approved,
})


class RequestType(str, enum.Enum):
    leave = "Leave"
    work_from_home = "Work From Home"
    client_visit = "Client Visit"
    half_day = "Half Day"


COMPOSITE_SEPARATOR = " + "


class HalfDayType(str, enum.Enum):
    first_half = "first_half"
    second_half = "second_half"


class Activity(str, enum.Enum):
    """Activity tag for one half of a working day."""

    office = "Office"
    wfh = "WFH"
    client_visit = "Client Visit"
    leave = "Leave"
    absent = "Absent"


# ── Attendance ──────────────────────────────────────────────────────

class AttendanceStatus(str, enum.Enum):
    full_day = "Full Day"
    half_day = "Half Day"
    leave = "Leave"
    pending = "Pending"
    not_updated = "Not Updated"
    weekend = "Weekend"
    holiday = "Holiday"
    absent = "Absent"


class WorkLocation(str, enum.Enum):
    wfh = "WFH"
    client_visit = "Client Visit"


class EmploymentType(str, enum.Enum):
    intern = "Intern"
    full_timer = "FullTimer"


# ── Notifications ───────────────────────────────────────────────────

class NotificationType(str, enum.Enum):
    info = "info"
    action_required = "action_required"
    approval = "approval"
    reminder = "reminder"
    alert = "alert"


# ── Misc ────────────────────────────────────────────────────────────

DATE_FORMAT = "%Y-%m-%d"
WEEKEND_DAYS = frozenset({5, 6})  # Saturday, Sunday
MAX_RANGE_DAYS = 366
FULL_DAY_HOURS = 9
HALF_DAY_HOURS = 6
MAX_ACCRUAL_MONTHS = 600
