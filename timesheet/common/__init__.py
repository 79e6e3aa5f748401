"""Common module — shared utilities for the timesheet engine."""

from timesheet.common.audit import AuditTrail, create_audit_entry
from timesheet.common.clock import Clock, FixedClock, get_clock
from timesheet.common.constants import (
    ACTIVE_LEAVE_STATUSES,
    DATE_FORMAT,
    GRANTED_LEAVE_STATUSES,
    Activity,
    AttendanceStatus,
    EmploymentType,
    HalfDayType,
    LeaveStatus,
    NotificationType,
    RequestType,
    UserRole,
    WorkLocation,
)
from timesheet.common.exceptions import (
    AppException,
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
    register_exception_handlers,
)

__all__ = [
    # Audit
    "AuditTrail",
    "create_audit_entry",
    # Clock
    "Clock",
    "FixedClock",
    "get_clock",
    # Constants / Enums
    "Activity",
    "AttendanceStatus",
    "EmploymentType",
    "HalfDayType",
    "LeaveStatus",
    "NotificationType",
    "RequestType",
    "UserRole",
    "WorkLocation",
    "ACTIVE_LEAVE_STATUSES",
    "GRANTED_LEAVE_STATUSES",
    "DATE_FORMAT",
    # Exceptions
    "AppException",
    "ConflictError",
    "ForbiddenException",
    "NotFoundException",
    "ValidationException",
    "register_exception_handlers",
]
