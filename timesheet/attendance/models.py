"""Attendance ORM models: AttendanceRecord (the per-day ledger) and TimesheetBlocker."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from timesheet.common.constants import AttendanceStatus, WorkLocation
from timesheet.database import Base, enum_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "working_date", name="uq_attendance_employee_day"),
        sa.Index("ix_attendance_source_request", "source_request_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    working_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    total_hours: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(4, 1))
    work_location: Mapped[Optional[WorkLocation]] = mapped_column(
        enum_column(WorkLocation, "work_location", length=20)
    )
    status: Mapped[Optional[AttendanceStatus]] = mapped_column(
        enum_column(AttendanceStatus, "attendance_status", length=20)
    )
    first_half: Mapped[Optional[str]] = mapped_column(sa.String(30))
    second_half: Mapped[Optional[str]] = mapped_column(sa.String(30))
    # Non-null ⇒ written by an approved request; only managers/admins may edit
    source_request_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True),
        sa.ForeignKey("leave_requests.id", ondelete="SET NULL"),
        nullable=True,
    )
    updated_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    @property
    def is_locked(self) -> bool:
        return self.source_request_id is not None

    def __repr__(self) -> str:
        return f"<AttendanceRecord {self.employee_id} {self.working_date} {self.status}>"


class TimesheetBlocker(Base):
    __tablename__ = "timesheet_blockers"
    __table_args__ = (
        sa.CheckConstraint("blocked_to >= blocked_from", name="ck_blocker_range"),
        sa.Index("ix_blocker_employee_range", "employee_id", "blocked_from", "blocked_to"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    blocked_from: Mapped[date] = mapped_column(sa.Date, nullable=False)
    blocked_to: Mapped[date] = mapped_column(sa.Date, nullable=False)
    blocked_by: Mapped[Optional[uuid.UUID]] = mapped_column(UUID(as_uuid=True))
    reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    blocked_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), default=_utcnow
    )
