"""Attendance service layer — ledger writes, write gates, and timesheet blockers.

Gate order for ``record_attendance`` (all run before any mutation):
  1. Ownership: employees may only write their own days.
  2. Timesheet blocker covering the day (non-privileged only).
  3. Month lock via ``is_editable_month`` (non-privileged only).
  4. Request lock: a day owned by an approved request is manager/admin only.
  5. Priority: a lower-priority write is silently ignored.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet.attendance.deriver import (
    calculate_total_hours,
    determine_status,
    is_editable_month,
    location_for_halves,
    should_apply_write,
)
from timesheet.attendance.models import AttendanceRecord, TimesheetBlocker
from timesheet.attendance.schemas import AttendanceEntry, BlockerCreate
from timesheet.common.actor import Actor
from timesheet.common.audit import create_audit_entry
from timesheet.common.clock import Clock
from timesheet.common.exceptions import (
    ConflictError,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from timesheet.config import settings
from timesheet.employees.service import DirectoryService
from timesheet.holidays.service import CalendarService

logger = logging.getLogger(__name__)


def _snapshot_values(record: Optional[AttendanceRecord]) -> Optional[dict]:
    if record is None:
        return None
    return {
        "status": record.status,
        "total_hours": record.total_hours,
        "work_location": record.work_location,
        "first_half": record.first_half,
        "second_half": record.second_half,
        "source_request_id": record.source_request_id,
    }


def month_bounds(year: int, month: int) -> tuple[date, date]:
    if not 1 <= month <= 12:
        raise ValidationException({"month": ["Month must be between 1 and 12."]})
    start = date(year, month, 1)
    next_month = date(year + (month == 12), month % 12 + 1, 1)
    return start, next_month - timedelta(days=1)


# ═════════════════════════════════════════════════════════════════════
# AttendanceService
# ═════════════════════════════════════════════════════════════════════


class AttendanceService:
    """Async ledger operations."""

    @staticmethod
    async def get_record(
        db: AsyncSession,
        employee_id: uuid.UUID,
        working_date: date,
    ) -> Optional[AttendanceRecord]:
        result = await db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.working_date == working_date,
            )
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_records_in_range(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start: date,
        end: date,
    ) -> dict[date, AttendanceRecord]:
        """Pre-load an employee's ledger rows for a window, keyed by day."""
        result = await db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.working_date >= start,
                AttendanceRecord.working_date <= end,
            )
        )
        return {r.working_date: r for r in result.scalars().all()}

    @staticmethod
    async def get_monthly_records(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
        month: int,
    ) -> Sequence[AttendanceRecord]:
        start, end = month_bounds(year, month)
        result = await db.execute(
            select(AttendanceRecord)
            .where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.working_date >= start,
                AttendanceRecord.working_date <= end,
            )
            .order_by(AttendanceRecord.working_date)
        )
        return result.scalars().all()

    # ─────────────────────────────────────────────────────────────────
    # recordAttendance
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def record_attendance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        working_date: date,
        entry: AttendanceEntry,
        actor: Actor,
        clock: Clock,
    ) -> AttendanceRecord:
        """Write one ledger day after the ownership / blocker / month / lock / priority gates."""
        privileged = actor.is_privileged

        if not privileged and not actor.owns(employee_id):
            raise ForbiddenException("You can only update your own attendance.")

        await DirectoryService.get_employee(db, employee_id)

        if not privileged:
            if await BlockerService.is_blocked(db, employee_id, working_date):
                raise ForbiddenException(
                    f"Timesheet is blocked for {working_date.isoformat()}."
                )
            if not is_editable_month(
                working_date, clock.now(), settings.EDIT_WINDOW_CUTOFF_HOUR,
            ):
                raise ForbiddenException(
                    f"Attendance for {working_date.strftime('%B %Y')} is locked."
                )

        existing = await AttendanceService.get_record(db, employee_id, working_date)
        if existing is not None and existing.is_locked and not privileged:
            raise ForbiddenException(
                "This day is managed by an approved request; contact your manager."
            )

        is_clear = entry.is_clear
        if is_clear:
            hours: Optional[Decimal] = None
            location = None
            status = None
        else:
            hours = entry.total_hours
            if hours is None and (entry.first_half or entry.second_half):
                hours = Decimal(calculate_total_hours(entry.first_half, entry.second_half))
            location = entry.work_location
            if location is None and entry.first_half and entry.second_half:
                location = location_for_halves(entry.first_half, entry.second_half)
            if privileged and entry.status is not None:
                status = entry.status
            else:
                calendar = await CalendarService.snapshot(db, working_date, working_date)
                status = determine_status(
                    hours, working_date, location, clock.today(), calendar,
                )

        if existing is not None and not should_apply_write(
            existing_status=existing.status,
            existing_location=existing.work_location,
            incoming_status=status,
            incoming_location=location,
            privileged=privileged,
            is_clear=is_clear,
        ):
            logger.info(
                "Ignored lower-priority write for employee %s on %s (%s/%s over %s/%s)",
                employee_id, working_date, status, location,
                existing.status, existing.work_location,
            )
            return existing

        old_values = _snapshot_values(existing)
        record = existing
        if record is None:
            record = AttendanceRecord(employee_id=employee_id, working_date=working_date)

        record.total_hours = hours
        record.work_location = location
        record.status = status
        record.first_half = None if is_clear else entry.first_half
        record.second_half = None if is_clear else entry.second_half
        record.updated_by = actor.employee_id
        if is_clear and privileged:
            record.source_request_id = None

        if existing is None:
            db.add(record)
            try:
                await db.flush()
            except IntegrityError:
                await db.rollback()
                raise ConflictError(
                    detail=(
                        f"Attendance for {working_date.isoformat()} was written "
                        "concurrently; reload and retry."
                    ),
                )
        else:
            await db.flush()

        await create_audit_entry(
            db,
            action="clear" if is_clear else "record",
            entity_type="attendance_record",
            entity_id=record.id,
            actor_id=actor.employee_id,
            old_values=old_values,
            new_values=_snapshot_values(record),
        )
        return record


# ═════════════════════════════════════════════════════════════════════
# BlockerService
# ═════════════════════════════════════════════════════════════════════


class BlockerService:
    """Explicit lock ranges over an employee's timesheet."""

    @staticmethod
    async def create_blocker(
        db: AsyncSession,
        data: BlockerCreate,
        actor: Actor,
    ) -> TimesheetBlocker:
        await DirectoryService.get_employee(db, data.employee_id)
        blocker = TimesheetBlocker(
            employee_id=data.employee_id,
            blocked_from=data.blocked_from,
            blocked_to=data.blocked_to,
            blocked_by=actor.employee_id,
            reason=data.reason,
        )
        db.add(blocker)
        await db.flush()
        logger.info(
            "Timesheet blocked for %s from %s to %s by %s",
            data.employee_id, data.blocked_from, data.blocked_to, actor.employee_id,
        )
        return blocker

    @staticmethod
    async def list_blockers(
        db: AsyncSession,
        employee_id: uuid.UUID,
    ) -> Sequence[TimesheetBlocker]:
        result = await db.execute(
            select(TimesheetBlocker)
            .where(TimesheetBlocker.employee_id == employee_id)
            .order_by(TimesheetBlocker.blocked_from.desc())
        )
        return result.scalars().all()

    @staticmethod
    async def delete_blocker(db: AsyncSession, blocker_id: uuid.UUID) -> None:
        blocker = await db.get(TimesheetBlocker, blocker_id)
        if blocker is None:
            raise NotFoundException("TimesheetBlocker", blocker_id)
        await db.delete(blocker)
        await db.flush()

    @staticmethod
    async def is_blocked(
        db: AsyncSession,
        employee_id: uuid.UUID,
        day: date,
    ) -> bool:
        result = await db.execute(
            select(TimesheetBlocker.id)
            .where(
                TimesheetBlocker.employee_id == employee_id,
                TimesheetBlocker.blocked_from <= day,
                TimesheetBlocker.blocked_to >= day,
            )
            .limit(1)
        )
        return result.first() is not None
