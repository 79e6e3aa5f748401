"""Scheduled ledger backfills — weekend marking, daily not-updated, monthly absent sweep.

Backfill writes are the lowest-priority writers in the system: they only touch
days with no row or a NULL status and never overwrite a recorded status.
Run from ``scripts/attendance_backfill.py`` (cron) or ad hoc by an admin.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet.attendance.models import AttendanceRecord
from timesheet.attendance.service import month_bounds
from timesheet.common.constants import Activity, AttendanceStatus, NotificationType
from timesheet.employees.service import DirectoryService
from timesheet.holidays.service import CalendarService, is_weekend
from timesheet.notifications.service import dispatch_notification

logger = logging.getLogger(__name__)

UNRESOLVED_STATUSES = (AttendanceStatus.not_updated, AttendanceStatus.pending)


class AttendanceJobs:
    """Idempotent backfills over all active employees."""

    @staticmethod
    async def _fill_missing(
        db: AsyncSession,
        day: date,
        status: AttendanceStatus,
        hours: Optional[Decimal],
        employee_ids: Optional[Iterable[uuid.UUID]] = None,
    ) -> int:
        ids = list(employee_ids) if employee_ids is not None else await DirectoryService.list_active_ids(db)
        if not ids:
            return 0

        result = await db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.working_date == day,
                AttendanceRecord.employee_id.in_(ids),
            )
        )
        by_employee = {r.employee_id: r for r in result.scalars().all()}

        touched = 0
        for employee_id in ids:
            record = by_employee.get(employee_id)
            if record is None:
                db.add(AttendanceRecord(
                    employee_id=employee_id,
                    working_date=day,
                    status=status,
                    total_hours=hours,
                ))
                touched += 1
            elif record.status is None:
                record.status = status
                record.total_hours = hours
                touched += 1
        await db.flush()
        return touched

    @staticmethod
    async def mark_weekend(
        db: AsyncSession,
        day: date,
        employee_ids: Optional[Iterable[uuid.UUID]] = None,
    ) -> int:
        """On a Saturday/Sunday, give every unrecorded employee a Weekend row (0 h)."""
        if not is_weekend(day):
            logger.debug("Weekend check skipped: %s is a weekday", day)
            return 0
        count = await AttendanceJobs._fill_missing(
            db, day, AttendanceStatus.weekend, Decimal("0"), employee_ids,
        )
        logger.info("Weekend check: %d records marked on %s", count, day)
        return count

    @staticmethod
    async def mark_not_updated(
        db: AsyncSession,
        day: date,
        employee_ids: Optional[Iterable[uuid.UUID]] = None,
    ) -> int:
        """For a past weekday, mark unrecorded days Holiday (if one) or Not Updated."""
        if is_weekend(day):
            logger.debug("Not-updated check skipped: %s is a weekend", day)
            return 0
        holiday = await CalendarService.is_holiday(db, day)
        status = AttendanceStatus.holiday if holiday else AttendanceStatus.not_updated
        count = await AttendanceJobs._fill_missing(
            db, day, status, Decimal("0"), employee_ids,
        )
        logger.info("Daily check: %d records marked %s on %s", count, status.value, day)
        return count

    @staticmethod
    async def mark_monthly_absent(db: AsyncSession, year: int, month: int) -> int:
        """Close a month: Not Updated / Pending / NULL days become Absent (both halves, 0 h)."""
        start, end = month_bounds(year, month)
        result = await db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.working_date >= start,
                AttendanceRecord.working_date <= end,
                or_(
                    AttendanceRecord.status.in_(UNRESOLVED_STATUSES),
                    AttendanceRecord.status.is_(None),
                ),
            )
        )
        records = result.scalars().all()
        for record in records:
            record.status = AttendanceStatus.absent
            record.first_half = Activity.absent.value
            record.second_half = Activity.absent.value
            record.total_hours = Decimal("0")
        await db.flush()
        logger.info("Monthly sweep %04d-%02d: %d records marked Absent", year, month, len(records))
        return len(records)

    @staticmethod
    async def remind_unresolved(db: AsyncSession, today: date) -> int:
        """Notify employees who still have Not Updated / Pending days this month."""
        start = today.replace(day=1)
        result = await db.execute(
            select(AttendanceRecord.employee_id)
            .where(
                AttendanceRecord.working_date >= start,
                AttendanceRecord.working_date <= today,
                AttendanceRecord.status.in_(UNRESOLVED_STATUSES),
            )
            .distinct()
        )
        employee_ids = list(result.scalars().all())
        for employee_id in employee_ids:
            await dispatch_notification(
                db,
                recipient_id=employee_id,
                type=NotificationType.reminder,
                title="Timesheet incomplete",
                message=(
                    f"You have days in {today.strftime('%B %Y')} still marked "
                    "Not Updated or Pending. Please update them before month end."
                ),
                entity_type="attendance",
            )
        logger.info("Month-end reminder sent to %d employees", len(employee_ids))
        return len(employee_ids)

    @staticmethod
    async def run_daily(db: AsyncSession, today: date) -> dict[str, int]:
        """Everything the nightly cron does for ``today`` (local date)."""
        counts = {
            "weekend": await AttendanceJobs.mark_weekend(db, today),
            "not_updated": await AttendanceJobs.mark_not_updated(db, today - timedelta(days=1)),
        }
        if today.day == 1:
            previous = today - timedelta(days=1)
            counts["absent"] = await AttendanceJobs.mark_monthly_absent(
                db, previous.year, previous.month,
            )
        return counts
