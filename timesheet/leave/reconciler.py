"""Reconciler — writes granted requests into the attendance ledger.

Every non-weekend day of the request is upserted on its own SAVEPOINT, so a
failing day rolls back alone and the rest of the range still lands. Upserts
recompute the same values from the request's halves, which makes a repeat
run (re-approval, resume after partial failure) idempotent.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet.attendance.deriver import (
    calculate_total_hours,
    location_for_halves,
    status_for_hours,
)
from timesheet.attendance.models import AttendanceRecord
from timesheet.attendance.service import AttendanceService
from timesheet.holidays.service import CalendarSnapshot, iter_days
from timesheet.leave.models import LeaveRequest

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    request_id: uuid.UUID
    reconciled_dates: list[date] = field(default_factory=list)
    failed_dates: list[date] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed_dates


class LeaveReconciler:
    """Ledger side effects of lifecycle transitions."""

    @staticmethod
    async def reconcile(
        db: AsyncSession,
        request: LeaveRequest,
        calendar: CalendarSnapshot,
        *,
        actor_id: Optional[uuid.UUID] = None,
    ) -> ReconciliationResult:
        """Upsert and lock one ledger row per non-weekend day of ``request``."""
        result = ReconciliationResult(request_id=request.id)
        hours = calculate_total_hours(request.first_half, request.second_half)
        status = status_for_hours(hours)
        location = location_for_halves(request.first_half, request.second_half)

        existing = await AttendanceService.get_records_in_range(
            db, request.employee_id, request.from_date, request.to_date,
        )

        for day in iter_days(request.from_date, request.to_date):
            # Only weekends are skipped. A holiday inside the range is written
            # as a Leave row and is charged as usage, though duration excludes it.
            if calendar.is_weekend(day):
                continue
            try:
                async with db.begin_nested():
                    record = existing.get(day)
                    if record is None:
                        record = AttendanceRecord(
                            employee_id=request.employee_id,
                            working_date=day,
                        )
                        db.add(record)
                    record.total_hours = Decimal(hours)
                    record.status = status
                    record.work_location = location
                    record.first_half = request.first_half
                    record.second_half = request.second_half
                    record.source_request_id = request.id
                    record.updated_by = actor_id
                    await db.flush()
            except SQLAlchemyError:
                logger.exception(
                    "Reconciliation of request %s failed on %s; continuing",
                    request.id, day,
                )
                existing.pop(day, None)
                result.failed_dates.append(day)
                continue
            existing[day] = record
            result.reconciled_dates.append(day)

        logger.info(
            "Reconciled request %s: %d day(s) written, %d failed",
            request.id, len(result.reconciled_dates), len(result.failed_dates),
        )
        return result

    @staticmethod
    async def release_locks(
        db: AsyncSession,
        request_ids: Iterable[uuid.UUID],
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> int:
        """Make days owned by these requests employee-editable again."""
        ids = [rid for rid in request_ids if rid is not None]
        if not ids:
            return 0
        stmt = update(AttendanceRecord).where(AttendanceRecord.source_request_id.in_(ids))
        if start is not None:
            stmt = stmt.where(AttendanceRecord.working_date >= start)
        if end is not None:
            stmt = stmt.where(AttendanceRecord.working_date <= end)
        result = await db.execute(
            stmt.values(source_request_id=None).execution_options(synchronize_session="fetch")
        )
        await db.flush()
        return result.rowcount or 0

    @staticmethod
    async def wipe_range(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start: date,
        end: date,
    ) -> int:
        """Best effort: null status/hours/location in a range. Failures are logged only."""
        try:
            async with db.begin_nested():
                result = await db.execute(
                    update(AttendanceRecord)
                    .where(
                        AttendanceRecord.employee_id == employee_id,
                        AttendanceRecord.working_date >= start,
                        AttendanceRecord.working_date <= end,
                    )
                    .values(status=None, total_hours=None, work_location=None)
                    .execution_options(synchronize_session="fetch")
                )
            return result.rowcount or 0
        except SQLAlchemyError:
            logger.exception(
                "Attendance wipe for %s between %s and %s failed", employee_id, start, end,
            )
            return 0

    @staticmethod
    async def clear_attendance(
        db: AsyncSession,
        request_ids: Iterable[uuid.UUID],
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> int:
        """Full wipe of the rows tied to these requests, lock included."""
        ids = [rid for rid in request_ids if rid is not None]
        if not ids:
            return 0
        stmt = update(AttendanceRecord).where(AttendanceRecord.source_request_id.in_(ids))
        if start is not None:
            stmt = stmt.where(AttendanceRecord.working_date >= start)
        if end is not None:
            stmt = stmt.where(AttendanceRecord.working_date <= end)
        result = await db.execute(
            stmt.values(
                status=None,
                total_hours=None,
                work_location=None,
                source_request_id=None,
                first_half=None,
                second_half=None,
            ).execution_options(synchronize_session="fetch")
        )
        await db.flush()
        return result.rowcount or 0
