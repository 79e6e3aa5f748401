"""Attendance ledger test suite — write gates (ownership, blocker, month lock,
request lock, priority), clearing, blockers and the scheduled backfill jobs.

Tests run against SQLite via the shared conftest.py fixtures. The default clock
is Monday 2025-06-09 09:00 local.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet.attendance.jobs import AttendanceJobs
from timesheet.attendance.models import AttendanceRecord
from timesheet.attendance.schemas import AttendanceEntry, BlockerCreate
from timesheet.attendance.service import AttendanceService, BlockerService
from timesheet.common.constants import (
    AttendanceStatus,
    NotificationType,
    UserRole,
    WorkLocation,
)
from timesheet.common.exceptions import ForbiddenException, NotFoundException
from timesheet.holidays.models import Holiday
from timesheet.leave.schemas import LeaveRequestCreate
from timesheet.leave.service import LeaveService
from timesheet.leave.state_machine import LeaveAction
from timesheet.notifications.models import Notification
from tests.conftest import _actor

TODAY = date(2025, 6, 9)


async def _record(db, employee, day, clock, actor=None, **entry):
    return await AttendanceService.record_attendance(
        db, employee.id, day, AttendanceEntry(**entry), actor or _actor(employee.id), clock,
    )


async def _seed_record(db: AsyncSession, employee_id, day, status, **extra) -> AttendanceRecord:
    record = AttendanceRecord(employee_id=employee_id, working_date=day, status=status, **extra)
    db.add(record)
    await db.flush()
    return record


# ═════════════════════════════════════════════════════════════════════
# 1. record_attendance
# ═════════════════════════════════════════════════════════════════════


class TestRecordAttendance:

    async def test_office_day_from_halves(self, db, employee, clock):
        record = await _record(db, employee, TODAY, clock, first_half="Office", second_half="Office")
        assert record.total_hours == Decimal("9")
        assert record.status == AttendanceStatus.full_day
        assert record.work_location is None
        assert record.updated_by == employee.id

    async def test_wfh_day_with_hours(self, db, employee, clock):
        record = await _record(
            db, employee, TODAY, clock, total_hours=Decimal("8"), work_location=WorkLocation.wfh,
        )
        assert record.status == AttendanceStatus.full_day
        assert record.work_location == WorkLocation.wfh

    async def test_short_day_is_half_day(self, db, employee, clock):
        record = await _record(db, employee, TODAY, clock, total_hours=Decimal("4"))
        assert record.status == AttendanceStatus.half_day

    async def test_remote_day_without_hours_not_updated(self, db, employee, clock):
        record = await _record(
            db, employee, date(2025, 6, 12), clock, work_location=WorkLocation.client_visit,
        )
        assert record.status == AttendanceStatus.not_updated

    async def test_rewrite_updates_same_row(self, db, employee, clock):
        first = await _record(db, employee, TODAY, clock, total_hours=Decimal("4"))
        second = await _record(db, employee, TODAY, clock, total_hours=Decimal("9"))
        assert first.id == second.id
        assert second.status == AttendanceStatus.full_day

    async def test_only_own_attendance(self, db, employee, manager, clock):
        with pytest.raises(ForbiddenException):
            await _record(
                db, manager, TODAY, clock, actor=_actor(employee.id), total_hours=Decimal("9"),
            )

    async def test_unknown_employee(self, db, manager, clock):
        with pytest.raises(NotFoundException):
            await AttendanceService.record_attendance(
                db, uuid.uuid4(), TODAY, AttendanceEntry(total_hours=Decimal("9")),
                _actor(manager.id, UserRole.admin), clock,
            )

    async def test_manager_sets_status_directly(self, db, employee, manager, clock):
        record = await _record(
            db, employee, TODAY, clock,
            actor=_actor(manager.id, UserRole.manager),
            total_hours=Decimal("0"),
            status=AttendanceStatus.leave,
        )
        assert record.status == AttendanceStatus.leave
        assert record.updated_by == manager.id

    async def test_employee_status_is_derived(self, db, employee, clock):
        """An employee-supplied status is ignored in favour of the derived one."""
        record = await _record(
            db, employee, TODAY, clock, total_hours=Decimal("9"), status=AttendanceStatus.holiday,
        )
        assert record.status == AttendanceStatus.full_day

    async def test_clear_day(self, db, employee, clock):
        await _record(db, employee, TODAY, clock, first_half="Office", second_half="WFH")
        record = await _record(db, employee, TODAY, clock)
        assert record.status is None
        assert record.total_hours is None
        assert record.first_half is None


# ═════════════════════════════════════════════════════════════════════
# 2. Gates
# ═════════════════════════════════════════════════════════════════════


class TestWriteGates:

    async def test_blocker_stops_employee(self, db, employee, manager, clock):
        await BlockerService.create_blocker(
            db,
            BlockerCreate(employee_id=employee.id, blocked_from=date(2025, 6, 1), blocked_to=date(2025, 6, 15)),
            _actor(manager.id, UserRole.manager),
        )
        with pytest.raises(ForbiddenException) as exc:
            await _record(db, employee, TODAY, clock, total_hours=Decimal("9"))
        assert "blocked" in exc.value.detail

    async def test_blocker_does_not_stop_manager(self, db, employee, manager, clock):
        await BlockerService.create_blocker(
            db,
            BlockerCreate(employee_id=employee.id, blocked_from=TODAY, blocked_to=TODAY),
            _actor(manager.id, UserRole.manager),
        )
        record = await _record(
            db, employee, TODAY, clock,
            actor=_actor(manager.id, UserRole.manager), total_hours=Decimal("9"),
        )
        assert record.status == AttendanceStatus.full_day

    async def test_previous_month_locked(self, db, employee, clock):
        with pytest.raises(ForbiddenException) as exc:
            await _record(db, employee, date(2025, 5, 30), clock, total_hours=Decimal("9"))
        assert "May 2025" in exc.value.detail

    async def test_previous_month_open_on_first_before_cutoff(self, db, employee, clock):
        clock.set(datetime(2025, 6, 1, 17, 30))
        record = await _record(db, employee, date(2025, 5, 30), clock, total_hours=Decimal("9"))
        assert record.status == AttendanceStatus.full_day

    async def test_request_locked_day(self, db, employee, manager, clock):
        """A day written by an approved request is manager/admin only."""
        request = await LeaveService.submit(
            db,
            LeaveRequestCreate(request_type="Leave", from_date=date(2025, 6, 10), to_date=date(2025, 6, 10)),
            _actor(employee.id),
            clock,
        )
        await LeaveService.transition(
            db, request.id, LeaveAction.approve, _actor(manager.id, UserRole.manager), clock,
        )

        with pytest.raises(ForbiddenException):
            await _record(db, employee, date(2025, 6, 10), clock, total_hours=Decimal("9"))

        record = await _record(
            db, employee, date(2025, 6, 10), clock,
            actor=_actor(manager.id, UserRole.manager),
            total_hours=Decimal("9"),
            work_location=WorkLocation.wfh,
        )
        assert record.status == AttendanceStatus.full_day
        assert record.source_request_id == request.id

    async def test_lower_priority_write_ignored(self, db, employee, clock):
        """A WFH write never downgrades a Leave day for a non-admin."""
        await _seed_record(
            db, employee.id, TODAY, AttendanceStatus.leave,
            total_hours=Decimal("0"), first_half="Leave", second_half="Leave",
        )
        record = await _record(
            db, employee, TODAY, clock, total_hours=Decimal("9"), work_location=WorkLocation.wfh,
        )
        assert record.status == AttendanceStatus.leave
        assert record.work_location is None
        assert record.total_hours == Decimal("0")

    async def test_clear_bypasses_priority(self, db, employee, clock):
        await _seed_record(db, employee.id, TODAY, AttendanceStatus.leave, total_hours=Decimal("0"))
        record = await _record(db, employee, TODAY, clock)
        assert record.status is None


# ═════════════════════════════════════════════════════════════════════
# 3. Blockers and monthly listing
# ═════════════════════════════════════════════════════════════════════


class TestBlockers:

    async def test_list_and_delete(self, db, employee, manager):
        actor = _actor(manager.id, UserRole.manager)
        blocker = await BlockerService.create_blocker(
            db,
            BlockerCreate(employee_id=employee.id, blocked_from=TODAY, blocked_to=date(2025, 6, 13), reason="Audit"),
            actor,
        )
        assert blocker.blocked_by == manager.id
        assert [b.id for b in await BlockerService.list_blockers(db, employee.id)] == [blocker.id]
        assert await BlockerService.is_blocked(db, employee.id, date(2025, 6, 13))
        assert not await BlockerService.is_blocked(db, employee.id, date(2025, 6, 14))

        await BlockerService.delete_blocker(db, blocker.id)
        assert await BlockerService.list_blockers(db, employee.id) == []

    async def test_delete_unknown_blocker(self, db):
        with pytest.raises(NotFoundException):
            await BlockerService.delete_blocker(db, uuid.uuid4())

    async def test_monthly_records_ordered(self, db, employee):
        await _seed_record(db, employee.id, date(2025, 6, 12), AttendanceStatus.full_day)
        await _seed_record(db, employee.id, date(2025, 6, 2), AttendanceStatus.half_day)
        await _seed_record(db, employee.id, date(2025, 7, 1), AttendanceStatus.full_day)
        records = await AttendanceService.get_monthly_records(db, employee.id, 2025, 6)
        assert [r.working_date for r in records] == [date(2025, 6, 2), date(2025, 6, 12)]


# ═════════════════════════════════════════════════════════════════════
# 4. Scheduled jobs
# ═════════════════════════════════════════════════════════════════════


class TestJobs:

    async def test_weekend_marking_is_idempotent(self, db, employee, manager):
        saturday = date(2025, 6, 14)
        assert await AttendanceJobs.mark_weekend(db, saturday) == 2
        assert await AttendanceJobs.mark_weekend(db, saturday) == 0

        result = await db.execute(
            select(AttendanceRecord).where(AttendanceRecord.working_date == saturday)
        )
        rows = result.scalars().all()
        assert {r.status for r in rows} == {AttendanceStatus.weekend}
        assert {r.total_hours for r in rows} == {Decimal("0")}

    async def test_weekend_marking_skips_weekdays(self, db, employee):
        assert await AttendanceJobs.mark_weekend(db, TODAY) == 0

    async def test_not_updated_never_overwrites(self, db, employee, manager):
        friday = date(2025, 6, 6)
        recorded = await _seed_record(db, employee.id, friday, AttendanceStatus.full_day)
        assert await AttendanceJobs.mark_not_updated(db, friday) == 1
        assert recorded.status == AttendanceStatus.full_day

        result = await db.execute(
            select(AttendanceRecord).where(
                AttendanceRecord.employee_id == manager.id,
                AttendanceRecord.working_date == friday,
            )
        )
        assert result.scalar_one().status == AttendanceStatus.not_updated

    async def test_null_status_row_is_filled(self, db, employee):
        friday = date(2025, 6, 6)
        blank = await _seed_record(db, employee.id, friday, None)
        await AttendanceJobs.mark_not_updated(db, friday, [employee.id])
        assert blank.status == AttendanceStatus.not_updated

    async def test_holiday_marked(self, db, employee):
        db.add(Holiday(date=date(2025, 6, 11), name="Founders Day"))
        await db.flush()
        assert await AttendanceJobs.mark_not_updated(db, date(2025, 6, 11), [employee.id]) == 1
        result = await db.execute(
            select(AttendanceRecord.status).where(AttendanceRecord.employee_id == employee.id)
        )
        assert result.scalar_one() == AttendanceStatus.holiday

    async def test_monthly_absent_sweep(self, db, employee):
        stale = await _seed_record(db, employee.id, date(2025, 5, 12), AttendanceStatus.not_updated)
        pending = await _seed_record(db, employee.id, date(2025, 5, 13), AttendanceStatus.pending)
        worked = await _seed_record(db, employee.id, date(2025, 5, 14), AttendanceStatus.full_day)

        assert await AttendanceJobs.mark_monthly_absent(db, 2025, 5) == 2
        for record in (stale, pending):
            assert record.status == AttendanceStatus.absent
            assert (record.first_half, record.second_half) == ("Absent", "Absent")
            assert record.total_hours == Decimal("0")
        assert worked.status == AttendanceStatus.full_day

    async def test_reminders(self, db, employee, manager):
        await _seed_record(db, employee.id, date(2025, 6, 3), AttendanceStatus.not_updated)
        assert await AttendanceJobs.remind_unresolved(db, date(2025, 6, 20)) == 1

        result = await db.execute(
            select(Notification).where(Notification.recipient_id == employee.id)
        )
        notification = result.scalar_one()
        assert notification.type == NotificationType.reminder
        assert "June 2025" in notification.message

    async def test_daily_run_on_first_closes_previous_month(self, db, employee, manager):
        """1 July 2025 (Tue): no weekend, 30 June backfilled, then June swept to Absent."""
        counts = await AttendanceJobs.run_daily(db, date(2025, 7, 1))
        assert counts == {"weekend": 0, "not_updated": 2, "absent": 2}
