"""Balance service — feeds ledger usage into the accrual walk."""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet.attendance.models import AttendanceRecord
from timesheet.attendance.service import month_bounds
from timesheet.balance.accrual import (
    ZERO,
    MonthBalance,
    classify_month,
    month_key,
    q,
    record_usage,
    start_month,
    walk,
)
from timesheet.balance.schemas import BalanceOut, MonthlyBalanceOut
from timesheet.common.clock import Clock
from timesheet.common.constants import Activity, LeaveStatus
from timesheet.employees.service import DirectoryService
from timesheet.leave.models import LeaveRequest
from timesheet.leave.schemas import TYPE_ACTIVITY, split_composite

logger = logging.getLogger(__name__)


def consumes_leave(request_type: str) -> bool:
    """True when approving a request of this type writes a Leave half."""
    return any(
        TYPE_ACTIVITY.get(part) == Activity.leave.value
        for part in split_composite(request_type)
    )


class BalanceService:

    @staticmethod
    async def _usage_by_month(
        db: AsyncSession,
        employee_id: uuid.UUID,
        start: date,
        end: date,
    ) -> dict[tuple[int, int], Decimal]:
        result = await db.execute(
            select(
                AttendanceRecord.working_date,
                AttendanceRecord.first_half,
                AttendanceRecord.second_half,
                AttendanceRecord.status,
            ).where(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.working_date >= start,
                AttendanceRecord.working_date <= end,
            )
        )
        usage: dict[tuple[int, int], Decimal] = defaultdict(lambda: ZERO)
        for working_date, first_half, second_half, status in result.all():
            usage[month_key(working_date)] += record_usage(first_half, second_half, status)
        return usage

    @staticmethod
    async def _walk(db: AsyncSession, employee_id: uuid.UUID, year: int, month: int):
        facts = await DirectoryService.get_employment_facts(db, employee_id)
        start_year, start_mon = start_month(facts)
        _, end = month_bounds(year, month)
        usage = await BalanceService._usage_by_month(
            db, employee_id, date(start_year, start_mon, 1), end,
        )
        return facts, walk(facts, year, month, usage)

    @staticmethod
    async def _pending_days(db: AsyncSession, employee_id: uuid.UUID, year: int) -> Decimal:
        result = await db.execute(
            select(LeaveRequest.request_type, LeaveRequest.duration).where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status == LeaveStatus.pending,
                LeaveRequest.from_date >= date(year, 1, 1),
                LeaveRequest.from_date <= date(year, 12, 31),
            )
        )
        return q(sum(
            (duration or ZERO for request_type, duration in result.all() if consumes_leave(request_type)),
            ZERO,
        ))

    @staticmethod
    async def get_balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        year: int,
        clock: Clock,
    ) -> BalanceOut:
        """Balance as of the current month for this year, or December for other years."""
        today = clock.today()
        as_of_month = today.month if year == today.year else 12
        _, summary = await BalanceService._walk(db, employee_id, year, as_of_month)
        pending = await BalanceService._pending_days(db, employee_id, year)
        logger.debug(
            "Balance for %s in %d (as of month %d): %s accrued, %s used, %s LOP",
            employee_id, year, as_of_month, summary.entitlement, summary.used, summary.lop,
        )
        return BalanceOut(
            employee_id=employee_id,
            year=year,
            as_of_month=as_of_month,
            entitlement=summary.entitlement,
            used=summary.used,
            pending=pending,
            balance=summary.balance,
            lop=summary.lop,
        )

    @staticmethod
    async def get_monthly_balance(
        db: AsyncSession,
        employee_id: uuid.UUID,
        month: int,
        year: int,
    ) -> MonthlyBalanceOut:
        facts, summary = await BalanceService._walk(db, employee_id, year, month)
        target = summary.target
        if target is None or (target.year, target.month) != (year, month):
            # Before the employee's first accrual month
            target = MonthBalance(
                year=year, month=month, employment_type=classify_month(facts, year, month),
            )
        return MonthlyBalanceOut(
            employee_id=employee_id,
            year=year,
            month=month,
            employment_type=target.employment_type,
            carry_over=target.carry_over,
            accrual=target.accrual,
            used=target.used,
            lop=target.lop,
            balance=target.balance,
        )
