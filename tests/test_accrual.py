"""Accrual calculator tests — month walk, classification, LOP, usage, and the balance service."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from timesheet.attendance.models import AttendanceRecord
from timesheet.balance.accrual import (
    classify_month,
    iter_months,
    monthly_accrual,
    record_usage,
    start_month,
    walk,
)
from timesheet.balance.service import BalanceService, consumes_leave
from timesheet.common.clock import FixedClock
from timesheet.common.constants import (
    AttendanceStatus,
    EmploymentType,
    LeaveStatus,
)
from timesheet.employees.service import DirectoryService, EmploymentFacts, infer_employment_type
from timesheet.leave.models import LeaveRequest
from tests.conftest import _seed_employee


def _facts(
    employment_type: EmploymentType = EmploymentType.full_timer,
    joining_date: date | None = date(2024, 1, 5),
    conversion_date: date | None = None,
) -> EmploymentFacts:
    return EmploymentFacts(
        employee_id=uuid.uuid4(),
        employment_type=employment_type,
        joining_date=joining_date,
        conversion_date=conversion_date,
    )


# ═════════════════════════════════════════════════════════════════════
# 1. Classification and accrual
# ═════════════════════════════════════════════════════════════════════


class TestClassification:

    def test_conversion_month_is_intern(self):
        facts = _facts(EmploymentType.full_timer, date(2025, 3, 5), date(2025, 6, 8))
        assert classify_month(facts, 2025, 5) == EmploymentType.intern
        assert classify_month(facts, 2025, 6) == EmploymentType.intern
        assert classify_month(facts, 2025, 7) == EmploymentType.full_timer

    def test_recorded_type_without_conversion(self):
        assert classify_month(_facts(EmploymentType.intern), 2025, 1) == EmploymentType.intern

    def test_join_month_after_cutoff_accrues_nothing(self):
        facts = _facts(joining_date=date(2025, 3, 15))
        assert monthly_accrual(facts, 2025, 2) == Decimal("0")
        assert monthly_accrual(facts, 2025, 3) == Decimal("0")
        assert monthly_accrual(facts, 2025, 4) == Decimal("1.5")

    def test_join_month_on_cutoff_accrues(self):
        facts = _facts(joining_date=date(2025, 3, 10))
        assert monthly_accrual(facts, 2025, 3) == Decimal("1.5")

    def test_walk_starts_at_baseline(self):
        assert start_month(_facts(joining_date=date(2019, 7, 1))) == (2024, 1)
        assert start_month(_facts(joining_date=None)) == (2024, 1)
        assert start_month(_facts(joining_date=date(2025, 2, 20))) == (2025, 2)
        assert start_month(_facts(joining_date=date(2019, 7, 1)), baseline_year=2019) == (2019, 7)

    def test_iter_months_crosses_year(self):
        assert list(iter_months((2024, 11), (2025, 2))) == [
            (2024, 11), (2024, 12), (2025, 1), (2025, 2),
        ]


# ═════════════════════════════════════════════════════════════════════
# 2. The walk
# ═════════════════════════════════════════════════════════════════════


class TestWalk:

    def test_conversion_example(self):
        """Converted 8 June: June accrues 1.0 (Intern), July 1.5 on top of the carried June balance."""
        facts = _facts(EmploymentType.full_timer, date(2025, 3, 5), date(2025, 6, 8))
        summary = walk(facts, 2025, 7, {})

        june, july = summary.months[-2], summary.months[-1]
        assert (june.employment_type, june.accrual, june.balance) == (
            EmploymentType.intern, Decimal("1.0"), Decimal("1.0"),
        )
        assert july.employment_type == EmploymentType.full_timer
        assert july.carry_over == Decimal("1.0")
        assert july.accrual == Decimal("1.5")
        assert july.balance == Decimal("2.5")
        assert summary.entitlement == Decimal("5.5")

    def test_intern_balance_resets_each_month(self):
        facts = _facts(EmploymentType.intern, date(2025, 1, 5))
        summary = walk(facts, 2025, 3, {})
        assert [m.carry_over for m in summary.months] == [Decimal("0")] * 3
        assert summary.balance == Decimal("1.0")

    def test_full_timer_balance_carries(self):
        summary = walk(_facts(), 2024, 3, {})
        assert summary.balance == Decimal("4.5")
        assert summary.months[-1].carry_over == Decimal("3.0")

    def test_shortfall_is_lop_and_balance_clamps(self):
        facts = _facts(joining_date=date(2025, 1, 5))
        summary = walk(facts, 2025, 2, {(2025, 1): Decimal("2.0")})
        jan, feb = summary.months
        assert jan.lop == Decimal("0.5")
        assert jan.balance == Decimal("0")
        assert feb.carry_over == Decimal("0")
        assert feb.balance == Decimal("1.5")
        assert summary.lop == Decimal("0.5")

    def test_usage_rounded_before_subtraction(self):
        facts = _facts(joining_date=date(2025, 1, 5))
        summary = walk(facts, 2025, 1, {(2025, 1): Decimal("1.55")})
        assert summary.months[0].used == Decimal("1.6")
        assert summary.balance == Decimal("0")
        assert summary.lop == Decimal("0.1")

    def test_ytd_counts_target_year_only(self):
        usage = {(2024, 12): Decimal("1.0"), (2025, 1): Decimal("1.0")}
        summary = walk(_facts(), 2025, 1, usage)
        assert summary.used == Decimal("1.0")
        assert summary.balance == Decimal("17.5")
        assert summary.entitlement == Decimal("19.5")

    def test_target_before_start_is_empty(self):
        summary = walk(_facts(joining_date=date(2025, 5, 1)), 2025, 3, {})
        assert summary.months == []
        assert summary.target is None
        assert summary.balance == Decimal("0")


# ═════════════════════════════════════════════════════════════════════
# 3. Usage
# ═════════════════════════════════════════════════════════════════════


class TestRecordUsage:

    def test_halves(self):
        assert record_usage("Leave", "Office", None) == Decimal("0.5")
        assert record_usage("Leave", "Absent", None) == Decimal("1.0")
        assert record_usage("WFH", "Office", AttendanceStatus.full_day) == Decimal("0")

    def test_legacy_status_fallback(self):
        assert record_usage(None, None, AttendanceStatus.leave) == Decimal("1")
        assert record_usage(None, None, "Absent") == Decimal("1")
        assert record_usage(None, None, AttendanceStatus.half_day) == Decimal("0.5")
        assert record_usage(None, None, AttendanceStatus.weekend) == Decimal("0")
        assert record_usage(None, None, None) == Decimal("0")

    def test_consuming_types(self):
        assert consumes_leave("Leave")
        assert consumes_leave("Half Day")
        assert consumes_leave("WFH + Leave")
        assert not consumes_leave("Work From Home")
        assert not consumes_leave("Client Visit")


# ═════════════════════════════════════════════════════════════════════
# 4. BalanceService (DB)
# ═════════════════════════════════════════════════════════════════════


class TestBalanceService:

    async def test_balance_reads_ledger_and_pending(self, db):
        """Full-timer since Jan 2024: 27 days accrued by June 2025, one used, two pending."""
        emp = await _seed_employee(db, full_name="Balance User")
        db.add(AttendanceRecord(
            employee_id=emp.id,
            working_date=date(2025, 6, 3),
            total_hours=Decimal("0"),
            status=AttendanceStatus.leave,
            first_half="Leave",
            second_half="Leave",
        ))
        db.add(LeaveRequest(
            employee_id=emp.id,
            request_type="Leave",
            from_date=date(2025, 6, 19),
            to_date=date(2025, 6, 20),
            status=LeaveStatus.pending,
            duration=Decimal("2"),
            first_half="Leave",
            second_half="Leave",
            submitted_date=date(2025, 6, 9),
        ))
        db.add(LeaveRequest(
            employee_id=emp.id,
            request_type="Work From Home",
            from_date=date(2025, 6, 23),
            to_date=date(2025, 6, 23),
            status=LeaveStatus.pending,
            duration=Decimal("1"),
            first_half="WFH",
            second_half="WFH",
            submitted_date=date(2025, 6, 9),
        ))
        await db.flush()

        balance = await BalanceService.get_balance(
            db, emp.id, 2025, FixedClock(datetime(2025, 6, 9, 9, 0)),
        )
        assert balance.as_of_month == 6
        assert balance.entitlement == Decimal("27.0")
        assert balance.used == Decimal("1.0")
        assert balance.balance == Decimal("26.0")
        assert balance.pending == Decimal("2.0")
        assert balance.lop == Decimal("0.0")

    async def test_past_year_runs_to_december(self, db):
        emp = await _seed_employee(db, full_name="Last Year")
        balance = await BalanceService.get_balance(
            db, emp.id, 2024, FixedClock(datetime(2025, 6, 9, 9, 0)),
        )
        assert balance.as_of_month == 12
        assert balance.balance == Decimal("18.0")

    async def test_monthly_balance(self, db):
        emp = await _seed_employee(
            db,
            full_name="Converted Intern",
            employment_type=EmploymentType.full_timer,
            joining_date=date(2025, 3, 5),
            conversion_date=date(2025, 6, 8),
        )
        july = await BalanceService.get_monthly_balance(db, emp.id, 7, 2025)
        assert july.employment_type == EmploymentType.full_timer
        assert july.carry_over == Decimal("1.0")
        assert july.balance == Decimal("2.5")

    async def test_monthly_balance_before_joining_is_zero(self, db):
        emp = await _seed_employee(db, full_name="New Joiner", joining_date=date(2025, 5, 2))
        march = await BalanceService.get_monthly_balance(db, emp.id, 3, 2025)
        assert march.accrual == Decimal("0")
        assert march.balance == Decimal("0")


class TestDirectory:

    def test_infer_employment_type(self):
        assert infer_employment_type(EmploymentType.intern, "Engineer") == EmploymentType.intern
        assert infer_employment_type(None, "Design Intern") == EmploymentType.intern
        assert infer_employment_type(None, "Engineer") == EmploymentType.full_timer
        assert infer_employment_type(None, None) == EmploymentType.full_timer

    async def test_facts_use_designation_fallback(self, db):
        emp = await _seed_employee(
            db, full_name="Summer Intern", designation="Marketing Intern", employment_type=None,
        )
        facts = await DirectoryService.get_employment_facts(db, emp.id)
        assert facts.employment_type == EmploymentType.intern
        assert facts.joining_date == date(2024, 1, 5)
