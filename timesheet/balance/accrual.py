"""Accrual calculator — month-by-month leave entitlement, usage and loss of pay.

Pure functions over ``EmploymentFacts`` and per-month usage; the service layer
feeds in ledger usage and shapes the result. All arithmetic is ``Decimal``
quantized to one decimal place.

Walk, for each month from the start month up to the target month:
  1. Classify the month (Intern / FullTimer) from the employment facts.
  2. Opening balance: carried forward when the month is FullTimer, 0 for Intern.
  3. Add the month's accrual (0 for a join month entered after the cut-off day).
  4. Subtract the month's usage, rounded first; any shortfall is LOP and the
     balance clamps to 0.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterator, Mapping, Optional

from timesheet.common.constants import (
    MAX_ACCRUAL_MONTHS,
    Activity,
    AttendanceStatus,
    EmploymentType,
)
from timesheet.config import settings
from timesheet.employees.service import EmploymentFacts

ZERO = Decimal("0")
HALF = Decimal("0.5")
ONE = Decimal("1")
TENTH = Decimal("0.1")

USAGE_TAGS = frozenset({Activity.leave.value.lower(), Activity.absent.value.lower()})


def q(value: Decimal) -> Decimal:
    return Decimal(value).quantize(TENTH, rounding=ROUND_HALF_UP)


@dataclass
class MonthBalance:
    year: int
    month: int
    employment_type: EmploymentType
    carry_over: Decimal = ZERO
    accrual: Decimal = ZERO
    used: Decimal = ZERO
    lop: Decimal = ZERO
    balance: Decimal = ZERO


@dataclass
class AccrualSummary:
    """Result of one walk. ``used``/``lop`` cover the target year only."""

    target_year: int
    target_month: int
    months: list[MonthBalance] = field(default_factory=list)
    entitlement: Decimal = ZERO
    used: Decimal = ZERO
    lop: Decimal = ZERO
    balance: Decimal = ZERO

    @property
    def target(self) -> Optional[MonthBalance]:
        return self.months[-1] if self.months else None


# ── Classification and accrual ──────────────────────────────────────

def classify_month(facts: EmploymentFacts, year: int, month: int) -> EmploymentType:
    """Intern or FullTimer for a given month.

    With a conversion date, months before and including the conversion month
    are Intern and later months FullTimer; without one the recorded type holds.
    """
    conversion = facts.conversion_date
    if conversion is None:
        return facts.employment_type
    if (year, month) <= (conversion.year, conversion.month):
        return EmploymentType.intern
    return EmploymentType.full_timer


def monthly_rate(employment_type: EmploymentType) -> Decimal:
    if employment_type == EmploymentType.intern:
        return Decimal(settings.INTERN_MONTHLY_ACCRUAL)
    return Decimal(settings.FULL_TIMER_MONTHLY_ACCRUAL)


def monthly_accrual(facts: EmploymentFacts, year: int, month: int) -> Decimal:
    joined = facts.joining_date
    if joined is not None:
        if (year, month) < (joined.year, joined.month):
            return ZERO
        if (year, month) == (joined.year, joined.month) and joined.day > settings.ACCRUAL_CUTOFF_DAY:
            return ZERO
    return q(monthly_rate(classify_month(facts, year, month)))


# ── Usage ───────────────────────────────────────────────────────────

def record_usage(
    first_half: Optional[str],
    second_half: Optional[str],
    status: Optional[str],
) -> Decimal:
    """Leave days one ledger row consumes.

    0.5 per half tagged Leave/Absent; rows without halves fall back to the
    status (Leave/Absent → 1, Half Day → 0.5).
    """
    if first_half is not None or second_half is not None:
        halves = [h for h in (first_half, second_half) if h and h.strip().lower() in USAGE_TAGS]
        return HALF * len(halves)
    if status is None:
        return ZERO
    value = status.value if isinstance(status, AttendanceStatus) else str(status)
    if value in (AttendanceStatus.leave.value, AttendanceStatus.absent.value):
        return ONE
    if value == AttendanceStatus.half_day.value:
        return HALF
    return ZERO


# ── Walk ────────────────────────────────────────────────────────────

def start_month(facts: EmploymentFacts, baseline_year: Optional[int] = None) -> tuple[int, int]:
    baseline = baseline_year if baseline_year is not None else settings.ACCRUAL_BASELINE_YEAR
    joined = facts.joining_date
    if joined is None or joined.year < baseline:
        return baseline, 1
    return joined.year, joined.month


def iter_months(start: tuple[int, int], end: tuple[int, int]) -> Iterator[tuple[int, int]]:
    year, month = start
    for _ in range(MAX_ACCRUAL_MONTHS):
        if (year, month) > end:
            return
        yield year, month
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)


def walk(
    facts: EmploymentFacts,
    target_year: int,
    target_month: int,
    usage_by_month: Mapping[tuple[int, int], Decimal],
    *,
    baseline_year: Optional[int] = None,
) -> AccrualSummary:
    """Run the monthly walk up to and including (target_year, target_month)."""
    summary = AccrualSummary(target_year=target_year, target_month=target_month)
    balance = ZERO
    for year, month in iter_months(start_month(facts, baseline_year), (target_year, target_month)):
        employment_type = classify_month(facts, year, month)
        # Intern balances do not survive a month boundary
        carry_over = balance if employment_type == EmploymentType.full_timer else ZERO
        accrual = monthly_accrual(facts, year, month)
        used = q(usage_by_month.get((year, month), ZERO))

        available = carry_over + accrual
        if used > available:
            lop = used - available
            balance = ZERO
        else:
            lop = ZERO
            balance = available - used

        summary.months.append(MonthBalance(
            year=year,
            month=month,
            employment_type=employment_type,
            carry_over=q(carry_over),
            accrual=accrual,
            used=used,
            lop=q(lop),
            balance=q(balance),
        ))
        summary.entitlement += accrual
        if year == target_year:
            summary.used += used
            summary.lop += lop

    summary.entitlement = q(summary.entitlement)
    summary.used = q(summary.used)
    summary.lop = q(summary.lop)
    summary.balance = q(balance)
    return summary


def month_key(day: date) -> tuple[int, int]:
    return day.year, day.month
