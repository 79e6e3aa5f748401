"""Calendar oracle — weekend rule, holiday lookups, and per-operation snapshots.

Reconciliation, duration and segmentation walks take one ``CalendarSnapshot``
per operation instead of querying the holidays table for every day.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterator, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from timesheet.common.constants import MAX_RANGE_DAYS, WEEKEND_DAYS
from timesheet.common.exceptions import (
    ConflictError,
    NotFoundException,
    ValidationException,
)
from timesheet.holidays.models import Holiday
from timesheet.holidays.schemas import HolidayCreate

logger = logging.getLogger(__name__)


def is_weekend(day: date) -> bool:
    """Saturday / Sunday."""
    return day.weekday() in WEEKEND_DAYS


def iter_days(start: date, end: date) -> Iterator[date]:
    """Inclusive day walk, bounded by MAX_RANGE_DAYS."""
    if end < start:
        raise ValidationException({"to_date": ["to_date must be on or after from_date."]})
    current = start
    steps = 0
    while current <= end:
        steps += 1
        if steps > MAX_RANGE_DAYS:
            raise ValidationException(
                {"to_date": [f"Date range cannot exceed {MAX_RANGE_DAYS} days."]}
            )
        yield current
        current += timedelta(days=1)


@dataclass(frozen=True)
class CalendarSnapshot:
    """Holidays for a fixed window, loaded once."""

    start: date
    end: date
    holidays: frozenset[date] = field(default_factory=frozenset)

    def is_holiday(self, day: date) -> bool:
        return day in self.holidays

    def is_weekend(self, day: date) -> bool:
        return is_weekend(day)

    def is_working_day(self, day: date) -> bool:
        return not is_weekend(day) and day not in self.holidays

    def working_days(self, start: date, end: date) -> int:
        return sum(1 for d in iter_days(start, end) if self.is_working_day(d))


# ═════════════════════════════════════════════════════════════════════
# CalendarService
# ═════════════════════════════════════════════════════════════════════


class CalendarService:
    """Async holiday lookups and maintenance."""

    @staticmethod
    async def is_holiday(db: AsyncSession, day: date) -> bool:
        result = await db.execute(select(Holiday.id).where(Holiday.date == day))
        return result.first() is not None

    @staticmethod
    def is_weekend(day: date) -> bool:
        return is_weekend(day)

    @staticmethod
    async def snapshot(db: AsyncSession, start: date, end: date) -> CalendarSnapshot:
        """Load every holiday in [start, end] into an immutable snapshot."""
        result = await db.execute(
            select(Holiday.date).where(Holiday.date >= start, Holiday.date <= end)
        )
        return CalendarSnapshot(
            start=start,
            end=end,
            holidays=frozenset(result.scalars().all()),
        )

    # ── CRUD ────────────────────────────────────────────────────────

    @staticmethod
    async def list_holidays(
        db: AsyncSession,
        *,
        year: Optional[int] = None,
    ) -> Sequence[Holiday]:
        query = select(Holiday).order_by(Holiday.date)
        if year is not None:
            query = query.where(
                Holiday.date >= date(year, 1, 1),
                Holiday.date <= date(year, 12, 31),
            )
        result = await db.execute(query)
        return result.scalars().all()

    @staticmethod
    async def create_holiday(db: AsyncSession, data: HolidayCreate) -> Holiday:
        holiday = Holiday(date=data.date, name=data.name, description=data.description)
        db.add(holiday)
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(
                detail=f"A holiday already exists on {data.date.isoformat()}.",
                errors={"date": [f"'{data.date.isoformat()}' is already a holiday."]},
            )
        logger.info("Holiday %s (%s) created", holiday.date, holiday.name)
        return holiday

    @staticmethod
    async def delete_holiday(db: AsyncSession, holiday_id: uuid.UUID) -> None:
        holiday = await db.get(Holiday, holiday_id)
        if holiday is None:
            raise NotFoundException("Holiday", holiday_id)
        await db.delete(holiday)
        await db.flush()
        logger.info("Holiday %s (%s) deleted", holiday.date, holiday.name)
