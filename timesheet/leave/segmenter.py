"""Range segmenter — turns a set of selected days into contiguous segments.

Two consecutive selected days stay in one segment when they are adjacent or
when every day strictly between them is a weekend. A holiday in the gap
breaks the segment: only weekends are bridged.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Iterable, Sequence

from timesheet.common.constants import MAX_RANGE_DAYS
from timesheet.common.exceptions import ValidationException
from timesheet.holidays.service import is_weekend as calendar_is_weekend

HALF = Decimal("0.5")


@dataclass(frozen=True)
class Segment:
    from_date: date
    to_date: date
    dates: tuple[date, ...]

    def duration(self, half_day: bool = False) -> Decimal:
        days = Decimal(len(self.dates))
        return days * HALF if half_day else days


def _gap_is_weekend(
    left: date,
    right: date,
    is_weekend: Callable[[date], bool],
) -> bool:
    current = left + timedelta(days=1)
    while current < right:
        if not is_weekend(current):
            return False
        current += timedelta(days=1)
    return True


def normalise_selection(
    selected: Iterable[date],
    parent_from: date,
    parent_to: date,
) -> list[date]:
    """Sort, de-duplicate and range-check the selected days."""
    days = sorted(set(selected))
    if not days:
        raise ValidationException({"dates": ["Select at least one date."]})
    if len(days) > MAX_RANGE_DAYS:
        raise ValidationException({"dates": [f"At most {MAX_RANGE_DAYS} dates can be selected."]})
    outside = [d.isoformat() for d in days if d < parent_from or d > parent_to]
    if outside:
        raise ValidationException(
            {"dates": [f"Dates outside the request range: {', '.join(outside)}."]}
        )
    return days


def group_contiguous(
    selected: Sequence[date],
    is_weekend: Callable[[date], bool] = calendar_is_weekend,
) -> list[Segment]:
    """Group sorted days into maximal runs, bridging weekend-only gaps."""
    segments: list[Segment] = []
    run: list[date] = []
    for day in selected:
        if run and not (
            (day - run[-1]).days == 1 or _gap_is_weekend(run[-1], day, is_weekend)
        ):
            segments.append(Segment(run[0], run[-1], tuple(run)))
            run = []
        run.append(day)
    if run:
        segments.append(Segment(run[0], run[-1], tuple(run)))
    return segments


def covers_whole_request(
    selected: Sequence[date],
    parent_from: date,
    parent_to: date,
    is_weekend: Callable[[date], bool] = calendar_is_weekend,
) -> bool:
    """True when the selection is the whole request (every calendar day, or every weekday)."""
    chosen = set(selected)
    day_count = (parent_to - parent_from).days + 1
    if len(chosen) >= day_count:
        return True
    weekdays = {
        parent_from + timedelta(days=i)
        for i in range(day_count)
        if not is_weekend(parent_from + timedelta(days=i))
    }
    return bool(weekdays) and weekdays <= chosen
