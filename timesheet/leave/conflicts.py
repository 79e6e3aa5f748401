"""Conflict rules — which active requests block a new one on the same half-day slots.

A request conflicts with an existing *active* request of the same employee
when the date ranges intersect, the existing type is in the new type's
conflict set, and at least one wanted half-day slot is already consumed.
"""

from __future__ import annotations

from datetime import date
from typing import Iterable, Optional, Protocol, Union

from timesheet.common.constants import Activity, HalfDayType, RequestType

FIRST = "first"
SECOND = "second"
BOTH = frozenset({FIRST, SECOND})

CONFLICT_SETS: dict[str, frozenset[str]] = {
    RequestType.leave.value: frozenset({RequestType.leave.value}),
    RequestType.work_from_home.value: frozenset(
        {RequestType.leave.value, RequestType.work_from_home.value}
    ),
    RequestType.client_visit.value: frozenset(
        {RequestType.leave.value, RequestType.client_visit.value}
    ),
    RequestType.half_day.value: frozenset(
        {RequestType.leave.value, RequestType.half_day.value}
    ),
}


class SlotHolder(Protocol):
    request_type: str
    from_date: date
    to_date: date
    is_half_day: bool
    first_half: str
    second_half: str


def conflict_types(request_type: str) -> frozenset[str]:
    """Types an incoming request of ``request_type`` collides with; unknown types only with themselves."""
    return CONFLICT_SETS.get(request_type, frozenset({request_type}))


def _is_office(tag: Optional[str]) -> bool:
    return (tag or "").strip().lower() == Activity.office.value.lower()


def consumed_slots(is_half_day: bool, first_half: Optional[str], second_half: Optional[str]) -> frozenset[str]:
    if not is_half_day:
        return BOTH
    slots = set()
    if not _is_office(first_half):
        slots.add(FIRST)
    if not _is_office(second_half):
        slots.add(SECOND)
    return frozenset(slots)


def wanted_slots(
    is_half_day: bool,
    half_day_type: Optional[Union[HalfDayType, str]],
    first_half: Optional[str] = None,
    second_half: Optional[str] = None,
) -> frozenset[str]:
    """Slots a new request needs. Without a half_day_type the half is read off the tags."""
    if not is_half_day:
        return BOTH
    if half_day_type is None:
        if first_half and second_half:
            return consumed_slots(True, first_half, second_half) or BOTH
        return BOTH
    return frozenset({FIRST if HalfDayType(half_day_type) == HalfDayType.first_half else SECOND})


def slot_label(holder: SlotHolder) -> str:
    """Human label for what an existing request occupies."""
    if not holder.is_half_day:
        return "Full Day"
    slots = consumed_slots(True, holder.first_half, holder.second_half)
    if slots == BOTH:
        return "Split Day"
    return "First Half" if FIRST in slots else "Second Half"


def ranges_intersect(a_from: date, a_to: date, b_from: date, b_to: date) -> bool:
    return a_from <= b_to and b_from <= a_to


def find_first_conflict(
    candidates: Iterable[SlotHolder],
    *,
    request_type: str,
    from_date: date,
    to_date: date,
    is_half_day: bool,
    half_day_type: Optional[Union[HalfDayType, str]],
    first_half: Optional[str] = None,
    second_half: Optional[str] = None,
) -> Optional[SlotHolder]:
    """Return the first candidate whose consumed slots overlap the wanted ones, else None."""
    blocking_types = conflict_types(request_type)
    wanted = wanted_slots(is_half_day, half_day_type, first_half, second_half)
    for candidate in candidates:
        if candidate.request_type not in blocking_types:
            continue
        if not ranges_intersect(from_date, to_date, candidate.from_date, candidate.to_date):
            continue
        consumed = consumed_slots(
            candidate.is_half_day, candidate.first_half, candidate.second_half,
        )
        if wanted & consumed:
            return candidate
    return None


def describe_conflict(candidate: SlotHolder) -> str:
    return (
        f"A {candidate.request_type} request already exists for "
        f"{candidate.from_date.isoformat()} to {candidate.to_date.isoformat()} "
        f"({slot_label(candidate)})."
    )
