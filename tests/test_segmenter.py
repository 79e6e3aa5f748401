"""Range segmenter tests — contiguity, weekend bridging, whole-request detection."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from timesheet.common.exceptions import ValidationException
from timesheet.leave.segmenter import (
    Segment,
    covers_whole_request,
    group_contiguous,
    normalise_selection,
)

MON = date(2025, 6, 9)
TUE = date(2025, 6, 10)
WED = date(2025, 6, 11)
THU = date(2025, 6, 12)
FRI = date(2025, 6, 13)
NEXT_MON = date(2025, 6, 16)


class TestGroupContiguous:

    def test_weekday_gap_breaks_segment(self):
        """Mon, Tue, Thu, Fri with Wed unselected (e.g. a holiday) → two segments."""
        segments = group_contiguous([MON, TUE, THU, FRI])
        assert segments == [
            Segment(MON, TUE, (MON, TUE)),
            Segment(THU, FRI, (THU, FRI)),
        ]

    def test_weekend_gap_is_bridged(self):
        segments = group_contiguous([THU, FRI, NEXT_MON])
        assert len(segments) == 1
        assert segments[0].from_date == THU
        assert segments[0].to_date == NEXT_MON
        assert segments[0].dates == (THU, FRI, NEXT_MON)

    def test_custom_weekend_rule(self):
        """With Tuesday treated as a weekend, Mon and Wed join."""
        segments = group_contiguous([MON, WED], is_weekend=lambda d: d == TUE)
        assert segments == [Segment(MON, WED, (MON, WED))]

    def test_single_day(self):
        assert group_contiguous([WED]) == [Segment(WED, WED, (WED,))]

    def test_empty_selection(self):
        assert group_contiguous([]) == []


class TestSegmentDuration:

    def test_run_length(self):
        segment = Segment(THU, NEXT_MON, (THU, FRI, NEXT_MON))
        assert segment.duration() == Decimal("3")

    def test_half_day_halves(self):
        segment = Segment(MON, TUE, (MON, TUE))
        assert segment.duration(half_day=True) == Decimal("1.0")


class TestNormaliseSelection:

    def test_sorts_and_deduplicates(self):
        assert normalise_selection([FRI, MON, FRI], MON, FRI) == [MON, FRI]

    def test_empty_selection_rejected(self):
        with pytest.raises(ValidationException) as exc:
            normalise_selection([], MON, FRI)
        assert "dates" in exc.value.errors

    def test_dates_outside_request_rejected(self):
        with pytest.raises(ValidationException) as exc:
            normalise_selection([MON, NEXT_MON], MON, FRI)
        assert "2025-06-16" in exc.value.errors["dates"][0]


class TestCoversWholeRequest:

    def test_every_calendar_day(self):
        assert covers_whole_request([MON, TUE, WED], MON, WED)

    def test_every_weekday_skipping_weekend(self):
        """Fri..Mon request; selecting Fri and Mon is the whole request."""
        assert covers_whole_request([FRI, NEXT_MON], FRI, NEXT_MON)

    def test_partial_selection(self):
        assert not covers_whole_request([MON, WED], MON, FRI)

    def test_weekend_only_request_needs_every_day(self):
        sat, sun = date(2025, 6, 14), date(2025, 6, 15)
        assert not covers_whole_request([sat], sat, sun)
        assert covers_whole_request([sat, sun], sat, sun)
