"""Tests for TimelineReconstructor: merge ordering, date validation and inverted phases."""

from __future__ import annotations

import logging
from datetime import date

import pytest

from relationscope.core.errors import InvalidDateError
from relationscope.core.timeline import (
    TimelineItemKind,
    TimelineReconstructor,
    parse_iso_date,
)

from conftest import make_event, make_phase


@pytest.fixture
def reconstructor() -> TimelineReconstructor:
    return TimelineReconstructor()


# =============================================================================
# Ordering Tests
# =============================================================================


class TestMergeOrdering:
    """Tests for chronological merging."""

    def test_interleaves_by_date(self, reconstructor):
        """Test events and phases come out in ascending date order."""
        events = [make_event("2024-03-05", description="late"), make_event("2024-01-10", description="early")]
        phases = [make_phase("Dating", "2024-02-01", "2024-02-28")]

        items = reconstructor.merge(events, phases)

        assert [item.sort_date for item in items] == [
            date(2024, 1, 10),
            date(2024, 2, 1),
            date(2024, 3, 5),
        ]
        assert [item.kind for item in items] == [
            TimelineItemKind.EVENT,
            TimelineItemKind.PHASE,
            TimelineItemKind.EVENT,
        ]

    def test_length_is_sum_of_inputs(self, reconstructor, sample_report):
        items = reconstructor.merge(sample_report.events, sample_report.phases)
        assert len(items) == len(sample_report.events) + len(sample_report.phases)

    def test_non_decreasing(self, reconstructor):
        events = [make_event(d) for d in ("2024-05-01", "2023-12-31", "2024-05-01", "2024-01-01")]
        phases = [make_phase(n, s, "2024-12-31") for n, s in (("B", "2024-02-01"), ("A", "2023-11-01"))]

        dates = [item.sort_date for item in reconstructor.merge(events, phases)]
        assert dates == sorted(dates)

    def test_event_before_phase_on_same_date(self, reconstructor):
        """Test a tie between an event and a phase puts the event first."""
        items = reconstructor.merge(
            [make_event("2024-02-14")], [make_phase("Commitment", "2024-02-14", "2024-06-01")]
        )

        assert items[0].is_event
        assert items[1].is_phase

    def test_ties_keep_input_order(self, reconstructor):
        """Test same-date events keep their original relative order."""
        events = [make_event("2024-02-14", description=name) for name in ("first", "second", "third")]

        items = reconstructor.merge(events, [])
        assert [item.source.description for item in items] == ["first", "second", "third"]

    def test_empty_inputs(self, reconstructor):
        assert reconstructor.merge([], []) == ()

    def test_sources_are_untouched(self, reconstructor):
        event = make_event("2024-01-01")
        phase = make_phase("Dating", "2024-01-02", "2024-01-31")

        items = reconstructor.merge([event], [phase])

        assert items[0].source is event
        assert items[1].source is phase
        assert items[1].end_date == date(2024, 1, 31)
        assert items[0].end_date is None

    def test_accepts_iso_datetimes(self, reconstructor):
        items = reconstructor.merge([make_event("2024-01-05T23:30:00Z")], [])
        assert items[0].sort_date == date(2024, 1, 5)


# =============================================================================
# Invalid Date Tests
# =============================================================================


class TestInvalidDates:
    """Tests for unparsable dates."""

    @pytest.mark.parametrize("value", ["", "yesterday", "2024-13-01", "14/02/2024"])
    def test_event_with_bad_date(self, reconstructor, value):
        """Test a bad event date raises with full context."""
        events = [make_event("2024-01-01"), make_event(value)]

        with pytest.raises(InvalidDateError) as exc_info:
            reconstructor.merge(events, [])

        error = exc_info.value
        assert (error.kind, error.index, error.field, error.value) == ("event", 1, "date", value)

    def test_phase_with_bad_start(self, reconstructor):
        with pytest.raises(InvalidDateError) as exc_info:
            reconstructor.merge([], [make_phase("Dating", "spring", "2024-06-01")])

        assert exc_info.value.field == "startDate"
        assert exc_info.value.kind == "phase"

    def test_phase_with_bad_end(self, reconstructor):
        with pytest.raises(InvalidDateError) as exc_info:
            reconstructor.merge([], [make_phase("Dating", "2024-01-01", "ongoing")])

        assert exc_info.value.field == "endDate"

    def test_merge_valid_keeps_the_rest(self, reconstructor):
        """Test merge_valid returns parseable items plus one error per bad item."""
        events = [make_event("2024-01-01"), make_event("soon"), make_event("2024-03-01")]
        phases = [make_phase("Dating", "??", "2024-02-01"), make_phase("Strain", "2024-02-01", "2024-02-20")]

        items, errors = reconstructor.merge_valid(events, phases)

        assert len(items) == 3
        assert [item.sort_date for item in items] == [
            date(2024, 1, 1),
            date(2024, 2, 1),
            date(2024, 3, 1),
        ]
        assert [(e.kind, e.index) for e in errors] == [("event", 1), ("phase", 0)]

    def test_merge_valid_all_good(self, reconstructor, sample_report):
        items, errors = reconstructor.merge_valid(sample_report.events, sample_report.phases)

        assert errors == []
        assert items == reconstructor.merge(sample_report.events, sample_report.phases)

    def test_error_message(self):
        error = InvalidDateError("event", 2, "date", "soon")
        assert str(error) == "Invalid date on event #2: 'soon' is not an ISO date"


# =============================================================================
# Inverted Phase Tests
# =============================================================================


class TestInvertedPhases:
    """Tests for phases that end before they start."""

    def test_passes_through_flagged(self, reconstructor, caplog):
        """Test an inverted phase is kept, flagged and logged."""
        phase = make_phase("Repair", "2024-05-01", "2024-04-01")

        with caplog.at_level(logging.WARNING, logger="relationscope"):
            items = reconstructor.merge([], [phase])

        assert len(items) == 1
        assert items[0].is_inverted is True
        assert items[0].sort_date == date(2024, 5, 1)
        assert "ends before it starts" in caplog.text

    def test_normal_phase_not_inverted(self, reconstructor):
        items = reconstructor.merge([], [make_phase("Dating", "2024-01-01", "2024-01-01")])
        assert items[0].is_inverted is False

    def test_events_never_inverted(self, reconstructor):
        assert reconstructor.merge([make_event("2024-01-01")], [])[0].is_inverted is False


class TestParseIsoDate:
    """Tests for parse_iso_date()."""

    def test_plain_date(self):
        assert parse_iso_date("2024-02-29") == date(2024, 2, 29)

    def test_datetime_with_offset(self):
        assert parse_iso_date("2024-02-29T10:00:00+02:00") == date(2024, 2, 29)

    def test_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_iso_date("next tuesday")
