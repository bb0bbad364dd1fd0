"""Tests for the data model."""
from datetime import date, time

import pytest
from pydantic import ValidationError

from src.matching.models import AssignmentRow, AssignmentStatus, ScheduleEntry

from tests.builders import entry, meeting


def test_key_is_composite_of_identity_fields() -> None:
    e = entry(program="Algebra 1", instructor="Ana Lopez", branch="HUB")
    assert e.key == "2026-01-01|09:00|10:00|HUB|Ana Lopez|Algebra 1"


def test_times_truncated_to_minutes() -> None:
    e = ScheduleEntry(date="2026-01-01", start_time="09:00:45", end_time="10:30")
    assert e.start_time == time(9, 0)
    assert e.duration_minutes == 90


def test_day_first_dates_accepted() -> None:
    e = ScheduleEntry(date="15/01/2026", start_time="09:00", end_time="10:00")
    assert e.date == date(2026, 1, 15)


def test_inverted_range_has_zero_duration() -> None:
    assert entry(start="10:00", end="09:00").duration_minutes == 0


def test_missing_text_fields_default_to_empty() -> None:
    e = ScheduleEntry(date="2026-01-01", start_time="09:00", end_time="10:00", program=None)
    assert e.program == ""
    assert e.instructor == ""


def test_entry_is_immutable() -> None:
    e = entry()
    with pytest.raises(ValidationError):
        e.program = "Other"


@pytest.mark.parametrize(
    "status,label",
    [
        (AssignmentStatus.ASSIGNED, "Assigned"),
        (AssignmentStatus.TO_UPDATE, "To Update"),
        (AssignmentStatus.NOT_FOUND, "Not Found"),
        (AssignmentStatus.AMBIGUOUS, "Ambiguous"),
        (AssignmentStatus.MANUAL, "Manual"),
    ],
)
def test_status_labels(status, label) -> None:
    assert status.label == label


def test_row_derived_fields() -> None:
    e = entry(start="08:15", end="09:45")
    row = AssignmentRow(
        id=e.key,
        entry=e,
        status=AssignmentStatus.ASSIGNED,
        matched_candidate=meeting("m1", "Algebra 1"),
        instructor=e.instructor,
    )
    assert row.meeting_id == "m1"
    assert row.time_range == "08:15 - 09:45"
    assert not row.instructor_overridden
