"""Small constructors for schedule entries and meetings used across tests."""

from datetime import date

from src.matching.models import MeetingCandidate, ScheduleEntry


def entry(
    program="Algebra 1",
    instructor="Ana Lopez",
    start="09:00",
    end="10:00",
    day=date(2026, 1, 1),
    branch="HUB",
) -> ScheduleEntry:
    return ScheduleEntry(
        date=day,
        start_time=start,
        end_time=end,
        branch=branch,
        instructor=instructor,
        program=program,
    )


def meeting(meeting_id, topic, host_id="h1") -> MeetingCandidate:
    return MeetingCandidate(meeting_id=meeting_id, topic=topic, host_id=host_id)
