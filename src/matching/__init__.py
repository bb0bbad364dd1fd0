"""Schedule-to-meeting matching engine.

Matches imported schedule entries to meeting resources by fuzzy topic
comparison, detects instructor time conflicts, and tracks the user's manual
overrides in an assignment session.
"""

from src.matching.models import (
    Ambiguous,
    AssignmentRow,
    AssignmentStatus,
    Confident,
    MatchResult,
    MeetingCandidate,
    NoMatch,
    Penalty,
    PenaltyKind,
    ScheduleEntry,
)
from src.matching.overlap import OverlapReport, detect_overlaps
from src.matching.scoring import Matcher, match
from src.matching.session import AssignmentSession, resolve_host

__all__ = [
    "Ambiguous",
    "AssignmentRow",
    "AssignmentSession",
    "AssignmentStatus",
    "Confident",
    "MatchResult",
    "Matcher",
    "MeetingCandidate",
    "NoMatch",
    "OverlapReport",
    "Penalty",
    "PenaltyKind",
    "ScheduleEntry",
    "detect_overlaps",
    "match",
    "resolve_host",
]
