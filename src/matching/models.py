"""Pydantic models for schedule entries, meeting candidates and assignment rows.

All data structures use Pydantic v2 for validation, serialization, and type safety.
Every model here is frozen. The session replaces an AssignmentRow with an
updated copy rather than editing it.
"""

from datetime import date, datetime, time
from enum import Enum
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, field_validator

# Day-first format used by the spreadsheet import, e.g. "15/01/2026"
_DAY_FIRST_FORMAT = "%d/%m/%Y"


class ScheduleEntry(BaseModel):
    """One imported schedule row: a dated, timed class taught by an instructor."""

    model_config = ConfigDict(frozen=True)

    date: date
    start_time: time  # minute precision, "09:00"
    end_time: time
    branch: str = ""  # location label, e.g. "HUB", "LA MOLINA"
    instructor: str = ""
    program: str = ""  # class / activity name used for matching
    shift: str = ""
    code: str = ""  # class code column of the import
    minutes: int | None = None  # billed minutes as imported, may differ from duration
    units: float | None = None

    @field_validator("date", mode="before")
    @classmethod
    def _parse_day_first(cls, value):
        if isinstance(value, str) and "/" in value:
            return datetime.strptime(value.strip(), _DAY_FIRST_FORMAT).date()
        return value

    @field_validator("start_time", "end_time")
    @classmethod
    def _truncate_to_minute(cls, value: time) -> time:
        return value.replace(second=0, microsecond=0, tzinfo=None)

    @field_validator("branch", "instructor", "program", "shift", "code", mode="before")
    @classmethod
    def _none_to_empty(cls, value):
        return "" if value is None else value

    @property
    def start_minute(self) -> int:
        return self.start_time.hour * 60 + self.start_time.minute

    @property
    def end_minute(self) -> int:
        return self.end_time.hour * 60 + self.end_time.minute

    @property
    def duration_minutes(self) -> int:
        """Length of the time range; 0 for degenerate or inverted ranges."""
        return max(0, self.end_minute - self.start_minute)

    @property
    def key(self) -> str:
        """Deterministic identity used for overlap sets and import de-duplication."""
        return "|".join(
            [
                self.date.isoformat(),
                self.start_time.strftime("%H:%M"),
                self.end_time.strftime("%H:%M"),
                self.branch,
                self.instructor,
                self.program,
            ]
        )


class MeetingCandidate(BaseModel):
    """A meeting resource (e.g. a recurring virtual room) that entries can be linked to."""

    model_config = ConfigDict(frozen=True)

    meeting_id: str
    topic: str = ""
    host_id: str = ""
    start_time: str | None = None  # the resource's own schedule anchor, as synced
    join_url: str | None = None


class AssignmentStatus(str, Enum):
    ASSIGNED = "assigned"
    TO_UPDATE = "to_update"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"
    MANUAL = "manual"

    @property
    def label(self) -> str:
        """Fixed display label rendered by the table."""
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    AssignmentStatus.ASSIGNED: "Assigned",
    AssignmentStatus.TO_UPDATE: "To Update",
    AssignmentStatus.NOT_FOUND: "Not Found",
    AssignmentStatus.AMBIGUOUS: "Ambiguous",
    AssignmentStatus.MANUAL: "Manual",
}


class PenaltyKind(str, Enum):
    """Conflict rules checked for every (program, topic) pair."""

    CRITICAL_TOKEN_MISMATCH = "CRITICAL_TOKEN_MISMATCH"
    LEVEL_CONFLICT = "LEVEL_CONFLICT"
    COMPANY_CONFLICT = "COMPANY_CONFLICT"
    PROGRAM_VS_PERSON = "PROGRAM_VS_PERSON"
    STRUCTURAL_TOKEN_MISSING = "STRUCTURAL_TOKEN_MISSING"
    GROUP_NUMBER_CONFLICT = "GROUP_NUMBER_CONFLICT"
    NUMERIC_CONFLICT = "NUMERIC_CONFLICT"
    ORPHAN_NUMBER_WITH_SIBLINGS = "ORPHAN_NUMBER_WITH_SIBLINGS"
    ORPHAN_LEVEL_WITH_SIBLINGS = "ORPHAN_LEVEL_WITH_SIBLINGS"

    @property
    def short_reason(self) -> str:
        """Reason shown in the status column when this rule decides the outcome."""
        return _PENALTY_REASONS[self]

    @property
    def is_orphan(self) -> bool:
        return self in (
            PenaltyKind.ORPHAN_NUMBER_WITH_SIBLINGS,
            PenaltyKind.ORPHAN_LEVEL_WITH_SIBLINGS,
        )


_PENALTY_REASONS = {
    PenaltyKind.CRITICAL_TOKEN_MISMATCH: "Program type mismatch",
    PenaltyKind.LEVEL_CONFLICT: "Level mismatch",
    PenaltyKind.COMPANY_CONFLICT: "Company mismatch",
    PenaltyKind.PROGRAM_VS_PERSON: "Program vs person mismatch",
    PenaltyKind.STRUCTURAL_TOKEN_MISSING: "Missing program type",
    PenaltyKind.GROUP_NUMBER_CONFLICT: "Group number mismatch",
    PenaltyKind.NUMERIC_CONFLICT: "Number mismatch",
    PenaltyKind.ORPHAN_NUMBER_WITH_SIBLINGS: "Unspecified group number",
    PenaltyKind.ORPHAN_LEVEL_WITH_SIBLINGS: "Unspecified level",
}


class Penalty(BaseModel):
    """One conflict rule that fired for a candidate, with the points it cost."""

    model_config = ConfigDict(frozen=True)

    kind: PenaltyKind
    points: float
    reason: str = ""

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.reason}"


class ScoredCandidate(BaseModel):
    """A candidate with its text similarity and the score left after penalties."""

    model_config = ConfigDict(frozen=True)

    candidate: MeetingCandidate
    score: float
    similarity: float | None = None  # before penalties; None when not tracked
    penalties: tuple[Penalty, ...] = ()

    @property
    def disqualified(self) -> bool:
        """A conflict rule took the whole score away."""
        return bool(self.penalties) and self.score <= 0

    def penalty(self, *kinds: PenaltyKind) -> Penalty | None:
        """First applied penalty of one of ``kinds`` (any kind when none given)."""
        for applied in self.penalties:
            if not kinds or applied.kind in kinds:
                return applied
        return None


class NoMatch(BaseModel):
    """No candidate cleared the acceptance threshold."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["no_match"] = "no_match"
    reason: str
    detailed_reason: str = ""


class Confident(BaseModel):
    """Exactly one candidate cleared the threshold with a clear margin."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["confident"] = "confident"
    match: ScoredCandidate
    runner_up: ScoredCandidate | None = None

    @property
    def candidate(self) -> MeetingCandidate:
        return self.match.candidate


class Ambiguous(BaseModel):
    """Several candidates cleared the threshold within the tie margin of each other."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["ambiguous"] = "ambiguous"
    candidates: list[ScoredCandidate]

    @property
    def best(self) -> ScoredCandidate:
        return self.candidates[0]


MatchResult = Union[NoMatch, Confident, Ambiguous]


class AssignmentRow(BaseModel):
    """Working state of one schedule entry inside an assignment session.

    Rows are frozen: the UI reads them, and AssignmentSession swaps in
    updated copies so that the status invariants hold.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    entry: ScheduleEntry
    status: AssignmentStatus
    matched_candidate: MeetingCandidate | None = None
    ambiguous_candidates: list[MeetingCandidate] = []
    reason: str = ""
    detailed_reason: str = ""
    manual_mode: bool = False
    instructor: str = ""  # effective instructor, starts as entry.instructor
    score: float | None = None

    @property
    def meeting_id(self) -> str | None:
        return self.matched_candidate.meeting_id if self.matched_candidate else None

    @property
    def time_range(self) -> str:
        return (
            f"{self.entry.start_time.strftime('%H:%M')} - "
            f"{self.entry.end_time.strftime('%H:%M')}"
        )

    @property
    def instructor_overridden(self) -> bool:
        return self.instructor != self.entry.instructor


class AssignmentRequest(BaseModel):
    """A pending host reassignment for one meeting, handed to an external executor."""

    model_config = ConfigDict(frozen=True)

    row_id: str
    meeting_id: str
    host_id: str
    instructor: str
    start: datetime
    duration_minutes: int
