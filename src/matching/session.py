"""Assignment session: the working set of rows shown in the assignment table.

A session matches every schedule entry against a snapshot of the meeting
pool once, then lets the user override individual rows. Overrides never
trigger re-matching of other rows; only ``rebuild`` does a full pass and
``reset_row`` re-matches a single row.

Row lifecycle::

    assigned / to_update --toggle--> manual_mode on/off (status unchanged)
    ambiguous --select_candidate--> manual --deselect_candidate--> ambiguous
    any --reset_row--> fresh classification

Mutations are single-writer: call them from one thread (the UI loop). Each
one builds a complete replacement row before swapping it in, so a rejected
operation leaves the row untouched. Unknown ids and misuse are logged and
reported by a False return, never raised.
"""

from collections import Counter
from datetime import datetime
from typing import Callable, Iterable, Mapping, Sequence

from rapidfuzz import fuzz, process

from src.matching.errors import InvalidTransitionError, UnknownRowError
from src.matching.logging import get_logger
from src.matching.models import (
    Ambiguous,
    AssignmentRequest,
    AssignmentRow,
    AssignmentStatus,
    Confident,
    MeetingCandidate,
    ScheduleEntry,
)
from src.matching.normalizer import tokens
from src.matching.overlap import OverlapReport, detect_overlaps
from src.matching.scoring import Matcher, describe

log = get_logger(__name__)

StatusFilterCallback = Callable[[AssignmentStatus], None]

# Statuses whose rows carry a meeting the user may still want to re-host
_EXECUTABLE = {AssignmentStatus.TO_UPDATE, AssignmentStatus.MANUAL}
_NO_MANUAL_MODE = {AssignmentStatus.NOT_FOUND, AssignmentStatus.AMBIGUOUS}


def build_row_ids(entries: Sequence[ScheduleEntry]) -> list[str]:
    """Stable row ids: the entry key, with ``#n`` appended to repeated keys."""
    seen: Counter = Counter()
    ids = []
    for entry in entries:
        key = entry.key
        seen[key] += 1
        ids.append(key if seen[key] == 1 else f"{key}#{seen[key]}")
    return ids


def resolve_host(
    instructor: str | None,
    hosts: Mapping[str, str],
    min_similarity: float = 60.0,
) -> str | None:
    """Host id whose display name is the instructor, or None when none is safe.

    Tried in order:

    1. the same name once normalized ("ANA LÓPEZ" is "Ana Lopez");
    2. hosts whose every name token appears in the instructor name, the
       longest name winning ("Ana Maria Lopez" picks "Ana Lopez");
    3. the best fuzzy ratio at or above ``min_similarity``, kept only when at
       least two tokens agree, or all of them for one or two-token names.

    A bare first name like "Ana" never resolves to "Ana Lopez".
    """
    query = tokens(instructor)
    if not query:
        return None
    names = {host_id: tokens(name) for host_id, name in hosts.items()}
    names = {host_id: name for host_id, name in names.items() if name}

    for host_id, name in names.items():
        if name == query:
            return host_id

    query_set = set(query)
    contained = [host_id for host_id, name in names.items() if set(name) <= query_set]
    if contained:
        # max() keeps lookup order among names of equal length
        return max(contained, key=lambda host_id: len(names[host_id]))

    best = process.extractOne(
        " ".join(query),
        {host_id: " ".join(name) for host_id, name in names.items()},
        scorer=fuzz.token_sort_ratio,
        score_cutoff=min_similarity,
    )
    if best is None:
        return None
    host_id = best[2]
    host_tokens = set(names[host_id])
    shared = sum(1 for token in query if token in host_tokens)
    return host_id if shared >= min(len(query), 2) else None


class AssignmentSession:
    """Rows, overrides and derived views for one matching pass.

    Args:
        entries: Parsed schedule entries, in display order.
        candidates: Meeting pool snapshot.
        hosts: host_id -> display name lookup for the pool's hosts.
        matcher: Matcher to use; defaults to one built from get_config().
        on_status_filter: Called with a status whenever the session asks the
            table to add it to the active status filter.
    """

    def __init__(
        self,
        entries: Iterable[ScheduleEntry],
        candidates: Iterable[MeetingCandidate],
        hosts: Mapping[str, str] | None = None,
        *,
        matcher: Matcher | None = None,
        on_status_filter: StatusFilterCallback | None = None,
    ) -> None:
        self.matcher = matcher or Matcher()
        self.on_status_filter = on_status_filter
        self.status_filters: set[AssignmentStatus] = set()

        self._entries: tuple[ScheduleEntry, ...] = ()
        self._candidates: tuple[MeetingCandidate, ...] = ()
        self._hosts: dict[str, str] = {}
        self._rows: dict[str, AssignmentRow] = {}
        # Reasons from the automatic pass, restored when a pick is undone
        self._auto_reasons: dict[str, tuple[str, str]] = {}
        self._overlaps: OverlapReport | None = None

        self.rebuild(entries, candidates, hosts or {})

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------
    def rebuild(
        self,
        entries: Iterable[ScheduleEntry] | None = None,
        candidates: Iterable[MeetingCandidate] | None = None,
        hosts: Mapping[str, str] | None = None,
    ) -> None:
        """Full re-match. Replaces any input given, keeps the others."""
        if entries is not None:
            self._entries = tuple(entries)
        if candidates is not None:
            self._candidates = tuple(candidates)
        if hosts is not None:
            self._hosts = dict(hosts)

        rows: dict[str, AssignmentRow] = {}
        for row_id, entry in zip(build_row_ids(self._entries), self._entries):
            rows[row_id] = self._classify(row_id, entry)

        self._rows = rows
        self._auto_reasons = {r.id: (r.reason, r.detailed_reason) for r in rows.values()}
        self._overlaps = None

        log.info(
            "session_built",
            rows=len(rows),
            candidates=len(self._candidates),
            hosts=len(self._hosts),
            **{status.value: n for status, n in self.status_counts().items()},
        )

    def _classify(self, row_id: str, entry: ScheduleEntry) -> AssignmentRow:
        result = self.matcher.match(entry, self._candidates)
        reason, detailed = describe(result)
        fields = {
            "status": AssignmentStatus.NOT_FOUND,
            "reason": reason,
            "detailed_reason": detailed,
        }

        if isinstance(result, Confident):
            fields.update(
                status=AssignmentStatus.ASSIGNED,
                matched_candidate=result.candidate,
                score=result.match.score,
            )
            if self.matcher.config.validate_hosts and self._hosts:
                fields.update(self._check_host(entry, result.candidate))
        elif isinstance(result, Ambiguous):
            fields.update(
                status=AssignmentStatus.AMBIGUOUS,
                ambiguous_candidates=[s.candidate for s in result.candidates],
                score=result.best.score,
            )

        return AssignmentRow(id=row_id, entry=entry, instructor=entry.instructor, **fields)

    def _check_host(self, entry: ScheduleEntry, candidate: MeetingCandidate) -> dict:
        """Field overrides for a confident match whose host disagrees with the schedule."""
        host_id = self.find_host_id(entry.instructor)
        if host_id is None:
            return {
                "status": AssignmentStatus.NOT_FOUND,
                "matched_candidate": None,
                "score": None,
                "reason": "Instructor not found",
                "detailed_reason": (
                    f"No host account matches instructor {entry.instructor!r}; "
                    f"best meeting was {candidate.topic} ({candidate.meeting_id})"
                ),
            }
        if host_id != candidate.host_id:
            host = self._hosts.get(candidate.host_id, candidate.host_id)
            return {
                "status": AssignmentStatus.TO_UPDATE,
                "reason": "Change host",
                "detailed_reason": (
                    f"Meeting {candidate.meeting_id} is hosted by {host}, "
                    f"schedule lists {entry.instructor}"
                ),
            }
        return {}

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    @property
    def rows(self) -> list[AssignmentRow]:
        return list(self._rows.values())

    @property
    def candidates(self) -> tuple[MeetingCandidate, ...]:
        return self._candidates

    def get_row(self, row_id: str) -> AssignmentRow | None:
        return self._rows.get(row_id)

    def __len__(self) -> int:
        return len(self._rows)

    def __contains__(self, row_id: object) -> bool:
        return row_id in self._rows

    def rows_with_status(self, *statuses: AssignmentStatus | str) -> list[AssignmentRow]:
        wanted = {AssignmentStatus(s) for s in statuses}
        return [r for r in self._rows.values() if r.status in wanted]

    def status_counts(self) -> dict[AssignmentStatus, int]:
        counts = {status: 0 for status in AssignmentStatus}
        for row in self._rows.values():
            counts[row.status] += 1
        return counts

    def visible_rows(self) -> list[AssignmentRow]:
        """Rows passing the active status filter (all rows when none is set)."""
        if not self.status_filters:
            return self.rows
        return self.rows_with_status(*self.status_filters)

    def set_status_filters(self, statuses: Iterable[AssignmentStatus | str]) -> None:
        self.status_filters = {AssignmentStatus(s) for s in statuses}

    @property
    def overlaps(self) -> OverlapReport:
        if self._overlaps is None:
            self._overlaps = detect_overlaps(self._entries)
        return self._overlaps

    def is_conflicting(self, row_id: str) -> bool:
        row = self._rows.get(row_id)
        return row is not None and self.overlaps.is_conflicting(row.entry)

    def host_name(self, row_id: str) -> str | None:
        """Display name of the host of the row's matched meeting, if known."""
        row = self._rows.get(row_id)
        if row is None or row.matched_candidate is None:
            return None
        return self._hosts.get(row.matched_candidate.host_id)

    def find_host_id(self, instructor: str) -> str | None:
        """Host id for ``instructor`` in the session's host lookup (see resolve_host)."""
        return resolve_host(instructor, self._hosts, self.matcher.config.host_min_similarity)

    def pending_assignments(
        self, meeting_ids: Iterable[str] | None = None
    ) -> list[AssignmentRequest]:
        """Host reassignments to execute for to_update and manually picked rows.

        Rows whose instructor cannot be found in the host lookup are skipped.
        """
        wanted = set(meeting_ids) if meeting_ids is not None else None
        requests = []
        for row in self._rows.values():
            if row.status not in _EXECUTABLE or row.matched_candidate is None:
                continue
            if wanted is not None and row.meeting_id not in wanted:
                continue
            host_id = self.find_host_id(row.instructor)
            if host_id is None:
                log.warning("assignment_host_unknown", row_id=row.id, instructor=row.instructor)
                continue
            requests.append(
                AssignmentRequest(
                    row_id=row.id,
                    meeting_id=row.matched_candidate.meeting_id,
                    host_id=host_id,
                    instructor=row.instructor,
                    start=datetime.combine(row.entry.date, row.entry.start_time),
                    duration_minutes=row.entry.duration_minutes,
                )
            )
        return requests

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def _apply(
        self,
        operation: str,
        row_id: str,
        change: Callable[[AssignmentRow], AssignmentRow],
    ) -> bool:
        try:
            row = self._rows.get(row_id)
            if row is None:
                raise UnknownRowError(row_id)
            updated = change(row)
        except UnknownRowError:
            log.warning("row_not_found", operation=operation, row_id=row_id)
            return False
        except InvalidTransitionError as exc:
            log.warning(
                "invalid_row_operation",
                operation=operation,
                row_id=row_id,
                status=row.status.value,
                reason=str(exc),
            )
            return False

        self._rows[row_id] = updated
        log.debug(
            "row_updated",
            operation=operation,
            row_id=row_id,
            status=updated.status.value,
            manual_mode=updated.manual_mode,
        )
        return True

    def select_candidate(self, row_id: str, candidate: MeetingCandidate | str) -> bool:
        """Pick one of an ambiguous row's candidates. The row becomes manual.

        ``candidate`` may be the candidate itself or its meeting_id. The
        ambiguous list is kept so the pick can be changed or undone.
        """
        meeting_id = candidate if isinstance(candidate, str) else candidate.meeting_id

        def change(row: AssignmentRow) -> AssignmentRow:
            if row.status not in (AssignmentStatus.AMBIGUOUS, AssignmentStatus.MANUAL):
                raise InvalidTransitionError("only ambiguous or manual rows accept a pick")
            chosen = next(
                (c for c in row.ambiguous_candidates if c.meeting_id == meeting_id), None
            )
            if chosen is None:
                raise InvalidTransitionError(f"meeting {meeting_id} is not a candidate of this row")
            return row.model_copy(
                update={
                    "status": AssignmentStatus.MANUAL,
                    "matched_candidate": chosen,
                    "manual_mode": True,
                    "reason": "Manually selected",
                    "detailed_reason": (
                        f"Selected {chosen.topic} ({chosen.meeting_id}) out of "
                        f"{len(row.ambiguous_candidates)} candidates"
                    ),
                }
            )

        applied = self._apply("select_candidate", row_id, change)
        if applied:
            # Keep the resolved row visible in a table filtered on "ambiguous"
            self.add_status_filter(AssignmentStatus.MANUAL)
        return applied

    def deselect_candidate(self, row_id: str) -> bool:
        """Undo a pick: the row goes back to ambiguous with no matched meeting."""

        def change(row: AssignmentRow) -> AssignmentRow:
            if row.status is not AssignmentStatus.MANUAL or row.matched_candidate is None:
                raise InvalidTransitionError("no manual selection to undo")
            if row.matched_candidate not in row.ambiguous_candidates:
                raise InvalidTransitionError("selection did not come from this row's candidates")
            reason, detailed = self._auto_reasons.get(row.id, ("", ""))
            return row.model_copy(
                update={
                    "status": AssignmentStatus.AMBIGUOUS,
                    "matched_candidate": None,
                    "manual_mode": False,
                    "reason": reason,
                    "detailed_reason": detailed,
                }
            )

        return self._apply("deselect_candidate", row_id, change)

    def toggle_manual_mode(self, row_id: str) -> bool:
        """Lock or unlock direct instructor editing on a row that has a meeting."""

        def change(row: AssignmentRow) -> AssignmentRow:
            if row.status in _NO_MANUAL_MODE:
                raise InvalidTransitionError("row has no meeting to edit")
            return row.model_copy(update={"manual_mode": not row.manual_mode})

        return self._apply("toggle_manual_mode", row_id, change)

    def set_instructor(self, row_id: str, instructor: str) -> bool:
        """Override the effective instructor. Status and meeting are untouched."""
        name = (instructor or "").strip()

        def change(row: AssignmentRow) -> AssignmentRow:
            if not row.manual_mode:
                raise InvalidTransitionError("manual mode is off")
            if not name:
                raise InvalidTransitionError("instructor name is empty")
            return row.model_copy(update={"instructor": name})

        return self._apply("set_instructor", row_id, change)

    def reset_row(self, row_id: str) -> bool:
        """Re-match this row alone against the current pool, dropping all overrides."""

        def change(row: AssignmentRow) -> AssignmentRow:
            return self._classify(row.id, row.entry)

        applied = self._apply("reset_row", row_id, change)
        if applied:
            row = self._rows[row_id]
            self._auto_reasons[row_id] = (row.reason, row.detailed_reason)
        return applied

    def add_status_filter(self, status: AssignmentStatus | str) -> None:
        """Ask the table to also show rows with ``status``.

        Only widens an active filter; with no filter every row is already shown.
        """
        status = AssignmentStatus(status)
        if self.status_filters:
            self.status_filters.add(status)
        if self.on_status_filter is not None:
            self.on_status_filter(status)
