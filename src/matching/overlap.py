"""Overlap detection for imported schedules.

Time conflicts: entries on the same date for the same instructor whose
half-open ranges [start, end) intersect. Touching ranges (10:00-11:00 after
09:00-10:00) do not conflict. Zero-length or inverted ranges never conflict.

Duplicate classes: the same program at the same date and time taught by
different instructors, usually an import mistake. Reported separately and
not included in ``count``.
"""

from collections import defaultdict
from typing import Sequence

from pydantic import BaseModel, ConfigDict

from src.matching.models import ScheduleEntry


class OverlapReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    conflicting_keys: frozenset[str] = frozenset()
    duplicate_class_keys: frozenset[str] = frozenset()
    count: int = 0  # input entries involved in at least one time conflict

    @property
    def all_keys(self) -> frozenset[str]:
        return self.conflicting_keys | self.duplicate_class_keys

    def is_conflicting(self, entry: ScheduleEntry) -> bool:
        return entry.key in self.conflicting_keys


def _sweep(group: list[tuple[int, ScheduleEntry]]) -> set[int]:
    """Indexes of entries in one (date, instructor) group that overlap another."""
    ordered = sorted(
        (item for item in group if item[1].end_minute > item[1].start_minute),
        key=lambda item: (item[1].start_minute, item[1].end_minute, item[0]),
    )
    hits: set[int] = set()
    active: list[tuple[int, ScheduleEntry]] = []
    for idx, entry in ordered:
        # Anything still active started no later than entry and ends after it starts
        active = [a for a in active if a[1].end_minute > entry.start_minute]
        if active:
            hits.add(idx)
            hits.update(a[0] for a in active)
        active.append((idx, entry))
    return hits


def detect_overlaps(entries: Sequence[ScheduleEntry]) -> OverlapReport:
    """Find time conflicts and duplicate classes. Pure and deterministic."""
    by_resource: dict[tuple, list[tuple[int, ScheduleEntry]]] = defaultdict(list)
    by_class: dict[tuple, list[ScheduleEntry]] = defaultdict(list)

    for idx, entry in enumerate(entries):
        by_resource[(entry.date, entry.instructor)].append((idx, entry))
        by_class[(entry.date, entry.start_time, entry.end_time, entry.program)].append(entry)

    conflicting: set[int] = set()
    for group in by_resource.values():
        if len(group) > 1:
            conflicting |= _sweep(group)

    duplicates: set[str] = set()
    for group in by_class.values():
        if len({e.instructor for e in group}) > 1:
            duplicates.update(e.key for e in group)

    return OverlapReport(
        conflicting_keys=frozenset(entries[i].key for i in conflicting),
        duplicate_class_keys=frozenset(duplicates),
        count=len(conflicting),
    )
