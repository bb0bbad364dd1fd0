"""JSON snapshots of the core's inputs and outputs.

The schedule comes from the spreadsheet import, the meeting pool and host
directory from the sync job; all three are exported as JSON files so the
matcher can run offline. Files are validated as a whole: one bad record
rejects the file with a SnapshotError naming the record.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from pydantic import BaseModel, TypeAdapter, ValidationError

from src.matching.errors import SnapshotError
from src.matching.logging import get_logger
from src.matching.models import AssignmentRow, MeetingCandidate, ScheduleEntry
from src.matching.overlap import OverlapReport

log = get_logger(__name__)

_ENTRIES = TypeAdapter(list[ScheduleEntry])
_CANDIDATES = TypeAdapter(list[MeetingCandidate])


class HostRecord(BaseModel):
    """A host as exported by the user directory sync."""

    id: str
    display_name: str = ""
    first_name: str = ""
    last_name: str = ""
    email: str = ""

    @property
    def name(self) -> str:
        return self.display_name or f"{self.first_name} {self.last_name}".strip()


_HOSTS = TypeAdapter(list[HostRecord])


def _read_json(path: str | Path) -> Any:
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except OSError as exc:
        raise SnapshotError(f"Cannot read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise SnapshotError(f"Invalid JSON in {path}: {exc}") from exc


def _records(raw: Any, key: str) -> Any:
    """Accept a bare JSON array or an object wrapping it under ``key``."""
    if isinstance(raw, dict) and key in raw:
        return raw[key]
    return raw


def _validate(adapter: TypeAdapter, raw: Any, path: str | Path) -> list:
    try:
        return adapter.validate_python(raw)
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(p) for p in first["loc"])
        raise SnapshotError(
            f"{path}: {exc.error_count()} invalid field(s), first at [{location}]: {first['msg']}"
        ) from exc


def load_entries(path: str | Path) -> list[ScheduleEntry]:
    entries = _validate(_ENTRIES, _records(_read_json(path), "schedules"), path)
    log.info("snapshot_loaded", kind="entries", path=str(path), count=len(entries))
    return entries


def load_candidates(path: str | Path) -> list[MeetingCandidate]:
    candidates = _validate(_CANDIDATES, _records(_read_json(path), "meetings"), path)
    log.info("snapshot_loaded", kind="candidates", path=str(path), count=len(candidates))
    return candidates


def load_hosts(path: str | Path) -> dict[str, str]:
    """Load the host directory as ``{host_id: display_name}``.

    Accepts either that mapping directly or a list of user records.
    """
    raw = _records(_read_json(path), "users")
    if isinstance(raw, dict):
        if not all(isinstance(v, str) for v in raw.values()):
            raise SnapshotError(f"{path}: host mapping values must be names")
        hosts = {str(k): v for k, v in raw.items()}
    else:
        hosts = {h.id: h.name for h in _validate(_HOSTS, raw, path)}
    log.info("snapshot_loaded", kind="hosts", path=str(path), count=len(hosts))
    return hosts


def rows_to_records(
    rows: Iterable[AssignmentRow], overlaps: OverlapReport | None = None
) -> list[dict]:
    records = []
    for row in rows:
        record = row.entry.model_dump(mode="json")
        record.update(
            {
                "id": row.id,
                "time": row.time_range,
                "instructor": row.instructor,
                "status": row.status.value,
                "status_label": row.status.label,
                "meeting_id": row.meeting_id,
                "topic": row.matched_candidate.topic if row.matched_candidate else None,
                "score": row.score,
                "reason": row.reason,
                "detailed_reason": row.detailed_reason,
                "manual_mode": row.manual_mode,
                "ambiguous_candidates": [c.meeting_id for c in row.ambiguous_candidates],
            }
        )
        if overlaps is not None:
            record["overlap"] = overlaps.is_conflicting(row.entry)
        records.append(record)
    return records


def dump_rows(
    rows: Iterable[AssignmentRow],
    path: str | Path,
    overlaps: OverlapReport | None = None,
) -> Path:
    """Write an assignment report, creating parent directories if needed."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    report = {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "overlap_count": overlaps.count if overlaps is not None else None,
        "rows": rows_to_records(rows, overlaps),
    }
    with open(path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, ensure_ascii=False)
    return path
