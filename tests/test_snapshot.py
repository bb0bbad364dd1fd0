"""Tests for JSON snapshot loading and report writing."""
import json
from datetime import date
from pathlib import Path

import pytest

from src.matching.errors import SnapshotError
from src.matching.session import AssignmentSession
from src.matching.snapshot import dump_rows, load_candidates, load_entries, load_hosts

from tests.builders import entry, meeting


def _write(path: Path, payload) -> Path:
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_load_entries(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "schedule.json",
        [
            {
                "date": "15/01/2026",
                "start_time": "09:00",
                "end_time": "10:00",
                "branch": "HUB",
                "instructor": "Ana Lopez",
                "program": "Algebra 1",
                "minutes": 45,
            }
        ],
    )
    entries = load_entries(path)
    assert entries[0].date == date(2026, 1, 15)
    assert entries[0].minutes == 45


def test_load_entries_wrapped_object(tmp_path: Path) -> None:
    record = {"date": "2026-01-01", "start_time": "09:00", "end_time": "10:00"}
    path = _write(tmp_path / "schedule.json", {"schedules": [record]})
    assert len(load_entries(path)) == 1


def test_missing_field_raises_with_location(tmp_path: Path) -> None:
    path = _write(tmp_path / "schedule.json", [{"start_time": "09:00", "end_time": "10:00"}])
    with pytest.raises(SnapshotError, match=r"\[0\.date\]"):
        load_entries(path)


def test_invalid_json_raises(tmp_path: Path) -> None:
    path = tmp_path / "meetings.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(SnapshotError, match="Invalid JSON"):
        load_candidates(path)


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(SnapshotError, match="Cannot read"):
        load_candidates(tmp_path / "absent.json")


def test_load_candidates(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "meetings.json",
        {"meetings": [{"meeting_id": "m1", "topic": "Algebra 1", "host_id": "h1"}]},
    )
    assert load_candidates(path) == [meeting("m1", "Algebra 1")]


def test_load_hosts_mapping(tmp_path: Path) -> None:
    path = _write(tmp_path / "hosts.json", {"h1": "Ana Lopez"})
    assert load_hosts(path) == {"h1": "Ana Lopez"}


def test_load_hosts_user_records(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "hosts.json",
        [
            {"id": "h1", "display_name": "Ana Lopez"},
            {"id": "h2", "first_name": "Luis", "last_name": "Perez"},
        ],
    )
    assert load_hosts(path) == {"h1": "Ana Lopez", "h2": "Luis Perez"}


def test_load_hosts_rejects_non_string_names(tmp_path: Path) -> None:
    path = _write(tmp_path / "hosts.json", {"h1": 3})
    with pytest.raises(SnapshotError):
        load_hosts(path)


def test_dump_rows(tmp_path: Path, matcher) -> None:
    a = entry(program="Algebra 1", start="09:00", end="10:00")
    b = entry(program="Chemistry", start="09:30", end="10:30")
    session = AssignmentSession([a, b], [meeting("m1", "Algebra 1")], matcher=matcher)

    path = dump_rows(session.rows, tmp_path / "out" / "report.json", session.overlaps)
    report = json.loads(path.read_text(encoding="utf-8"))

    assert report["overlap_count"] == 2
    first, second = report["rows"]
    assert first["status"] == "assigned"
    assert first["status_label"] == "Assigned"
    assert first["meeting_id"] == "m1"
    assert first["overlap"] is True
    assert second["status"] == "not_found"
    assert second["meeting_id"] is None
