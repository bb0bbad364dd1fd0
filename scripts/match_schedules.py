"""
Match an imported schedule against the meeting pool and report the result.

Reads the schedule, meeting and host snapshots (JSON exports of the
spreadsheet import and the meeting sync), runs one matching pass and prints a
status summary, the rows that need attention and any instructor time
conflicts.

Usage:
    python scripts/match_schedules.py
    python scripts/match_schedules.py --schedule data/schedule.json --meetings data/meetings.json
    python scripts/match_schedules.py --hosts data/hosts.json --validate-hosts --out reports/match.json

Pre-requisites:
    - data/schedule.json and data/meetings.json must exist (or be passed explicitly)
"""

import argparse
import io
import sys
from datetime import datetime
from pathlib import Path

# Fix Windows console encoding for accented characters
if sys.platform == "win32":
    sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8", errors="replace")
    sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding="utf-8", errors="replace")

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.matching.config import MatchingConfig, get_config
from src.matching.errors import SnapshotError
from src.matching.logging import setup_logging
from src.matching.models import AssignmentStatus
from src.matching.scoring import Matcher
from src.matching.session import AssignmentSession
from src.matching.snapshot import dump_rows, load_candidates, load_entries, load_hosts

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
DATA_DIR = PROJECT_ROOT / "data"
REPORTS_DIR = PROJECT_ROOT / "reports"

SCHEDULE_FILE = DATA_DIR / "schedule.json"
MEETINGS_FILE = DATA_DIR / "meetings.json"
HOSTS_FILE = DATA_DIR / "hosts.json"

# Statuses listed row by row in the console output
ATTENTION = (
    AssignmentStatus.AMBIGUOUS,
    AssignmentStatus.NOT_FOUND,
    AssignmentStatus.TO_UPDATE,
)


def build_parser():
    parser = argparse.ArgumentParser(
        description="Match schedule entries to meetings and detect overlaps"
    )
    parser.add_argument("--schedule", type=Path, default=SCHEDULE_FILE,
                        help="schedule entries JSON (default: data/schedule.json)")
    parser.add_argument("--meetings", type=Path, default=MEETINGS_FILE,
                        help="meeting pool JSON (default: data/meetings.json)")
    parser.add_argument("--hosts", type=Path, default=None,
                        help="host directory JSON (default: data/hosts.json if present)")
    parser.add_argument("--validate-hosts", action="store_true",
                        help="flag meetings hosted by someone other than the scheduled instructor")
    parser.add_argument("--out", type=Path, default=None,
                        help="write the JSON report here (default: reports/match_<timestamp>.json)")
    parser.add_argument("--no-report", action="store_true",
                        help="print the summary only")
    return parser


def make_config(args, base: MatchingConfig) -> MatchingConfig:
    if args.validate_hosts:
        return base.model_copy(update={"validate_hosts": True})
    return base


def print_summary(session: AssignmentSession) -> None:
    counts = session.status_counts()
    print("  " + "  |  ".join(f"{s.label}: {counts[s]}" for s in AssignmentStatus))

    for status in ATTENTION:
        rows = session.rows_with_status(status)
        if not rows:
            continue
        print(f"\n{status.label} ({len(rows)}):")
        for row in rows:
            print(f"  {row.entry.date} {row.time_range}  {row.instructor}  {row.entry.program}")
            print(f"    {row.reason}" + (f" - {row.detailed_reason}" if row.detailed_reason else ""))

    overlaps = session.overlaps
    print(f"\nOverlaps: {overlaps.count}")
    for row in session.rows:
        if session.is_conflicting(row.id):
            print(f"  {row.entry.date} {row.time_range}  {row.instructor}  {row.entry.program}")
    if overlaps.duplicate_class_keys:
        print(f"Duplicate classes: {len(overlaps.duplicate_class_keys)}")


def main(argv=None):
    args = build_parser().parse_args(argv)
    config = make_config(args, get_config())
    setup_logging(json_output=config.log_json, log_level=config.log_level)

    print("=" * 60)
    print("SCHEDULE MATCHING")
    print("=" * 60)

    hosts_path = args.hosts or (HOSTS_FILE if HOSTS_FILE.exists() else None)
    try:
        entries = load_entries(args.schedule)
        candidates = load_candidates(args.meetings)
        hosts = load_hosts(hosts_path) if hosts_path else {}
    except SnapshotError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 1

    print(f"Loaded {len(entries)} entries, {len(candidates)} meetings, {len(hosts)} hosts\n")

    session = AssignmentSession(entries, candidates, hosts, matcher=Matcher(config))
    print_summary(session)

    if not args.no_report:
        ts = datetime.now().strftime("%Y-%m-%d_%H%M%S")
        out = args.out or REPORTS_DIR / f"match_{ts}.json"
        path = dump_rows(session.rows, out, session.overlaps)
        print(f"\nReport: {path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
