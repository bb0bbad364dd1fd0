"""Error hierarchy for the matching core.

Only SnapshotError ever reaches a caller. Row transition errors are raised
inside the session and turned into logged no-ops, so a racing UI never sees
an exception for a stale or misused row.
"""


class MatchingError(Exception):
    """Base exception for all matching errors."""

    pass


class SnapshotError(MatchingError):
    """An input snapshot (schedule, meetings, hosts) is structurally invalid.

    Examples: unreadable JSON, a record missing its date, a meeting without id.
    """

    pass


class InvalidTransitionError(MatchingError):
    """A row operation is not allowed in the row's current state.

    Example: selecting a candidate on an ``assigned`` row.
    """

    pass


class UnknownRowError(MatchingError):
    """The row id does not exist in the session (usually a stale UI reference)."""

    pass
