"""Ingestion error types and database error classification."""

from typing import Any

from sqlalchemy.exc import DBAPIError, IntegrityError

from showtally.models.showtime import LOGICAL_KEY_CONSTRAINT, SHOWTIME_ID_CONSTRAINT
from showtally.models.showtime_summary import SUMMARY_REPRESENTATIVE_CONSTRAINT

# SQLite reports the violated columns instead of the constraint name
_SQLITE_MARKERS = {
    SHOWTIME_ID_CONSTRAINT: "showtimes.showtime_id",
    LOGICAL_KEY_CONSTRAINT: "showtimes.start_time",
    SUMMARY_REPRESENTATIVE_CONSTRAINT: "showtime_summaries.representative_id",
}

# serialization_failure, deadlock_detected
RETRYABLE_SQLSTATES = {"40001", "40P01"}


class IngestError(Exception):
    """Base class for ingestion failures."""


class ConflictError(IngestError):
    """A showtime id is already attached to a different showing."""

    def __init__(self, showtime_id: str, record: dict[str, Any]) -> None:
        self.showtime_id = showtime_id
        self.record = record
        super().__init__(
            f"Failed to insert showtime due to duplicate showtime id: {showtime_id}"
        )


class TransientIngestError(IngestError):
    """A concurrent writer got in the way. The whole batch may be retried."""


class SummaryError(IngestError):
    """Summary maintenance failed; the enclosing transaction must not commit."""


def violated_constraint(exc: IntegrityError) -> str | None:
    """
    Name of the unique constraint behind an IntegrityError, if known.

    Checks asyncpg (constraint_name on the driver exception) and psycopg
    (diag.constraint_name) before falling back to the message text.
    """
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        name = getattr(candidate, "constraint_name", None)
        if isinstance(name, str) and name:
            return name
        diag = getattr(candidate, "diag", None)
        name = getattr(diag, "constraint_name", None)
        if isinstance(name, str) and name:
            return name

    message = str(orig)
    for constraint, marker in _SQLITE_MARKERS.items():
        if constraint in message or marker in message:
            return constraint
    return None


def sqlstate(exc: DBAPIError) -> str | None:
    """SQLSTATE code of a driver error, for asyncpg and psycopg."""
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        for attr in ("sqlstate", "pgcode"):
            code = getattr(candidate, attr, None)
            if isinstance(code, str) and code:
                return code
    return None


def is_retryable(exc: DBAPIError) -> bool:
    """True for serialization failures and deadlocks."""
    return sqlstate(exc) in RETRYABLE_SQLSTATES
