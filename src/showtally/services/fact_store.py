"""Showtime store: idempotent upserts keyed on the logical key of a showing."""

import logging
from dataclasses import dataclass
from typing import Literal

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from showtally.config import settings
from showtally.database import upsert_for
from showtally.errors import ConflictError, TransientIngestError, violated_constraint
from showtally.models.showtime import (
    LOGICAL_KEY_COLUMNS,
    LOGICAL_KEY_CONSTRAINT,
    SHOWTIME_ID_CONSTRAINT,
    Showtime,
)
from showtally.schemas.showtime import ShowtimeIn
from showtally.utils.keys import LogicalKey

logger = logging.getLogger(__name__)

UpsertAction = Literal["inserted", "updated", "relocated", "failed"]


@dataclass
class UpsertOutcome:
    """
    What applying one showtime did.

    Failures are carried as values: exactly one of conflict/transient is set
    when action is "failed". The caller decides whether to abort.
    """

    action: UpsertAction
    key: LogicalKey
    row_id: int | None = None
    observations: int = 0
    # Set when a row moved away from this key ("relocate" policy)
    previous_key: LogicalKey | None = None
    conflict: ConflictError | None = None
    transient: TransientIngestError | None = None

    @property
    def failed(self) -> bool:
        return self.action == "failed"

    @property
    def error(self) -> ConflictError | TransientIngestError | None:
        return self.conflict or self.transient


class ShowtimeStore:
    """
    Applies scraped showtimes to the showtimes table.

    Each showtime is written with a single INSERT ... ON CONFLICT on the
    logical key: a new showing is inserted with a count of 1, a known one gets
    the incoming booking link and showtime id and its count bumped in SQL.

    The store never opens, commits or rolls back a transaction; it runs in
    whatever transaction the caller's session holds.
    """

    def __init__(self, external_id_policy: str | None = None) -> None:
        """
        Initialize the store.

        Args:
            external_id_policy: "reject" or "relocate" (defaults to settings)
        """
        self.external_id_policy = external_id_policy or settings.external_id_policy

    async def upsert(self, db: AsyncSession, showtime: ShowtimeIn) -> UpsertOutcome:
        """
        Insert a showtime or merge it into the existing row for its showing.

        Args:
            db: Session with the batch transaction
            showtime: Validated showtime

        Returns:
            The outcome; on failure the session's transaction must be rolled back
        """
        key = showtime.key

        if self.external_id_policy == "relocate":
            outcome = await self._relocate(db, showtime, key)
            if outcome is not None:
                return outcome

        stmt = upsert_for(db, Showtime).values(
            showtime_id=showtime.showtime_id,
            booking_link=showtime.booking_link,
            showtime_count=1,
            **key.column_values(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=list(LOGICAL_KEY_COLUMNS),
            set_={
                "showtime_id": stmt.excluded.showtime_id,
                "booking_link": stmt.excluded.booking_link,
                "showtime_count": Showtime.showtime_count + 1,
                "updated_at": func.now(),
            },
        ).returning(Showtime.id, Showtime.showtime_count)

        try:
            result = await db.execute(stmt)
        except IntegrityError as e:
            return self._failure(showtime, key, e, key_clash_is_conflict=False)

        row = result.one()
        action: UpsertAction = "inserted" if row.showtime_count == 1 else "updated"
        logger.debug(f"{action} showtime {showtime.showtime_id!r} ({key}), count={row.showtime_count}")
        return UpsertOutcome(
            action=action,
            key=key,
            row_id=row.id,
            observations=row.showtime_count,
        )

    async def _relocate(
        self,
        db: AsyncSession,
        showtime: ShowtimeIn,
        key: LogicalKey,
    ) -> UpsertOutcome | None:
        """
        Move the row owning showtime.showtime_id to the incoming showing.

        Returns None when there is nothing to move (unknown id, or the id
        already belongs to this showing) so the regular upsert applies.
        """
        query = select(Showtime.id, *(getattr(Showtime, c) for c in LOGICAL_KEY_COLUMNS)).where(
            Showtime.showtime_id == showtime.showtime_id
        )
        result = await db.execute(query)
        existing = result.one_or_none()
        if existing is None:
            return None

        previous_key = LogicalKey.from_row(existing)
        if previous_key == key:
            return None

        # The new showing has been seen once; observations of the old one stay behind
        stmt = (
            update(Showtime)
            .where(Showtime.id == existing.id)
            .values(
                booking_link=showtime.booking_link,
                showtime_count=1,
                updated_at=func.now(),
                **key.column_values(),
            )
            .execution_options(synchronize_session=False)
        )
        try:
            await db.execute(stmt)
        except IntegrityError as e:
            return self._failure(showtime, key, e, key_clash_is_conflict=True)

        logger.debug(f"relocated showtime {showtime.showtime_id!r}: {previous_key} -> {key}")
        return UpsertOutcome(
            action="relocated",
            key=key,
            row_id=existing.id,
            observations=1,
            previous_key=previous_key,
        )

    def _failure(
        self,
        showtime: ShowtimeIn,
        key: LogicalKey,
        error: IntegrityError,
        *,
        key_clash_is_conflict: bool,
    ) -> UpsertOutcome:
        """Turn a constraint violation into a failed outcome."""
        constraint = violated_constraint(error)

        if constraint == SHOWTIME_ID_CONSTRAINT or (
            constraint == LOGICAL_KEY_CONSTRAINT and key_clash_is_conflict
        ):
            return UpsertOutcome(
                action="failed",
                key=key,
                conflict=ConflictError(showtime.showtime_id, showtime.record()),
            )

        if constraint == LOGICAL_KEY_CONSTRAINT:
            # Only reachable when a concurrent transaction inserted the same showing
            return UpsertOutcome(
                action="failed",
                key=key,
                transient=TransientIngestError(
                    f"Concurrent write to showing {key} while applying "
                    f"showtime {showtime.showtime_id!r}"
                ),
            )

        raise error
