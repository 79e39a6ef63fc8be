"""Summary maintenance: one observation-count row per distinct showing."""

import logging
from collections import defaultdict
from collections.abc import Collection, Iterable, Iterator, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

from sqlalchemy import Row, Select, delete, func, select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from showtally.config import settings
from showtally.database import upsert_for
from showtally.errors import SummaryError, TransientIngestError, is_retryable, violated_constraint
from showtally.models.showtime import LOGICAL_KEY_COLUMNS, Showtime
from showtally.models.showtime_summary import SUMMARY_REPRESENTATIVE_CONSTRAINT, ShowtimeSummary
from showtally.utils.keys import LogicalKey

logger = logging.getLogger(__name__)

KEY_COLUMNS = tuple(getattr(Showtime, column) for column in LOGICAL_KEY_COLUMNS)

# Rows (or ids) per statement; keeps bind parameters well under asyncpg's 32767
SUMMARY_BATCH_SIZE = 1000

T = TypeVar("T")


def chunked(items: Sequence[T], size: int = SUMMARY_BATCH_SIZE) -> Iterator[Sequence[T]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


@dataclass
class SummaryHealth:
    """Result of comparing the summary table against the showtimes table."""

    showtimes: int = 0
    showings: int = 0
    summaries: int = 0
    stale: int = 0
    missing: int = 0
    duplicated: int = 0
    miscounted: int = 0

    @property
    def healthy(self) -> bool:
        return not (self.stale or self.missing or self.duplicated or self.miscounted)


class SummaryMaintainer:
    """
    Keeps showtime_summaries in step with showtimes.

    Every method runs inside the caller's transaction and never commits, so a
    summary can only become visible together with the showtimes it counts.
    Database errors are re-raised as SummaryError (or TransientIngestError for
    races with concurrent writers) to abort that transaction.
    """

    def __init__(self, strategy: str | None = None, batch_size: int = SUMMARY_BATCH_SIZE) -> None:
        """
        Initialize the maintainer.

        Args:
            strategy: "incremental" or "full" (defaults to settings)
            batch_size: Maximum rows or ids sent in one statement
        """
        self.strategy = strategy or settings.summary_strategy
        self.batch_size = batch_size

    async def refresh(self, db: AsyncSession, showtime_ids: Collection[int]) -> int:
        """
        Recompute the summaries of the showings held by the given showtimes.

        The logical key is unique, so each showtime id stands for exactly one
        showing and is that showing's representative.

        Returns:
            Number of summary rows written
        """
        if self.strategy == "full":
            return await self.rebuild(db)

        ids = sorted(set(showtime_ids))
        if not ids:
            return 0

        written = 0
        try:
            for chunk in chunked(ids, self.batch_size):
                # Also drops any summary left stale by an earlier key change of these rows
                await db.execute(
                    delete(ShowtimeSummary)
                    .where(ShowtimeSummary.representative_id.in_(chunk))
                    .execution_options(synchronize_session=False)
                )
                written += await self._write(db, self._grouped().where(Showtime.id.in_(chunk)))
        except DBAPIError as e:
            raise self._wrap(e) from e

        logger.debug(f"Refreshed {written} summaries for {len(ids)} showtimes")
        return written

    async def rebuild(self, db: AsyncSession) -> int:
        """
        Replace the whole summary table with one row per distinct showing.

        Returns:
            Number of summary rows written
        """
        try:
            await db.execute(delete(ShowtimeSummary).execution_options(synchronize_session=False))
            written = await self._write(db, self._grouped())
        except DBAPIError as e:
            raise self._wrap(e) from e

        logger.info(f"Rebuilt summary table: {written} showings")
        return written

    async def invalidate(self, db: AsyncSession, showtime_ids: Iterable[int]) -> int:
        """
        Delete the summaries referencing showtimes whose key is about to change.

        Returns:
            Number of summaries deleted
        """
        ids = sorted(set(showtime_ids))
        if not ids:
            return 0
        deleted = 0
        try:
            for chunk in chunked(ids, self.batch_size):
                result = await db.execute(
                    delete(ShowtimeSummary)
                    .where(ShowtimeSummary.representative_id.in_(chunk))
                    .execution_options(synchronize_session=False)
                )
                deleted += result.rowcount or 0
        except DBAPIError as e:
            raise self._wrap(e) from e
        return deleted

    async def purge_stale(self, db: AsyncSession) -> int:
        """
        Delete summaries whose showtime no longer has the key they were computed for.

        Returns:
            Number of summaries deleted
        """
        stale_ids = [row.id for row, stale in await self._summaries(db) if stale]
        if not stale_ids:
            return 0
        try:
            for chunk in chunked(stale_ids, self.batch_size):
                await db.execute(
                    delete(ShowtimeSummary)
                    .where(ShowtimeSummary.id.in_(chunk))
                    .execution_options(synchronize_session=False)
                )
        except DBAPIError as e:
            raise self._wrap(e) from e
        logger.info(f"Purged {len(stale_ids)} stale summaries")
        return len(stale_ids)

    async def check(self, db: AsyncSession) -> SummaryHealth:
        """Compare every summary against a fresh grouping of the showtimes."""
        health = SummaryHealth()

        result = await db.execute(select(func.count()).select_from(Showtime))
        health.showtimes = result.scalar_one()

        groups = (await db.execute(self._grouped())).all()
        health.showings = len(groups)

        # Counts of valid summaries by key digest; stale ones are only counted
        valid: dict[str, list[int]] = defaultdict(list)
        for row, stale in await self._summaries(db):
            health.summaries += 1
            if stale:
                health.stale += 1
            else:
                valid[row.key_digest].append(row.showtime_count)

        for group in groups:
            counts = valid.get(LogicalKey.from_row(group).digest(), [])
            if not counts:
                health.missing += 1
            elif len(counts) > 1:
                health.duplicated += 1
            elif counts[0] != group.observations:
                health.miscounted += 1

        return health

    def _grouped(self) -> Select:
        """One row per showing: lowest showtime id as representative, summed count."""
        return select(
            func.min(Showtime.id).label("representative_id"),
            func.sum(Showtime.showtime_count).label("observations"),
            *KEY_COLUMNS,
        ).group_by(*KEY_COLUMNS)

    async def _write(self, db: AsyncSession, grouped: Select) -> int:
        """Upsert one summary per grouped row, updating in place on re-insertion."""
        rows = (await db.execute(grouped)).all()
        if not rows:
            return 0

        values: list[dict[str, Any]] = [
            {
                "representative_id": row.representative_id,
                "showtime_count": int(row.observations),
                "key_digest": LogicalKey.from_row(row).digest(),
            }
            for row in rows
        ]
        for chunk in chunked(values, self.batch_size):
            stmt = upsert_for(db, ShowtimeSummary).values(list(chunk))
            stmt = stmt.on_conflict_do_update(
                index_elements=["representative_id"],
                set_={
                    "showtime_count": stmt.excluded.showtime_count,
                    "key_digest": stmt.excluded.key_digest,
                    "updated_at": func.now(),
                },
            )
            await db.execute(stmt)
        return len(values)

    async def _summaries(self, db: AsyncSession) -> list[tuple[Row, bool]]:
        """Every summary joined to its showtime, flagged stale when the key digests differ."""
        query = select(
            ShowtimeSummary.id,
            ShowtimeSummary.key_digest,
            ShowtimeSummary.showtime_count,
            *KEY_COLUMNS,
        ).join(Showtime, ShowtimeSummary.representative_id == Showtime.id)
        rows = (await db.execute(query)).all()
        return [(row, LogicalKey.from_row(row).digest() != row.key_digest) for row in rows]

    def _wrap(self, error: DBAPIError) -> Exception:
        if is_retryable(error):
            return TransientIngestError(f"Summary update aborted by the database: {error.orig}")
        if (
            isinstance(error, IntegrityError)
            and violated_constraint(error) == SUMMARY_REPRESENTATIVE_CONSTRAINT
        ):
            return TransientIngestError(f"Concurrent summary update: {error.orig}")
        return SummaryError(f"Summary maintenance failed: {error.orig}")
