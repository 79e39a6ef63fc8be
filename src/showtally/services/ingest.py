"""Batch ingestion: upsert showtimes and repair their summaries atomically."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from showtally.errors import TransientIngestError, is_retryable
from showtally.schemas.showtime import IngestResponse, ShowtimeIn
from showtally.services.fact_store import ShowtimeStore, UpsertOutcome
from showtally.services.summary_maintainer import SummaryMaintainer
from showtally.utils.keys import LogicalKey

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """Counts for one applied batch."""

    received: int = 0
    inserted: int = 0
    updated: int = 0
    relocated: int = 0
    affected_keys: set[LogicalKey] = field(default_factory=set)
    # Rows written by the batch; one per affected showing still in the table
    showtime_ids: set[int] = field(default_factory=set)
    summaries_refreshed: int = 0

    def record(self, outcome: UpsertOutcome) -> None:
        if outcome.action == "inserted":
            self.inserted += 1
        elif outcome.action == "updated":
            self.updated += 1
        elif outcome.action == "relocated":
            self.relocated += 1
        self.affected_keys.add(outcome.key)
        if outcome.row_id is not None:
            self.showtime_ids.add(outcome.row_id)
        if outcome.previous_key is not None:
            self.affected_keys.add(outcome.previous_key)

    def to_response(self) -> IngestResponse:
        return IngestResponse(
            received=self.received,
            inserted=self.inserted,
            updated=self.updated,
            relocated=self.relocated,
            showings_affected=len(self.affected_keys),
            summaries_refreshed=self.summaries_refreshed,
        )


class ShowtimeIngestService:
    """
    Applies a batch of showtimes in a single transaction.

    Showtimes are upserted in input order, so a later duplicate in the same
    batch wins. Once every showtime is applied, the summaries of all touched
    showings are refreshed in the same transaction. The first failure rolls
    everything back, summaries included, and is raised to the caller.
    """

    def __init__(
        self,
        db: AsyncSession,
        store: ShowtimeStore | None = None,
        maintainer: SummaryMaintainer | None = None,
    ) -> None:
        """
        Initialize the ingest service.

        Args:
            db: Database session; its transaction, or a SAVEPOINT inside it, scopes the batch
            store: Showtime store (creates default if not provided)
            maintainer: Summary maintainer (creates default if not provided)
        """
        self.db = db
        self.store = store or ShowtimeStore()
        self.maintainer = maintainer or SummaryMaintainer()

    async def ingest(self, showtimes: Sequence[ShowtimeIn]) -> IngestResult:
        """
        Apply a batch of showtimes.

        Args:
            showtimes: Validated showtimes, in the order they were scraped

        Returns:
            Counts for the applied batch

        Raises:
            ConflictError: A showtime id belongs to a different showing
            TransientIngestError: A concurrent batch got in the way; retry the batch
            SummaryError: The summaries could not be refreshed
        """
        result = IngestResult(received=len(showtimes))

        try:
            async with self._transaction():
                for showtime in showtimes:
                    outcome = await self.store.upsert(self.db, showtime)
                    if outcome.failed:
                        raise outcome.error

                    if outcome.previous_key is not None:
                        # The row's key is changing; its summary describes the old showing
                        await self.maintainer.invalidate(self.db, [outcome.row_id])

                    result.record(outcome)

                result.summaries_refreshed = await self.maintainer.refresh(
                    self.db, result.showtime_ids
                )
        except OperationalError as e:
            if is_retryable(e):
                raise TransientIngestError(f"Batch aborted by the database: {e.orig}") from e
            raise

        logger.info(
            f"Ingested {result.received} showtimes: {result.inserted} inserted, "
            f"{result.updated} updated, {result.relocated} relocated, "
            f"{result.summaries_refreshed} summaries refreshed"
        )
        return result

    def _transaction(self):
        """Begin the batch transaction, nesting in a SAVEPOINT if one is already open."""
        if self.db.in_transaction():
            return self.db.begin_nested()
        return self.db.begin()
