"""Batch ingestion job with whole-batch retries on transient failures."""

import asyncio
import logging
from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from showtally.config import settings
from showtally.database import AsyncSessionLocal
from showtally.errors import ConflictError, TransientIngestError
from showtally.schemas.showtime import ShowtimeIn
from showtally.services.ingest import IngestResult, ShowtimeIngestService

logger = logging.getLogger(__name__)


async def ingest_with_retry(
    showtimes: Sequence[ShowtimeIn],
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
    max_retries: int | None = None,
    retry_delay: float | None = None,
) -> IngestResult:
    """Ingest a batch, retrying the whole batch when a concurrent writer interferes.

    Each attempt runs in a fresh session. ConflictError is never retried: the
    same batch would conflict again.
    """
    if max_retries is None:
        max_retries = settings.ingest_max_retries
    if retry_delay is None:
        retry_delay = settings.ingest_retry_delay_seconds

    attempt = 0
    while True:
        attempt += 1
        async with session_factory() as db:
            try:
                return await ShowtimeIngestService(db).ingest(showtimes)
            except ConflictError as e:
                logger.error(f"Batch of {len(showtimes)} showtimes rejected: {e}")
                raise
            except TransientIngestError as e:
                if attempt > max_retries:
                    logger.error(f"Giving up on batch after {attempt} attempts: {e}")
                    raise
                logger.warning(f"Attempt {attempt} failed, retrying batch: {e}")

        await asyncio.sleep(retry_delay)
