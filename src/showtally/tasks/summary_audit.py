"""Scheduled audit that repairs the summary table when it has drifted."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from showtally.database import AsyncSessionLocal
from showtally.services.summary_maintainer import SummaryHealth, SummaryMaintainer

logger = logging.getLogger(__name__)


async def run_summary_audit(
    session_factory: async_sessionmaker[AsyncSession] = AsyncSessionLocal,
) -> SummaryHealth:
    """Check the summaries and, if anything is off, purge stale rows and rebuild.

    Creates its own DB session so it can be called from the scheduler
    without depending on a request context.
    """
    maintainer = SummaryMaintainer()

    async with session_factory() as db:
        try:
            health = await maintainer.check(db)
            if health.healthy:
                logger.info(f"Summary audit: {health.summaries} summaries, all consistent")
                await db.rollback()
                return health

            logger.warning(
                f"Summary audit found drift: {health.stale} stale, {health.missing} missing, "
                f"{health.duplicated} duplicated, {health.miscounted} miscounted"
            )
            await maintainer.purge_stale(db)
            await maintainer.rebuild(db)
            health = await maintainer.check(db)
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    logger.info(f"Summary audit repaired table: {health.summaries} summaries")
    return health
