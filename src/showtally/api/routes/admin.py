"""Admin API endpoints for summary maintenance."""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from showtally.database import get_db
from showtally.schemas import SummaryHealthResponse
from showtally.services.summary_maintainer import SummaryMaintainer

logger = logging.getLogger(__name__)
router = APIRouter()


class RebuildResponse(BaseModel):
    """Response for a summary rebuild."""

    status: str
    summaries: int


@router.get("/admin/summary/health", response_model=SummaryHealthResponse)
async def summary_health(db: AsyncSession = Depends(get_db)) -> SummaryHealthResponse:
    """Compare the summary table against the showtimes it is derived from."""
    health = await SummaryMaintainer().check(db)
    if not health.healthy:
        logger.warning(f"Summary table inconsistent: {health}")
    return SummaryHealthResponse.model_validate(health)


@router.post("/admin/summary/rebuild", response_model=RebuildResponse)
async def rebuild_summaries(db: AsyncSession = Depends(get_db)) -> RebuildResponse:
    """
    Rebuild the summary table from scratch.

    Runs in the request's transaction; it is committed when the request
    completes.
    """
    written = await SummaryMaintainer().rebuild(db)
    logger.info(f"Manual summary rebuild: {written} summaries")
    return RebuildResponse(status="ok", summaries=written)
