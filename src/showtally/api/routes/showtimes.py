"""Showtime ingestion and summary endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from showtally.database import get_db
from showtally.errors import ConflictError, TransientIngestError
from showtally.models import Showtime, ShowtimeSummary
from showtally.schemas import IngestResponse, ShowtimeIn, ShowtimeResponse, SummaryResponse
from showtally.services.ingest import ShowtimeIngestService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/showtimes", response_model=IngestResponse)
async def ingest_showtimes(
    showtimes: list[ShowtimeIn],
    db: AsyncSession = Depends(get_db),
) -> IngestResponse:
    """
    Ingest a batch of scraped showtimes.

    The batch is applied atomically: either every showtime is stored and the
    summaries updated, or nothing changes.
    """
    service = ShowtimeIngestService(db)
    try:
        result = await service.ingest(showtimes)
    except ConflictError as e:
        logger.warning(f"Rejected batch of {len(showtimes)} showtimes: {e}")
        raise HTTPException(
            status_code=409,
            detail={"message": str(e), "showtimeId": e.showtime_id, "entity": e.record},
        )
    except TransientIngestError as e:
        logger.warning(f"Batch of {len(showtimes)} showtimes aborted, retry: {e}")
        raise HTTPException(status_code=503, detail=str(e))

    return result.to_response()


@router.get("/showtimes/summary", response_model=list[SummaryResponse])
async def get_summaries(
    cinema: str | None = Query(None, description="Only showings at this cinema"),
    movie: str | None = Query(None, description="Only showings of this movie"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum number of rows"),
    db: AsyncSession = Depends(get_db),
) -> list[SummaryResponse]:
    """Observation counts per showing, most observed first."""
    stmt = select(ShowtimeSummary, Showtime).join(
        Showtime, ShowtimeSummary.representative_id == Showtime.id
    )
    if cinema:
        stmt = stmt.where(Showtime.cinema_name == cinema)
    if movie:
        stmt = stmt.where(Showtime.movie_title == movie)
    stmt = stmt.order_by(ShowtimeSummary.showtime_count.desc(), Showtime.start_time).limit(limit)

    result = await db.execute(stmt)
    return [
        SummaryResponse(
            showtime=ShowtimeResponse.model_validate(showtime),
            showtime_count=summary.showtime_count,
            updated_at=summary.updated_at,
        )
        for summary, showtime in result.all()
    ]
