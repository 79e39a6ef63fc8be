"""Tests for the showtime ingestion and summary endpoints."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from showtally.database import get_db
from showtally.errors import ConflictError, TransientIngestError
from showtally.models.showtime import Showtime
from showtally.models.showtime_summary import ShowtimeSummary
from showtally.services.ingest import IngestResult

SHOW_TIME = datetime(2026, 3, 14, 19, 30, tzinfo=timezone.utc)

DUNE = {
    "showtimeId": "a1",
    "movieTitle": "Dune",
    "cinemaName": "Roxy",
    "showtimeInUTC": "2026-03-14T19:30:00Z",
    "bookingLink": "L1",
    "attributes": ["IMAX"],
}


# ---------------------------------------------------------------------------
# Test data helpers
# ---------------------------------------------------------------------------


def make_showtime(id: int = 1, showtime_count: int = 2) -> Showtime:
    return Showtime(
        id=id,
        showtime_id="a1",
        movie_title="Dune",
        cinema_name="Roxy",
        start_time=SHOW_TIME,
        attributes=["IMAX"],
        city="",
        booking_link="L2",
        showtime_count=showtime_count,
    )


def make_summary(showtime: Showtime) -> ShowtimeSummary:
    return ShowtimeSummary(
        id=1,
        representative_id=showtime.id,
        showtime_count=showtime.showtime_count,
        key_digest="0" * 64,
        updated_at=SHOW_TIME,
    )


def make_db_override(rows: list | None = None):
    async def override():
        db = AsyncMock()
        result = MagicMock()
        result.all.return_value = rows or []
        db.execute = AsyncMock(return_value=result)
        yield db

    return override


def patch_service(**ingest_kwargs):
    service = MagicMock()
    service.ingest = AsyncMock(**ingest_kwargs)
    return patch("showtally.api.routes.showtimes.ShowtimeIngestService", return_value=service)


async def post_showtimes(app: FastAPI, payload: list[dict]):
    app.dependency_overrides[get_db] = make_db_override()
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            return await client.post("/api/showtimes", json=payload)
    finally:
        app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# POST /api/showtimes
# ---------------------------------------------------------------------------


async def test_ingest_returns_batch_counts(test_app: FastAPI) -> None:
    result = IngestResult(received=1, inserted=1, summaries_refreshed=1)
    with patch_service(return_value=result) as service_cls:
        response = await post_showtimes(test_app, [DUNE])

    assert response.status_code == 200
    assert response.json() == {
        "received": 1,
        "inserted": 1,
        "updated": 0,
        "relocated": 0,
        "showings_affected": 0,
        "summaries_refreshed": 1,
    }
    (showtimes,) = service_cls.return_value.ingest.await_args.args
    assert showtimes[0].showtime_id == "a1"
    assert showtimes[0].start_time == SHOW_TIME


async def test_conflict_returns_409_with_entity(test_app: FastAPI) -> None:
    error = ConflictError("a1", {**DUNE, "cinemaName": "Odeon"})
    with patch_service(side_effect=error):
        response = await post_showtimes(test_app, [DUNE])

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["showtimeId"] == "a1"
    assert detail["entity"]["cinemaName"] == "Odeon"
    assert "duplicate showtime id" in detail["message"]


async def test_transient_failure_returns_503(test_app: FastAPI) -> None:
    with patch_service(side_effect=TransientIngestError("raced")):
        response = await post_showtimes(test_app, [DUNE])

    assert response.status_code == 503


async def test_naive_timestamp_is_rejected(test_app: FastAPI) -> None:
    with patch_service() as service_cls:
        response = await post_showtimes(test_app, [{**DUNE, "showtimeInUTC": "2026-03-14T19:30:00"}])

    assert response.status_code == 422
    service_cls.return_value.ingest.assert_not_awaited()


async def test_missing_field_is_rejected(test_app: FastAPI) -> None:
    payload = {key: value for key, value in DUNE.items() if key != "bookingLink"}
    with patch_service():
        response = await post_showtimes(test_app, [payload])

    assert response.status_code == 422


# ---------------------------------------------------------------------------
# GET /api/showtimes/summary
# ---------------------------------------------------------------------------


async def test_summary_lists_counts_with_showtime(test_app: FastAPI) -> None:
    showtime = make_showtime(showtime_count=2)
    test_app.dependency_overrides[get_db] = make_db_override([(make_summary(showtime), showtime)])
    try:
        async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
            response = await client.get("/api/showtimes/summary?cinema=Roxy")
    finally:
        test_app.dependency_overrides.clear()

    assert response.status_code == 200
    data = response.json()
    assert len(data) == 1
    assert data[0]["showtime_count"] == 2
    assert data[0]["showtime"]["movie_title"] == "Dune"
    assert data[0]["showtime"]["booking_link"] == "L2"
    assert data[0]["showtime"]["city"] is None


async def test_summary_empty(test_app: FastAPI) -> None:
    test_app.dependency_overrides[get_db] = make_db_override([])
    try:
        async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
            response = await client.get("/api/showtimes/summary")
    finally:
        test_app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.json() == []


async def test_summary_limit_is_bounded(test_app: FastAPI) -> None:
    test_app.dependency_overrides[get_db] = make_db_override()
    try:
        async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
            response = await client.get("/api/showtimes/summary?limit=0")
    finally:
        test_app.dependency_overrides.clear()

    assert response.status_code == 422
