"""Tests for the health check endpoint."""

from unittest.mock import AsyncMock

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import OperationalError

from showtally.database import get_db


def make_db_override(execute: AsyncMock):
    async def override():
        db = AsyncMock()
        db.execute = execute
        yield db

    return override


async def test_health_returns_ok(test_app: FastAPI) -> None:
    test_app.dependency_overrides[get_db] = make_db_override(AsyncMock())
    try:
        async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
            response = await client.get("/health")
    finally:
        test_app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "database": "ok"}


async def test_health_reports_unreachable_database(test_app: FastAPI) -> None:
    failing = AsyncMock(side_effect=OperationalError("SELECT 1", {}, Exception("connection refused")))
    test_app.dependency_overrides[get_db] = make_db_override(failing)
    try:
        async with AsyncClient(transport=ASGITransport(app=test_app), base_url="http://test") as client:
            response = await client.get("/health")
    finally:
        test_app.dependency_overrides.clear()

    assert response.status_code == 503
    assert response.json()["database"] == "unavailable"
