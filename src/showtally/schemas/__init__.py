"""Pydantic schemas for API requests and responses."""

from showtally.schemas.showtime import (
    IngestResponse,
    ShowtimeIn,
    ShowtimeResponse,
    SummaryHealthResponse,
    SummaryResponse,
)

__all__ = [
    "IngestResponse",
    "ShowtimeIn",
    "ShowtimeResponse",
    "SummaryHealthResponse",
    "SummaryResponse",
]
