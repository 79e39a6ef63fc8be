"""Pydantic schemas for showtime ingestion and summaries."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from showtally.utils.keys import LogicalKey, as_utc

SHOWTIME_ID_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9._:\-]{0,254}$"


class ShowtimeIn(BaseModel):
    """
    One scraped showtime, as handed over by a scraper.

    Accepts the scraper's camelCase field names as well as snake_case.
    Every field is required except city.
    """

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    showtime_id: str = Field(alias="showtimeId", pattern=SHOWTIME_ID_PATTERN)
    movie_title: str = Field(alias="movieTitle", min_length=1, max_length=500)
    cinema_name: str = Field(alias="cinemaName", min_length=1, max_length=200)
    start_time: datetime = Field(alias="showtimeInUTC")
    booking_link: str = Field(alias="bookingLink", min_length=1, max_length=1000)
    attributes: list[str]
    city: str | None = Field(default=None, max_length=100)

    @field_validator("start_time")
    @classmethod
    def _require_timezone(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            raise ValueError("showtimeInUTC must be timezone-aware")
        return as_utc(value)

    @field_validator("attributes")
    @classmethod
    def _clean_attributes(cls, value: list[str]) -> list[str]:
        tags = [tag.strip() for tag in value]
        if any(not tag for tag in tags):
            raise ValueError("attributes must not contain empty tags")
        return tags

    @field_validator("city")
    @classmethod
    def _blank_city_is_none(cls, value: str | None) -> str | None:
        return value or None

    @property
    def key(self) -> LogicalKey:
        return LogicalKey(
            start_time=self.start_time,
            cinema_name=self.cinema_name,
            movie_title=self.movie_title,
            attributes=tuple(self.attributes),
            city=self.city or "",
        )

    def record(self) -> dict:
        """The record in the scraper's own field names, for error reporting."""
        return self.model_dump(mode="json", by_alias=True)


class IngestResponse(BaseModel):
    """Response for a successfully applied batch."""

    received: int
    inserted: int
    updated: int
    relocated: int
    showings_affected: int
    summaries_refreshed: int


class ShowtimeResponse(BaseModel):
    """A stored showtime."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    showtime_id: str
    movie_title: str
    cinema_name: str
    start_time: datetime
    attributes: list[str]
    city: str | None = None
    booking_link: str
    showtime_count: int

    @field_validator("city", mode="before")
    @classmethod
    def _empty_city_is_none(cls, value: str | None) -> str | None:
        return value or None


class SummaryResponse(BaseModel):
    """Observation count for one showing."""

    showtime: ShowtimeResponse
    showtime_count: int
    updated_at: datetime


class SummaryHealthResponse(BaseModel):
    """Consistency report for the summary table."""

    model_config = ConfigDict(from_attributes=True)

    showtimes: int
    showings: int
    summaries: int
    stale: int
    missing: int
    duplicated: int
    miscounted: int
    healthy: bool
