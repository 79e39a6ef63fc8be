"""Showtime model: one row per distinct showing, with an observation counter."""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, CheckConstraint, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column, relationship

from showtally.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from showtally.models.showtime_summary import ShowtimeSummary

# Columns that together identify "the same showing"
LOGICAL_KEY_COLUMNS = ("start_time", "cinema_name", "movie_title", "attributes", "city")

LOGICAL_KEY_CONSTRAINT = "uq_showtimes_logical_key"
SHOWTIME_ID_CONSTRAINT = "uq_showtimes_showtime_id"


class Showtime(Base, TimestampMixin):
    """
    Observed showtime.

    The logical key (start time, cinema, movie, attributes, city) is unique.
    showtime_id is the identifier supplied by the scraper: unique, but not part
    of the key, so a re-scrape can hand the same showing a new id.
    A missing city is stored as "" so the unique constraint still applies.
    """

    __tablename__ = "showtimes"
    __table_args__ = (
        UniqueConstraint(*LOGICAL_KEY_COLUMNS, name=LOGICAL_KEY_CONSTRAINT),
        UniqueConstraint("showtime_id", name=SHOWTIME_ID_CONSTRAINT),
        CheckConstraint("showtime_count >= 1", name="ck_showtimes_count_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    showtime_id: Mapped[str] = mapped_column(String(255), nullable=False)

    # Logical key
    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    cinema_name: Mapped[str] = mapped_column(String(200), nullable=False)
    movie_title: Mapped[str] = mapped_column(String(500), nullable=False)
    attributes: Mapped[list[str]] = mapped_column(
        ARRAY(String(100)).with_variant(JSON(), "sqlite"),
        nullable=False,
    )
    city: Mapped[str] = mapped_column(String(100), nullable=False, default="", server_default="")

    # Payload
    booking_link: Mapped[str] = mapped_column(String(1000), nullable=False)

    # Number of times this showing has been ingested
    showtime_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        server_default="1",
    )

    # Relationships
    summary: Mapped["ShowtimeSummary | None"] = relationship(
        back_populates="showtime",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return (
            f"<Showtime(id={self.id!r}, "
            f"showtime_id={self.showtime_id!r}, "
            f"movie_title={self.movie_title!r}, "
            f"cinema_name={self.cinema_name!r}, "
            f"start_time={self.start_time})>"
        )
