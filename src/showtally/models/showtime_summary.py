"""Showtime summary model: observation count per distinct showing."""

from typing import TYPE_CHECKING

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from showtally.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from showtally.models.showtime import Showtime

SUMMARY_REPRESENTATIVE_CONSTRAINT = "uq_showtime_summaries_representative_id"


class ShowtimeSummary(Base, TimestampMixin):
    """
    Derived observation count for one logical showing.

    References the lowest-id showtime of its group rather than copying the key
    columns. key_digest fingerprints the key the row was computed for; when the
    referenced showtime's key no longer hashes to it, the row is stale.
    """

    __tablename__ = "showtime_summaries"
    __table_args__ = (
        UniqueConstraint("representative_id", name=SUMMARY_REPRESENTATIVE_CONSTRAINT),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    representative_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("showtimes.id", ondelete="CASCADE"),
        nullable=False,
    )
    showtime_count: Mapped[int] = mapped_column(Integer, nullable=False)
    key_digest: Mapped[str] = mapped_column(String(64), nullable=False)

    # Relationships
    showtime: Mapped["Showtime"] = relationship(back_populates="summary")

    def __repr__(self) -> str:
        return (
            f"<ShowtimeSummary(representative_id={self.representative_id!r}, "
            f"showtime_count={self.showtime_count!r})>"
        )
