"""SQLAlchemy ORM models."""

from showtally.models.base import Base
from showtally.models.showtime import Showtime
from showtally.models.showtime_summary import ShowtimeSummary

__all__ = ["Base", "Showtime", "ShowtimeSummary"]
