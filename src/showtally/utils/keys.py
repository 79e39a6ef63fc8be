"""Logical key of a showing and its fingerprint."""

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


def as_utc(value: datetime) -> datetime:
    """Return value in UTC. Naive values are taken to already be UTC (SQLite reads)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class LogicalKey:
    """The attributes that make two showtimes "the same showing"."""

    start_time: datetime
    cinema_name: str
    movie_title: str
    attributes: tuple[str, ...]
    city: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(self, "start_time", as_utc(self.start_time))
        object.__setattr__(self, "attributes", tuple(self.attributes))
        object.__setattr__(self, "city", self.city or "")

    @classmethod
    def from_row(cls, row: Any) -> "LogicalKey":
        """Build a key from anything exposing the key columns as attributes (ORM object or Row)."""
        return cls(
            start_time=row.start_time,
            cinema_name=row.cinema_name,
            movie_title=row.movie_title,
            attributes=tuple(row.attributes or ()),
            city=row.city or "",
        )

    def column_values(self) -> dict[str, Any]:
        """Values for the showtimes key columns."""
        return {
            "start_time": self.start_time,
            "cinema_name": self.cinema_name,
            "movie_title": self.movie_title,
            "attributes": list(self.attributes),
            "city": self.city,
        }

    def digest(self) -> str:
        """SHA-256 fingerprint, stable across databases and drivers."""
        payload = json.dumps(
            [
                self.start_time.isoformat(),
                self.cinema_name,
                self.movie_title,
                list(self.attributes),
                self.city,
            ],
            ensure_ascii=False,
            separators=(",", ":"),
        )
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()

    def __str__(self) -> str:
        city = f", {self.city}" if self.city else ""
        tags = f" [{', '.join(self.attributes)}]" if self.attributes else ""
        return f"{self.movie_title} @ {self.cinema_name}{city} {self.start_time.isoformat()}{tags}"
