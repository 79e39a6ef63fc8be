"""Showtime ingestion with per-showing observation summaries."""

__version__ = "0.1.0"
