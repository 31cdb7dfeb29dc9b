"""SQLite persistence."""

from .database import Database
from .repository import NewsRepository, window_start_iso
from .schema import utcnow_iso

__all__ = ["Database", "NewsRepository", "utcnow_iso", "window_start_iso"]
