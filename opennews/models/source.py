from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional

SourceType = Literal["rss", "hackernews", "tavily"]
SOURCE_TYPES = ("rss", "hackernews", "tavily")

NewsStyle = Literal["concise", "detailed", "technical"]
NEWS_STYLES = ("concise", "detailed", "technical")


@dataclass(slots=True)
class SourceConfig:
    """A configured news source as stored in the ``sources`` table.

    ``etag`` and ``last_modified`` are the cache validators used for
    conditional feed fetching.
    """

    name: str
    url: str
    type: SourceType
    id: Optional[int] = None
    enabled: bool = True
    etag: Optional[str] = None
    last_modified: Optional[str] = None
    last_fetched_at: Optional[str] = None


@dataclass(slots=True)
class ReaderProfile:
    """The single reader's interests, used to score topics and shape articles."""

    display_name: str = ""
    background: str = ""
    interests: str = ""
    style: NewsStyle = "concise"
    language: str = "en"
    timezone: str = "Europe/Berlin"
    topics: List[str] = field(default_factory=list)
    search_queries: List[str] = field(default_factory=list)
