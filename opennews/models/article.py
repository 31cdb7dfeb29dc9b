from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .source import SourceType


@dataclass(slots=True)
class DiscoveredArticle:
    """A candidate article as reported by one source adapter."""

    title: str
    url: str
    source_type: SourceType
    snippet: Optional[str] = None
    author: Optional[str] = None
    published_at: Optional[str] = None
    external_id: Optional[str] = None
    score: Optional[int] = None


@dataclass(slots=True)
class ExtractedContent:
    title: str
    content: str
    author: Optional[str] = None
    published_at: Optional[str] = None
    site_name: Optional[str] = None
    excerpt: Optional[str] = None
    extractor: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SourceRef:
    """One discovery of an article: which source found it and at which position."""

    source_id: Optional[int]
    source_type: SourceType
    rank: int


@dataclass(slots=True)
class Candidate:
    """A discovered article moving through dedup, ranking and extraction."""

    article: DiscoveredArticle
    url_key: str
    refs: List[SourceRef] = field(default_factory=list)
    content: Optional[ExtractedContent] = None
    rank_score: float = 0.0

    @property
    def title(self) -> str:
        if self.content and self.content.title:
            return self.content.title
        return self.article.title

    @property
    def content_length(self) -> int:
        if self.content:
            return len(self.content.content)
        return len(self.article.snippet or "")

    @property
    def primary_source_id(self) -> Optional[int]:
        if not self.refs:
            return None
        return min(self.refs, key=lambda r: r.rank).source_id


@dataclass(slots=True)
class RawArticle:
    title: str
    url: str
    url_normalized: str
    content: str
    scraped_date: str
    source_id: Optional[int] = None
    external_id: Optional[str] = None
    snippet: Optional[str] = None
    author: Optional[str] = None
    score: Optional[int] = None
    published_at: Optional[str] = None
    scraped_at: Optional[str] = None
    rank_score: float = 0.0
    id: Optional[int] = None
