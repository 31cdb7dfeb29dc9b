from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional

from .article import RawArticle

TopicType = Literal["hot", "normal", "standalone"]
TOPIC_TYPES = ("hot", "normal", "standalone")


@dataclass(slots=True)
class TopicCluster:
    """One cluster as returned by the grouping model, after validation."""

    headline: str
    summary: str
    topic_type: TopicType
    relevance_score: float
    tags: List[str]
    article_indices: List[int]


@dataclass(slots=True)
class GroupingResult:
    clusters: List[TopicCluster]
    discarded: List[int] = field(default_factory=list)


@dataclass(slots=True)
class DailyTopic:
    date: str
    topic_type: TopicType
    headline: str
    summary: str
    relevance_score: float
    source_count: int
    id: Optional[int] = None
    created_at: Optional[str] = None


@dataclass(slots=True)
class TopicWithDetails:
    topic: DailyTopic
    tags: List[str] = field(default_factory=list)
    sources: List[RawArticle] = field(default_factory=list)


@dataclass(slots=True)
class GeneratedArticle:
    topic_id: int
    content: str
    generated_at: Optional[str] = None


@dataclass(slots=True)
class FeedDay:
    date: str
    topics: List[TopicWithDetails]


@dataclass(slots=True)
class FeedPage:
    days: List[FeedDay]
    next_cursor: Optional[str] = None


@dataclass(slots=True)
class ArticleResponse:
    cached: bool
    content: Optional[str] = None


@dataclass(slots=True)
class DigestStatus:
    """Store-level summary for operators: last digest day and table sizes."""

    last_digest: Optional[str]
    article_count: int
    source_count: int
