"""Typed models used across the application."""

from .source import SourceConfig, SourceType, ReaderProfile, SOURCE_TYPES, NEWS_STYLES
from .article import DiscoveredArticle, ExtractedContent, SourceRef, Candidate, RawArticle
from .topic import (
    TopicType,
    TOPIC_TYPES,
    TopicCluster,
    GroupingResult,
    DailyTopic,
    TopicWithDetails,
    GeneratedArticle,
    FeedDay,
    FeedPage,
    ArticleResponse,
    DigestStatus,
)
from .synthesis import GatheredSource, CompressedItem, CompressedSource, CitationReport, SearchHit

__all__ = [
    "SourceConfig",
    "SourceType",
    "ReaderProfile",
    "SOURCE_TYPES",
    "NEWS_STYLES",
    "DiscoveredArticle",
    "ExtractedContent",
    "SourceRef",
    "Candidate",
    "RawArticle",
    "TopicType",
    "TOPIC_TYPES",
    "TopicCluster",
    "GroupingResult",
    "DailyTopic",
    "TopicWithDetails",
    "GeneratedArticle",
    "FeedDay",
    "FeedPage",
    "ArticleResponse",
    "DigestStatus",
    "GatheredSource",
    "CompressedItem",
    "CompressedSource",
    "CitationReport",
    "SearchHit",
]
