"""Table definitions for the SQLite store.

Timestamps are stored as ISO-8601 text so that the rolling dedup window can
be compared as plain strings.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


topic_tags = Table(
    "topic_tags",
    Base.metadata,
    Column("topic_id", Integer, ForeignKey("daily_topics.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)

topic_sources = Table(
    "topic_sources",
    Base.metadata,
    Column("topic_id", Integer, ForeignKey("daily_topics.id", ondelete="CASCADE"), primary_key=True),
    Column("raw_article_id", Integer, ForeignKey("raw_articles.id", ondelete="CASCADE"), primary_key=True),
)


class SettingsRow(Base):
    """The single reader profile (always ``id = 1``)."""

    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, default=1)
    display_name = Column(String, nullable=False, default="")
    background = Column(Text, nullable=False, default="")
    interests = Column(Text, nullable=False, default="")
    news_style = Column(String(20), nullable=False, default="concise")
    language = Column(String(10), nullable=False, default="en")
    timezone = Column(String(64), nullable=False, default="Europe/Berlin")
    topics = Column(JSON, nullable=False, default=list)
    search_queries = Column(JSON, nullable=False, default=list)
    updated_at = Column(String, nullable=False, default=utcnow_iso)


class SourceRow(Base):
    __tablename__ = "sources"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    url = Column(String, nullable=False, unique=True)
    type = Column(String(20), nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    etag = Column(String)
    last_modified = Column(String)
    last_fetched_at = Column(String)
    created_at = Column(String, nullable=False, default=utcnow_iso)


class RawArticleRow(Base):
    __tablename__ = "raw_articles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    source_id = Column(Integer, ForeignKey("sources.id"))
    external_id = Column(String)
    title = Column(String, nullable=False)
    url = Column(String, nullable=False)
    url_normalized = Column(String, nullable=False, unique=True)
    content = Column(Text, nullable=False)
    snippet = Column(Text)
    author = Column(String)
    score = Column(Integer)
    rank_score = Column(Float, nullable=False, default=0.0)
    published_at = Column(String)
    scraped_at = Column(String, nullable=False, index=True)
    scraped_date = Column(String(10), nullable=False, index=True)


class TagRow(Base):
    __tablename__ = "tags"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, unique=True)
    color = Column(String)


class DailyTopicRow(Base):
    __tablename__ = "daily_topics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(String(10), nullable=False, index=True)
    topic_type = Column(String(20), nullable=False, default="normal")
    headline = Column(String, nullable=False)
    summary = Column(Text, nullable=False)
    relevance_score = Column(Float, nullable=False, default=0.0)
    source_count = Column(Integer, nullable=False, default=1)
    created_at = Column(String, nullable=False, default=utcnow_iso)

    tags = relationship(TagRow, secondary=topic_tags, lazy="selectin")
    sources = relationship(RawArticleRow, secondary=topic_sources, lazy="selectin")


class GeneratedArticleRow(Base):
    __tablename__ = "generated_articles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    topic_id = Column(Integer, ForeignKey("daily_topics.id", ondelete="CASCADE"), nullable=False, unique=True)
    content = Column(Text, nullable=False)
    generated_at = Column(String, nullable=False, default=utcnow_iso)
