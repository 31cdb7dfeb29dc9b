from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Set

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from ..models import (
    DailyTopic,
    DigestStatus,
    FeedDay,
    FeedPage,
    GeneratedArticle,
    RawArticle,
    ReaderProfile,
    SourceConfig,
    TopicWithDetails,
)
from .database import Database
from .schema import (
    DailyTopicRow,
    GeneratedArticleRow,
    RawArticleRow,
    SettingsRow,
    SourceRow,
    TagRow,
    topic_sources,
    utcnow_iso,
)

_TOPIC_TYPE_ORDER = case({"hot": 0, "normal": 1}, value=DailyTopicRow.topic_type, else_=2)


def window_start_iso(hours: int, *, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return (now - timedelta(hours=hours)).isoformat(timespec="seconds")


def _source_from_row(row: SourceRow) -> SourceConfig:
    return SourceConfig(
        id=row.id,
        name=row.name,
        url=row.url,
        type=row.type,
        enabled=bool(row.enabled),
        etag=row.etag,
        last_modified=row.last_modified,
        last_fetched_at=row.last_fetched_at,
    )


def _raw_article_from_row(row: RawArticleRow) -> RawArticle:
    return RawArticle(
        id=row.id,
        source_id=row.source_id,
        external_id=row.external_id,
        title=row.title,
        url=row.url,
        url_normalized=row.url_normalized,
        content=row.content,
        snippet=row.snippet,
        author=row.author,
        score=row.score,
        rank_score=row.rank_score,
        published_at=row.published_at,
        scraped_at=row.scraped_at,
        scraped_date=row.scraped_date,
    )


def _topic_details(row: DailyTopicRow) -> TopicWithDetails:
    topic = DailyTopic(
        id=row.id,
        date=row.date,
        topic_type=row.topic_type,
        headline=row.headline,
        summary=row.summary,
        relevance_score=row.relevance_score,
        source_count=row.source_count,
        created_at=row.created_at,
    )
    sources = sorted(row.sources, key=lambda a: (-a.rank_score, a.id))
    return TopicWithDetails(
        topic=topic,
        tags=sorted(t.name for t in row.tags),
        sources=[_raw_article_from_row(a) for a in sources],
    )


class NewsRepository:
    """Row-level access to the store. Every write method is one short transaction."""

    def __init__(self, db: Database) -> None:
        self.db = db

    # ---------------- Sources & profile -----------------
    def upsert_source(self, source: SourceConfig) -> int:
        stmt = sqlite_insert(SourceRow).values(
            name=source.name,
            url=source.url,
            type=source.type,
            enabled=source.enabled,
            created_at=utcnow_iso(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["url"],
            set_={"name": stmt.excluded.name, "type": stmt.excluded.type, "enabled": stmt.excluded.enabled},
        ).returning(SourceRow.id)
        with self.db.write() as session:
            source_id = session.scalar(stmt)
        return int(source_id)

    def list_sources(self, *, enabled_only: bool = True) -> List[SourceConfig]:
        stmt = select(SourceRow).order_by(SourceRow.id)
        if enabled_only:
            stmt = stmt.where(SourceRow.enabled.is_(True))
        with self.db.read() as session:
            return [_source_from_row(r) for r in session.scalars(stmt)]

    def count_sources(self, *, enabled_only: bool = True) -> int:
        stmt = select(func.count()).select_from(SourceRow)
        if enabled_only:
            stmt = stmt.where(SourceRow.enabled.is_(True))
        with self.db.read() as session:
            return int(session.scalar(stmt) or 0)

    def update_source_fetch_state(
        self, source_id: int, *, etag: Optional[str], last_modified: Optional[str]
    ) -> None:
        with self.db.write() as session:
            session.execute(
                update(SourceRow)
                .where(SourceRow.id == source_id)
                .values(etag=etag, last_modified=last_modified, last_fetched_at=utcnow_iso())
            )

    def get_profile(self) -> ReaderProfile:
        with self.db.read() as session:
            row = session.get(SettingsRow, 1)
            if row is None:
                return ReaderProfile()
            return ReaderProfile(
                display_name=row.display_name,
                background=row.background,
                interests=row.interests,
                style=row.news_style,
                language=row.language,
                timezone=row.timezone,
                topics=list(row.topics or []),
                search_queries=list(row.search_queries or []),
            )

    def save_profile(self, profile: ReaderProfile) -> None:
        with self.db.write() as session:
            session.merge(
                SettingsRow(
                    id=1,
                    display_name=profile.display_name,
                    background=profile.background,
                    interests=profile.interests,
                    news_style=profile.style,
                    language=profile.language,
                    timezone=profile.timezone,
                    topics=list(profile.topics),
                    search_queries=list(profile.search_queries),
                    updated_at=utcnow_iso(),
                )
            )

    # ---------------- Raw articles -----------------
    def recent_url_keys(self, since_iso: str) -> Set[str]:
        stmt = select(RawArticleRow.url_normalized).where(RawArticleRow.scraped_at >= since_iso)
        with self.db.read() as session:
            return set(session.scalars(stmt))

    def recent_titles(self, since_iso: str) -> List[str]:
        stmt = select(RawArticleRow.title).where(RawArticleRow.scraped_at >= since_iso).order_by(RawArticleRow.id)
        with self.db.read() as session:
            return list(session.scalars(stmt))

    def insert_raw_article(self, article: RawArticle) -> Optional[int]:
        """Insert unless the normalized URL already exists; return the new id or ``None``."""
        stmt = (
            sqlite_insert(RawArticleRow)
            .values(
                source_id=article.source_id,
                external_id=article.external_id,
                title=article.title,
                url=article.url,
                url_normalized=article.url_normalized,
                content=article.content,
                snippet=article.snippet,
                author=article.author,
                score=article.score,
                rank_score=article.rank_score,
                published_at=article.published_at,
                scraped_at=article.scraped_at or utcnow_iso(),
                scraped_date=article.scraped_date,
            )
            .on_conflict_do_nothing(index_elements=["url_normalized"])
            .returning(RawArticleRow.id)
        )
        with self.db.write() as session:
            new_id = session.scalar(stmt)
        return int(new_id) if new_id is not None else None

    def count_raw_articles(self) -> int:
        with self.db.read() as session:
            return int(session.scalar(select(func.count()).select_from(RawArticleRow)) or 0)

    def raw_articles_for_topic(self, topic_id: int) -> List[RawArticle]:
        stmt = (
            select(RawArticleRow)
            .join(topic_sources, topic_sources.c.raw_article_id == RawArticleRow.id)
            .where(topic_sources.c.topic_id == topic_id)
            .order_by(RawArticleRow.rank_score.desc(), RawArticleRow.id)
        )
        with self.db.read() as session:
            return [_raw_article_from_row(r) for r in session.scalars(stmt)]

    # ---------------- Topics -----------------
    def create_topic(self, topic: DailyTopic, *, tags: Iterable[str], raw_article_ids: Sequence[int]) -> int:
        """Insert a topic with its tag and source links in one transaction.

        ``source_count`` is always the number of linked raw articles.
        """
        article_ids = list(dict.fromkeys(raw_article_ids))
        tag_names = list(dict.fromkeys(tags))
        with self.db.write() as session:
            for name in tag_names:
                session.execute(sqlite_insert(TagRow).values(name=name).on_conflict_do_nothing(index_elements=["name"]))
            row = DailyTopicRow(
                date=topic.date,
                topic_type=topic.topic_type,
                headline=topic.headline,
                summary=topic.summary,
                relevance_score=topic.relevance_score,
                created_at=utcnow_iso(),
            )
            if tag_names:
                row.tags = list(session.scalars(select(TagRow).where(TagRow.name.in_(tag_names))))
            if article_ids:
                row.sources = list(session.scalars(select(RawArticleRow).where(RawArticleRow.id.in_(article_ids))))
            row.source_count = len(row.sources)
            session.add(row)
            session.flush()
            return int(row.id)

    def get_topic(self, topic_id: int) -> Optional[TopicWithDetails]:
        with self.db.read() as session:
            row = session.get(DailyTopicRow, topic_id)
            return _topic_details(row) if row is not None else None

    def count_topics_for_date(self, date: str) -> int:
        stmt = select(func.count()).select_from(DailyTopicRow).where(DailyTopicRow.date == date)
        with self.db.read() as session:
            return int(session.scalar(stmt) or 0)

    def last_digest_date(self) -> Optional[str]:
        with self.db.read() as session:
            return session.scalar(select(func.max(DailyTopicRow.date)))

    def get_status(self) -> DigestStatus:
        return DigestStatus(
            last_digest=self.last_digest_date(),
            article_count=self.count_raw_articles(),
            source_count=self.count_sources(enabled_only=True),
        )

    def list_feed(self, *, cursor: Optional[str] = None, limit: int = 3, tag: Optional[str] = None) -> FeedPage:
        """Topics grouped by day, newest first.

        ``cursor`` is exclusive: only days strictly before it are returned.
        ``next_cursor`` is the last returned day when older days exist.
        """
        limit = max(1, min(30, limit))
        tag_name = tag.strip().lower() if tag else None

        dates_stmt = select(DailyTopicRow.date).distinct()
        if tag_name:
            dates_stmt = dates_stmt.where(DailyTopicRow.tags.any(TagRow.name == tag_name))
        if cursor:
            dates_stmt = dates_stmt.where(DailyTopicRow.date < cursor)
        dates_stmt = dates_stmt.order_by(DailyTopicRow.date.desc()).limit(limit + 1)

        with self.db.read() as session:
            dates = list(session.scalars(dates_stmt))
            has_more = len(dates) > limit
            dates = dates[:limit]

            days: List[FeedDay] = []
            for day in dates:
                stmt = select(DailyTopicRow).where(DailyTopicRow.date == day)
                if tag_name:
                    stmt = stmt.where(DailyTopicRow.tags.any(TagRow.name == tag_name))
                stmt = stmt.order_by(_TOPIC_TYPE_ORDER, DailyTopicRow.relevance_score.desc(), DailyTopicRow.id)
                days.append(FeedDay(date=day, topics=[_topic_details(r) for r in session.scalars(stmt)]))
        return FeedPage(days=days, next_cursor=dates[-1] if has_more and dates else None)

    # ---------------- Generated articles -----------------
    def get_generated_article(self, topic_id: int) -> Optional[GeneratedArticle]:
        stmt = select(GeneratedArticleRow).where(GeneratedArticleRow.topic_id == topic_id)
        with self.db.read() as session:
            row = session.scalar(stmt)
            if row is None:
                return None
            return GeneratedArticle(topic_id=row.topic_id, content=row.content, generated_at=row.generated_at)

    def save_generated_article(self, topic_id: int, content: str) -> None:
        stmt = sqlite_insert(GeneratedArticleRow).values(topic_id=topic_id, content=content, generated_at=utcnow_iso())
        stmt = stmt.on_conflict_do_update(
            index_elements=["topic_id"],
            set_={"content": stmt.excluded.content, "generated_at": stmt.excluded.generated_at},
        )
        with self.db.write() as session:
            session.execute(stmt)

    def delete_generated_article(self, topic_id: int) -> bool:
        with self.db.write() as session:
            result = session.execute(delete(GeneratedArticleRow).where(GeneratedArticleRow.topic_id == topic_id))
            return result.rowcount > 0
