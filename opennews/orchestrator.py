from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo

from .analysis import TopicGrouper
from .extractors import ExtractionChain, build_extraction_chain
from .fetchers import FetchOptions, SourceAdapter, build_adapters, discover
from .models import Candidate, DailyTopic, ExtractedContent, RawArticle, ReaderProfile
from .processors import Deduplicator, rank_candidates
from .processors.ai import AIClient
from .processors.normalize import parse_date_to_iso
from .storage import NewsRepository, window_start_iso
from .utils.logging import get_logger
from .utils.pipeline_config import PipelineConfig

logger = get_logger("opennews.orchestrator")


@dataclass(slots=True)
class DigestReport:
    date: str
    discovered: int = 0
    failed_sources: List[str] = field(default_factory=list)
    deduped: int = 0
    extracted: int = 0
    inserted: int = 0
    topic_count: int = 0
    topic_ids: List[int] = field(default_factory=list)
    dedup_reasons: Dict[str, int] = field(default_factory=dict)
    duration_ms: float = 0.0


def local_today(profile: ReaderProfile) -> str:
    try:
        tz = ZoneInfo(profile.timezone)
    except (KeyError, ValueError):
        logger.warning("Unknown timezone '%s'; using UTC", profile.timezone)
        tz = ZoneInfo("UTC")
    return datetime.now(tz).date().isoformat()


def _to_raw_article(cand: Candidate, content: ExtractedContent, date: str) -> RawArticle:
    article = cand.article
    return RawArticle(
        title=content.title or article.title,
        url=article.url,
        url_normalized=cand.url_key,
        content=content.content,
        scraped_date=date,
        source_id=cand.primary_source_id,
        external_id=article.external_id,
        snippet=article.snippet or content.excerpt,
        author=article.author or content.author,
        score=article.score,
        published_at=parse_date_to_iso(article.published_at or content.published_at),
        rank_score=cand.rank_score,
    )


class DigestOrchestrator:
    """Runs one daily digest: discover, dedup and rank, extract, persist, group.

    Each stage is bounded: one thread per source during discovery, a fixed
    extraction pool, and a single grouping call. A run that ingests no new
    articles makes no model call.
    """

    def __init__(
        self,
        repo: NewsRepository,
        ai: AIClient,
        *,
        config: Optional[PipelineConfig] = None,
        adapters: Optional[Mapping[str, SourceAdapter]] = None,
        chain: Optional[ExtractionChain] = None,
        grouper: Optional[TopicGrouper] = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.repo = repo
        self.adapters = adapters if adapters is not None else build_adapters(self.config)
        self.chain = chain or build_extraction_chain(self.config)
        self.grouper = grouper or TopicGrouper(ai, timeout=self.config.grouping_timeout)

    # ---------------- Stages -----------------
    def _discover(self, profile: ReaderProfile, report: DigestReport):
        sources = self.repo.list_sources(enabled_only=True)
        options = FetchOptions(timeout=self.config.http_timeout, retries=self.config.http_retries, profile=profile)
        discovery = discover(sources, self.adapters, options, timeout=self.config.source_timeout)
        for outcome in discovery.outcomes:
            if outcome.ok and outcome.source.id is not None:
                self.repo.update_source_fetch_state(
                    outcome.source.id,
                    etag=outcome.result.etag,
                    last_modified=outcome.result.last_modified,
                )
        report.failed_sources = [o.source.name for o in discovery.failed]
        batches = discovery.articles
        report.discovered = sum(len(articles) for _, articles in batches)
        return batches

    def _dedup_and_rank(self, batches, report: DigestReport) -> List[Candidate]:
        since = window_start_iso(self.config.dedup_window_hours)
        dedup = Deduplicator(
            seen_url_keys=self.repo.recent_url_keys(since),
            seen_titles=self.repo.recent_titles(since),
            title_threshold=self.config.title_threshold,
        )
        unique, stats = dedup.run(batches)
        report.dedup_reasons = stats.reasons
        ranked = rank_candidates(unique, half_life_hours=self.config.rank_half_life_hours)
        capped = ranked[: self.config.max_articles_per_run]
        if len(capped) < len(ranked):
            logger.info("Capped %d ranked articles to %d", len(ranked), len(capped))
        report.deduped = len(capped)
        return capped

    def _extract(self, candidates: List[Candidate]) -> List[Tuple[Candidate, ExtractedContent]]:
        if not candidates:
            return []
        workers = max(1, min(self.config.extract_concurrency, len(candidates)))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="extract") as executor:
            contents = list(executor.map(lambda c: self.chain.extract(c.article.url), candidates))
        extracted: List[Tuple[Candidate, ExtractedContent]] = []
        for cand, content in zip(candidates, contents):
            if content is None:
                continue
            cand.content = content
            extracted.append((cand, content))
        logger.info("Extracted %d/%d articles", len(extracted), len(candidates))
        return extracted

    def _persist_articles(self, extracted, date: str) -> List[RawArticle]:
        inserted: List[RawArticle] = []
        for cand, content in extracted:
            raw = _to_raw_article(cand, content, date)
            new_id = self.repo.insert_raw_article(raw)
            if new_id is None:
                logger.debug("Already stored: %s", raw.url_normalized)
                continue
            raw.id = new_id
            inserted.append(raw)
        return inserted

    def _persist_topics(self, articles: List[RawArticle], profile: ReaderProfile, date: str) -> List[int]:
        grouping = self.grouper.group(articles, profile)
        topic_ids: List[int] = []
        for cluster in grouping.clusters:
            member_ids = [articles[i].id for i in cluster.article_indices if articles[i].id is not None]
            topic = DailyTopic(
                date=date,
                topic_type=cluster.topic_type,
                headline=cluster.headline,
                summary=cluster.summary,
                relevance_score=cluster.relevance_score,
                source_count=len(member_ids),
            )
            topic_ids.append(self.repo.create_topic(topic, tags=cluster.tags, raw_article_ids=member_ids))
        return topic_ids

    # ---------------- Entry point -----------------
    def run_digest(self, date: Optional[str] = None) -> DigestReport:
        """Run the digest for ``date`` (default: today in the reader's timezone).

        Raises ``GroupingFailed`` when grouping cannot produce a valid result;
        articles ingested before that stay stored.
        """
        started = time.perf_counter()
        profile = self.repo.get_profile()
        date = date or local_today(profile)
        report = DigestReport(date=date)
        logger.info("Starting digest for %s", date)

        batches = self._discover(profile, report)
        candidates = self._dedup_and_rank(batches, report)
        extracted = self._extract(candidates)
        report.extracted = len(extracted)
        inserted = self._persist_articles(extracted, date)
        report.inserted = len(inserted)

        if inserted:
            report.topic_ids = self._persist_topics(inserted, profile, date)
        else:
            logger.info("No new articles for %s; skipping grouping", date)
        report.topic_count = len(report.topic_ids)
        report.duration_ms = (time.perf_counter() - started) * 1000

        logger.info(
            "Digest finished: date=%s discovered=%d failed_sources=%d deduped=%d extracted=%d inserted=%d topics=%d (%.0f ms)",
            report.date,
            report.discovered,
            len(report.failed_sources),
            report.deduped,
            report.extracted,
            report.inserted,
            report.topic_count,
            report.duration_ms,
        )
        return report
