"""Command line entrypoint for OpenNews.

Subcommands cover the whole daily flow:
1) sync-config: seed sources and the reader profile from YAML
2) digest: discover, dedup, extract and group today's news into topics
3) feed / article / invalidate: read topics, stream or reset generated articles
4) status: last digest day and store counts
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

from .errors import OpenNewsError
from .extractors import build_extraction_chain
from .fetchers import create_tavily_client
from .orchestrator import DigestOrchestrator
from .processors.ai import create_ai_client
from .service import ArticleService
from .storage import Database, NewsRepository
from .synthesis import SynthesisPipeline
from .utils.config_loader import load_profile_config, load_sources_config
from .utils.logging import configure_logging, get_logger
from .utils.pipeline_config import PipelineConfig


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="OpenNews: personal news digest with on-demand cited articles"
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity (default: LOG_LEVEL env or INFO)",
    )
    parser.add_argument(
        "--database",
        default=None,
        help="SQLite database path (default: DATABASE_PATH env)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync-config", help="Seed sources and reader profile from YAML files")
    sync.add_argument("--sources", default="config/sources.yaml", help="Sources YAML")
    sync.add_argument("--profile", default="config/profile.yaml", help="Reader profile YAML")

    digest = sub.add_parser("digest", help="Run the daily digest and print the topic count")
    digest.add_argument("--date", default=None, help="Digest date YYYY-MM-DD (default: today)")

    feed = sub.add_parser("feed", help="List topics by day, newest first")
    feed.add_argument("--cursor", default=None, help="Only days strictly before this date")
    feed.add_argument("--limit", type=int, default=3, help="Number of days")
    feed.add_argument("--tag", default=None, help="Only topics with this tag")

    article = sub.add_parser("article", help="Stream the article for a topic (cached when available)")
    article.add_argument("topic_id", type=int)

    invalidate = sub.add_parser("invalidate", help="Delete the cached article for a topic")
    invalidate.add_argument("topic_id", type=int)

    sub.add_parser("status", help="Show the last digest day and store counts")

    return parser.parse_args(argv)


def build_article_service(repo: NewsRepository, cfg: PipelineConfig) -> ArticleService:
    """Model client and extractors are only built when a generation actually runs."""

    def _pipeline() -> SynthesisPipeline:
        return SynthesisPipeline(
            create_ai_client(),
            build_extraction_chain(cfg),
            search=create_tavily_client(cfg),
            config=cfg,
        )

    return ArticleService(repo, _pipeline, lock_timeout=cfg.generation_lock_timeout)


def _cmd_sync_config(args: argparse.Namespace, repo: NewsRepository) -> int:
    logger = get_logger("opennews.cli")
    sources = load_sources_config(Path(args.sources))
    for source in sources:
        repo.upsert_source(source)
    logger.info("Synced %d source(s) from %s", len(sources), args.sources)
    if Path(args.profile).exists():
        repo.save_profile(load_profile_config(Path(args.profile)))
        logger.info("Saved reader profile from %s", args.profile)
    else:
        logger.warning("Profile file %s not found; keeping stored profile", args.profile)
    return 0


def _cmd_feed(args: argparse.Namespace, repo: NewsRepository) -> int:
    page = repo.list_feed(cursor=args.cursor, limit=args.limit, tag=args.tag)
    for day in page.days:
        print(f"# {day.date}")
        for details in day.topics:
            topic = details.topic
            tags = ", ".join(details.tags)
            print(
                f"  [{topic.id}] ({topic.topic_type}, {topic.relevance_score:.2f}, "
                f"{topic.source_count} sources) {topic.headline}  {tags}"
            )
    if page.next_cursor:
        print(f"next cursor: {page.next_cursor}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv(override=False)
    args = parse_args(argv)
    configure_logging(level=args.log_level)
    logger = get_logger("opennews.cli")

    cfg = PipelineConfig()
    if args.database:
        cfg.database_path = args.database
    db = Database(cfg.database_path)
    repo = NewsRepository(db)
    try:
        if args.command == "sync-config":
            return _cmd_sync_config(args, repo)
        if args.command == "digest":
            orch = DigestOrchestrator(repo, create_ai_client(), config=cfg)
            report = orch.run_digest(args.date)
            print(report.topic_count)
            return 0
        if args.command == "feed":
            return _cmd_feed(args, repo)
        if args.command == "article":
            service = build_article_service(repo, cfg)
            for chunk in service.generate_article(args.topic_id):
                sys.stdout.write(chunk)
                sys.stdout.flush()
            sys.stdout.write("\n")
            return 0
        if args.command == "invalidate":
            build_article_service(repo, cfg).invalidate_article(args.topic_id)
            return 0
        if args.command == "status":
            status = build_article_service(repo, cfg).status()
            print(f"last digest: {status.last_digest or 'never'}")
            print(f"articles: {status.article_count}")
            print(f"enabled sources: {status.source_count}")
            return 0
    except OpenNewsError as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1
    except Exception as exc:  # noqa: BLE001 - top-level entrypoint guard
        logger.exception("%s failed: %s", args.command, exc)
        return 1
    finally:
        db.close()
    return 1


if __name__ == "__main__":  # pragma: no cover - script entrypoint
    raise SystemExit(main())
