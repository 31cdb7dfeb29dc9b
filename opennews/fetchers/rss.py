from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional

import feedparser
import requests

from ..errors import AdapterFetchError, TransientNetworkError
from ..models import DiscoveredArticle, SourceConfig
from ..processors.normalize import clean_html_to_text
from ..utils.logging import get_logger
from .base import FetchOptions, FetchResult, SourceAdapter
from .http import get_with_retries

logger = get_logger("opennews.fetchers.rss")

_SNIPPET_MAX_CHARS = 500


def _parse_datetime(entry: dict) -> Optional[str]:
    # feedparser may provide 'published_parsed' or 'updated_parsed'
    for key in ("published_parsed", "updated_parsed"):
        tm = entry.get(key)
        if tm:
            try:
                return datetime(*tm[:6], tzinfo=timezone.utc).isoformat()
            except (TypeError, ValueError):
                return None
    return None


def _conditional_headers(source: SourceConfig) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    if source.etag:
        headers["If-None-Match"] = source.etag
    if source.last_modified:
        headers["If-Modified-Since"] = source.last_modified
    return headers


def parse_feed_entries(content: bytes, *, max_items: int) -> List[DiscoveredArticle]:
    parsed = feedparser.parse(content)
    if getattr(parsed, "bozo", False):
        # feedparser sets bozo on malformed feeds but may still parse entries
        logger.debug("Feed 'bozo' flagged: %s", getattr(parsed, "bozo_exception", None))

    items: List[DiscoveredArticle] = []
    for entry in getattr(parsed, "entries", []) or []:
        title = (entry.get("title") or "").strip()
        link = (entry.get("link") or "").strip()
        if not title or not link:
            continue
        snippet = clean_html_to_text(entry.get("summary"))[:_SNIPPET_MAX_CHARS] or None
        items.append(
            DiscoveredArticle(
                title=title,
                url=link,
                source_type="rss",
                snippet=snippet,
                author=entry.get("author") or None,
                published_at=_parse_datetime(entry),
                external_id=entry.get("id") or link,
            )
        )
        if len(items) >= max_items:
            break
    return items


class RSSAdapter(SourceAdapter):
    """RSS/Atom feeds with conditional GET on the stored cache validators."""

    type = "rss"

    def fetch(self, source: SourceConfig, options: FetchOptions) -> FetchResult:
        logger.debug("Fetching RSS from %s", source.url)
        try:
            resp = get_with_retries(
                source.url,
                headers=_conditional_headers(source),
                timeout=options.timeout,
                retries=options.retries,
            )
        except (TransientNetworkError, requests.RequestException, ValueError) as exc:
            raise AdapterFetchError(source.name, str(exc)) from exc

        if resp.status_code == 304:
            logger.info("Feed unchanged since last fetch: %s", source.name)
            return FetchResult(etag=source.etag, last_modified=source.last_modified, not_modified=True)
        if resp.status_code >= 400:
            raise AdapterFetchError(source.name, f"HTTP {resp.status_code}")

        items = parse_feed_entries(resp.content, max_items=options.max_items)
        logger.info("Fetched %d RSS entries from %s", len(items), source.name)
        return FetchResult(
            articles=items,
            etag=resp.headers.get("ETag"),
            last_modified=resp.headers.get("Last-Modified"),
        )
