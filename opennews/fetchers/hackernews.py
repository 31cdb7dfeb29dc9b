from __future__ import annotations

from typing import List
from urllib.parse import urlparse

import requests

from ..errors import AdapterFetchError, TransientNetworkError
from ..models import DiscoveredArticle, SourceConfig
from ..utils.logging import get_logger
from .base import FetchOptions, FetchResult, SourceAdapter
from .http import get_with_retries

logger = get_logger("opennews.fetchers.hackernews")

ALGOLIA_FRONT_PAGE = "https://hn.algolia.com/api/v1/search?tags=front_page"
ITEM_URL = "https://news.ycombinator.com/item?id={id}"
MIN_POINTS = 20


class HackerNewsAdapter(SourceAdapter):
    """Community-ranked stories from the Hacker News Algolia API.

    Results keep the API's ranking order; ``score`` carries the story points.
    Self posts without an external URL link to the discussion page.
    """

    type = "hackernews"

    def __init__(self, *, min_points: int = MIN_POINTS) -> None:
        self.min_points = min_points

    @staticmethod
    def _endpoint(source: SourceConfig) -> str:
        if urlparse(source.url).netloc == "hn.algolia.com":
            return source.url
        return ALGOLIA_FRONT_PAGE

    def fetch(self, source: SourceConfig, options: FetchOptions) -> FetchResult:
        try:
            resp = get_with_retries(
                self._endpoint(source),
                params={"hitsPerPage": options.max_items},
                timeout=options.timeout,
                retries=options.retries,
            )
            resp.raise_for_status()
            hits = resp.json().get("hits") or []
        except (TransientNetworkError, requests.RequestException, ValueError) as exc:
            raise AdapterFetchError(source.name, str(exc)) from exc

        items: List[DiscoveredArticle] = []
        for hit in hits:
            title = (hit.get("title") or "").strip()
            points = hit.get("points") or 0
            if not title or points < self.min_points:
                continue
            object_id = str(hit.get("objectID") or "")
            items.append(
                DiscoveredArticle(
                    title=title,
                    url=hit.get("url") or ITEM_URL.format(id=object_id),
                    source_type="hackernews",
                    author=hit.get("author"),
                    published_at=hit.get("created_at"),
                    external_id=object_id or None,
                    score=int(points),
                )
            )
        logger.info("Fetched %d Hacker News stories (min points %d)", len(items), self.min_points)
        return FetchResult(articles=items)
