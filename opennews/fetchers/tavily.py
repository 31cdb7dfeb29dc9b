from __future__ import annotations

from typing import Any, Dict, List

import requests

from ..errors import AdapterFetchError, TransientNetworkError
from ..models import DiscoveredArticle, SearchHit, SourceConfig
from ..utils.logging import get_logger
from .base import FetchOptions, FetchResult, SourceAdapter
from .http import post_with_retries

logger = get_logger("opennews.fetchers.tavily")

TAVILY_SEARCH_URL = "https://api.tavily.com/search"


class TavilyClient:
    """Thin client for the Tavily search API; shared by the adapter and the gather tools."""

    def __init__(self, api_key: str, *, timeout: float = 20, retries: int = 2) -> None:
        if not api_key:
            raise RuntimeError("TAVILY_API_KEY is required for Tavily")
        self.api_key = api_key
        self.timeout = timeout
        self.retries = retries

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def search(self, query: str, *, max_results: int = 10, days: int | None = 1) -> List[SearchHit]:
        payload: Dict[str, Any] = {"query": query, "max_results": max_results, "topic": "news"}
        if days:
            payload["days"] = days
        resp = post_with_retries(
            TAVILY_SEARCH_URL,
            json=payload,
            headers=self._headers(),
            timeout=self.timeout,
            retries=self.retries,
        )
        resp.raise_for_status()
        results = resp.json().get("results") or []
        return [
            SearchHit(title=(r.get("title") or "").strip(), url=r.get("url") or "", snippet=r.get("content"))
            for r in results
            if r.get("url") and r.get("title")
        ]


class TavilyAdapter(SourceAdapter):
    """Broad web search over the reader's configured search queries."""

    type = "tavily"

    def __init__(self, client: TavilyClient) -> None:
        self.client = client

    def fetch(self, source: SourceConfig, options: FetchOptions) -> FetchResult:
        queries = options.profile.search_queries
        if not queries:
            logger.info("No search queries configured; skipping %s", source.name)
            return FetchResult()

        per_query = max(1, options.max_items // len(queries))
        items: List[DiscoveredArticle] = []
        seen_urls = set()
        for query in queries:
            try:
                hits = self.client.search(query, max_results=per_query)
            except (TransientNetworkError, requests.RequestException, ValueError) as exc:
                raise AdapterFetchError(source.name, f"query '{query}': {exc}") from exc
            for hit in hits:
                if hit.url in seen_urls:
                    continue
                seen_urls.add(hit.url)
                items.append(
                    DiscoveredArticle(
                        title=hit.title,
                        url=hit.url,
                        source_type="tavily",
                        snippet=hit.snippet,
                    )
                )
        logger.info("Tavily returned %d results for %d queries", len(items), len(queries))
        return FetchResult(articles=items)
