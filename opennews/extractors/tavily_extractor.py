from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse

import requests

from ..errors import ExtractionFailure, TransientNetworkError
from ..fetchers.http import post_with_retries
from ..models import ExtractedContent
from ..processors.normalize import tidy_paragraphs
from .base import ContentExtractor

TAVILY_EXTRACT_URL = "https://api.tavily.com/extract"


def _title_from_text(text: str) -> str:
    # Tavily returns page text only; the first short line is usually the headline
    for line in text.splitlines()[:5]:
        line = line.strip().lstrip("#").strip()
        if 0 < len(line) <= 200:
            return line
    return ""


class TavilyExtractor(ContentExtractor):
    """Paid remote extraction through the Tavily extract API; last resort in the chain."""

    name = "tavily"

    def __init__(self, api_key: str, *, timeout: float = 30, retries: int = 2) -> None:
        if not api_key:
            raise RuntimeError("TAVILY_API_KEY is required for Tavily extraction")
        self.api_key = api_key
        self.timeout = timeout
        self.retries = retries

    def extract(self, url: str) -> Optional[ExtractedContent]:
        try:
            resp = post_with_retries(
                TAVILY_EXTRACT_URL,
                json={"urls": [url]},
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
                retries=self.retries,
            )
            resp.raise_for_status()
            results = resp.json().get("results") or []
        except (TransientNetworkError, requests.RequestException, ValueError) as exc:
            raise ExtractionFailure(f"tavily extract failed for {url}: {exc}") from exc

        if not results:
            return None
        text = tidy_paragraphs(results[0].get("raw_content"))
        if not text:
            return None
        return ExtractedContent(
            title=_title_from_text(text),
            content=text,
            site_name=urlparse(url).hostname,
            extractor=self.name,
        )
