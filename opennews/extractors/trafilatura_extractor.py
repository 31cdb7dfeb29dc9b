from __future__ import annotations

import json
from typing import Optional

import trafilatura

from ..models import ExtractedContent
from ..processors.normalize import parse_date_to_iso, tidy_paragraphs
from .base import ContentExtractor, fetch_html


class TrafilaturaExtractor(ContentExtractor):
    name = "trafilatura"

    def __init__(self, *, timeout: float = 20, retries: int = 2) -> None:
        self.timeout = timeout
        self.retries = retries

    def extract(self, url: str) -> Optional[ExtractedContent]:
        downloaded = fetch_html(url, timeout=self.timeout, retries=self.retries)
        result = trafilatura.extract(
            downloaded,
            url=url,
            output_format="json",
            with_metadata=True,
            include_comments=False,
            include_tables=False,
        )
        if not result:
            return None
        data = json.loads(result)
        text = tidy_paragraphs(data.get("text"))
        if not text:
            return None
        return ExtractedContent(
            title=(data.get("title") or "").strip(),
            content=text,
            author=data.get("author") or None,
            published_at=parse_date_to_iso(data.get("date")),
            site_name=data.get("sitename") or None,
            excerpt=data.get("excerpt") or data.get("description") or None,
            extractor=self.name,
        )
