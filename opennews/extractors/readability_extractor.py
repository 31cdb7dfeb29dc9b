from __future__ import annotations

from typing import Optional

from bs4 import BeautifulSoup
from lxml import html as lxml_html
from readability import Document

from ..models import ExtractedContent
from ..processors.normalize import tidy_paragraphs
from .base import ContentExtractor, fetch_html


def _meta(soup: BeautifulSoup, *names: str) -> Optional[str]:
    for name in names:
        tag = soup.find("meta", attrs={"property": name}) or soup.find("meta", attrs={"name": name})
        if tag and tag.get("content"):
            return tag["content"].strip()
    return None


class ReadabilityExtractor(ContentExtractor):
    """readability-lxml main-content detection, with metadata from the page head."""

    name = "readability"

    def __init__(self, *, timeout: float = 20, retries: int = 2) -> None:
        self.timeout = timeout
        self.retries = retries

    def extract(self, url: str) -> Optional[ExtractedContent]:
        page = fetch_html(url, timeout=self.timeout, retries=self.retries)
        doc = Document(page)
        summary_html = doc.summary(html_partial=True)
        text = tidy_paragraphs(lxml_html.fromstring(summary_html).text_content())
        if not text:
            return None

        soup = BeautifulSoup(page, "html.parser")
        return ExtractedContent(
            title=(_meta(soup, "og:title") or doc.short_title() or "").strip(),
            content=text,
            author=_meta(soup, "author", "article:author"),
            published_at=_meta(soup, "article:published_time"),
            site_name=_meta(soup, "og:site_name"),
            excerpt=_meta(soup, "og:description", "description"),
            extractor=self.name,
        )
