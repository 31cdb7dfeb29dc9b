from __future__ import annotations

from abc import ABC, abstractmethod
from typing import ClassVar, Optional

import requests

from ..errors import ExtractionFailure, TransientNetworkError
from ..fetchers.http import get_with_retries
from ..models import ExtractedContent


class ContentExtractor(ABC):
    """Produces the full text of an article from its URL."""

    name: ClassVar[str]

    @abstractmethod
    def extract(self, url: str) -> Optional[ExtractedContent]:
        """Return extracted content, ``None`` when nothing usable was found.

        May raise ``ExtractionFailure``; the chain treats both the same way.
        """


def fetch_html(url: str, *, timeout: float, retries: int) -> str:
    """Download a page for local extraction."""
    try:
        resp = get_with_retries(url, timeout=timeout, retries=retries)
    except (TransientNetworkError, requests.RequestException, ValueError) as exc:
        raise ExtractionFailure(f"download failed for {url}: {exc}") from exc
    if resp.status_code >= 400:
        raise ExtractionFailure(f"download failed for {url}: HTTP {resp.status_code}")
    content_type = resp.headers.get("Content-Type", "")
    if content_type and "html" not in content_type and "xml" not in content_type:
        raise ExtractionFailure(f"unsupported content type for {url}: {content_type}")
    return resp.text
