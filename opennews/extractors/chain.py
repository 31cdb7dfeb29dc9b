from __future__ import annotations

from typing import List, Optional, Sequence

from ..errors import ExtractionFailure
from ..models import ExtractedContent
from ..utils.logging import get_logger
from ..utils.pipeline_config import PipelineConfig
from .base import ContentExtractor
from .readability_extractor import ReadabilityExtractor
from .tavily_extractor import TavilyExtractor
from .trafilatura_extractor import TrafilaturaExtractor

logger = get_logger("opennews.extractors.chain")

DEFAULT_MIN_LENGTH = 200


def validate_content(content: Optional[ExtractedContent], *, min_length: int) -> Optional[str]:
    """Return why ``content`` fails the gate, or ``None`` when it passes."""
    if content is None:
        return "no content"
    if len(content.content.strip()) < min_length:
        return f"content too short ({len(content.content.strip())} < {min_length})"
    if not (content.title or "").strip():
        return "empty title"
    return None


class ExtractionChain:
    """Try extractors in their fixed order; the first valid result wins.

    Within one URL the extractors run strictly one after another.
    """

    def __init__(self, extractors: Sequence[ContentExtractor], *, min_length: int = DEFAULT_MIN_LENGTH) -> None:
        self.extractors: List[ContentExtractor] = list(extractors)
        self.min_length = min_length

    def extract(self, url: str) -> Optional[ExtractedContent]:
        for extractor in self.extractors:
            try:
                content = extractor.extract(url)
            except ExtractionFailure as exc:
                logger.warning("%s failed for %s: %s", extractor.name, url, exc)
                continue
            except Exception as exc:  # noqa: BLE001 - parser crashes count as extractor failure
                logger.warning("%s raised for %s: %s", extractor.name, url, exc)
                continue
            reason = validate_content(content, min_length=self.min_length)
            if reason is None:
                logger.debug("Extracted %s with %s", url, extractor.name)
                return content
            logger.info("%s rejected for %s: %s", extractor.name, url, reason)
        logger.warning("All extractors failed for %s; discarding", url)
        return None


def build_extraction_chain(config: PipelineConfig) -> ExtractionChain:
    """Free local extractors first, the paid remote fallback last (only with an API key)."""
    extractors: List[ContentExtractor] = [
        TrafilaturaExtractor(timeout=config.http_timeout, retries=config.http_retries),
        ReadabilityExtractor(timeout=config.http_timeout, retries=config.http_retries),
    ]
    if config.tavily_api_key:
        extractors.append(TavilyExtractor(config.tavily_api_key, timeout=config.http_timeout, retries=config.http_retries))
    return ExtractionChain(extractors, min_length=config.extract_min_length)
