"""Full-text extraction: individual extractors and the fallback chain."""

from .base import ContentExtractor
from .chain import ExtractionChain, build_extraction_chain, validate_content

__all__ = ["ContentExtractor", "ExtractionChain", "build_extraction_chain", "validate_content"]
