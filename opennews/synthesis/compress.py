from __future__ import annotations

import re
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..errors import ModelOutputMalformed
from ..models import CompressedItem, CompressedSource, GatheredSource
from ..processors.ai import AIClient, generate_json
from ..processors.ai.parsing import require_list
from ..utils.logging import get_logger
from .prompts import COMPRESS_SYSTEM, build_compress_prompt

logger = get_logger("opennews.synthesis.compress")

ITEM_KINDS = ("fact", "quote", "metric")
DEFAULT_RELEVANCE = 0.5

_QUOTE_TRANSLATION = str.maketrans(
    {
        "\u2018": "'",
        "\u2019": "'",
        "\u201a": "'",
        "\u201b": "'",
        "\u201c": '"',
        "\u201d": '"',
        "\u201e": '"',
        "\u00ab": '"',
        "\u00bb": '"',
    }
)
_WS_RE = re.compile(r"\s+")


def normalize_for_match(text: str) -> str:
    """Collapse whitespace and straighten typographic quotes for verbatim checks."""
    return _WS_RE.sub(" ", text.translate(_QUOTE_TRANSLATION)).strip()


def is_verbatim(item_text: str, source_text: str) -> bool:
    needle = normalize_for_match(item_text).strip("\"' ")
    return bool(needle) and needle in normalize_for_match(source_text)


def parse_compression(obj: Dict[str, Any], source_text: str) -> Tuple[List[CompressedItem], float]:
    """Validate one compression response and keep only verbatim items.

    Schema violations raise ``ModelOutputMalformed``. Paraphrased items are
    silently dropped.
    """
    items: List[CompressedItem] = []
    seen = set()
    for raw in require_list(obj, "items"):
        if not isinstance(raw, dict):
            raise ModelOutputMalformed("Each item must be an object")
        kind = raw.get("kind")
        text = raw.get("text")
        if kind not in ITEM_KINDS or not isinstance(text, str):
            raise ModelOutputMalformed(f"Invalid item: {raw!r}")
        text = text.strip()
        if not is_verbatim(text, source_text):
            logger.debug("Dropping non-verbatim item: %.80s", text)
            continue
        key = normalize_for_match(text)
        if key in seen:
            continue
        seen.add(key)
        items.append(CompressedItem(kind=kind, text=text))

    relevance = obj.get("relevance", DEFAULT_RELEVANCE)
    if isinstance(relevance, bool) or not isinstance(relevance, (int, float)):
        relevance = DEFAULT_RELEVANCE
    return items, max(0.0, min(1.0, float(relevance)))


class Compressor:
    """Reduces every gathered source to verbatim facts, quotes and metrics in parallel."""

    def __init__(self, ai: AIClient, *, timeout: float = 90, retries: int = 2, concurrency: int = 4) -> None:
        self.ai = ai
        self.timeout = timeout
        self.retries = retries
        self.concurrency = max(1, concurrency)

    def _compress_one(self, source: GatheredSource, topic_headline: str) -> Optional[Tuple[List[CompressedItem], float]]:
        prompt = build_compress_prompt(source, topic_headline)
        try:
            items, relevance = generate_json(
                self.ai,
                prompt,
                lambda obj: parse_compression(obj, source.content),
                system=COMPRESS_SYSTEM,
                timeout=self.timeout,
                retries=self.retries,
            )
        except ModelOutputMalformed as exc:
            logger.warning("Compression of %s stayed malformed; dropping source: %s", source.url, exc)
            return None
        except Exception as exc:  # noqa: BLE001 - one failed source must not fail the others
            logger.warning("Compression of %s failed; dropping source: %s", source.url, exc)
            return None
        if not items:
            logger.info("No verbatim items survived for %s; dropping source", source.url)
            return None
        return items, relevance

    def compress(self, sources: Sequence[GatheredSource], topic_headline: str) -> List[CompressedSource]:
        """Compress ``sources``; survivors are numbered 1..n in their original order."""
        if not sources:
            return []
        with ThreadPoolExecutor(max_workers=min(self.concurrency, len(sources))) as executor:
            results = list(executor.map(lambda s: self._compress_one(s, topic_headline), sources))

        compressed: List[CompressedSource] = []
        for source, result in zip(sources, results):
            if result is None:
                continue
            items, relevance = result
            compressed.append(
                CompressedSource(
                    index=len(compressed) + 1,
                    title=source.title,
                    url=source.url,
                    items=items,
                    relevance=relevance,
                )
            )
        logger.info("Compressed %d/%d sources", len(compressed), len(sources))
        return compressed
