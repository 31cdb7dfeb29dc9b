from __future__ import annotations

import math
import re
from dataclasses import replace
from typing import Iterable, Iterator, List, Sequence

from ..errors import ModelContextOverflow, SynthesisFailed
from ..models import CitationReport, CompressedSource, ReaderProfile, TopicWithDetails
from ..processors.ai import AIClient
from ..utils.logging import get_logger
from .prompts import SYNTHESIS_SYSTEM, build_synthesis_prompt

logger = get_logger("opennews.synthesis.synthesize")

MAX_TRIMS = 3
TRIM_FRACTION = 0.1

_CITATION_RE = re.compile(r"\[(\d+(?:\s*,\s*\d+)*)\]")
_HEADING_RE = re.compile(r"^(?:#{1,6}\s|\*\*[^*]+\*\*:?$|.*:$)")
_LIST_ITEM_RE = re.compile(r"^(?:[-*+]|\d+[.)])\s+")
_SENTENCE_END_RE = re.compile(r"(?<=[.!?])\s+(?=[\"\u201c'(]?[A-Z0-9])")
_ABBREVIATIONS = frozenset(
    {"mr", "mrs", "ms", "dr", "st", "vs", "inc", "ltd", "co", "corp", "jr", "sr", "no", "e.g", "i.e", "u.s", "u.k"}
)


def extract_citations(text: str) -> List[int]:
    """All cited source numbers in order of first appearance. ``[1, 3]`` counts as two."""
    found: List[int] = []
    for match in _CITATION_RE.finditer(text):
        for part in match.group(1).split(","):
            number = int(part)
            if number not in found:
                found.append(number)
    return found


def _claim_blocks(body: str) -> List[str]:
    """Paragraphs and list items of a Markdown body; headings and rules carry no claims."""
    blocks: List[str] = []
    paragraph: List[str] = []

    def flush() -> None:
        if paragraph:
            blocks.append(" ".join(paragraph))
            paragraph.clear()

    for raw_line in body.splitlines():
        line = raw_line.strip()
        if not line or _HEADING_RE.match(line) or not any(ch.isalnum() for ch in line):
            flush()
        elif _LIST_ITEM_RE.match(line):
            flush()
            blocks.append(line)
        else:
            paragraph.append(line)
    flush()
    return blocks


def split_sentences(text: str) -> List[str]:
    sentences: List[str] = []
    pending = ""
    for piece in _SENTENCE_END_RE.split(text):
        pending = f"{pending} {piece}" if pending else piece
        last_word = pending.rstrip(".!?").rsplit(None, 1)[-1].lower() if pending.strip() else ""
        if len(last_word) == 1 or last_word in _ABBREVIATIONS:
            continue
        sentences.append(pending)
        pending = ""
    if pending:
        sentences.append(pending)
    return sentences


def unmarked_sentences(body: str) -> List[str]:
    """Sentences of ``body`` that carry no ``[n]`` marker."""
    return [
        sentence
        for block in _claim_blocks(body)
        for sentence in split_sentences(block)
        if not _CITATION_RE.search(sentence)
    ]


def check_citations(body: str, known: Iterable[int]) -> CitationReport:
    known_set = set(known)
    cited = extract_citations(body)
    return CitationReport(
        cited=cited,
        unknown=[n for n in cited if n not in known_set],
        uncited_sources=sorted(known_set - set(cited)),
        unmarked_sentences=unmarked_sentences(body),
    )


def references_section(sources: Sequence[CompressedSource], cited: Iterable[int]) -> str:
    cited_set = set(cited)
    lines = [f"[{s.index}] {s.title}: {s.url}" for s in sources if s.index in cited_set]
    return "\n\n## Sources\n\n" + "\n".join(lines) + "\n"


def trim_lowest_information(sources: Sequence[CompressedSource], fraction: float = TRIM_FRACTION) -> List[CompressedSource]:
    """Drop the shortest ``fraction`` of all items (at least one) across ``sources``.

    Sources keep their index even when they lose all items.
    """
    ranked = sorted(
        ((len(item.text), s.index, pos) for s in sources for pos, item in enumerate(s.items)),
    )
    if not ranked:
        return list(sources)
    drop_count = max(1, math.floor(len(ranked) * fraction))
    dropped = {(index, pos) for _, index, pos in ranked[:drop_count]}
    return [
        replace(s, items=[item for pos, item in enumerate(s.items) if (s.index, pos) not in dropped])
        for s in sources
    ]


def drop_least_relevant(sources: Sequence[CompressedSource]) -> List[CompressedSource]:
    """Remove the single least relevant source; ties go to the one with fewer items."""
    if not sources:
        return []
    victim = min(sources, key=lambda s: (s.relevance, s.item_count, -s.index))
    return [s for s in sources if s.index != victim.index]


def _usable(sources: Sequence[CompressedSource]) -> List[CompressedSource]:
    return [s for s in sources if s.items]


class Synthesizer:
    """Streams one article body from compressed sources, shrinking the prompt on context overflow.

    Recovery only happens before the first chunk: up to ``MAX_TRIMS`` rounds
    of trimming low-information items, then one attempt without the least
    relevant source. After a run, ``sources`` holds what the final prompt
    actually carried.
    """

    def __init__(self, ai: AIClient, *, timeout: float = 300, max_trims: int = MAX_TRIMS) -> None:
        self.ai = ai
        self.timeout = timeout
        self.max_trims = max_trims
        self.sources: List[CompressedSource] = []

    def _recovery_plan(self, sources: List[CompressedSource]) -> Iterator[List[CompressedSource]]:
        current = sources
        yield current
        for _ in range(self.max_trims):
            current = trim_lowest_information(current)
            yield current
        yield drop_least_relevant(current)

    def stream(
        self,
        details: TopicWithDetails,
        sources: Sequence[CompressedSource],
        profile: ReaderProfile,
    ) -> Iterator[str]:
        for attempt, candidate in enumerate(self._recovery_plan(list(sources))):
            usable = _usable(candidate)
            if not usable:
                raise SynthesisFailed("No source material left after overflow recovery")
            self.sources = usable
            prompt = build_synthesis_prompt(details, usable, profile)
            chunks = self.ai.stream(prompt, system=SYNTHESIS_SYSTEM, timeout=self.timeout)
            try:
                first = next(chunks, None)
            except ModelContextOverflow as exc:
                chunks.close()
                logger.warning(
                    "Context overflow on synthesis attempt %d (%d items): %s",
                    attempt + 1,
                    sum(s.item_count for s in usable),
                    exc,
                )
                continue
            try:
                if first is not None:
                    yield first
                yield from chunks
            finally:
                chunks.close()
            return
        raise SynthesisFailed("Prompt still exceeds the model context after overflow recovery")
