from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..models import Candidate, DiscoveredArticle, SourceConfig, SourceRef
from ..utils.logging import get_logger
from .normalize import normalize_plain_text
from .urls import normalize_url

logger = get_logger("opennews.processors.dedup")

DEFAULT_TITLE_THRESHOLD = 0.7

SourceBatch = Tuple[SourceConfig, Sequence[DiscoveredArticle]]


def title_key(title: str) -> str:
    """Lowercased title with punctuation and whitespace removed."""
    text = normalize_plain_text(title).lower()
    return "".join(ch for ch in text if ch.isalnum())


def bigrams(text: str) -> Counter:
    return Counter(text[i : i + 2] for i in range(len(text) - 1))


def _dice_from_bigrams(a: Counter, b: Counter, key_a: str, key_b: str) -> float:
    total = sum(a.values()) + sum(b.values())
    if total == 0:
        # Titles shorter than two characters
        return 1.0 if key_a == key_b and key_a else 0.0
    overlap = sum((a & b).values())
    return 2.0 * overlap / total


def dice_coefficient(a: str, b: str) -> float:
    """Dice's coefficient over character bigrams of two titles, in [0, 1]."""
    key_a, key_b = title_key(a), title_key(b)
    return _dice_from_bigrams(bigrams(key_a), bigrams(key_b), key_a, key_b)


def merge_refs(*groups: Iterable[SourceRef]) -> List[SourceRef]:
    """Union source references, keeping the best rank per source instance."""
    best: Dict[Tuple[Optional[int], str], SourceRef] = {}
    for group in groups:
        for ref in group:
            key = (ref.source_id, ref.source_type)
            if key not in best or ref.rank < best[key].rank:
                best[key] = ref
    return sorted(best.values(), key=lambda r: (r.rank, r.source_type, r.source_id or 0))


def merge_candidates(keep: Candidate, other: Candidate) -> Candidate:
    """Merge two duplicates: the one with longer content survives, refs are unioned."""
    winner, loser = (keep, other) if keep.content_length >= other.content_length else (other, keep)
    winner.refs = merge_refs(winner.refs, loser.refs)
    return winner


@dataclass(slots=True)
class DedupStats:
    total: int = 0
    kept: int = 0
    duplicates: int = 0
    reasons: Dict[str, int] = field(default_factory=dict)


@dataclass(slots=True)
class _Survivor:
    candidate: Candidate
    key: str
    grams: Counter


class Deduplicator:
    """Collapse duplicate coverage across sources and against recent history.

    Stage A drops exact URL republishes (canonical key seen in the rolling
    window) and merges exact repeats inside the batch. Stage B merges
    near-identical titles by Dice similarity and drops batch articles whose
    title matches one already stored in the window.

    Stage B is pairwise and meant for a few hundred articles per day.
    """

    def __init__(
        self,
        *,
        seen_url_keys: Iterable[str] = (),
        seen_titles: Iterable[str] = (),
        title_threshold: float = DEFAULT_TITLE_THRESHOLD,
    ) -> None:
        self.title_threshold = title_threshold
        self._seen_keys = set(seen_url_keys)
        self._seen_titles: List[Tuple[str, Counter]] = []
        for title in seen_titles:
            key = title_key(title)
            self._seen_titles.append((key, bigrams(key)))

    # ---------------- Stage A -----------------
    def _collapse_urls(self, batches: Iterable[SourceBatch], reasons: Dict[str, int]) -> Tuple[List[Candidate], int]:
        by_key: Dict[str, Candidate] = {}
        total = 0
        for source, articles in batches:
            for rank, article in enumerate(articles):
                total += 1
                key = normalize_url(article.url)
                ref = SourceRef(source_id=source.id, source_type=source.type, rank=rank)
                if key in self._seen_keys:
                    reasons["url_window"] += 1
                    continue
                incoming = Candidate(article=article, url_key=key, refs=[ref])
                if key in by_key:
                    reasons["url"] += 1
                    by_key[key] = merge_candidates(by_key[key], incoming)
                    continue
                by_key[key] = incoming
        return list(by_key.values()), total

    # ---------------- Stage B -----------------
    def _matches_window(self, key: str, grams: Counter) -> bool:
        for seen_key, seen_grams in self._seen_titles:
            if _dice_from_bigrams(grams, seen_grams, key, seen_key) >= self.title_threshold:
                return True
        return False

    def _collapse_titles(self, candidates: List[Candidate], reasons: Dict[str, int]) -> List[Candidate]:
        survivors: List[_Survivor] = []
        for cand in candidates:
            key = title_key(cand.title)
            grams = bigrams(key)
            if self._matches_window(key, grams):
                reasons["title_window"] += 1
                continue
            for surv in survivors:
                if _dice_from_bigrams(grams, surv.grams, key, surv.key) >= self.title_threshold:
                    reasons["title"] += 1
                    merged = merge_candidates(surv.candidate, cand)
                    if merged is cand:
                        surv.key, surv.grams = key, grams
                    surv.candidate = merged
                    break
            else:
                survivors.append(_Survivor(candidate=cand, key=key, grams=grams))
        return [s.candidate for s in survivors]

    def run(self, batches: Iterable[SourceBatch]) -> Tuple[List[Candidate], DedupStats]:
        """Deduplicate discovery output given as ``(source, articles)`` pairs.

        Each article's rank is its position in its source's list.
        """
        reasons: Dict[str, int] = defaultdict(int)
        candidates, total = self._collapse_urls(batches, reasons)
        unique = self._collapse_titles(candidates, reasons)
        stats = DedupStats(total=total, kept=len(unique), duplicates=total - len(unique), reasons=dict(reasons))
        logger.info(
            "Dedup: total=%d kept=%d duplicates=%d reasons=%s",
            stats.total,
            stats.kept,
            stats.duplicates,
            stats.reasons,
        )
        return unique, stats
