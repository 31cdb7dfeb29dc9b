from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from ..models import Candidate, SourceRef
from .normalize import parse_datetime

SOURCE_TYPE_WEIGHTS: Dict[str, float] = {
    "rss": 1.0,
    "hackernews": 1.2,
    "tavily": 0.8,
}
DEFAULT_WEIGHT = 1.0


def ref_score(ref: SourceRef, weights: Dict[str, float] = SOURCE_TYPE_WEIGHTS) -> float:
    return (1.0 / (ref.rank + 1)) * weights.get(ref.source_type, DEFAULT_WEIGHT)


def recency_multiplier(published_at: Optional[str], *, half_life_hours: float, now: datetime) -> float:
    published = parse_datetime(published_at)
    if published is None:
        return 1.0
    hours = max(0.0, (now - published).total_seconds() / 3600.0)
    return math.exp(-hours / half_life_hours)


def score_candidate(
    candidate: Candidate,
    *,
    half_life_hours: Optional[float] = None,
    now: Optional[datetime] = None,
    weights: Dict[str, float] = SOURCE_TYPE_WEIGHTS,
) -> float:
    """Sum ``1/(rank+1) * weight`` over every source that discovered the article.

    An article confirmed by several sources accumulates one term per source.
    """
    total = sum(ref_score(ref, weights) for ref in candidate.refs)
    if half_life_hours:
        now = now or datetime.now(timezone.utc)
        total *= recency_multiplier(candidate.article.published_at, half_life_hours=half_life_hours, now=now)
    return total


def rank_candidates(
    candidates: Iterable[Candidate],
    *,
    half_life_hours: Optional[float] = None,
    now: Optional[datetime] = None,
) -> List[Candidate]:
    ranked = list(candidates)
    for cand in ranked:
        cand.rank_score = score_candidate(cand, half_life_hours=half_life_hours, now=now)
    ranked.sort(key=lambda c: (-c.rank_score, c.title.lower()))
    return ranked
