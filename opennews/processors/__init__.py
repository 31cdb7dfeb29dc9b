"""Processing: normalization, URL canonicalization, deduplication, ranking."""

from .normalize import clean_html_to_text, normalize_plain_text, parse_date_to_iso, parse_datetime
from .urls import normalize_url
from .dedup import Deduplicator, DedupStats, dice_coefficient
from .ranking import rank_candidates, score_candidate, SOURCE_TYPE_WEIGHTS

__all__ = [
    "clean_html_to_text",
    "normalize_plain_text",
    "parse_date_to_iso",
    "parse_datetime",
    "normalize_url",
    "Deduplicator",
    "DedupStats",
    "dice_coefficient",
    "rank_candidates",
    "score_candidate",
    "SOURCE_TYPE_WEIGHTS",
]
