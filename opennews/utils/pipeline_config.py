from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


def _optional_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    return float(value) if value else None


@dataclass(slots=True)
class PipelineConfig:
    database_path: str = os.getenv("DATABASE_PATH", "./data/open-news.db")

    # Network
    http_timeout: float = float(os.getenv("HTTP_TIMEOUT_SECONDS", "20"))
    http_retries: int = int(os.getenv("HTTP_RETRIES", "2"))
    source_timeout: float = float(os.getenv("SOURCE_TIMEOUT_SECONDS", "30"))
    tavily_api_key: Optional[str] = os.getenv("TAVILY_API_KEY") or None

    # Dedup & rank
    dedup_window_hours: int = int(os.getenv("DEDUP_WINDOW_HOURS", "48"))
    title_threshold: float = float(os.getenv("DEDUP_TITLE_THRESHOLD", "0.7"))
    rank_half_life_hours: Optional[float] = _optional_float("RANK_HALF_LIFE_HOURS")
    max_articles_per_run: int = int(os.getenv("MAX_ARTICLES_PER_RUN", "150"))

    # Extraction
    extract_concurrency: int = int(os.getenv("EXTRACT_CONCURRENCY", "8"))
    extract_min_length: int = int(os.getenv("EXTRACT_MIN_LENGTH", "200"))

    # Model calls
    grouping_timeout: float = float(os.getenv("GROUPING_TIMEOUT_SECONDS", "180"))
    compress_timeout: float = float(os.getenv("COMPRESS_TIMEOUT_SECONDS", "90"))
    compress_concurrency: int = int(os.getenv("COMPRESS_CONCURRENCY", "4"))
    synthesis_timeout: float = float(os.getenv("SYNTHESIS_TIMEOUT_SECONDS", "300"))
    gather_max_tool_calls: int = int(os.getenv("GATHER_MAX_TOOL_CALLS", "3"))
    gather_max_sources: int = int(os.getenv("GATHER_MAX_SOURCES", "8"))
    generation_lock_timeout: float = float(os.getenv("GENERATION_LOCK_TIMEOUT_SECONDS", "600"))
