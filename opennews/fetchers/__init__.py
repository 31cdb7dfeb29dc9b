"""Source adapters and concurrent discovery."""

from .base import FetchOptions, FetchResult, SourceAdapter
from .discovery import DiscoveryReport, SourceOutcome, discover
from .registry import build_adapters, create_tavily_client

__all__ = [
    "FetchOptions",
    "FetchResult",
    "SourceAdapter",
    "DiscoveryReport",
    "SourceOutcome",
    "discover",
    "build_adapters",
    "create_tavily_client",
]
