from __future__ import annotations

from typing import Dict, Optional

from ..utils.pipeline_config import PipelineConfig
from .base import SourceAdapter
from .hackernews import HackerNewsAdapter
from .rss import RSSAdapter
from .tavily import TavilyAdapter, TavilyClient


def create_tavily_client(config: PipelineConfig) -> Optional[TavilyClient]:
    if not config.tavily_api_key:
        return None
    return TavilyClient(config.tavily_api_key, timeout=config.http_timeout, retries=config.http_retries)


def build_adapters(config: PipelineConfig) -> Dict[str, SourceAdapter]:
    """Map source type to adapter for every adapter whose configuration is present.

    Feeds and Hacker News need no credentials; Tavily is only registered with an API key.
    """
    adapters: Dict[str, SourceAdapter] = {
        RSSAdapter.type: RSSAdapter(),
        HackerNewsAdapter.type: HackerNewsAdapter(),
    }
    tavily = create_tavily_client(config)
    if tavily is not None:
        adapters[TavilyAdapter.type] = TavilyAdapter(tavily)
    return adapters
