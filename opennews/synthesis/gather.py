from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from ..errors import ModelOutputMalformed, TransientNetworkError
from ..extractors import ExtractionChain
from ..fetchers.tavily import TavilyClient
from ..models import GatheredSource, TopicWithDetails
from ..processors.ai import AIClient, generate_json
from ..processors.ai.parsing import require_str
from ..utils.logging import get_logger
from .prompts import GATHER_SYSTEM, build_gather_prompt

logger = get_logger("opennews.synthesis.gather")

GATHER_ACTIONS = ("search", "fetch", "stop")
SEARCH_RESULTS = 5


@dataclass(slots=True)
class GatherDecision:
    action: str
    argument: Optional[str] = None


def parse_gather_decision(obj: Dict[str, Any]) -> GatherDecision:
    action = require_str(obj, "action").lower()
    if action not in GATHER_ACTIONS:
        raise ModelOutputMalformed(f"Unknown gather action '{action}'")
    if action == "search":
        return GatherDecision(action, require_str(obj, "query"))
    if action == "fetch":
        return GatherDecision(action, require_str(obj, "url"))
    return GatherDecision(action)


def seed_sources(details: TopicWithDetails) -> List[GatheredSource]:
    """Gathered material starts with the topic's own linked articles."""
    seeds: List[GatheredSource] = []
    for article in details.sources:
        text = (article.content or article.snippet or "").strip()
        if text:
            seeds.append(GatheredSource(title=article.title, url=article.url, content=text, origin="topic"))
    return seeds


class Gatherer:
    """Collects source material for one topic with a bounded decide/call loop.

    Every decision is one JSON model call; ``search`` and ``fetch`` each cost
    one unit of the tool budget, failed or not. An unparseable decision ends
    the loop with whatever has been gathered.
    """

    def __init__(
        self,
        ai: AIClient,
        chain: ExtractionChain,
        *,
        search: Optional[TavilyClient] = None,
        max_tool_calls: int = 3,
        max_sources: int = 8,
        timeout: float = 60,
        retries: int = 1,
    ) -> None:
        self.ai = ai
        self.chain = chain
        self.search = search
        self.max_tool_calls = max_tool_calls
        self.max_sources = max_sources
        self.timeout = timeout
        self.retries = retries

    def _decide(self, details: TopicWithDetails, gathered, observations, remaining: int) -> Optional[GatherDecision]:
        prompt = build_gather_prompt(
            details,
            gathered,
            observations,
            remaining_calls=remaining,
            search_enabled=self.search is not None,
        )
        try:
            return generate_json(
                self.ai,
                prompt,
                parse_gather_decision,
                system=GATHER_SYSTEM,
                timeout=self.timeout,
                retries=self.retries,
            )
        except ModelOutputMalformed as exc:
            logger.warning("Gather decision malformed, stopping: %s", exc)
            return None

    def _run_search(self, query: str) -> str:
        if self.search is None:
            return f"search '{query}': web search is not configured"
        try:
            hits = self.search.search(query, max_results=SEARCH_RESULTS, days=None)
        except (TransientNetworkError, requests.RequestException, ValueError) as exc:
            logger.warning("Search tool failed for '%s': %s", query, exc)
            return f"search '{query}': failed"
        if not hits:
            return f"search '{query}': no results"
        listing = "; ".join(f"{h.title} <{h.url}>" for h in hits)
        return f"search '{query}': {listing}"

    def _run_fetch(self, url: str, gathered: List[GatheredSource]) -> str:
        if any(g.url == url for g in gathered):
            return f"fetch {url}: already gathered"
        content = self.chain.extract(url)
        if content is None:
            return f"fetch {url}: could not extract the article"
        gathered.append(GatheredSource(title=content.title, url=url, content=content.content, origin="fetch"))
        return f"fetch {url}: added '{content.title}'"

    def gather(self, details: TopicWithDetails) -> List[GatheredSource]:
        gathered = seed_sources(details)
        observations: List[str] = []
        calls = 0
        while calls < self.max_tool_calls and len(gathered) < self.max_sources:
            decision = self._decide(details, gathered, observations, self.max_tool_calls - calls)
            if decision is None or decision.action == "stop":
                break
            calls += 1
            if decision.action == "search":
                observations.append(self._run_search(decision.argument or ""))
            else:
                observations.append(self._run_fetch(decision.argument or "", gathered))
            logger.debug("Gather step %d/%d: %s", calls, self.max_tool_calls, observations[-1])
        logger.info(
            "Gathered %d sources for topic '%s' with %d tool calls",
            len(gathered),
            details.topic.headline,
            calls,
        )
        return gathered
