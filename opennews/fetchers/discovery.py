from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import List, Mapping, Sequence

from ..errors import AdapterFetchError
from ..models import DiscoveredArticle, SourceConfig
from ..utils.logging import get_logger
from .base import FetchOptions, FetchResult, SourceAdapter

logger = get_logger("opennews.fetchers.discovery")


@dataclass(slots=True)
class SourceOutcome:
    source: SourceConfig
    result: FetchResult = field(default_factory=FetchResult)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class DiscoveryReport:
    outcomes: List[SourceOutcome] = field(default_factory=list)

    @property
    def articles(self) -> List[tuple[SourceConfig, List[DiscoveredArticle]]]:
        return [(o.source, o.result.articles) for o in self.outcomes if o.ok]

    @property
    def failed(self) -> List[SourceOutcome]:
        return [o for o in self.outcomes if not o.ok]


def discover(
    sources: Sequence[SourceConfig],
    adapters: Mapping[str, SourceAdapter],
    options: FetchOptions,
    *,
    timeout: float = 30,
) -> DiscoveryReport:
    """Run every enabled source concurrently, each bounded by ``timeout`` seconds.

    A source that raises or does not finish in time contributes zero results.
    The call returns once all sources finished or the timeout elapsed.
    """
    report = DiscoveryReport()
    runnable: List[SourceConfig] = []
    for source in sources:
        if not source.enabled:
            continue
        if source.type not in adapters:
            logger.warning("No adapter registered for %s (type=%s); skipping", source.name, source.type)
            report.outcomes.append(SourceOutcome(source=source, error="adapter not configured"))
            continue
        runnable.append(source)

    if not runnable:
        return report

    # One worker per source so a slow source never queues behind another
    executor = ThreadPoolExecutor(max_workers=len(runnable), thread_name_prefix="discover")
    try:
        future_map = {
            executor.submit(adapters[s.type].fetch, s, options): s for s in runnable
        }
        done, not_done = wait(future_map, timeout=timeout)
        for fut in not_done:
            source = future_map[fut]
            fut.cancel()
            logger.warning("Source %s timed out after %.1fs; excluded from this run", source.name, timeout)
            report.outcomes.append(SourceOutcome(source=source, error="timeout"))
        for fut in done:
            source = future_map[fut]
            try:
                result = fut.result()
            except AdapterFetchError as exc:
                logger.warning("Source fetch failed: %s", exc)
                report.outcomes.append(SourceOutcome(source=source, error=str(exc)))
                continue
            except Exception as exc:  # noqa: BLE001 - one broken adapter must not abort the batch
                logger.exception("Unexpected adapter error for %s: %s", source.name, exc)
                report.outcomes.append(SourceOutcome(source=source, error=str(exc)))
                continue
            report.outcomes.append(SourceOutcome(source=source, result=result))
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    total = sum(len(o.result.articles) for o in report.outcomes if o.ok)
    logger.info(
        "Discovery complete: articles=%d sources_ok=%d sources_failed=%d",
        total,
        len(report.outcomes) - len(report.failed),
        len(report.failed),
    )
    return report
