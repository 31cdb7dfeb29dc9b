from __future__ import annotations

from enum import Enum
from typing import Iterator, List, Optional

from ..errors import SynthesisFailed
from ..extractors import ExtractionChain
from ..fetchers.tavily import TavilyClient
from ..models import ReaderProfile, TopicWithDetails
from ..processors.ai import AIClient
from ..utils.logging import get_logger
from ..utils.pipeline_config import PipelineConfig
from .compress import Compressor
from .gather import Gatherer
from .synthesize import Synthesizer, check_citations, references_section

logger = get_logger("opennews.synthesis.pipeline")


class PipelineState(str, Enum):
    IDLE = "idle"
    GATHERING = "gathering"
    COMPRESSING = "compressing"
    SYNTHESIZING = "synthesizing"
    DONE = "done"
    FAILED = "failed"


class SynthesisPipeline:
    """Gather, compress and synthesize one cited article for a topic.

    ``run`` is a generator: body chunks are yielded as the model streams
    them, followed by the references section. ``result`` is only set once
    the citation check has passed and ``state`` is ``DONE``. Closing the
    generator early closes the model stream and leaves the pipeline
    ``FAILED`` with no result.
    """

    def __init__(
        self,
        ai: AIClient,
        chain: ExtractionChain,
        *,
        search: Optional[TavilyClient] = None,
        config: Optional[PipelineConfig] = None,
    ) -> None:
        cfg = config or PipelineConfig()
        self.ai = ai
        self.gatherer = Gatherer(
            ai,
            chain,
            search=search,
            max_tool_calls=cfg.gather_max_tool_calls,
            max_sources=cfg.gather_max_sources,
        )
        self.compressor = Compressor(ai, timeout=cfg.compress_timeout, concurrency=cfg.compress_concurrency)
        self.synthesis_timeout = cfg.synthesis_timeout
        self.state = PipelineState.IDLE
        self.result: Optional[str] = None

    def _stages(self, details: TopicWithDetails, profile: ReaderProfile) -> Iterator[str]:
        self.state = PipelineState.GATHERING
        gathered = self.gatherer.gather(details)
        if not gathered:
            raise SynthesisFailed(f"No source material for topic {details.topic.id}")

        self.state = PipelineState.COMPRESSING
        compressed = self.compressor.compress(gathered, details.topic.headline)
        if not compressed:
            raise SynthesisFailed("No source survived compression")

        self.state = PipelineState.SYNTHESIZING
        synthesizer = Synthesizer(self.ai, timeout=self.synthesis_timeout)
        parts: List[str] = []
        for chunk in synthesizer.stream(details, compressed, profile):
            parts.append(chunk)
            yield chunk
        body = "".join(parts)

        report = check_citations(body, [s.index for s in synthesizer.sources])
        if not report.cited:
            raise SynthesisFailed("Generated article carries no citations")
        if report.unknown:
            raise SynthesisFailed(f"Generated article cites unknown sources {report.unknown}")
        if report.uncited_sources:
            raise SynthesisFailed(f"Generated article never cites sources {report.uncited_sources}")
        if report.unmarked_sentences:
            raise SynthesisFailed(
                f"Generated article has {len(report.unmarked_sentences)} sentence(s) without a citation, "
                f"first: {report.unmarked_sentences[0][:120]!r}"
            )

        references = references_section(synthesizer.sources, report.cited)
        self.result = body + references
        self.state = PipelineState.DONE
        yield references

    def run(self, details: TopicWithDetails, profile: ReaderProfile) -> Iterator[str]:
        self.result = None
        try:
            yield from self._stages(details, profile)
        except GeneratorExit:
            if self.state is not PipelineState.DONE:
                self.state = PipelineState.FAILED
                self.result = None
            logger.info("Generation for topic %s aborted by the consumer", details.topic.id)
            raise
        except SynthesisFailed:
            self.state = PipelineState.FAILED
            logger.exception("Generation for topic %s failed", details.topic.id)
            raise
        except Exception as exc:
            self.state = PipelineState.FAILED
            logger.exception("Generation for topic %s failed", details.topic.id)
            raise SynthesisFailed(str(exc)) from exc
