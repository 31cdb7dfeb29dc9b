"""On-demand article synthesis: gather, compress, then a streamed, cited write-up."""

from .compress import Compressor, is_verbatim, normalize_for_match, parse_compression
from .gather import GatherDecision, Gatherer, parse_gather_decision, seed_sources
from .pipeline import PipelineState, SynthesisPipeline
from .synthesize import (
    Synthesizer,
    check_citations,
    drop_least_relevant,
    extract_citations,
    references_section,
    split_sentences,
    trim_lowest_information,
    unmarked_sentences,
)

__all__ = [
    "Compressor",
    "is_verbatim",
    "normalize_for_match",
    "parse_compression",
    "GatherDecision",
    "Gatherer",
    "parse_gather_decision",
    "seed_sources",
    "PipelineState",
    "SynthesisPipeline",
    "Synthesizer",
    "check_citations",
    "drop_least_relevant",
    "extract_citations",
    "references_section",
    "split_sentences",
    "trim_lowest_information",
    "unmarked_sentences",
]
