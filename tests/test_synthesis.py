"""Tests for gather, compress and the streamed, cited synthesis."""

from unittest.mock import Mock

import pytest

from opennews.errors import ModelContextOverflow, SynthesisFailed
from opennews.models import (
    CompressedItem,
    CompressedSource,
    ExtractedContent,
    GatheredSource,
    ReaderProfile,
    SearchHit,
    TopicWithDetails,
)
from opennews.synthesis import (
    Compressor,
    Gatherer,
    PipelineState,
    SynthesisPipeline,
    Synthesizer,
    check_citations,
    drop_least_relevant,
    extract_citations,
    is_verbatim,
    parse_compression,
    references_section,
    split_sentences,
    trim_lowest_information,
    unmarked_sentences,
)
from opennews.utils.pipeline_config import PipelineConfig

from .conftest import (
    DOC_ONE,
    DOC_THREE,
    DOC_TWO,
    FakeAIClient,
    make_raw_article,
    make_topic,
    three_source_handler,
)


def _details():
    return TopicWithDetails(
        topic=make_topic(id=1, headline="Quarterly results and a launch"),
        tags=["space"],
        sources=[
            make_raw_article(1, content=DOC_ONE, id=11),
            make_raw_article(2, content=DOC_TWO, id=12),
        ],
    )


def _three_source_details():
    return TopicWithDetails(
        topic=make_topic(id=2, headline="Results, a launch and a resignation"),
        sources=[
            make_raw_article(1, content=DOC_ONE, id=21),
            make_raw_article(2, content=DOC_TWO, id=22),
            make_raw_article(3, content=DOC_THREE, id=23),
        ],
    )


def _compressed(index, texts, relevance=0.5):
    return CompressedSource(
        index=index,
        title=f"Source {index}",
        url=f"https://example.com/{index}",
        items=[CompressedItem(kind="fact", text=t) for t in texts],
        relevance=relevance,
    )


def _item_lines(prompt):
    return [line for line in prompt.splitlines() if line.startswith("  - (")]


def _pipeline_handler(prompt):
    if "Reply with exactly one of" in prompt:
        return {"action": "stop"}
    if "Story number 1" in prompt:
        return {"items": [{"kind": "metric", "text": "revenue rose 12% in the third quarter"}], "relevance": 0.9}
    return {"items": [{"kind": "fact", "text": "Officials confirmed the launch on Monday."}], "relevance": 0.6}


class TestVerbatimFilter:
    def test_whitespace_and_quote_styles_are_normalized(self):
        source = "He said: “We   will ship\nin May.”"
        assert is_verbatim('"We will ship in May."', source)

    def test_paraphrase_is_rejected(self):
        assert not is_verbatim("Revenue went up by twelve percent", DOC_ONE)

    def test_parse_compression_keeps_only_verbatim_items(self):
        obj = {
            "items": [
                {"kind": "metric", "text": "revenue rose 12% in the third quarter"},
                {"kind": "fact", "text": "Revenue doubled"},
                {"kind": "metric", "text": "revenue rose 12%  in the third quarter"},
            ],
            "relevance": 3,
        }

        items, relevance = parse_compression(obj, DOC_ONE)

        assert [i.text for i in items] == ["revenue rose 12% in the third quarter"]
        assert relevance == 1.0


class TestCompressor:
    def test_survivors_are_numbered_in_gather_order(self):
        sources = [
            GatheredSource(title="One", url="https://example.com/1", content=DOC_ONE),
            GatheredSource(title="Broken", url="https://example.com/2", content="Nothing useful here at all."),
            GatheredSource(title="Three", url="https://example.com/3", content=DOC_TWO),
        ]

        def handler(prompt):
            if "DOCUMENT: One" in prompt:
                return {"items": [{"kind": "fact", "text": "Analysts had expected less."}]}
            if "DOCUMENT: Broken" in prompt:
                return "this is not json"
            return {"items": [{"kind": "fact", "text": "The rocket carried two satellites."}]}

        compressed = Compressor(FakeAIClient(handler=handler)).compress(sources, "topic")

        assert [(c.index, c.title) for c in compressed] == [(1, "One"), (2, "Three")]

    def test_source_without_verbatim_items_is_dropped(self):
        sources = [GatheredSource(title="One", url="https://example.com/1", content=DOC_ONE)]
        ai = FakeAIClient(handler=lambda p: {"items": [{"kind": "fact", "text": "Made up sentence."}]})

        assert Compressor(ai).compress(sources, "topic") == []


class TestGatherer:
    def test_starts_from_topic_articles_and_stops_when_told(self):
        ai = FakeAIClient(responses=[{"action": "stop"}])

        gathered = Gatherer(ai, Mock()).gather(_details())

        assert [g.url for g in gathered] == ["https://example.com/story-1", "https://example.com/story-2"]
        assert ai.call_count == 1

    def test_fetch_adds_extracted_source(self):
        chain = Mock()
        chain.extract.return_value = ExtractedContent(title="Background piece", content="Long background text.")
        ai = FakeAIClient(responses=[{"action": "fetch", "url": "https://other.example/bg"}, {"action": "stop"}])

        gathered = Gatherer(ai, chain).gather(_details())

        assert gathered[-1].title == "Background piece"
        assert gathered[-1].origin == "fetch"
        chain.extract.assert_called_once_with("https://other.example/bg")

    def test_tool_budget_bounds_the_loop(self):
        search = Mock()
        search.search.return_value = [SearchHit(title="Hit", url="https://hit.example")]
        ai = FakeAIClient(handler=lambda p: {"action": "search", "query": "more"})

        Gatherer(ai, Mock(), search=search, max_tool_calls=3).gather(_details())

        assert ai.call_count == 3
        assert search.search.call_count == 3
        assert "Hit <https://hit.example>" in ai.complete_prompts[-1]

    def test_failed_tool_call_consumes_budget(self):
        chain = Mock()
        chain.extract.return_value = None
        ai = FakeAIClient(handler=lambda p: {"action": "fetch", "url": "https://dead.example"})

        gathered = Gatherer(ai, chain, max_tool_calls=2).gather(_details())

        assert len(gathered) == 2
        assert chain.extract.call_count == 2

    def test_malformed_decision_stops_the_loop(self):
        ai = FakeAIClient(responses=[{"action": "dance"}, {"action": "dance"}])

        gathered = Gatherer(ai, Mock(), retries=1).gather(_details())

        assert len(gathered) == 2
        assert ai.call_count == 2


class TestCitations:
    def test_extracts_grouped_and_adjacent_markers(self):
        assert extract_citations("A [1][2]. B [1, 3]. C [2].") == [1, 2, 3]

    def test_report_flags_unknown_and_uncited(self):
        report = check_citations("Claim [1]. Other claim [4].", [1, 2, 3])

        assert report.unknown == [4]
        assert report.uncited_sources == [2, 3]
        assert not report.ok

    def test_no_citations_is_not_ok(self):
        assert not check_citations("No markers here.", [1]).ok

    def test_sentences_without_markers_are_reported(self):
        body = "Revenue rose 12% [1]. Aliens landed in Paris yesterday. The CEO resigned in disgrace."

        report = check_citations(body, [1, 2, 3])

        assert report.unmarked_sentences == ["Aliens landed in Paris yesterday.", "The CEO resigned in disgrace."]
        assert report.uncited_sources == [2, 3]
        assert not report.ok

    def test_headings_lists_and_abbreviations(self):
        body = "## Background\n\nDr. Smith said the U.S. plan works [1].\n\nKey numbers:\n\n- Shares fell 3% [2]\n- Orders rose [1][2]\n"

        assert unmarked_sentences(body) == []
        assert check_citations(body, [1, 2]).ok

    def test_unmarked_list_item_is_reported(self):
        assert unmarked_sentences("Intro sentence [1].\n\n- A bare claim\n") == ["- A bare claim"]

    def test_split_sentences_keeps_marker_with_its_sentence(self):
        assert split_sentences("Prices rose [1]. Demand fell [2].") == ["Prices rose [1].", "Demand fell [2]."]

    def test_references_list_cited_sources(self):
        text = references_section([_compressed(1, ["a"]), _compressed(2, ["b"])], [2])
        assert "[2] Source 2: https://example.com/2" in text
        assert "[1] Source 1" not in text


class TestOverflowHelpers:
    def test_trim_drops_ten_percent_shortest_items(self):
        sources = [_compressed(1, ["x" * (10 + i) for i in range(10)]), _compressed(2, ["y" * (30 + i) for i in range(10)])]

        trimmed = trim_lowest_information(sources)

        assert sum(s.item_count for s in trimmed) == 18
        assert [s.index for s in trimmed] == [1, 2]
        assert all(len(item.text) >= 12 for item in trimmed[0].items)

    def test_trim_drops_at_least_one_item(self):
        trimmed = trim_lowest_information([_compressed(1, ["short", "a bit longer"])])
        assert [i.text for i in trimmed[0].items] == ["a bit longer"]

    def test_drop_least_relevant_keeps_indices(self):
        remaining = drop_least_relevant([_compressed(1, ["a"], 0.9), _compressed(2, ["b"], 0.2), _compressed(3, ["c"], 0.5)])
        assert [s.index for s in remaining] == [1, 3]


class TestSynthesizer:
    def _sources(self):
        return [
            _compressed(1, [f"fact number {i} from one" for i in range(10)], 0.9),
            _compressed(2, [f"fact {i} two" for i in range(10)], 0.3),
        ]

    def test_streams_chunks_as_produced(self):
        ai = FakeAIClient(streams=[["Hello ", "world [1]."]])

        chunks = list(Synthesizer(ai).stream(_details(), self._sources(), ReaderProfile()))

        assert chunks == ["Hello ", "world [1]."]

    def test_overflow_before_first_chunk_retries_with_smaller_prompt(self):
        ai = FakeAIClient(streams=[ModelContextOverflow("context length exceeded"), ["Body [1]."]])
        synth = Synthesizer(ai)

        chunks = list(synth.stream(_details(), self._sources(), ReaderProfile()))

        assert chunks == ["Body [1]."]
        first, second = ai.stream_prompts
        assert len(_item_lines(first)) == 20
        assert len(_item_lines(second)) == 18
        assert len(second) < len(first)
        assert [s.index for s in synth.sources] == [1, 2]

    def test_drops_least_relevant_source_after_trims(self):
        overflow = ModelContextOverflow("prompt is too long")
        ai = FakeAIClient(streams=[overflow, overflow, overflow, overflow, ["Body [1]."]])
        synth = Synthesizer(ai)

        list(synth.stream(_details(), self._sources(), ReaderProfile()))

        assert len(ai.stream_prompts) == 5
        assert [s.index for s in synth.sources] == [1]
        assert "[2] Source 2" not in ai.stream_prompts[-1]

    def test_exhausted_recovery_fails(self):
        ai = FakeAIClient(streams=[ModelContextOverflow("context window")] * 5)

        with pytest.raises(SynthesisFailed):
            list(Synthesizer(ai).stream(_details(), self._sources(), ReaderProfile()))
        assert len(ai.stream_prompts) == 5


class TestSynthesisPipeline:
    def _pipeline(self, ai):
        return SynthesisPipeline(ai, Mock(), config=PipelineConfig(gather_max_tool_calls=3))

    def test_full_run_streams_body_then_references(self):
        ai = FakeAIClient(
            handler=_pipeline_handler,
            streams=[["Revenue rose 12% [1]. ", "The launch was confirmed [2]."]],
        )
        pipeline = self._pipeline(ai)

        chunks = list(pipeline.run(_details(), ReaderProfile()))

        assert chunks[:2] == ["Revenue rose 12% [1]. ", "The launch was confirmed [2]."]
        assert "[1] Story number 1 about something: https://example.com/story-1" in chunks[-1]
        assert pipeline.state is PipelineState.DONE
        assert pipeline.result == "".join(chunks)

    def test_unknown_citation_fails_closed(self):
        ai = FakeAIClient(handler=_pipeline_handler, streams=[["Revenue rose [1]. Invented [7]."]])
        pipeline = self._pipeline(ai)

        with pytest.raises(SynthesisFailed):
            list(pipeline.run(_details(), ReaderProfile()))
        assert pipeline.state is PipelineState.FAILED
        assert pipeline.result is None

    def test_missing_citations_fail(self):
        ai = FakeAIClient(handler=_pipeline_handler, streams=[["No sources cited at all."]])
        pipeline = self._pipeline(ai)

        with pytest.raises(SynthesisFailed):
            list(pipeline.run(_details(), ReaderProfile()))
        assert pipeline.state is PipelineState.FAILED

    def test_closing_early_aborts_the_model_stream(self):
        ai = FakeAIClient(handler=_pipeline_handler, streams=[["one [1]. ", "two [2]. ", "three [1]."]])
        pipeline = self._pipeline(ai)

        run = pipeline.run(_details(), ReaderProfile())
        assert next(run) == "one [1]. "
        run.close()

        assert pipeline.state is PipelineState.FAILED
        assert pipeline.result is None
        assert ai.streams_closed == 1
        assert ai.chunks_sent == 1

    def test_no_surviving_source_fails(self):
        def handler(prompt):
            if "Reply with exactly one of" in prompt:
                return {"action": "stop"}
            return {"items": [{"kind": "fact", "text": "Nothing like the source."}]}

        pipeline = self._pipeline(FakeAIClient(handler=handler))

        with pytest.raises(SynthesisFailed):
            list(pipeline.run(_details(), ReaderProfile()))
        assert pipeline.state is PipelineState.FAILED

    def test_every_source_cited_completes(self):
        ai = FakeAIClient(
            handler=three_source_handler,
            streams=[["Revenue rose 12% [1]. ", "The launch went ahead [2]. ", "The chief executive resigned [3][1]."]],
        )
        pipeline = self._pipeline(ai)

        chunks = list(pipeline.run(_three_source_details(), ReaderProfile()))

        assert pipeline.state is PipelineState.DONE
        for n in (1, 2, 3):
            assert f"\n[{n}] Story number {n} about something" in chunks[-1]

    def test_source_never_cited_fails_closed(self):
        ai = FakeAIClient(handler=three_source_handler, streams=[["Revenue rose 12% [1]. The launch went ahead [2]."]])
        pipeline = self._pipeline(ai)

        with pytest.raises(SynthesisFailed, match=r"never cites sources \[3\]"):
            list(pipeline.run(_three_source_details(), ReaderProfile()))
        assert pipeline.result is None

    def test_uncited_sentence_fails_closed(self):
        ai = FakeAIClient(
            handler=three_source_handler,
            streams=[["Revenue rose 12% [1]. Aliens landed in Paris yesterday. ", "Launch [2] and resignation [3]."]],
        )
        pipeline = self._pipeline(ai)

        with pytest.raises(SynthesisFailed, match="without a citation"):
            list(pipeline.run(_three_source_details(), ReaderProfile()))
        assert pipeline.state is PipelineState.FAILED
