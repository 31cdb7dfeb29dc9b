"""Tests for the extraction chain and its extractors."""

import json
from unittest.mock import Mock, patch

import pytest

from opennews.errors import ExtractionFailure
from opennews.extractors import ExtractionChain, build_extraction_chain, validate_content
from opennews.extractors.trafilatura_extractor import TrafilaturaExtractor
from opennews.models import ExtractedContent
from opennews.utils.pipeline_config import PipelineConfig

LONG_TEXT = "This is a sentence of real article text. " * 10


def _extractor(name, result=None, error=None):
    extractor = Mock()
    extractor.name = name
    if error is not None:
        extractor.extract.side_effect = error
    else:
        extractor.extract.return_value = result
    return extractor


def _content(text=LONG_TEXT, title="A headline"):
    return ExtractedContent(title=title, content=text)


class TestValidateContent:
    def test_passes_long_content_with_title(self):
        assert validate_content(_content(), min_length=200) is None

    def test_rejects_short_content(self):
        assert "too short" in validate_content(_content(text="tiny"), min_length=200)

    def test_rejects_empty_title(self):
        assert validate_content(_content(title="  "), min_length=200) == "empty title"

    def test_rejects_missing_content(self):
        assert validate_content(None, min_length=200) == "no content"


class TestExtractionChain:
    def test_first_valid_result_wins(self):
        first = _extractor("trafilatura", _content())
        second = _extractor("readability", _content(title="Other"))

        result = ExtractionChain([first, second]).extract("https://example.com/a")

        assert result.title == "A headline"
        second.extract.assert_not_called()

    def test_falls_back_when_first_result_is_too_short(self):
        first = _extractor("trafilatura", _content(text="short"))
        second = _extractor("readability", _content(title="From readability"))

        result = ExtractionChain([first, second]).extract("https://example.com/a")

        assert result.title == "From readability"

    def test_falls_back_when_extractor_raises(self):
        first = _extractor("trafilatura", error=ExtractionFailure("download failed"))
        second = _extractor("readability", error=RuntimeError("parser crashed"))
        third = _extractor("tavily", _content(title="From tavily"))

        result = ExtractionChain([first, second, third]).extract("https://example.com/a")

        assert result.title == "From tavily"

    def test_returns_none_when_all_fail(self):
        chain = ExtractionChain(
            [_extractor("trafilatura", None), _extractor("readability", _content(title=""))]
        )
        assert chain.extract("https://example.com/a") is None

    def test_min_length_is_configurable(self):
        chain = ExtractionChain([_extractor("trafilatura", _content(text="x" * 50))], min_length=40)
        assert chain.extract("https://example.com/a") is not None


class TestBuildExtractionChain:
    def test_order_without_tavily_key(self):
        chain = build_extraction_chain(PipelineConfig(tavily_api_key=None))
        assert [e.name for e in chain.extractors] == ["trafilatura", "readability"]

    def test_tavily_appended_last_with_key(self):
        chain = build_extraction_chain(PipelineConfig(tavily_api_key="tvly-test"))
        assert [e.name for e in chain.extractors] == ["trafilatura", "readability", "tavily"]


class TestTrafilaturaExtractor:
    @patch("opennews.extractors.trafilatura_extractor.trafilatura.extract")
    @patch("opennews.extractors.trafilatura_extractor.fetch_html")
    def test_maps_json_output(self, mock_fetch, mock_extract):
        mock_fetch.return_value = "<html></html>"
        mock_extract.return_value = json.dumps(
            {
                "title": "Headline",
                "text": "  Para one.  \n\n Para two. ",
                "author": "Jane Doe",
                "date": "2026-10-15",
                "sitename": "Example",
            }
        )

        result = TrafilaturaExtractor().extract("https://example.com/a")

        assert result.title == "Headline"
        assert result.content == "Para one.\nPara two."
        assert result.published_at == "2026-10-15T00:00:00+00:00"
        assert result.extractor == "trafilatura"

    @patch("opennews.extractors.trafilatura_extractor.trafilatura.extract")
    @patch("opennews.extractors.trafilatura_extractor.fetch_html")
    def test_returns_none_when_nothing_extracted(self, mock_fetch, mock_extract):
        mock_fetch.return_value = "<html></html>"
        mock_extract.return_value = None

        assert TrafilaturaExtractor().extract("https://example.com/a") is None

    @patch("opennews.extractors.trafilatura_extractor.fetch_html")
    def test_download_failure_propagates(self, mock_fetch):
        mock_fetch.side_effect = ExtractionFailure("download failed")

        with pytest.raises(ExtractionFailure):
            TrafilaturaExtractor().extract("https://example.com/a")
