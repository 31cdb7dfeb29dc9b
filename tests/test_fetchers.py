"""Tests for HTTP retries, source adapters and concurrent discovery."""

import threading
from unittest.mock import Mock, patch

import pytest
import requests

from opennews.errors import AdapterFetchError, TransientNetworkError
from opennews.fetchers import FetchOptions, FetchResult, SourceAdapter, build_adapters, discover
from opennews.fetchers.hackernews import HackerNewsAdapter
from opennews.fetchers.http import get_with_retries
from opennews.fetchers.rss import RSSAdapter, parse_feed_entries
from opennews.fetchers.tavily import TavilyAdapter, TavilyClient
from opennews.models import DiscoveredArticle, ReaderProfile, SearchHit, SourceConfig
from opennews.utils.pipeline_config import PipelineConfig

FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"><channel><title>Example</title>
<item><title>First story</title><link>https://example.com/1</link>
<description>&lt;p&gt;Hello &lt;b&gt;world&lt;/b&gt;&lt;/p&gt;</description>
<pubDate>Wed, 14 Oct 2026 08:00:00 GMT</pubDate></item>
<item><title>Second story</title><link>https://example.com/2</link></item>
<item><title></title><link>https://example.com/untitled</link></item>
</channel></rss>"""


def _response(status=200, content=b"", headers=None, json_data=None):
    resp = Mock()
    resp.status_code = status
    resp.content = content
    resp.headers = headers or {}
    resp.json.return_value = json_data
    resp.raise_for_status.return_value = None
    return resp


class TestGetWithRetries:
    @patch("opennews.fetchers.http.requests.request")
    def test_retries_timeouts_then_succeeds(self, mock_request):
        mock_request.side_effect = [requests.Timeout("slow"), _response(200)]

        resp = get_with_retries("https://example.com/feed", retries=2)

        assert resp.status_code == 200
        assert mock_request.call_count == 2

    @patch("opennews.fetchers.http.requests.request")
    def test_gives_up_after_retries(self, mock_request):
        mock_request.return_value = _response(503)

        with pytest.raises(TransientNetworkError):
            get_with_retries("https://example.com/feed", retries=2)
        assert mock_request.call_count == 3

    @patch("opennews.fetchers.http.requests.request")
    def test_client_errors_are_returned_not_retried(self, mock_request):
        mock_request.return_value = _response(404)

        assert get_with_retries("https://example.com/feed").status_code == 404
        assert mock_request.call_count == 1

    @patch("opennews.fetchers.http.requests.request")
    def test_every_request_carries_a_timeout(self, mock_request):
        mock_request.return_value = _response(200)

        get_with_retries("https://example.com/feed", timeout=7)

        assert mock_request.call_args.kwargs["timeout"] == 7

    def test_rejects_non_http_urls(self):
        with pytest.raises(ValueError):
            get_with_retries("ftp://example.com/feed")

    @patch("opennews.fetchers.http.requests.request")
    def test_negative_retry_budget_raises_network_error(self, mock_request):
        with pytest.raises(TransientNetworkError, match="no attempt made"):
            get_with_retries("https://example.com/feed", retries=-1)
        mock_request.assert_not_called()


class TestRSSAdapter:
    def test_parse_feed_entries(self):
        items = parse_feed_entries(FEED, max_items=10)

        assert [i.title for i in items] == ["First story", "Second story"]
        assert items[0].snippet == "Hello world"
        assert items[0].published_at == "2026-10-14T08:00:00+00:00"
        assert items[1].published_at is None

    def test_parse_feed_entries_respects_max_items(self):
        assert len(parse_feed_entries(FEED, max_items=1)) == 1

    @patch("opennews.fetchers.rss.get_with_retries")
    def test_returns_articles_and_validators(self, mock_get):
        mock_get.return_value = _response(200, FEED, {"ETag": '"v2"', "Last-Modified": "Wed, 14 Oct 2026 09:00:00 GMT"})
        source = SourceConfig(name="Example", url="https://example.com/feed", type="rss")

        result = RSSAdapter().fetch(source, FetchOptions())

        assert len(result.articles) == 2
        assert result.etag == '"v2"'
        assert not result.not_modified

    @patch("opennews.fetchers.rss.get_with_retries")
    def test_not_modified_sends_validators_and_returns_nothing(self, mock_get):
        mock_get.return_value = _response(304)
        source = SourceConfig(
            name="Example",
            url="https://example.com/feed",
            type="rss",
            etag='"v1"',
            last_modified="Tue, 13 Oct 2026 09:00:00 GMT",
        )

        result = RSSAdapter().fetch(source, FetchOptions())

        assert result.not_modified
        assert result.articles == []
        assert result.etag == '"v1"'
        headers = mock_get.call_args.kwargs["headers"]
        assert headers["If-None-Match"] == '"v1"'
        assert headers["If-Modified-Since"] == "Tue, 13 Oct 2026 09:00:00 GMT"

    @patch("opennews.fetchers.rss.get_with_retries")
    def test_network_failure_becomes_adapter_error(self, mock_get):
        mock_get.side_effect = TransientNetworkError("GET failed")
        source = SourceConfig(name="Example", url="https://example.com/feed", type="rss")

        with pytest.raises(AdapterFetchError):
            RSSAdapter().fetch(source, FetchOptions())


class TestHackerNewsAdapter:
    @patch("opennews.fetchers.hackernews.get_with_retries")
    def test_filters_low_points_and_links_self_posts(self, mock_get):
        mock_get.return_value = _response(
            json_data={
                "hits": [
                    {"title": "Popular link", "url": "https://example.com/x", "points": 300, "objectID": "1"},
                    {"title": "Ask HN: something", "url": None, "points": 50, "objectID": "2"},
                    {"title": "Barely noticed", "url": "https://example.com/y", "points": 3, "objectID": "3"},
                ]
            }
        )
        source = SourceConfig(name="HN", url="https://hn.algolia.com/api/v1/search?tags=front_page", type="hackernews")

        result = HackerNewsAdapter().fetch(source, FetchOptions())

        assert [a.title for a in result.articles] == ["Popular link", "Ask HN: something"]
        assert result.articles[0].score == 300
        assert result.articles[1].url == "https://news.ycombinator.com/item?id=2"


class TestTavilyAdapter:
    def test_queries_profile_searches_and_skips_repeated_urls(self):
        client = Mock()
        client.search.side_effect = [
            [SearchHit(title="Chip export rules", url="https://example.com/chips", snippet="New rules")],
            [
                SearchHit(title="Chip export rules", url="https://example.com/chips"),
                SearchHit(title="Fab subsidies", url="https://example.com/fabs"),
            ],
        ]
        profile = ReaderProfile(search_queries=["chip exports", "fab subsidies"])
        source = SourceConfig(name="Web search", url="tavily://news", type="tavily")

        result = TavilyAdapter(client).fetch(source, FetchOptions(max_items=10, profile=profile))

        assert [a.url for a in result.articles] == ["https://example.com/chips", "https://example.com/fabs"]
        assert all(a.source_type == "tavily" for a in result.articles)
        client.search.assert_any_call("chip exports", max_results=5)

    def test_no_queries_means_no_calls(self):
        client = Mock()
        source = SourceConfig(name="Web search", url="tavily://news", type="tavily")

        result = TavilyAdapter(client).fetch(source, FetchOptions())

        assert result.articles == []
        client.search.assert_not_called()

    def test_search_failure_is_an_adapter_error(self):
        client = Mock()
        client.search.side_effect = TransientNetworkError("timed out")
        profile = ReaderProfile(search_queries=["anything"])
        source = SourceConfig(name="Web search", url="tavily://news", type="tavily")

        with pytest.raises(AdapterFetchError):
            TavilyAdapter(client).fetch(source, FetchOptions(profile=profile))

    @patch("opennews.fetchers.tavily.post_with_retries")
    def test_client_drops_results_without_url_or_title(self, mock_post):
        mock_post.return_value = _response(
            json_data={
                "results": [
                    {"title": "Kept", "url": "https://example.com/k", "content": "body"},
                    {"title": "", "url": "https://example.com/untitled"},
                    {"title": "No link", "url": None},
                ]
            }
        )

        hits = TavilyClient("key").search("query", max_results=3, days=None)

        assert [h.url for h in hits] == ["https://example.com/k"]
        assert "days" not in mock_post.call_args.kwargs["json"]


class _StaticAdapter(SourceAdapter):
    type = "rss"

    def __init__(self, behaviour):
        self.behaviour = behaviour

    def fetch(self, source, options):
        return self.behaviour(source)


class TestDiscover:
    def test_failed_and_slow_sources_contribute_nothing(self):
        release = threading.Event()

        def behaviour(source):
            if source.name == "broken":
                raise AdapterFetchError(source.name, "HTTP 500")
            if source.name == "slow":
                release.wait(5)
                return FetchResult(articles=[DiscoveredArticle(title="late", url="https://late.example", source_type="rss")])
            return FetchResult(articles=[DiscoveredArticle(title="ok", url="https://ok.example", source_type="rss")])

        sources = [
            SourceConfig(name=name, url=f"https://{name}.example/feed", type="rss")
            for name in ("good", "broken", "slow")
        ]
        try:
            report = discover(sources, {"rss": _StaticAdapter(behaviour)}, FetchOptions(), timeout=0.5)
        finally:
            release.set()

        assert [(s.name, [a.title for a in arts]) for s, arts in report.articles] == [("good", ["ok"])]
        errors = {o.source.name: o.error for o in report.failed}
        assert set(errors) == {"broken", "slow"}
        assert errors["slow"] == "timeout"

    def test_disabled_and_unregistered_sources_are_skipped(self):
        adapter = _StaticAdapter(lambda s: FetchResult())
        sources = [
            SourceConfig(name="off", url="https://off.example/feed", type="rss", enabled=False),
            SourceConfig(name="search", url="https://api.tavily.com/search", type="tavily"),
        ]

        report = discover(sources, {"rss": adapter}, FetchOptions())

        assert [o.source.name for o in report.failed] == ["search"]
        assert report.articles == []


class TestBuildAdapters:
    def test_tavily_only_with_key(self):
        assert set(build_adapters(PipelineConfig(tavily_api_key=None))) == {"rss", "hackernews"}
        assert set(build_adapters(PipelineConfig(tavily_api_key="tvly-test"))) == {"rss", "hackernews", "tavily"}
