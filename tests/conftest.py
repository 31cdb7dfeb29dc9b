"""Shared fixtures: a scripted model client, a throwaway database, sample records."""

from __future__ import annotations

import json
import threading
from typing import Callable, Iterator, List, Optional, Union

import pytest

from opennews.models import DailyTopic, RawArticle, SourceConfig
from opennews.processors.ai import AIClient
from opennews.storage import Database, NewsRepository

Scripted = Union[str, dict, BaseException]


class FakeAIClient(AIClient):
    """Returns scripted responses in order, or routes prompts through a handler.

    ``complete`` entries may be strings, dicts (sent as JSON) or exceptions.
    ``stream`` entries are lists of chunks or an exception raised before the
    first chunk.
    """

    def __init__(
        self,
        responses: Optional[List[Scripted]] = None,
        streams: Optional[List[Union[List[str], BaseException]]] = None,
        handler: Optional[Callable[[str], Scripted]] = None,
    ) -> None:
        self.responses = list(responses or [])
        self.streams = list(streams or [])
        self.handler = handler
        self.complete_prompts: List[str] = []
        self.stream_prompts: List[str] = []
        self.streams_closed = 0
        self.chunks_sent = 0
        self._lock = threading.Lock()

    @staticmethod
    def _resolve(item: Scripted) -> str:
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, dict):
            return json.dumps(item)
        return item

    def complete(self, prompt, *, system=None, json_mode=False, temperature=0.2, timeout=60) -> str:
        with self._lock:
            self.complete_prompts.append(prompt)
            if self.handler is not None:
                item = self.handler(prompt)
            elif self.responses:
                item = self.responses.pop(0)
            else:
                raise AssertionError("FakeAIClient.complete called more often than scripted")
        return self._resolve(item)

    def stream(self, prompt, *, system=None, temperature=0.4, timeout=300) -> Iterator[str]:
        self.stream_prompts.append(prompt)
        if not self.streams:
            raise AssertionError("FakeAIClient.stream called more often than scripted")
        script = self.streams.pop(0)
        return self._stream(script)

    def _stream(self, script) -> Iterator[str]:
        try:
            if isinstance(script, BaseException):
                raise script
            for chunk in script:
                self.chunks_sent += 1
                yield chunk
        finally:
            self.streams_closed += 1

    @property
    def call_count(self) -> int:
        return len(self.complete_prompts) + len(self.stream_prompts)


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    """Retries back off with time.sleep; tests never wait."""
    monkeypatch.setattr("opennews.processors.ai.retry.time.sleep", lambda _s: None)
    monkeypatch.setattr("opennews.fetchers.http.time.sleep", lambda _s: None)
    monkeypatch.delenv("AI_RETRIES", raising=False)
    monkeypatch.delenv("AI_BACKOFF", raising=False)


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "open-news.db")
    yield database
    database.close()


@pytest.fixture
def repo(db):
    return NewsRepository(db)


def make_raw_article(n: int, *, date: str = "2026-10-15", source_id: Optional[int] = None, **overrides) -> RawArticle:
    fields = dict(
        title=f"Story number {n} about something",
        url=f"https://example.com/story-{n}",
        url_normalized=f"example.com/story-{n}",
        content=f"Full text of story {n}. " * 20,
        scraped_date=date,
        source_id=source_id,
        snippet=f"Snippet {n}",
    )
    fields.update(overrides)
    return RawArticle(**fields)


def make_topic(date: str = "2026-10-15", **overrides) -> DailyTopic:
    fields = dict(
        date=date,
        topic_type="normal",
        headline="Something happened",
        summary="A short summary.",
        relevance_score=0.8,
        source_count=0,
    )
    fields.update(overrides)
    return DailyTopic(**fields)


@pytest.fixture
def rss_source(repo) -> SourceConfig:
    source = SourceConfig(name="Example Feed", url="https://example.com/feed.xml", type="rss")
    source.id = repo.upsert_source(source)
    return source


DOC_ONE = "The company said revenue rose 12% in the third quarter. Analysts had expected less."
DOC_TWO = "Officials confirmed the launch on Monday. The rocket carried two satellites."
DOC_THREE = "The chief executive resigned on Friday. The board named an interim leader."

THREE_SOURCE_FACTS = {
    "Story number 1": "revenue rose 12% in the third quarter",
    "Story number 2": "Officials confirmed the launch on Monday.",
    "Story number 3": "The chief executive resigned on Friday.",
}


def three_source_handler(prompt: str) -> Scripted:
    """Gather stops at once; each story compresses to one verbatim fact."""
    if "Reply with exactly one of" in prompt:
        return {"action": "stop"}
    for title, fact in THREE_SOURCE_FACTS.items():
        if f"DOCUMENT: {title}" in prompt:
            return {"items": [{"kind": "fact", "text": fact}], "relevance": 0.7}
    raise AssertionError("unexpected prompt")
