from __future__ import annotations

import threading
import weakref
from typing import Callable, Iterator, Optional

from .errors import GenerationInProgress, TopicNotFound
from .models import ArticleResponse, DigestStatus, FeedPage
from .storage import NewsRepository
from .synthesis import PipelineState, SynthesisPipeline
from .utils.logging import get_logger

logger = get_logger("opennews.service")

PipelineFactory = Callable[[], SynthesisPipeline]


class ArticleService:
    """Serves generated articles from the cache and drives generation on a miss.

    One generation per topic runs at a time; a second request waits for the
    topic lock (up to ``lock_timeout`` seconds) and is then served from the
    cache the first one filled.
    """

    def __init__(
        self,
        repo: NewsRepository,
        pipeline_factory: PipelineFactory,
        *,
        lock_timeout: float = 600,
    ) -> None:
        self.repo = repo
        self.pipeline_factory = pipeline_factory
        self.lock_timeout = lock_timeout
        self._locks: weakref.WeakValueDictionary[int, threading.Lock] = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _topic_lock(self, topic_id: int) -> threading.Lock:
        """The lock lives only as long as a request holds or waits on it."""
        with self._locks_guard:
            lock = self._locks.get(topic_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[topic_id] = lock
            return lock

    def _cached(self, topic_id: int) -> Optional[str]:
        cached = self.repo.get_generated_article(topic_id)
        return cached.content if cached else None

    def generate_article(self, topic_id: int) -> Iterator[str]:
        """Yield the article text for ``topic_id``, generating it on a cache miss.

        Only a complete, citation-checked article is cached. Closing the
        iterator before that aborts the model stream and stores nothing.
        """
        content = self._cached(topic_id)
        if content is not None:
            logger.debug("Cache hit for topic %s", topic_id)
            yield content
            return

        details = self.repo.get_topic(topic_id)
        if details is None:
            raise TopicNotFound(topic_id)

        lock = self._topic_lock(topic_id)
        if not lock.acquire(timeout=self.lock_timeout):
            raise GenerationInProgress(topic_id)
        try:
            content = self._cached(topic_id)
            if content is not None:
                logger.debug("Topic %s was generated while waiting for the lock", topic_id)
                yield content
                return

            pipeline = self.pipeline_factory()
            logger.info("Generating article for topic %s: %s", topic_id, details.topic.headline)
            try:
                yield from pipeline.run(details, self.repo.get_profile())
            finally:
                if pipeline.state is PipelineState.DONE and pipeline.result is not None:
                    self.repo.save_generated_article(topic_id, pipeline.result)
                    logger.info("Cached article for topic %s (%d chars)", topic_id, len(pipeline.result))
        finally:
            lock.release()

    def invalidate_article(self, topic_id: int) -> None:
        if self.repo.delete_generated_article(topic_id):
            logger.info("Invalidated cached article for topic %s", topic_id)

    def get_article(self, topic_id: int) -> ArticleResponse:
        content = self._cached(topic_id)
        return ArticleResponse(cached=content is not None, content=content)

    def list_feed(self, *, cursor: Optional[str] = None, limit: int = 3, tag: Optional[str] = None) -> FeedPage:
        return self.repo.list_feed(cursor=cursor, limit=limit, tag=tag)

    def status(self) -> DigestStatus:
        return self.repo.get_status()
