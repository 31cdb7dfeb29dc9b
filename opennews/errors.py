from __future__ import annotations


class OpenNewsError(Exception):
    """Base class for all pipeline errors."""


class ConfigError(OpenNewsError):
    """Raised when a configuration file is invalid or missing required fields."""


class TransientNetworkError(OpenNewsError):
    """A network call failed in a way that is worth retrying (timeouts, 5xx, 429)."""


class AdapterFetchError(OpenNewsError):
    """A source adapter could not produce results for one source."""

    def __init__(self, source_name: str, message: str) -> None:
        super().__init__(f"{source_name}: {message}")
        self.source_name = source_name


class ExtractionFailure(OpenNewsError):
    """An extractor could not produce valid content for a URL."""


class ModelOutputMalformed(OpenNewsError):
    """The model returned output that does not conform to the expected shape."""


class ModelContextOverflow(OpenNewsError):
    """The provider rejected a request because the prompt exceeds its context window."""


class GroupingFailed(OpenNewsError):
    """The topic grouping call could not produce a valid result."""


class SynthesisFailed(OpenNewsError):
    """Article generation failed; nothing was cached."""


class TopicNotFound(OpenNewsError):
    def __init__(self, topic_id: int) -> None:
        super().__init__(f"Topic {topic_id} does not exist")
        self.topic_id = topic_id


class GenerationInProgress(OpenNewsError):
    def __init__(self, topic_id: int) -> None:
        super().__init__(f"Another generation for topic {topic_id} is still running")
        self.topic_id = topic_id
