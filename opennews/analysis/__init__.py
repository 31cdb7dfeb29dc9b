"""Topic grouping: clustering a day's articles into scored, tagged topics."""

from .topic_grouper import (
    MIN_RELEVANCE,
    TopicGrouper,
    build_grouping_prompt,
    parse_grouping_response,
)

__all__ = [
    "MIN_RELEVANCE",
    "TopicGrouper",
    "build_grouping_prompt",
    "parse_grouping_response",
]
