from __future__ import annotations

from typing import Any, Dict, List, Sequence

from ..errors import GroupingFailed, ModelOutputMalformed
from ..models import TOPIC_TYPES, GroupingResult, RawArticle, ReaderProfile, TopicCluster
from ..processors.ai import AIClient, generate_json
from ..processors.ai.parsing import require_list, require_number, require_str, string_items
from ..utils.logging import get_logger

logger = get_logger("opennews.analysis.topic_grouper")

MIN_RELEVANCE = 0.3
_EXCERPT_CHARS = 400

GROUPING_SYSTEM = (
    "You are the editor of a personal daily news briefing. You group articles that cover the "
    "same story, write a headline and a short summary per group, and score every group for "
    "relevance to one specific reader. You answer with a single JSON object and nothing else."
)


def _profile_block(profile: ReaderProfile) -> str:
    lines = [
        f"Background: {profile.background or '-'}",
        f"Interests: {profile.interests or '-'}",
        f"Topics of interest: {', '.join(profile.topics) or '-'}",
        f"Preferred style: {profile.style}",
        f"Output language: {profile.language}",
    ]
    return "\n".join(lines)


def _article_block(index: int, article: RawArticle) -> str:
    excerpt = (article.snippet or article.content or "").replace("\n", " ").strip()[:_EXCERPT_CHARS]
    return f"[{index}] {article.title}\nURL: {article.url}\nExcerpt: {excerpt}"


def build_grouping_prompt(articles: Sequence[RawArticle], profile: ReaderProfile) -> str:
    listing = "\n\n".join(_article_block(i, a) for i, a in enumerate(articles))
    return (
        "READER PROFILE\n"
        f"{_profile_block(profile)}\n\n"
        "TASK\n"
        "Cluster the ARTICLES below into topics.\n"
        "- Articles reporting the same event or story belong to one topic.\n"
        "- topicType: 'hot' for the few lead stories of the day, 'normal' for grouped stories, "
        "'standalone' for a single notable article (guide, analysis, tutorial) that fits no group.\n"
        "- relevanceScore: 0 to 1, how much this reader will care. Leave out topics below "
        f"{MIN_RELEVANCE} and list their article indices under 'discarded'.\n"
        "- tags: 1 to 4 short lowercase tags such as 'ai', 'security', 'finance'.\n"
        f"- headline and summary (2-3 sentences) in language '{profile.language}'.\n"
        "- articleIndices: the [index] numbers of the member articles.\n\n"
        "Return exactly this JSON shape:\n"
        '{"topics": [{"headline": str, "summary": str, "topicType": "hot"|"normal"|"standalone", '
        '"relevanceScore": number, "tags": [str], "articleIndices": [int]}], "discarded": [int]}\n\n'
        f"ARTICLES ({len(articles)})\n\n{listing}\n"
    )


def _int_items(values: List[Any], key: str) -> List[int]:
    out: List[int] = []
    for value in values:
        if isinstance(value, bool) or not isinstance(value, (int, float)) or int(value) != value:
            raise ModelOutputMalformed(f"'{key}' must contain integers, got {value!r}")
        out.append(int(value))
    return out


def _parse_cluster(raw: Any, *, article_count: int) -> TopicCluster | None:
    if not isinstance(raw, dict):
        raise ModelOutputMalformed("Each topic must be an object")
    headline = require_str(raw, "headline")
    summary = require_str(raw, "summary")
    topic_type = require_str(raw, "topicType")
    if topic_type not in TOPIC_TYPES:
        raise ModelOutputMalformed(f"Invalid topicType '{topic_type}'")
    relevance = max(0.0, min(1.0, require_number(raw, "relevanceScore")))
    tags = list(dict.fromkeys(t.lower() for t in string_items(require_list(raw, "tags", default=[]))))
    indices = _int_items(require_list(raw, "articleIndices"), "articleIndices")

    valid = [i for i in dict.fromkeys(indices) if 0 <= i < article_count]
    if len(valid) != len(indices):
        logger.warning(
            "Dropped %d invalid article indices from topic '%s'", len(indices) - len(valid), headline
        )
    if not valid:
        logger.warning("Topic '%s' has no valid member articles; dropping", headline)
        return None
    return TopicCluster(
        headline=headline,
        summary=summary,
        topic_type=topic_type,  # type: ignore[arg-type]
        relevance_score=relevance,
        tags=tags,
        article_indices=valid,
    )


def parse_grouping_response(obj: Dict[str, Any], *, article_count: int) -> GroupingResult:
    """Validate the grouping JSON and apply the defensive filters.

    Shape violations raise ``ModelOutputMalformed`` (so the call is retried).
    Out-of-range indices, empty clusters and low-relevance clusters are
    dropped rather than trusted.
    """
    topics = require_list(obj, "topics")
    clusters: List[TopicCluster] = []
    for raw in topics:
        cluster = _parse_cluster(raw, article_count=article_count)
        if cluster is None:
            continue
        if cluster.relevance_score < MIN_RELEVANCE:
            logger.debug("Filtering low-relevance topic '%s' (%.2f)", cluster.headline, cluster.relevance_score)
            continue
        clusters.append(cluster)

    discarded_raw = obj.get("discarded") or []
    discarded = [i for i in discarded_raw if isinstance(i, int) and not isinstance(i, bool) and 0 <= i < article_count]
    return GroupingResult(clusters=clusters, discarded=discarded)


class TopicGrouper:
    """Clusters one day's articles into scored, tagged topics with a single model call."""

    def __init__(self, ai: AIClient, *, timeout: float = 180, retries: int = 2) -> None:
        self.ai = ai
        self.timeout = timeout
        self.retries = retries

    def group(self, articles: Sequence[RawArticle], profile: ReaderProfile) -> GroupingResult:
        if not articles:
            return GroupingResult(clusters=[])
        prompt = build_grouping_prompt(articles, profile)
        try:
            result = generate_json(
                self.ai,
                prompt,
                lambda obj: parse_grouping_response(obj, article_count=len(articles)),
                system=GROUPING_SYSTEM,
                timeout=self.timeout,
                retries=self.retries,
            )
        except ModelOutputMalformed as exc:
            raise GroupingFailed(f"Grouping output stayed malformed after retries: {exc}") from exc
        except Exception as exc:  # noqa: BLE001 - any provider error aborts the day's grouping
            raise GroupingFailed(f"Grouping call failed: {exc}") from exc
        logger.info(
            "Grouped %d articles into %d topics (%d discarded)",
            len(articles),
            len(result.clusters),
            len(result.discarded),
        )
        return result
