from __future__ import annotations

from typing import List, Sequence

from ..models import CompressedSource, GatheredSource, ReaderProfile, TopicWithDetails

GATHER_SYSTEM = (
    "You are a research assistant preparing material for a news article. You decide, one "
    "step at a time, whether more material is needed and which tool to use. You answer with "
    "a single JSON object and nothing else."
)

COMPRESS_SYSTEM = (
    "You extract evidence from one source document. Every item you return must be copied "
    "word for word from the document. You answer with a single JSON object and nothing else."
)

SYNTHESIS_SYSTEM = (
    "You are a careful news writer. You write only what the numbered sources support and you "
    "cite every factual sentence with the source numbers in square brackets, like [1] or [2][3]."
)

_GATHER_EXCERPT_CHARS = 300
_COMPRESS_SOURCE_CHARS = 12000


def _topic_header(details: TopicWithDetails) -> str:
    topic = details.topic
    tags = ", ".join(details.tags) or "-"
    return f"Headline: {topic.headline}\nSummary: {topic.summary}\nTags: {tags}"


def build_gather_prompt(
    details: TopicWithDetails,
    gathered: Sequence[GatheredSource],
    observations: Sequence[str],
    *,
    remaining_calls: int,
    search_enabled: bool,
) -> str:
    have = "\n".join(
        f"- {g.title} ({g.url}): {g.content[:_GATHER_EXCERPT_CHARS].replace(chr(10), ' ')}" for g in gathered
    ) or "- (nothing yet)"
    notes = "\n".join(f"- {o}" for o in observations) or "- (none)"
    tools: List[str] = []
    if search_enabled:
        tools.append('{"action": "search", "query": str}  - web search, returns titles and URLs')
    tools.append('{"action": "fetch", "url": str}  - download the full text of one URL')
    tools.append('{"action": "stop"}  - the material is sufficient')
    return (
        f"TOPIC\n{_topic_header(details)}\n\n"
        f"MATERIAL GATHERED SO FAR\n{have}\n\n"
        f"PREVIOUS TOOL RESULTS\n{notes}\n\n"
        f"You have {remaining_calls} tool call(s) left. Prefer stopping when the material already "
        "covers the story from more than one angle.\n\n"
        "Reply with exactly one of:\n" + "\n".join(tools) + "\n"
    )


def build_compress_prompt(source: GatheredSource, topic_headline: str) -> str:
    text = source.content[:_COMPRESS_SOURCE_CHARS]
    return (
        f"TOPIC: {topic_headline}\n\n"
        f"DOCUMENT: {source.title}\n{text}\n\n"
        "Extract the facts, direct quotes and figures from the DOCUMENT that matter for the TOPIC.\n"
        "- Copy each item verbatim as a contiguous span of the DOCUMENT. Do not paraphrase.\n"
        "- kind is 'fact', 'quote' or 'metric'.\n"
        "- relevance: 0 to 1, how central this document is to the TOPIC.\n"
        "Return exactly this JSON shape:\n"
        '{"items": [{"kind": "fact"|"quote"|"metric", "text": str}], "relevance": number}\n'
    )


def _source_block(source: CompressedSource) -> str:
    lines = [f"[{source.index}] {source.title} ({source.url})"]
    lines.extend(f"  - ({item.kind}) {item.text}" for item in source.items)
    return "\n".join(lines)


def build_synthesis_prompt(
    details: TopicWithDetails,
    sources: Sequence[CompressedSource],
    profile: ReaderProfile,
) -> str:
    blocks = "\n\n".join(_source_block(s) for s in sources if s.items)
    length = "400 to 600 words" if profile.style == "concise" else "800 to 1200 words"
    return (
        f"TOPIC\n{_topic_header(details)}\n\n"
        f"READER\nBackground: {profile.background or '-'}\nInterests: {profile.interests or '-'}\n\n"
        f"SOURCES\n{blocks}\n\n"
        f"Write a {profile.style} news article of {length} in language '{profile.language}' in Markdown.\n"
        "Rules:\n"
        "- Use only the SOURCES. Do not add outside knowledge.\n"
        "- End every factual sentence with the numbers of the sources that support it, e.g. [1] or [1][3].\n"
        "- Only cite numbers listed under SOURCES.\n"
        "- Cite every source at least once.\n"
        "- Do not write a references or sources section; it is added automatically.\n"
    )
