from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Literal, Optional

ItemKind = Literal["fact", "quote", "metric"]


@dataclass(slots=True)
class GatheredSource:
    """Full text collected for one source during the gather step."""

    title: str
    url: str
    content: str
    origin: str = "topic"


@dataclass(frozen=True, slots=True)
class CompressedItem:
    kind: ItemKind
    text: str


@dataclass(slots=True)
class CompressedSource:
    """Verbatim extraction for one gathered source, addressed by ``[index]``."""

    index: int
    title: str
    url: str
    items: List[CompressedItem] = field(default_factory=list)
    relevance: float = 0.5

    @property
    def item_count(self) -> int:
        return len(self.items)


@dataclass(slots=True)
class CitationReport:
    cited: List[int]
    unknown: List[int]
    uncited_sources: List[int]
    unmarked_sentences: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return bool(self.cited) and not (self.unknown or self.uncited_sources or self.unmarked_sentences)


@dataclass(slots=True)
class SearchHit:
    title: str
    url: str
    snippet: Optional[str] = None
