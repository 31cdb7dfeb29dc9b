from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar, List, Optional

from ..models import DiscoveredArticle, ReaderProfile, SourceConfig, SourceType


@dataclass(slots=True)
class FetchOptions:
    timeout: float = 20
    retries: int = 2
    max_items: int = 50
    profile: ReaderProfile = field(default_factory=ReaderProfile)


@dataclass(slots=True)
class FetchResult:
    articles: List[DiscoveredArticle] = field(default_factory=list)
    etag: Optional[str] = None
    last_modified: Optional[str] = None
    not_modified: bool = False


class SourceAdapter(ABC):
    """Discovers candidate articles for sources of one type."""

    type: ClassVar[SourceType]

    @abstractmethod
    def fetch(self, source: SourceConfig, options: FetchOptions) -> FetchResult:
        """Return discovered articles in the source's own ranking order.

        Raises ``AdapterFetchError`` when the source cannot be read.
        """
