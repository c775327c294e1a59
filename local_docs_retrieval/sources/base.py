from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..index.schema import SourceKind, Topic
from ..ingest.html_parser import DEFAULT_KNOWN_SECTIONS, parse_html_with_body
from ..ingest.normalize import DEFAULT_MAX_CHUNK_TOKENS, chunk_body_text

logger = logging.getLogger(__name__)


@dataclass
class FetchedPage:
    html: str
    url: str        # the URL actually used, for relative link resolution
    topic_id: str
    version: str
    source: SourceKind
    base_path: Optional[str] = None


class DocSource(ABC):
    kind: SourceKind = "online"

    def __init__(
        self,
        max_chunk_tokens: int = DEFAULT_MAX_CHUNK_TOKENS,
        known_sections: Sequence[str] = DEFAULT_KNOWN_SECTIONS,
    ) -> None:
        self.max_chunk_tokens = max_chunk_tokens
        self.known_sections = tuple(known_sections)

    @abstractmethod
    def fetch_page(self, url_or_id: str, version: Optional[str] = None) -> FetchedPage:
        """Return raw HTML for a topic; raise a DocsError when unavailable."""
        ...

    @abstractmethod
    def list_topics(self, section: str, version: Optional[str] = None, limit: int = 50) -> List[Topic]:
        ...

    @abstractmethod
    def available_versions(self) -> List[str]:
        ...

    @abstractmethod
    def available_sections(self, version: Optional[str] = None) -> List[str]:
        ...

    def topic_from_page(self, page: FetchedPage) -> Topic:
        topic, body_text = parse_html_with_body(
            page.html,
            url=page.url,
            version=page.version,
            source=page.source,
            base_path=page.base_path,
            known_sections=self.known_sections,
        )
        # the id callers asked for wins over the one derived from the URL
        topic.id = page.topic_id
        topic.body_chunks = chunk_body_text(topic.id, body_text, self.max_chunk_tokens)
        return topic

    def fetch_topic(self, url_or_id: str, version: Optional[str] = None) -> Topic:
        page = self.fetch_page(url_or_id, version)
        topic = self.topic_from_page(page)
        logger.debug(
            "Fetched topic",
            extra={
                "topic_id": topic.id,
                "version": topic.version,
                "source": page.source,
                "chunk_count": len(topic.body_chunks),
            },
        )
        return topic
