from __future__ import annotations

import logging
from typing import List, Optional

from ..errors import DocsError
from ..index.schema import Topic
from .base import DocSource, FetchedPage
from .local import LocalSource
from .online import OnlineSource

logger = logging.getLogger(__name__)


class HybridSource(DocSource):
    """Local files first; the online site when the local copy has nothing."""

    kind = "hybrid"

    def __init__(self, local: Optional[LocalSource], online: OnlineSource) -> None:
        super().__init__(max_chunk_tokens=online.max_chunk_tokens, known_sections=online.known_sections)
        self.local = local
        self.online = online

    def fetch_page(self, url_or_id: str, version: Optional[str] = None) -> FetchedPage:
        if self.local is not None:
            try:
                return self.local.fetch_page(url_or_id, version)
            except DocsError as e:
                logger.debug(
                    "Local source failed, falling back to online",
                    extra={"topic_id": url_or_id, "error": str(e)},
                )
        return self.online.fetch_page(url_or_id, version)

    def topic_from_page(self, page: FetchedPage) -> Topic:
        src = self.local if page.source == "local" and self.local is not None else self.online
        return src.topic_from_page(page)

    def list_topics(self, section: str, version: Optional[str] = None, limit: int = 50) -> List[Topic]:
        if self.local is not None:
            try:
                topics = self.local.list_topics(section, version, limit)
                if topics:
                    return topics
            except DocsError as e:
                logger.debug(
                    "Local source failed, falling back to online",
                    extra={"section": section, "error": str(e)},
                )
        return self.online.list_topics(section, version, limit)

    def available_versions(self) -> List[str]:
        versions = set(self.online.available_versions())
        if self.local is not None:
            versions.update(self.local.available_versions())
        return sorted(versions)

    def available_sections(self, version: Optional[str] = None) -> List[str]:
        if self.local is not None:
            sections = self.local.available_sections(version)
            if sections:
                return sections
        return self.online.available_sections(version)
