from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from .cache import TopicCache
from .config import Settings, load_config
from .errors import (
    CacheError,
    DocsError,
    InvalidInputError,
    ParseError,
    SectionNotFoundError,
    SourceError,
)
from .index.lexical import SearchIndex
from .index.schema import (
    DocsDescription,
    RelatedLink,
    RelatedTopics,
    SearchResult,
    Topic,
    TopicLink,
    TopicSummary,
)
from .ingest.html_parser import normalize_url_to_topic_id
from .ingest.normalize import limit_chunks
from .sources.base import DocSource
from .sources.factory import make_source
from .sources.local import LOCAL_VERSION, LocalSource
from .utils.log import Logger

__all__ = ["DocsService", "load_config"]

logger = logging.getLogger(__name__)


def _related_link(link: TopicLink) -> RelatedLink:
    return RelatedLink(
        topic_id=link.target_id,
        title=link.title or link.target_id,
        url=link.url or link.target_id,
    )


class DocsService:
    """
    Ties a documentation source, the on-disk topic cache and the in-memory
    search index together.

    Typical use:
        svc = DocsService(load_config("config.yaml"))
        svc.ingest_path(Path("docs/"))
        svc.search("record locking")
        svc.get_topic("lang/records", version="local")
    """

    def __init__(
        self,
        cfg: Optional[Settings] = None,
        source: Optional[DocSource] = None,
        cache: Optional[TopicCache] = None,
        index: Optional[SearchIndex] = None,
    ) -> None:
        self.cfg = cfg or Settings()
        self._source = source
        self.cache = cache or TopicCache(self.cfg.cache_dir)
        self.index = index if index is not None else SearchIndex()
        self.event_log = Logger(Path(self.cfg.log_dir) / "ingest.log.jsonl")

    @property
    def source(self) -> DocSource:
        # built lazily so offline commands never open an HTTP session
        if self._source is None:
            self._source = make_source(self.cfg)
        return self._source

    # ---------------------------------------------------------------- ingest

    def ingest_path(self, data_dir: str | Path, version: str = LOCAL_VERSION) -> int:
        """Parse, chunk, cache and index every HTML file under ``data_dir``."""
        data_dir = Path(data_dir).resolve()
        local = LocalSource(
            data_dir,
            max_chunk_tokens=self.cfg.max_chunk_tokens,
            known_sections=self.cfg.known_sections,
        )

        count = 0
        for f in local.iter_files():
            try:
                topic = local.topic_from_page(local.page_from_file(f, data_dir, version))
            except (ParseError, SourceError) as e:
                logger.warning("Skipping unparseable file", extra={"path": str(f), "error": str(e)})
                self.event_log.write({"event": "parse_error", "file": str(f), "error": str(e)})
                continue
            try:
                self.cache.set(topic.id, topic.version, topic)
            except CacheError as e:
                logger.warning(
                    "Cache write failed, topic still indexed",
                    extra={"topic_id": topic.id, "error": str(e)},
                )
                self.event_log.write(
                    {"event": "cache_error", "topic_id": topic.id, "file": str(f), "error": str(e)}
                )
            self.index.add_topic(topic)
            count += 1

        logger.info(
            "Ingest complete",
            extra={"data_dir": str(data_dir), "version": version, "topics": count},
        )
        return count

    def load_cached(self, version: Optional[str] = None) -> int:
        """Rebuild the in-memory index from cached topics; returns the count loaded."""
        self.index.clear()
        count = 0
        for topic in self.cache.iter_topics(version):
            self.index.add_topic(topic)
            count += 1
        logger.debug("Loaded cached topics", extra={"topics": count, "version": version})
        return count

    # ---------------------------------------------------------------- lookup

    def _lookup_key(self, topic_id: Optional[str], url: Optional[str]) -> tuple[str, str]:
        if url:
            return url, normalize_url_to_topic_id(url, self.cfg.doc_base_url, self.cfg.base_path)
        return topic_id, topic_id  # type: ignore[return-value]

    def _fetch(self, source_input: str, key: str, version: str) -> Topic:
        topic = self.source.fetch_topic(source_input, version)
        if topic.id != key:
            topic.id = key
            for chunk in topic.body_chunks:
                chunk.topic_id = key
        try:
            self.cache.set(key, version, topic)
        except CacheError as e:
            logger.warning("Cache write failed, topic still returned", extra={"topic_id": key, "error": str(e)})
        self.index.add_topic(topic)
        return topic

    def get_topic(
        self,
        topic_id: Optional[str] = None,
        url: Optional[str] = None,
        version: Optional[str] = None,
        max_chunks: int = 3,
        max_tokens: Optional[int] = None,
    ) -> Topic:
        if not topic_id and not url:
            raise InvalidInputError("topic_id or url", None, "at least one must be provided")
        if max_chunks < 0:
            raise InvalidInputError("max_chunks", max_chunks, "must be non-negative")

        version = version or self.cfg.default_version
        source_input, key = self._lookup_key(topic_id, url)

        topic = self.cache.get(key, version)
        if topic is None:
            topic = self._fetch(source_input, key, version)

        chunks = topic.body_chunks
        if max_chunks > 0:
            chunks = chunks[:max_chunks]
        chunks = limit_chunks(chunks, max_tokens if max_tokens is not None else self.cfg.max_response_tokens)
        return topic.model_copy(update={"body_chunks": chunks})

    def search(
        self,
        query: str,
        version: Optional[str] = None,
        section: Optional[str] = None,
        limit: int = 10,
    ) -> List[SearchResult]:
        if not isinstance(query, str) or not query:
            raise InvalidInputError("query", query, "must be a non-empty string")
        if limit < 0:
            raise InvalidInputError("limit", limit, "must be non-negative")
        results = self.index.search(query, version=version, section=section, limit=limit)
        logger.debug(
            "Search",
            extra={"query": query, "version": version, "section": section, "results": len(results)},
        )
        self.event_log.write(
            {"event": "search", "query": query, "version": version, "section": section, "results": len(results)}
        )
        return results

    def related_topics(self, topic_id: str, version: Optional[str] = None) -> RelatedTopics:
        if not topic_id or not isinstance(topic_id, str):
            raise InvalidInputError("topic_id", topic_id, "must be a non-empty string")

        topic = self.get_topic(topic_id=topic_id, version=version, max_chunks=0)
        related = RelatedTopics()
        for link in topic.links:
            if link.kind == "parent":
                related.parent = _related_link(link)
            elif link.kind == "prev":
                related.previous = _related_link(link)
            elif link.kind == "next":
                related.next = _related_link(link)
            else:
                related.related.append(_related_link(link))
        return related

    def list_section_topics(
        self, section: str, version: Optional[str] = None, limit: int = 50
    ) -> List[TopicSummary]:
        if not section or not isinstance(section, str):
            raise InvalidInputError("section", section, "must be a non-empty string")
        if limit < 0:
            raise InvalidInputError("limit", limit, "must be non-negative")

        version = version or self.cfg.default_version
        try:
            topics = self.source.list_topics(section, version, limit)
        except DocsError as e:
            try:
                available = self.source.available_sections(version)
            except DocsError:
                available = None
            logger.warning("Listing section failed", extra={"section": section, "error": str(e)})
            raise SectionNotFoundError(section, version, available) from e

        return [
            TopicSummary(topic_id=t.id, title=t.title, url=t.url, summary=t.summary) for t in topics
        ]

    def describe(self) -> DocsDescription:
        versions: List[str] = []
        sections: List[str] = []
        try:
            versions = self.source.available_versions()
        except DocsError as e:
            logger.warning("Failed to get available versions", extra={"error": str(e)})
        try:
            sections = self.source.available_sections(versions[0] if versions else None)
        except DocsError as e:
            logger.warning("Failed to get available sections", extra={"error": str(e)})

        return DocsDescription(
            source=self.source.kind,
            versions=versions,
            sections=sections,
            indexed_topics=len(self.index),
        )
