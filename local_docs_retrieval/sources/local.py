from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from ..errors import DocsError, SourceError, TopicNotFoundError
from ..index.schema import Topic
from ..ingest.html_parser import DEFAULT_KNOWN_SECTIONS
from ..ingest.normalize import DEFAULT_MAX_CHUNK_TOKENS
from .base import DocSource, FetchedPage

logger = logging.getLogger(__name__)

HTML_EXTS = (".html", ".htm")
LOCAL_VERSION = "local"


class LocalSource(DocSource):
    """HTML files on disk; versions live in ``<root>/<version>/`` subdirectories."""

    kind = "local"

    def __init__(
        self,
        root: str | Path,
        max_chunk_tokens: int = DEFAULT_MAX_CHUNK_TOKENS,
        known_sections: Sequence[str] = DEFAULT_KNOWN_SECTIONS,
    ) -> None:
        super().__init__(max_chunk_tokens=max_chunk_tokens, known_sections=known_sections)
        self.root = Path(root).resolve()
        if not self.root.is_dir():
            raise SourceError("local", f"not a directory: {self.root}", local_path=str(self.root))

    def _versioned_root(self, version: Optional[str]) -> Path:
        if not version or version == LOCAL_VERSION:
            return self.root
        versioned = self.root / version
        # unversioned trees serve every requested version from the root
        return versioned if versioned.is_dir() else self.root

    def _find_html_file(self, path_or_id: str, version: Optional[str]) -> Optional[Path]:
        base = self._versioned_root(version)
        candidate = Path(path_or_id) if Path(path_or_id).is_absolute() else base / path_or_id
        if candidate.suffix.lower() in HTML_EXTS:
            return candidate if candidate.is_file() else None
        for ext in HTML_EXTS:
            p = candidate.with_name(candidate.name + ext)
            if p.is_file():
                return p
        return None

    def page_from_file(self, path: Path, base: Path, version: str) -> FetchedPage:
        path = path.resolve()
        try:
            rel = path.relative_to(base.resolve())
            topic_id = rel.with_suffix("").as_posix()
        except ValueError:
            topic_id = path.with_suffix("").as_posix().lstrip("/")
        try:
            html = path.read_text(encoding="utf-8", errors="ignore")
        except OSError as e:
            raise SourceError("local", f"Failed to read file: {path}", file_path=str(path)) from e
        logger.debug("Read HTML file", extra={"path": str(path)})
        return FetchedPage(
            html=html,
            url=path.as_uri(),
            topic_id=topic_id,
            version=version,
            source="local",
            base_path=base.resolve().as_uri()[len("file://"):],
        )

    def fetch_page(self, url_or_id: str, version: Optional[str] = None) -> FetchedPage:
        path = self._find_html_file(url_or_id, version)
        if path is None:
            raise TopicNotFoundError(
                url_or_id,
                version,
                source="local",
                local_path=str(self.root),
                searched_path=str(self._versioned_root(version) / url_or_id),
            )
        return self.page_from_file(path, self._versioned_root(version), version or LOCAL_VERSION)

    def list_topics(self, section: str, version: Optional[str] = None, limit: int = 50) -> List[Topic]:
        base = self._versioned_root(version)
        section_dir = base / section
        if not section_dir.is_dir():
            raise SourceError(
                "local",
                f"Failed to list topics in section: {section}",
                section=section,
                version=version,
                section_path=str(section_dir),
            )

        files = sorted(p for p in section_dir.iterdir() if p.is_file() and p.suffix.lower() in HTML_EXTS)
        topics: List[Topic] = []
        for path in files[: max(0, limit)]:
            try:
                topic = self.topic_from_page(self.page_from_file(path, base, version or LOCAL_VERSION))
            except DocsError as e:
                logger.warning("Failed to read topic file", extra={"path": str(path), "error": str(e)})
                continue
            if topic.section == "Unknown":
                topic.section = section
            topics.append(topic)
        return topics

    def iter_files(self, version: Optional[str] = None) -> List[Path]:
        base = self._versioned_root(version)
        return sorted(p for p in base.rglob("*") if p.is_file() and p.suffix.lower() in HTML_EXTS)

    def available_versions(self) -> List[str]:
        subdirs = sorted(p.name for p in self.root.iterdir() if p.is_dir())
        return [LOCAL_VERSION, *subdirs]

    def available_sections(self, version: Optional[str] = None) -> List[str]:
        base = self._versioned_root(version)
        if not base.is_dir():
            return []
        return sorted(p.name for p in base.iterdir() if p.is_dir())
