from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterator, Optional

from pydantic import ValidationError

from .errors import CacheError
from .index.schema import Topic

logger = logging.getLogger(__name__)


def sanitize_version(version: str) -> str:
    # whitelist, so "../x" can never leave the cache dir
    safe = re.sub(r"[^A-Za-z0-9._-]", "_", version)
    return safe if safe.strip(".") else safe.replace(".", "_") or "_"


def sanitize_topic_id(topic_id: str) -> str:
    return re.sub(r'[/\\:*?"<>|]', "_", topic_id)


class TopicCache:
    """Parsed topics on disk: ``<cache_dir>/<version>/<topic>.json``."""

    def __init__(self, cache_dir: str | Path):
        self.cache_dir = Path(cache_dir).resolve()
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, topic_id: str, version: str) -> Path:
        return self.cache_dir / sanitize_version(version) / f"{sanitize_topic_id(topic_id)}.json"

    def has(self, topic_id: str, version: str) -> bool:
        return self._path(topic_id, version).is_file()

    def get(self, topic_id: str, version: str) -> Optional[Topic]:
        path = self._path(topic_id, version)
        key = f"{sanitize_version(version)}/{topic_id}"
        if not path.is_file():
            logger.debug("Cache miss", extra={"cache_key": key})
            return None
        try:
            topic = Topic.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError, ValidationError) as e:
            # corrupt entries behave like misses
            logger.error("Cache read error", extra={"cache_key": key, "path": str(path), "error": str(e)})
            return None
        logger.debug("Cache hit", extra={"cache_key": key})
        return topic

    def set(self, topic_id: str, version: str, topic: Topic) -> None:
        path = self._path(topic_id, version)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(topic.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            logger.error("Cache write error", extra={"path": str(path), "error": str(e)})
            raise CacheError("write", str(e), topic_id=topic_id, version=version) from e
        logger.debug("Cache set", extra={"cache_key": f"{sanitize_version(version)}/{topic_id}"})

    def iter_topics(self, version: Optional[str] = None) -> Iterator[Topic]:
        """Every readable cached topic, optionally for a single version."""
        if version is not None:
            dirs = [self.cache_dir / sanitize_version(version)]
        else:
            dirs = sorted(p for p in self.cache_dir.iterdir() if p.is_dir())
        for d in dirs:
            if not d.is_dir():
                continue
            for f in sorted(d.glob("*.json")):
                try:
                    yield Topic.model_validate_json(f.read_text(encoding="utf-8"))
                except (OSError, ValueError, ValidationError) as e:
                    logger.warning("Skipping unreadable cache file", extra={"path": str(f), "error": str(e)})
