from __future__ import annotations

import re
import threading
from collections import Counter
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple

from .schema import SearchResult, Topic

TITLE_WEIGHT = 3
SUMMARY_WEIGHT = 2
BODY_WEIGHT = 1

# Rewritten before punctuation is stripped so these stay one searchable word.
_SYMBOL_REWRITES = (
    ("c++", "c-plus-plus"),
    ("c#", "c-sharp"),
    (".net", "dot-net"),
)


def tokenize(text: str) -> List[str]:
    s = (text or "").lower()
    for symbol, canonical in _SYMBOL_REWRITES:
        s = s.replace(symbol, canonical)
    # "XFILENAME.DBR" -> "xfilename dbr", "a/b" -> "a b"
    s = re.sub(r"[/.]", " ", s)
    s = re.sub(r"[^\w\s-]", " ", s)
    return s.split()


@dataclass(frozen=True)
class IndexEntry:
    topic: Topic
    title_tokens: Counter
    summary_tokens: Counter
    body_tokens: Counter

    @classmethod
    def from_topic(cls, topic: Topic) -> "IndexEntry":
        body = " ".join(chunk.text for chunk in topic.body_chunks)
        return cls(
            topic=topic,
            title_tokens=Counter(tokenize(topic.title)),
            summary_tokens=Counter(tokenize(topic.summary)),
            body_tokens=Counter(tokenize(body)),
        )

    def score(self, query_tokens: List[str]) -> int:
        score = 0
        for token in query_tokens:
            score += self.title_tokens[token] * TITLE_WEIGHT
            score += self.summary_tokens[token] * SUMMARY_WEIGHT
            score += self.body_tokens[token] * BODY_WEIGHT
        return score


class SearchIndex:
    """In-memory term-frequency index keyed by ``(version, topic id)``.

    Adding a topic whose key already exists replaces the old entry. The index
    stores its own deep copy of every topic, so callers may keep mutating
    theirs. A lock serializes writers and snapshots; searches score the
    snapshot without holding it.
    """

    def __init__(self) -> None:
        self._entries: Dict[Tuple[str, str], IndexEntry] = {}
        self._lock = threading.RLock()

    def add_topic(self, topic: Topic) -> None:
        entry = IndexEntry.from_topic(topic.model_copy(deep=True))
        with self._lock:
            self._entries[(topic.version, topic.id)] = entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def _snapshot(self) -> List[IndexEntry]:
        with self._lock:
            return list(self._entries.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Tuple[str, str]) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, topic_id: str, version: str) -> Optional[Topic]:
        with self._lock:
            entry = self._entries.get((version, topic_id))
        return entry.topic.model_copy(deep=True) if entry else None

    def topics(self, version: Optional[str] = None) -> Iterator[Topic]:
        for entry in self._snapshot():
            if version and entry.topic.version != version:
                continue
            yield entry.topic.model_copy(deep=True)

    def versions(self) -> List[str]:
        return sorted({e.topic.version for e in self._snapshot()})

    def sections(self, version: Optional[str] = None) -> List[str]:
        return sorted(
            {e.topic.section for e in self._snapshot() if not version or e.topic.version == version}
        )

    def search(
        self,
        query: str,
        version: Optional[str] = None,
        section: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[SearchResult]:
        query_tokens = tokenize((query or "").strip())
        if not query_tokens:
            return []

        results: List[SearchResult] = []
        for entry in self._snapshot():
            topic = entry.topic
            if version and topic.version != version:
                continue
            if section and topic.section != section:
                continue
            score = entry.score(query_tokens)
            if score <= 0:
                continue
            results.append(
                SearchResult(
                    topic_id=topic.id,
                    title=topic.title,
                    section=topic.section,
                    version=topic.version,
                    url=topic.url,
                    summary=topic.summary,
                    source=topic.source,
                    score=float(score),
                )
            )

        # list.sort is stable, so ties keep insertion order
        results.sort(key=lambda r: r.score, reverse=True)

        if limit is None:
            return results
        if limit <= 0:
            return []
        return results[:limit]
