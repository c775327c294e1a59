"""Split topic body text into token-budgeted chunks.

Boundaries are preferred in this order: markdown headings, blank-line
paragraphs, sentence ends. Token counts are estimates (``ceil(chars / 4)``).
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import List, Optional

from ..index.schema import Chunk, Topic

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHUNK_TOKENS = 1200
DEFAULT_MAX_RESPONSE_TOKENS = 8000
# a forced split never emits a chunk shorter than heading + this many chars
MIN_BODY_CHARS = 10

HEADING_RE = re.compile(r"^(#{1,6})[ \t]+(.+)$", re.MULTILINE)
PARAGRAPH_RE = re.compile(r"\n\s*\n")
SENTENCE_RE = re.compile(r"(?<=[.!?])(\s+)")


def estimate_tokens(text: str) -> int:
    return math.ceil(len(text) / 4)


@dataclass
class _Section:
    level: int  # 0 = text before the first heading
    title: str
    content: str

    @property
    def heading(self) -> str:
        return f"{'#' * self.level} {self.title}" if self.level else ""

    def render(self) -> str:
        if not self.level:
            return self.content
        return f"{self.heading}\n\n{self.content}"


class _ChunkWriter:
    """Greedy packer: appends pieces until the next one would overflow."""

    def __init__(self, topic_id: str, max_tokens: int):
        self.topic_id = topic_id
        self.max_tokens = max_tokens
        self.chunks: List[Chunk] = []
        self.current = ""

    def fits(self, text: str) -> bool:
        return estimate_tokens(text) <= self.max_tokens

    def add(self, piece: str) -> None:
        piece = piece.strip()
        if not piece:
            return
        if self.current and not self.fits(f"{self.current}\n\n{piece}"):
            self.flush()
            self.current = piece
        else:
            self.current = f"{self.current}\n\n{piece}" if self.current else piece

    def flush(self) -> None:
        self.emit(self.current)
        self.current = ""

    def emit(self, text: str) -> None:
        text = text.strip()
        if not text:
            return
        self.chunks.append(
            Chunk(
                topic_id=self.topic_id,
                chunk_index=len(self.chunks),
                text=text,
                token_count=estimate_tokens(text),
            )
        )

    def finish(self) -> List[Chunk]:
        self.flush()
        return self.chunks


def _split_paragraphs(text: str) -> List[str]:
    return [p.strip() for p in PARAGRAPH_RE.split(text) if p.strip()]


def _split_sentences(text: str, max_tokens: int) -> List[str]:
    """Pack sentences into pieces of at most ``max_tokens``.

    Whitespace between sentences is kept as written, so newlines survive.
    A single sentence longer than the budget is returned whole.
    """
    pieces: List[str] = []
    buf = ""
    parts = SENTENCE_RE.split(text.strip())
    # parts alternates sentence, separator, sentence, ...
    for i in range(0, len(parts), 2):
        sentence = parts[i]
        if not sentence:
            continue
        sep = parts[i - 1] if i else ""
        candidate = f"{buf}{sep}{sentence}" if buf else sentence
        if buf and estimate_tokens(candidate) > max_tokens:
            pieces.append(buf)
            buf = sentence
        else:
            buf = candidate
    if buf:
        pieces.append(buf)
    return pieces


def _fit(text: str, max_tokens: int) -> List[str]:
    """Break text into paragraph, then sentence, pieces that fit the budget."""
    if estimate_tokens(text) <= max_tokens:
        return [text]
    pieces: List[str] = []
    for paragraph in _split_paragraphs(text):
        if estimate_tokens(paragraph) <= max_tokens:
            pieces.append(paragraph)
        else:
            pieces.extend(_split_sentences(paragraph, max_tokens))
    return pieces


def _split_sections(body_text: str, headings: List[re.Match]) -> List[_Section]:
    sections: List[_Section] = []
    intro = body_text[: headings[0].start()].strip()
    if intro:
        sections.append(_Section(level=0, title="", content=intro))

    for i, m in enumerate(headings):
        end = headings[i + 1].start() if i + 1 < len(headings) else len(body_text)
        content = body_text[m.end() : end].strip()
        sections.append(_Section(level=len(m.group(1)), title=m.group(2).strip(), content=content))
    return sections


def _split_oversized_section(section: _Section, writer: _ChunkWriter) -> None:
    """Split one section bigger than the budget, repeating its heading.

    Every emitted piece after the first starts again with the section heading
    so the context survives the split. Whatever is left over stays in the
    writer's buffer and may be packed with the following sections.
    """
    prefix = f"{section.heading}\n\n" if section.level else ""
    min_len = len(section.title) + MIN_BODY_CHARS if section.level else MIN_BODY_CHARS
    room = max(1, writer.max_tokens - estimate_tokens(prefix))

    buf = prefix
    for paragraph in _fit(section.content, room):
        candidate = f"{buf}{paragraph}\n\n"
        if not writer.fits(candidate.strip()) and len(buf.strip()) > min_len:
            writer.emit(buf)
            buf = f"{prefix}{paragraph}\n\n"
        else:
            buf = candidate

    # drop a trailing heading with no body under it
    if buf.strip() and buf.strip() != prefix.strip():
        writer.current = buf.strip()


def _pack(text: str, writer: _ChunkWriter) -> None:
    headings = list(HEADING_RE.finditer(text))
    if not headings:
        for paragraph in _split_paragraphs(text):
            for piece in _fit(paragraph, writer.max_tokens):
                writer.add(piece)
        return

    for section in _split_sections(text, headings):
        rendered = section.render()
        if writer.fits(rendered):
            writer.add(rendered)
        else:
            writer.flush()
            _split_oversized_section(section, writer)


def chunk_body_text(
    topic_id: str, body_text: str, max_chunk_tokens: int = DEFAULT_MAX_CHUNK_TOKENS
) -> List[Chunk]:
    """Split raw body text into chunks of at most ``max_chunk_tokens``."""
    if not body_text or not body_text.strip():
        return []

    writer = _ChunkWriter(topic_id, max_chunk_tokens)
    _pack(body_text, writer)
    chunks = writer.finish()
    logger.debug(
        "Chunked body text",
        extra={
            "topic_id": topic_id,
            "chunk_count": len(chunks),
            "total_tokens": sum(c.token_count or 0 for c in chunks),
        },
    )
    return chunks


def rechunk_topic(topic: Topic, max_chunk_tokens: int = DEFAULT_MAX_CHUNK_TOKENS) -> List[Chunk]:
    """Merge or re-split a topic's existing chunks under a new budget."""
    if not topic.body_chunks:
        logger.warning("Topic has no body content to chunk", extra={"topic_id": topic.id})
        return []

    writer = _ChunkWriter(topic.id, max_chunk_tokens)
    for existing in topic.body_chunks:
        if writer.fits(existing.text):
            writer.add(existing.text)
            continue
        writer.flush()
        _pack(existing.text, writer)

    chunks = writer.finish()
    logger.debug(
        "Chunked topic",
        extra={
            "topic_id": topic.id,
            "chunk_count": len(chunks),
            "total_tokens": sum(c.token_count or 0 for c in chunks),
        },
    )
    return chunks


def chunk_topic(
    topic: Topic,
    max_chunk_tokens: int = DEFAULT_MAX_CHUNK_TOKENS,
    body_text: Optional[str] = None,
) -> List[Chunk]:
    if body_text is not None:
        return chunk_body_text(topic.id, body_text, max_chunk_tokens)
    return rechunk_topic(topic, max_chunk_tokens)


def limit_chunks(chunks: List[Chunk], max_tokens: int = DEFAULT_MAX_RESPONSE_TOKENS) -> List[Chunk]:
    """Longest prefix of ``chunks`` whose total tokens stay within ``max_tokens``."""
    total = 0
    limited: List[Chunk] = []
    for chunk in chunks:
        tokens = chunk.token_count if chunk.token_count is not None else estimate_tokens(chunk.text)
        if total + tokens > max_tokens:
            break
        limited.append(chunk)
        total += tokens

    if len(limited) < len(chunks):
        logger.debug(
            "Limited chunks due to token budget",
            extra={
                "original_count": len(chunks),
                "limited_count": len(limited),
                "total_tokens": total,
                "max_tokens": max_tokens,
            },
        )
    return limited
