from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

SourceKind = Literal["online", "local", "hybrid"]
LinkKind = Literal["prev", "next", "parent", "related"]


class Chunk(BaseModel):
    topic_id: str
    chunk_index: int
    text: str
    token_count: Optional[int] = None  # estimated, ~4 chars per token


class TopicLink(BaseModel):
    kind: LinkKind
    target_id: str
    title: Optional[str] = None
    url: Optional[str] = None


class Topic(BaseModel):
    id: str                    # normalized relative path, unique per version
    version: str = "latest"
    title: str
    section: str
    path: List[str] = Field(default_factory=list)   # breadcrumbs, root -> leaf
    summary: str = ""
    body_chunks: List[Chunk] = Field(default_factory=list)
    links: List[TopicLink] = Field(default_factory=list)
    url: str
    source: SourceKind = "online"


class SearchResult(BaseModel):
    topic_id: str
    title: str
    section: str
    version: str
    url: str
    summary: str
    source: SourceKind
    score: float


class RelatedLink(BaseModel):
    topic_id: str
    title: str
    url: str


class RelatedTopics(BaseModel):
    parent: Optional[RelatedLink] = None
    previous: Optional[RelatedLink] = None
    next: Optional[RelatedLink] = None
    related: List[RelatedLink] = Field(default_factory=list)


class TopicSummary(BaseModel):
    topic_id: str
    title: str
    url: str
    summary: str


class DocsDescription(BaseModel):
    source: SourceKind
    versions: List[str]
    sections: List[str]
    indexed_topics: int = 0
