"""Graph entities: root topics, topic nodes and interaction records."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class RootTopic(BaseModel):
    """A top-level subject area owning one graph and one index collection."""

    id: str
    title: str
    description: str = ""
    index_collection_id: str
    node_count: int = 1
    created_at: str = Field(default_factory=utc_now)


class TopicNode(BaseModel):
    """One vertex in a topic tree."""

    id: str
    title: str
    summary: str = ""
    parent_id: str | None = None
    root_id: str
    tags: list[str] = Field(default_factory=list)
    index_document_id: str = ""
    index_chunk_ids: list[str] = Field(default_factory=list)
    interaction_count: int = 0
    last_refined_at: str = Field(default_factory=utc_now)
    created_at: str = Field(default_factory=utc_now)
    children_ids: list[str] = Field(default_factory=list)
    ancestor_path: list[str] = Field(default_factory=list)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def depth(self) -> int:
        return len(self.ancestor_path) - 1

    def brief(self) -> dict[str, Any]:
        """Compact projection used for child listings."""
        return {"id": self.id, "title": self.title, "summary": self.summary}


class InteractionSource(BaseModel):
    """A semantic-index citation attached to an interaction."""

    chunk_id: str
    score: float
    text: str = ""


class NodeInteraction(BaseModel):
    """Immutable log record of one question/answer exchange on a node."""

    id: str
    node_id: str
    user_message: str
    ai_response: str
    sources: list[InteractionSource] = Field(default_factory=list)
    timestamp: str = Field(default_factory=utc_now)


class IndexedDocument(BaseModel):
    """Back-reference returned by the semantic index after ingest."""

    document_id: str
    chunk_ids: list[str] = Field(default_factory=list)


class IndexHit(BaseModel):
    """One semantic search result, scored in [0, 1]."""

    node_id: str
    title: str = "Untitled"
    score: float = Field(ge=0.0, le=1.0)
    text: str = ""
    chunk_id: str = ""
