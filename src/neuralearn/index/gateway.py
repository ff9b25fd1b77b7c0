"""Semantic Index Gateway - per-topic vector search that degrades instead of raising.

Every call runs on a small worker pool with a bounded wait. A failure or a
timeout is logged and turned into an empty result (or a no-op), so routing
and chat keep working with reduced signal when the index is unavailable.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any, TypeVar

from neuralearn.index.embedder import node_document
from neuralearn.index.vector_store import VectorStore
from neuralearn.models.graph import IndexedDocument, IndexHit

logger = logging.getLogger(__name__)

T = TypeVar("T")


def chunk_id_for(document_id: str, position: int = 0) -> str:
    return f"{document_id}:{position}"


def _score_from_distance(distance: float | None) -> float:
    """Cosine distance (0..2) to a similarity score clamped into [0, 1]."""
    if distance is None:
        return 0.0
    return max(0.0, min(1.0, 1.0 - float(distance)))


class SemanticIndexGateway:
    """Ingest, search, update and delete node documents in topic collections."""

    def __init__(
        self,
        vector_store: VectorStore | None,
        embed: Callable[[str], list[float]],
        timeout: float = 30.0,
        collection_prefix: str = "neuralearn",
        max_workers: int = 4,
    ) -> None:
        self._vector_store = vector_store
        self._embed = embed
        self._timeout = timeout
        self._prefix = collection_prefix
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="neuralearn-index",
        )

    def _call(self, operation: str, fn: Callable[[], T], fallback: T) -> T:
        if self._vector_store is None:
            logger.debug("Semantic index unavailable; %s skipped", operation)
            return fallback
        future = self._executor.submit(fn)
        try:
            return future.result(timeout=self._timeout)
        except FutureTimeout:
            future.cancel()
            logger.warning("Semantic index %s timed out after %.1fs", operation, self._timeout)
        except Exception as e:
            logger.warning("Semantic index %s failed: %s", operation, e)
        return fallback

    def collection_name_for(self, topic_id: str) -> str:
        return f"{self._prefix}_{topic_id}"

    def create_collection(self, name: str) -> str:
        """Create (or reuse) a collection; its name is its id.

        Chroma creates collections lazily on first write, so the name stays
        usable even when this call degrades.
        """
        self._call(
            "create_collection",
            lambda: self._vector_store.get_or_create_collection(name),
            None,
        )
        return name

    def ingest(self, collection_id: str, node_id: str, title: str, summary: str) -> IndexedDocument:
        """Index a node as a single-chunk document keyed by the node id."""
        text = node_document(title, summary)
        chunk_id = chunk_id_for(node_id)

        def _ingest() -> IndexedDocument:
            self._vector_store.upsert(
                collection_name=collection_id,
                ids=[chunk_id],
                embeddings=[self._embed(text)],
                documents=[text],
                metadatas=[{
                    "node_id": node_id,
                    "document_id": node_id,
                    "title": title,
                    "type": "node",
                }],
            )
            return IndexedDocument(document_id=node_id, chunk_ids=[chunk_id])

        return self._call("ingest", _ingest, IndexedDocument(document_id=node_id, chunk_ids=[]))

    def search(self, collection_id: str, query: str, top_k: int = 5) -> list[IndexHit]:
        """Nodes most similar to ``query``, in non-increasing score order."""

        def _search() -> list[IndexHit]:
            results = self._vector_store.query(
                collection_name=collection_id,
                query_embedding=self._embed(query),
                n_results=top_k,
            )
            ids = results.get("ids", [[]])[0]
            docs = results.get("documents", [[]])[0] or []
            metas = results.get("metadatas", [[]])[0] or []
            distances = results.get("distances", [[]])[0] or []

            hits = []
            for i, chunk_id in enumerate(ids):
                meta: dict[str, Any] = (metas[i] if i < len(metas) else None) or {}
                hits.append(IndexHit(
                    node_id=meta.get("node_id") or meta.get("document_id") or chunk_id,
                    title=meta.get("title") or "Untitled",
                    score=_score_from_distance(distances[i] if i < len(distances) else None),
                    text=(docs[i] if i < len(docs) else None) or "",
                    chunk_id=chunk_id,
                ))
            hits.sort(key=lambda h: h.score, reverse=True)
            return hits[:top_k]

        return self._call("search", _search, [])

    def update(self, collection_id: str, document_id: str, text: str) -> bool:
        """Replace a document's text and embedding, keeping its metadata."""
        chunk_id = chunk_id_for(document_id)

        def _update() -> bool:
            existing = self._vector_store.get(collection_id, ids=[chunk_id])
            metas = existing.get("metadatas") or []
            metadata = dict(metas[0]) if metas and metas[0] else {
                "node_id": document_id,
                "document_id": document_id,
                "type": "node",
            }
            first_line = text.strip().split("\n", 1)[0]
            if first_line.startswith("# "):
                metadata["title"] = first_line[2:].strip()
            self._vector_store.upsert(
                collection_name=collection_id,
                ids=[chunk_id],
                embeddings=[self._embed(text)],
                documents=[text],
                metadatas=[metadata],
            )
            return True

        return self._call("update", _update, False)

    def delete(self, collection_id: str, document_id: str) -> bool:
        def _delete() -> bool:
            self._vector_store.delete_where(collection_id, {"document_id": document_id})
            return True

        return self._call("delete", _delete, False)

    def collections(self) -> list[str]:
        return self._call("list_collections", lambda: self._vector_store.list_collections(), [])

    def heartbeat(self) -> bool:
        return self._call("heartbeat", lambda: self._vector_store.heartbeat(), False)
