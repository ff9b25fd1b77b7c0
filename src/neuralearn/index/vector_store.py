"""ChromaDB vector store - dual mode (embedded for dev, HTTP for Docker)."""

from __future__ import annotations

import logging
from typing import Any

import chromadb

logger = logging.getLogger(__name__)


class VectorStore:
    """ChromaDB client holding one cosine-space collection per root topic."""

    def __init__(
        self,
        mode: str = "embedded",
        host: str = "localhost",
        port: int = 8000,
        persist_dir: str = "./data/chromadb",
    ) -> None:
        if mode == "http":
            logger.info(f"Connecting to ChromaDB at {host}:{port}")
            self._client = chromadb.HttpClient(host=host, port=port)
        else:
            logger.info(f"Using embedded ChromaDB at {persist_dir}")
            self._client = chromadb.PersistentClient(path=persist_dir)

    def get_or_create_collection(self, name: str) -> chromadb.Collection:
        return self._client.get_or_create_collection(
            name=name,
            metadata={"hnsw:space": "cosine"},
        )

    def upsert(
        self,
        collection_name: str,
        ids: list[str],
        embeddings: list[list[float]],
        documents: list[str],
        metadatas: list[dict[str, Any]] | None = None,
    ) -> None:
        """Insert or replace documents with their embeddings."""
        col = self.get_or_create_collection(collection_name)
        col.upsert(
            ids=ids,
            embeddings=embeddings,
            documents=documents,
            metadatas=metadatas,
        )

    def query(
        self,
        collection_name: str,
        query_embedding: list[float],
        n_results: int = 5,
    ) -> dict[str, Any]:
        """Nearest neighbours of one embedding; distances are cosine distances."""
        col = self.get_or_create_collection(collection_name)
        total = col.count()
        if total == 0:
            return {"ids": [[]], "documents": [[]], "metadatas": [[]], "distances": [[]]}
        return col.query(
            query_embeddings=[query_embedding],
            n_results=min(n_results, total),
            include=["documents", "metadatas", "distances"],
        )

    def get(self, collection_name: str, ids: list[str]) -> dict[str, Any]:
        col = self.get_or_create_collection(collection_name)
        return col.get(ids=ids, include=["documents", "metadatas"])

    def delete_where(self, collection_name: str, where: dict[str, Any]) -> None:
        """Delete every entry whose metadata matches ``where``."""
        col = self.get_or_create_collection(collection_name)
        col.delete(where=where)

    def count(self, collection_name: str) -> int:
        col = self.get_or_create_collection(collection_name)
        return col.count()

    def list_collections(self) -> list[str]:
        names = []
        for c in self._client.list_collections():
            # chromadb >= 0.6 returns names, older releases return Collection objects
            names.append(c if isinstance(c, str) else c.name)
        return names

    def heartbeat(self) -> bool:
        try:
            self._client.heartbeat()
            return True
        except Exception:
            return False
