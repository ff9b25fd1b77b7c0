"""Shared test fixtures."""

import math
import zlib
from dataclasses import dataclass
from typing import Any

import pytest

from neuralearn.config import Settings
from neuralearn.index.gateway import SemanticIndexGateway
from neuralearn.store import structure
from neuralearn.store.audit_log import AuditLog
from neuralearn.store.graph_store import GraphStore

EMBED_DIM = 64


def fake_embed(text: str) -> list[float]:
    """Hashed bag-of-words embedding, L2-normalised."""
    vector = [0.0] * EMBED_DIM
    for word in text.lower().replace("#", " ").split():
        vector[zlib.crc32(word.strip("?.,!").encode()) % EMBED_DIM] += 1.0
    norm = math.sqrt(sum(v * v for v in vector))
    if norm == 0:
        vector[0] = 1.0
        return vector
    return [v / norm for v in vector]


class FakeVectorStore:
    """In-memory stand-in for :class:`VectorStore` returning Chroma-shaped results."""

    def __init__(self) -> None:
        self.collections: dict[str, dict[str, dict[str, Any]]] = {}
        self.fail = False

    def _check(self) -> None:
        if self.fail:
            raise RuntimeError("index unavailable")

    def get_or_create_collection(self, name: str) -> dict[str, dict[str, Any]]:
        self._check()
        return self.collections.setdefault(name, {})

    def upsert(self, collection_name, ids, embeddings, documents, metadatas=None) -> None:
        col = self.get_or_create_collection(collection_name)
        for i, entry_id in enumerate(ids):
            col[entry_id] = {
                "embedding": embeddings[i],
                "document": documents[i],
                "metadata": (metadatas[i] if metadatas else None) or {},
            }

    def query(self, collection_name, query_embedding, n_results=5) -> dict[str, Any]:
        col = self.get_or_create_collection(collection_name)
        scored = sorted(
            (1.0 - sum(a * b for a, b in zip(query_embedding, e["embedding"])), entry_id)
            for entry_id, e in col.items()
        )[:n_results]
        return {
            "ids": [[entry_id for _, entry_id in scored]],
            "documents": [[col[entry_id]["document"] for _, entry_id in scored]],
            "metadatas": [[col[entry_id]["metadata"] for _, entry_id in scored]],
            "distances": [[distance for distance, _ in scored]],
        }

    def get(self, collection_name, ids) -> dict[str, Any]:
        col = self.get_or_create_collection(collection_name)
        found = [i for i in ids if i in col]
        return {
            "ids": found,
            "documents": [col[i]["document"] for i in found],
            "metadatas": [col[i]["metadata"] for i in found],
        }

    def delete_where(self, collection_name, where) -> None:
        col = self.get_or_create_collection(collection_name)
        for entry_id in [
            i for i, e in col.items()
            if all(e["metadata"].get(k) == v for k, v in where.items())
        ]:
            del col[entry_id]

    def count(self, collection_name) -> int:
        return len(self.get_or_create_collection(collection_name))

    def list_collections(self) -> list[str]:
        self._check()
        return list(self.collections)

    def heartbeat(self) -> bool:
        return not self.fail


@dataclass
class FakeBlock:
    type: str
    text: str = ""
    id: str = ""
    name: str = ""
    input: Any = None


@dataclass
class FakeMessage:
    content: list[FakeBlock]
    stop_reason: str


class FakeLLM:
    """Scripted LLM: queued Messages API responses, one structured result, one completion."""

    configured = True

    def __init__(self) -> None:
        self.responses: list[FakeMessage] = []
        self.structured_result: dict[str, Any] | Exception = {}
        self.completion: str | Exception = ""
        self.chunks: list[str] = []
        self.create_calls: list[dict[str, Any]] = []
        self.structured_calls: list[str] = []
        self.complete_calls: list[str] = []
        self.stream_calls: list[dict[str, Any]] = []

    def queue_text(self, text: str) -> None:
        self.responses.append(FakeMessage([FakeBlock(type="text", text=text)], "end_turn"))

    def queue_tool_calls(self, *calls: tuple[str, dict[str, Any]]) -> None:
        n = len(self.responses)
        blocks = [
            FakeBlock(type="tool_use", id=f"toolu_{n}_{i}", name=name, input=args)
            for i, (name, args) in enumerate(calls)
        ]
        self.responses.append(FakeMessage(blocks, "tool_use"))

    def create(self, *, system, messages, tools=None, tool_choice=None, max_tokens=None, model=None):
        self.create_calls.append({"system": system, "messages": list(messages), "tools": tools})
        if not self.responses:
            return FakeMessage([FakeBlock(type="text", text="No scripted response")], "end_turn")
        return self.responses.pop(0)

    def structured(self, system, prompt, tool):
        self.structured_calls.append(prompt)
        if isinstance(self.structured_result, Exception):
            raise self.structured_result
        return dict(self.structured_result)

    def complete(self, system, prompt, max_tokens=None):
        self.complete_calls.append(prompt)
        if isinstance(self.completion, Exception):
            raise self.completion
        return self.completion

    def stream(self, system, messages, model=None):
        self.stream_calls.append({"system": system, "messages": messages, "model": model})
        yield from self.chunks


class FakeWebSearch:
    def __init__(self, configured: bool = True) -> None:
        self.configured = configured
        self.queries: list[str] = []
        self.result: dict[str, Any] = {
            "answer": "The power rule states d/dx x^n = n x^(n-1).",
            "results": [
                {"title": "Power rule", "url": "https://example.org/power-rule", "snippet": "d/dx x^n", "score": 0.9},
            ],
        }

    def search(self, query: str, num_results: int = 3) -> dict[str, Any]:
        self.queries.append(query)
        if not self.configured:
            return {"error": "Web search not configured", "results": []}
        return self.result


@pytest.fixture
def tmp_data_dir(tmp_path):
    """Create a temporary data directory."""
    (tmp_path / "chromadb").mkdir()
    # Don't create kuzu dir - Kuzu manages it
    (tmp_path / "audit").mkdir()
    return tmp_path


@pytest.fixture
def test_settings(tmp_data_dir):
    """Create settings pointing to temp directories."""
    return Settings(
        chroma_mode="embedded",
        data_dir=tmp_data_dir,
        kuzu_dir=tmp_data_dir / "kuzu",
        audit_dir=tmp_data_dir / "audit",
        llm_api_key="",
        web_search_api_key="",
    )


@pytest.fixture
def graph_store(tmp_data_dir):
    return GraphStore(tmp_data_dir / "kuzu")


@pytest.fixture
def vector_store():
    return FakeVectorStore()


@pytest.fixture
def gateway(vector_store):
    return SemanticIndexGateway(vector_store, embed=fake_embed, timeout=5.0)


@pytest.fixture
def audit(tmp_data_dir):
    return AuditLog(tmp_data_dir / "audit")


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def fake_web_search():
    return FakeWebSearch()


@pytest.fixture
def calculus(graph_store, gateway, audit):
    """Topic "Calculus" with a single child "Derivatives"."""
    topic, root = structure.create_root_topic(graph_store, gateway, "Calculus", audit=audit)
    derivatives = structure.create_child_node(
        graph_store,
        gateway,
        parent_id=root.id,
        title="Derivatives",
        summary="Rates of change and slopes of curves.",
        audit=audit,
    )
    return {"topic": topic, "root": root, "derivatives": derivatives}
