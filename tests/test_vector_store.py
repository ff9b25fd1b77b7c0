"""Tests for vector store."""

from neuralearn.index.vector_store import VectorStore


def _unit(i: int, dim: int = 8) -> list[float]:
    v = [0.0] * dim
    v[i] = 1.0
    return v


def test_upsert_and_query(tmp_path):
    """Upsert documents and query the nearest one back."""
    store = VectorStore(mode="embedded", persist_dir=str(tmp_path / "chroma"))

    store.upsert(
        collection_name="topic",
        ids=["a:0", "b:0"],
        embeddings=[_unit(0), _unit(1)],
        documents=["# Derivatives\n\nRates of change", "# Integrals\n\nArea under curves"],
        metadatas=[{"node_id": "a"}, {"node_id": "b"}],
    )
    assert store.count("topic") == 2

    results = store.query(collection_name="topic", query_embedding=_unit(1), n_results=5)
    assert results["ids"][0][0] == "b:0"
    assert results["metadatas"][0][0]["node_id"] == "b"
    assert len(results["ids"][0]) == 2
    assert results["distances"][0][0] <= results["distances"][0][1]


def test_upsert_replaces_document(tmp_path):
    store = VectorStore(mode="embedded", persist_dir=str(tmp_path / "chroma"))
    store.upsert("topic", ids=["a:0"], embeddings=[_unit(0)], documents=["old"], metadatas=[{"node_id": "a"}])
    store.upsert("topic", ids=["a:0"], embeddings=[_unit(0)], documents=["new"], metadatas=[{"node_id": "a"}])

    assert store.count("topic") == 1
    assert store.get("topic", ids=["a:0"])["documents"] == ["new"]


def test_query_empty_collection(tmp_path):
    store = VectorStore(mode="embedded", persist_dir=str(tmp_path / "chroma"))
    results = store.query(collection_name="empty", query_embedding=_unit(0))
    assert results["ids"] == [[]]


def test_delete_where(tmp_path):
    """Delete documents by metadata."""
    store = VectorStore(mode="embedded", persist_dir=str(tmp_path / "chroma"))
    store.upsert(
        "topic",
        ids=["a:0", "b:0"],
        embeddings=[_unit(0), _unit(1)],
        documents=["a", "b"],
        metadatas=[{"document_id": "a"}, {"document_id": "b"}],
    )

    store.delete_where("topic", {"document_id": "a"})
    assert store.count("topic") == 1


def test_list_collections(tmp_path):
    """List collections."""
    store = VectorStore(mode="embedded", persist_dir=str(tmp_path / "chroma"))

    store.get_or_create_collection("neuralearn_t1")
    store.get_or_create_collection("neuralearn_t2")

    names = store.list_collections()
    assert "neuralearn_t1" in names
    assert "neuralearn_t2" in names
    assert store.heartbeat() is True
