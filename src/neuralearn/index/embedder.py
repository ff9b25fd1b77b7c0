"""Embedding generation using sentence-transformers with ONNX backend."""

from __future__ import annotations

import logging
import threading

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "BAAI/bge-base-en-v1.5"

# Lazy-loaded models keyed by model name, shared by every request.
_models: dict[str, object] = {}
_models_lock = threading.Lock()


def _get_model(model_name: str = DEFAULT_MODEL):
    """Load the model once per process; concurrent callers wait for the first load."""
    model = _models.get(model_name)
    if model is not None:
        return model
    with _models_lock:
        model = _models.get(model_name)
        if model is None:
            from sentence_transformers import SentenceTransformer

            logger.info(f"Loading embedding model: {model_name}")
            model = SentenceTransformer(model_name, backend="onnx")
            _models[model_name] = model
            logger.info("Embedding model loaded successfully")
    return model


def embed_text(text: str, model_name: str = DEFAULT_MODEL) -> list[float]:
    """Generate a normalized embedding vector for a single text string."""
    model = _get_model(model_name)
    embedding = model.encode(text, normalize_embeddings=True)
    return embedding.tolist()


def node_document(title: str, summary: str) -> str:
    """Text indexed for a node: a markdown heading followed by its summary."""
    return "\n".join([f"# {title}", "", summary]).strip()
