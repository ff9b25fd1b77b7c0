"""Configuration via environment variables with Pydantic Settings."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Neuralearn configuration loaded from environment variables."""

    model_config = {"env_prefix": "NEURALEARN_"}

    # Server
    host: str = "0.0.0.0"
    port: int = 8100
    log_level: str = "info"
    runtime_mode: Literal["mcp", "rest", "combined"] = "combined"
    mcp_transport: Literal["streamable-http", "stdio"] = "streamable-http"

    # Data directories
    data_dir: Path = Path("./data")
    kuzu_dir: Path = Path("./data/kuzu")
    audit_dir: Path = Path("./data/audit")

    # Semantic index (ChromaDB, one collection per root topic)
    chroma_mode: Literal["embedded", "http"] = "embedded"
    chroma_host: str = "neuralearn-chromadb"
    chroma_port: int = 8000
    collection_prefix: str = "neuralearn"
    embedding_model: str = "BAAI/bge-base-en-v1.5"
    index_timeout: float = 30.0
    index_top_k: int = 5

    # LLM (Anthropic)
    llm_api_key: str = ""
    llm_model: str = "claude-sonnet-4-20250514"
    llm_max_tokens: int = 4096
    llm_temperature: float = 0.0
    llm_timeout: float = 60.0

    # Web search (Tavily; empty key = disabled)
    web_search_api_key: str = ""
    web_search_url: str = "https://api.tavily.com/search"
    web_search_timeout: float = 15.0
    # Add web search context to routing prompts
    routing_web_context: bool = False

    # Orchestration agent loop ceilings
    agent_max_iterations: int = 8
    agent_max_duration: float = 120.0

    # Summary refinement
    refine_cadence: int = 5
    refine_min_records: int = 3
    refine_window: int = 10

    topics_list_limit: int = 50

    def ensure_dirs(self) -> None:
        """Create data directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        # Kuzu manages its own directory - only ensure parent exists
        self.kuzu_dir.parent.mkdir(parents=True, exist_ok=True)
        self.audit_dir.mkdir(parents=True, exist_ok=True)

    @property
    def chroma_dir(self) -> Path:
        """Persist directory for embedded ChromaDB."""
        return self.data_dir / "chromadb"


# Singleton
settings = Settings()
