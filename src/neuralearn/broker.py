"""Graph broker - wires the store, index, routing, agent and tracking together."""

from __future__ import annotations

import functools
import logging
import threading
from collections.abc import Iterator
from typing import Any

from neuralearn.agent.chat import DirectChat
from neuralearn.agent.llm import LLMClient
from neuralearn.agent.orchestrator import OrchestrationAgent
from neuralearn.agent.tools import GraphToolbox, ToolContext, ToolName, node_detail
from neuralearn.agent.web_search import WebSearch
from neuralearn.config import Settings
from neuralearn.errors import NeuralearnError, NotFoundError
from neuralearn.index.embedder import embed_text
from neuralearn.index.gateway import SemanticIndexGateway
from neuralearn.index.vector_store import VectorStore
from neuralearn.models.chat import ChatDecision, ChatRequest, ChatTurnRequest
from neuralearn.models.graph import RootTopic, TopicNode
from neuralearn.models.routing import RouteRequest, RoutingDecision
from neuralearn.routing.engine import RoutingEngine
from neuralearn.store import structure
from neuralearn.store.audit_log import AuditLog
from neuralearn.store.graph_store import GraphStore
from neuralearn.tracking import InteractionTracker

logger = logging.getLogger(__name__)


def _connect_vector_store(settings: Settings) -> VectorStore | None:
    try:
        return VectorStore(
            mode=settings.chroma_mode,
            host=settings.chroma_host,
            port=settings.chroma_port,
            persist_dir=str(settings.chroma_dir),
        )
    except Exception as e:
        logger.warning("Semantic index unavailable, continuing without it: %s", e)
        return None


class GraphBroker:
    """Central orchestrator shared by the REST and MCP surfaces.

    Collaborators can be injected; anything not supplied is built from
    ``settings``.
    """

    def __init__(
        self,
        settings: Settings,
        store: GraphStore | None = None,
        gateway: SemanticIndexGateway | None = None,
        llm: LLMClient | None = None,
        web_search: WebSearch | None = None,
        audit: AuditLog | None = None,
    ) -> None:
        settings.ensure_dirs()
        self._settings = settings

        self._store = store or GraphStore(settings.kuzu_dir)
        self._gateway = gateway or SemanticIndexGateway(
            _connect_vector_store(settings),
            embed=functools.partial(embed_text, model_name=settings.embedding_model),
            timeout=settings.index_timeout,
            collection_prefix=settings.collection_prefix,
        )
        self._llm = llm or LLMClient.from_settings(settings)
        self._web_search = web_search or WebSearch.from_settings(settings)
        self._audit = audit or AuditLog(settings.audit_dir)

        self._tracker = InteractionTracker(
            self._store,
            self._gateway,
            self._llm,
            cadence=settings.refine_cadence,
            min_records=settings.refine_min_records,
            window=settings.refine_window,
            audit=self._audit,
        )
        self._router = RoutingEngine(
            self._store,
            self._gateway,
            self._llm,
            web_search=self._web_search,
            top_k=settings.index_top_k,
            web_context=settings.routing_web_context,
        )
        self._toolbox = GraphToolbox(self._store, self._gateway, self._web_search, self._audit)
        self._agent = OrchestrationAgent(
            self._store,
            self._llm,
            self._toolbox,
            tracker=self._tracker,
            max_iterations=settings.agent_max_iterations,
            max_duration=settings.agent_max_duration,
        )
        self._direct = DirectChat(self._store, self._llm, self._web_search, self._tracker)

    @property
    def graph(self) -> GraphStore:
        return self._store

    @property
    def index(self) -> SemanticIndexGateway:
        return self._gateway

    # ── Topics ───────────────────────────────────────────────────────

    def create_topic(self, title: str, description: str | None = None) -> tuple[RootTopic, TopicNode]:
        return structure.create_root_topic(self._store, self._gateway, title, description, audit=self._audit)

    def list_topics(self, limit: int | None = None) -> list[RootTopic]:
        return self._store.list_root_topics(limit or self._settings.topics_list_limit)

    def list_topic_nodes(self, topic_id: str) -> list[TopicNode]:
        if self._store.get_root_topic(topic_id) is None:
            raise NotFoundError("root topic", topic_id)
        return self._store.find_nodes_by_root(topic_id)

    # ── Nodes ────────────────────────────────────────────────────────

    def create_node(
        self,
        parent_id: str,
        title: str,
        summary: str | None = None,
        tags: list[str] | None = None,
        node_id: str | None = None,
    ) -> TopicNode:
        """Confirm a proposed node: run the full create-and-link sequence."""
        title = (title or "").strip()
        summary = (summary or "").strip() or f"Exploring: {title}"
        return structure.create_child_node(
            self._store,
            self._gateway,
            parent_id=parent_id,
            title=title,
            summary=summary,
            tags=tags,
            node_id=node_id,
            audit=self._audit,
        )

    def get_node_detail(self, node_id: str) -> dict[str, Any]:
        node = self._store.get_node(node_id)
        if node is None:
            raise NotFoundError("node", node_id)
        return node_detail(self._store, node)

    def get_path(self, node_id: str) -> list[str]:
        node = self._store.get_node(node_id)
        if node is None:
            raise NotFoundError("node", node_id)
        return node.ancestor_path

    def search_nodes(self, topic_id: str, query: str, top_k: int = 5) -> dict[str, Any]:
        if self._store.get_root_topic(topic_id) is None:
            raise NotFoundError("root topic", topic_id)
        return self._toolbox.execute(
            ToolName.SEARCH_NODES.value,
            {"query": query, "top_k": top_k},
            ToolContext(root_id=topic_id),
        )

    # ── Routing & chat ───────────────────────────────────────────────

    def route_question(self, request: RouteRequest) -> RoutingDecision:
        return self._router.route(request)

    def run_agent(self, request: ChatRequest) -> ChatDecision:
        return self._agent.run(request)

    def chat_events(self, node_id: str, request: ChatTurnRequest) -> Iterator[dict[str, Any]]:
        """Resolve the chat node eagerly, then return the event stream for it.

        Lookup failures raise before streaming starts; failures after that
        are delivered as a final ``error`` event.
        """
        node = self._store.get_node(node_id)
        if node is None:
            raise NotFoundError("node", node_id)
        question = request.latest_user_text()
        if not question:
            raise ValueError("messages must contain a user message with text")
        has_graph = self._store.get_root_topic(node.root_id) is not None
        return self._chat_events(node, question, request, has_graph)

    def _chat_events(
        self,
        node: TopicNode,
        question: str,
        request: ChatTurnRequest,
        has_graph: bool,
    ) -> Iterator[dict[str, Any]]:
        try:
            if not has_graph:
                yield from self._direct.stream(node, request)
                return
            decision = self.run_agent(ChatRequest(
                user_message=question,
                root_node_id=node.root_id,
                active_node_id=node.id,
                conversation_history=request.history(),
            ))
            yield {"type": "decision", **decision.model_dump(exclude={"response", "summary_updated"})}
            yield {"type": "text", "text": decision.response}
            yield {"type": "done", "summary_updated": decision.summary_updated}
        except NeuralearnError as e:
            logger.warning("Chat on %s failed (%s): %s", node.id, e.kind, e)
            yield {"type": "error", "kind": e.kind, "error": str(e)}
        except Exception as e:
            logger.exception("Unexpected chat failure on %s", node.id)
            yield {"type": "error", "kind": "error", "error": str(e)}

    # ── Admin ────────────────────────────────────────────────────────

    def health_check(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "graph_store": self._store.heartbeat(),
            "semantic_index": self._gateway.heartbeat(),
            "llm_configured": self._llm.configured,
            "web_search_configured": self._web_search.configured,
        }

    def get_stats(self) -> dict[str, Any]:
        return {
            "topic_count": self._store.topic_count(),
            "node_count": self._store.node_count(),
            "interaction_count": self._store.interaction_count(),
            "collections": self._gateway.collections(),
        }

    def read_audit_log(self, topic_id: str, limit: int = 100) -> list[dict[str, Any]]:
        return self._audit.read(topic_id, limit=limit)

    def compact_audit_log(self, topic_id: str, keep: int = 1000) -> int:
        return self._audit.compact(topic_id, keep=keep)


_broker: GraphBroker | None = None
_broker_lock = threading.Lock()


def get_broker(settings: Settings) -> GraphBroker:
    """Process-wide broker, created on first use."""
    global _broker
    if _broker is None:
        with _broker_lock:
            if _broker is None:
                _broker = GraphBroker(settings)
    return _broker
