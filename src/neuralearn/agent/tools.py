"""Graph tools offered to the orchestration model.

The tool set is closed: :class:`ToolName` enumerates every variant, each with
a pydantic input model and one handler on :class:`GraphToolbox`. A name
outside the enum is reported back to the model as an ``unknown_tool`` result.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from neuralearn.agent.web_search import WebSearch
from neuralearn.errors import NeuralearnError, UnknownToolError
from neuralearn.index.gateway import SemanticIndexGateway
from neuralearn.models.graph import InteractionSource, TopicNode
from neuralearn.store import structure
from neuralearn.store.audit_log import AuditLog
from neuralearn.store.graph_store import GraphStore

logger = logging.getLogger(__name__)

EXACT_THRESHOLD = 0.85
RELATED_THRESHOLD = 0.65


def score_band(score: float) -> str:
    if score >= EXACT_THRESHOLD:
        return "exact"
    if score >= RELATED_THRESHOLD:
        return "related"
    return "unrelated"


class ToolName(str, Enum):
    SEARCH_NODES = "search_nodes"
    GET_NODE = "get_node"
    GET_PATH_TO_ROOT = "get_path_to_root"
    CREATE_NODE = "create_node"
    SET_ACTIVE_NODE = "set_active_node"
    WEB_SEARCH = "web_search"


class SearchNodesInput(BaseModel):
    query: str = Field(min_length=1, description="The topic or concept to search for")
    top_k: int = Field(default=5, ge=1, le=20, description="Number of results to return")


class NodeIdInput(BaseModel):
    node_id: str = Field(min_length=1, description="Node ID")


class CreateNodeInput(BaseModel):
    title: str = Field(min_length=1, max_length=50, description="Short topic name (max 50 chars)")
    summary: str = Field(
        min_length=20,
        max_length=200,
        description="1-2 sentence explanation of this topic. Must be clear and student-friendly.",
    )
    parent_id: str = Field(min_length=1, description="Parent node ID to attach this node to")
    tags: list[str] = Field(default_factory=list, description="Keywords for better searchability")


class WebSearchInput(BaseModel):
    query: str = Field(min_length=1, description="Search query")
    num_results: int = Field(default=3, ge=1, le=5, description="Number of results (1-5)")


@dataclass(frozen=True)
class ToolSpec:
    name: ToolName
    description: str
    input_model: type[BaseModel]

    def definition(self) -> dict[str, Any]:
        """Anthropic tool definition."""
        return {
            "name": self.name.value,
            "description": self.description,
            "input_schema": self.input_model.model_json_schema(),
        }


TOOL_SPECS: dict[ToolName, ToolSpec] = {
    ToolName.SEARCH_NODES: ToolSpec(
        ToolName.SEARCH_NODES,
        "Search existing nodes of this topic by semantic similarity. Use it to check "
        "whether a topic already exists before creating a node. Scores are 0-1:\n"
        f"- score >= {EXACT_THRESHOLD}: exact match, activate this node\n"
        f"- score >= {RELATED_THRESHOLD}: related topic, create the new node under this one\n"
        f"- score < {RELATED_THRESHOLD}: unrelated, create the new node under the root",
        SearchNodesInput,
    ),
    ToolName.GET_NODE: ToolSpec(
        ToolName.GET_NODE,
        "Get full details of a node by ID, including its children.",
        NodeIdInput,
    ),
    ToolName.GET_PATH_TO_ROOT: ToolSpec(
        ToolName.GET_PATH_TO_ROOT,
        "Get the ordered list of node IDs from the root to a node (used to animate activation).",
        NodeIdInput,
    ),
    ToolName.CREATE_NODE: ToolSpec(
        ToolName.CREATE_NODE,
        "Create a new subtopic node under a parent. Provide a clear 1-2 sentence, "
        "student-friendly summary of what the topic teaches.",
        CreateNodeInput,
    ),
    ToolName.SET_ACTIVE_NODE: ToolSpec(
        ToolName.SET_ACTIVE_NODE,
        "Switch the user's active context to a different node.",
        NodeIdInput,
    ),
    ToolName.WEB_SEARCH: ToolSpec(
        ToolName.WEB_SEARCH,
        "Search the web for current information. Use it only for recent developments, "
        "current data, or to verify a fact you are unsure about; not for well-established "
        "explanations.",
        WebSearchInput,
    ),
}


def tool_definitions() -> list[dict[str, Any]]:
    return [spec.definition() for spec in TOOL_SPECS.values()]


@dataclass
class ToolContext:
    """Per-run state shared by the tool handlers of one agent run."""

    root_id: str
    citations: list[InteractionSource] = field(default_factory=list)
    created_nodes: list[TopicNode] = field(default_factory=list)

    def cite(self, source: InteractionSource) -> None:
        if all(c.chunk_id != source.chunk_id for c in self.citations):
            self.citations.append(source)


class GraphToolbox:
    """Executes tool calls against the graph store, the index and web search."""

    def __init__(
        self,
        store: GraphStore,
        gateway: SemanticIndexGateway,
        web_search: WebSearch | None = None,
        audit: AuditLog | None = None,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._web_search = web_search
        self._audit = audit
        self._handlers: dict[ToolName, Callable[[Any, ToolContext], dict[str, Any]]] = {
            ToolName.SEARCH_NODES: self._search_nodes,
            ToolName.GET_NODE: self._get_node,
            ToolName.GET_PATH_TO_ROOT: self._get_path_to_root,
            ToolName.CREATE_NODE: self._create_node,
            ToolName.SET_ACTIVE_NODE: self._set_active_node,
            ToolName.WEB_SEARCH: self._web_search_tool,
        }

    def execute(self, name: str, raw_input: dict[str, Any] | None, context: ToolContext) -> dict[str, Any]:
        """Run one tool call; the result is always a JSON-serialisable dict."""
        try:
            tool = ToolName(name)
        except ValueError:
            err = UnknownToolError(name)
            logger.warning(str(err))
            return {"error": str(err), "kind": err.kind}

        spec = TOOL_SPECS[tool]
        try:
            args = spec.input_model.model_validate(raw_input or {})
        except ValidationError as e:
            return {
                "error": f"Invalid input for {name}",
                "details": e.errors(include_url=False, include_context=False, include_input=False),
            }

        try:
            return self._handlers[tool](args, context)
        except (NeuralearnError, ValueError) as e:
            return {"error": str(e)}

    def _search_nodes(self, args: SearchNodesInput, context: ToolContext) -> dict[str, Any]:
        topic = self._store.get_root_topic(context.root_id)
        if topic is None:
            return {"results": [], "message": "No root topic found"}

        hits = self._gateway.search(topic.index_collection_id, args.query, args.top_k)
        if not hits:
            return {"results": [], "message": "No matching nodes found"}

        nodes = {n.id: n for n in self._store.get_nodes([h.node_id for h in hits])}
        results = []
        for hit in hits:
            context.cite(InteractionSource(chunk_id=hit.chunk_id, score=hit.score, text=hit.text))
            node = nodes.get(hit.node_id)
            results.append({
                "id": hit.node_id,
                "title": node.title if node else hit.title,
                "summary": node.summary if node else "",
                "parent_id": node.parent_id if node else None,
                "tags": node.tags if node else [],
                "score": round(hit.score, 4),
                "match": score_band(hit.score),
            })
        return {"results": results}

    def _get_node(self, args: NodeIdInput, context: ToolContext) -> dict[str, Any]:
        node = self._store.get_node(args.node_id)
        if node is None:
            return {"error": f"Node {args.node_id} not found"}
        return node_detail(self._store, node)

    def _get_path_to_root(self, args: NodeIdInput, context: ToolContext) -> dict[str, Any]:
        node = self._store.get_node(args.node_id)
        if node is None:
            return {"error": f"Node {args.node_id} not found", "path": []}
        return {"path": node.ancestor_path}

    def _create_node(self, args: CreateNodeInput, context: ToolContext) -> dict[str, Any]:
        parent = self._store.get_node(args.parent_id)
        if parent is None:
            return {"error": f"Parent node {args.parent_id} not found"}
        if parent.root_id != context.root_id:
            return {"error": f"Parent node {args.parent_id} belongs to another topic"}

        node = structure.create_child_node(
            self._store,
            self._gateway,
            parent_id=args.parent_id,
            title=args.title,
            summary=args.summary,
            tags=args.tags,
            audit=self._audit,
        )
        context.created_nodes.append(node)
        return {
            "created": True,
            "id": node.id,
            "title": node.title,
            "summary": node.summary,
            "parent_id": node.parent_id,
            "ancestor_path": node.ancestor_path,
        }

    def _set_active_node(self, args: NodeIdInput, context: ToolContext) -> dict[str, Any]:
        node = self._store.get_node(args.node_id)
        if node is None:
            return {"error": f"Node {args.node_id} not found"}
        return {
            "active_node_id": node.id,
            "title": node.title,
            "ancestor_path": node.ancestor_path,
        }

    def _web_search_tool(self, args: WebSearchInput, context: ToolContext) -> dict[str, Any]:
        if self._web_search is None:
            return {"error": "Web search not configured", "results": []}
        return self._web_search.search(args.query, args.num_results)


def node_detail(store: GraphStore, node: TopicNode) -> dict[str, Any]:
    """Node fields plus a brief projection of its linked children."""
    children = store.get_nodes(node.children_ids)
    return {
        "id": node.id,
        "title": node.title,
        "summary": node.summary,
        "parent_id": node.parent_id,
        "root_id": node.root_id,
        "tags": node.tags,
        "interaction_count": node.interaction_count,
        "children": [c.brief() for c in children],
        "ancestor_path": node.ancestor_path,
    }
