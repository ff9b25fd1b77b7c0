"""Routing Engine - map a question to an existing node or propose a new one.

Order of evidence:

1. Deterministic title match on the extracted topic (no model call).
2. Semantic ranking from the index, degraded to a neutral 0.5 ranking when
   the index returns nothing.
3. A structured model classification over the ranking and the full node list.

A ``create_new`` outcome is only a proposal; nothing is persisted here.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from neuralearn.agent.llm import LLMClient
from neuralearn.agent.web_search import WebSearch
from neuralearn.errors import EmptyWorkspaceError, NotFoundError, RoutingDecisionError
from neuralearn.index.gateway import SemanticIndexGateway
from neuralearn.models.graph import IndexHit, TopicNode
from neuralearn.models.routing import RankedNode, RouteRequest, RoutingChoice, RoutingDecision
from neuralearn.routing.prompts import ROUTING_SYSTEM_PROMPT, ROUTING_TOOL, build_routing_prompt
from neuralearn.routing.topics import clean_question, extract_topic, find_title_match, title_case
from neuralearn.store.graph_store import GraphStore

logger = logging.getLogger(__name__)

NEUTRAL_SCORE = 0.5


def rank_nodes(hits: list[IndexHit], nodes: list[TopicNode]) -> list[RankedNode]:
    """Join index hits onto loaded nodes; fall back to a neutral ranking.

    Hits pointing at ids outside the loaded node set are dropped. When no hit
    survives, every node is returned with score 0.5.
    """
    by_id = {n.id: n for n in nodes}
    ranked: list[RankedNode] = []
    seen: set[str] = set()
    for hit in hits:
        node = by_id.get(hit.node_id)
        if node is None or node.id in seen:
            continue
        seen.add(node.id)
        ranked.append(RankedNode(
            id=node.id,
            title=node.title,
            summary=node.summary,
            parent_id=node.parent_id,
            score=hit.score,
        ))
    if ranked:
        return ranked
    return [
        RankedNode(
            id=n.id,
            title=n.title,
            summary=n.summary,
            parent_id=n.parent_id,
            score=NEUTRAL_SCORE,
        )
        for n in nodes
    ]


class RoutingEngine:
    def __init__(
        self,
        store: GraphStore,
        gateway: SemanticIndexGateway,
        llm: LLMClient,
        web_search: WebSearch | None = None,
        top_k: int = 5,
        web_context: bool = False,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._llm = llm
        self._web_search = web_search
        self._top_k = top_k
        self._web_context = web_context

    def route(self, request: RouteRequest) -> RoutingDecision:
        topic_record = self._store.get_root_topic(request.root_id)
        if topic_record is None:
            raise NotFoundError("root topic", request.root_id)

        current = None
        if request.current_node_id:
            current = self._store.get_node(request.current_node_id)
            if current is None:
                raise NotFoundError("node", request.current_node_id)

        nodes = self._store.find_nodes_by_root(request.root_id)
        if not nodes:
            raise EmptyWorkspaceError(request.root_id)

        question = clean_question(request.question) or request.question.strip()
        topic = extract_topic(question)

        match = find_title_match(topic, nodes)
        if match is not None:
            logger.info("Deterministic match for %r -> %s (%s)", topic, match.title, match.id)
            return RoutingDecision(
                action="navigate_to_existing",
                reasoning=f'Topic "{topic}" matches existing node "{match.title}"',
                question=question,
                extracted_topic=topic,
                deterministic=True,
                node_id=match.id,
                node_title=match.title,
            )

        hits = self._gateway.search(topic_record.index_collection_id, question, self._top_k)
        ranked = rank_nodes(hits, nodes)
        if not hits:
            logger.info("No index results for %r; using neutral ranking of %d nodes", question, len(nodes))

        prompt = build_routing_prompt(
            question=question,
            topic=topic,
            ranked=ranked[: self._top_k],
            nodes=nodes,
            current=current,
            recent_messages=request.recent_messages,
            web_context=self._lookup_web_context(question, current),
        )
        raw = self._llm.structured(ROUTING_SYSTEM_PROMPT, prompt, ROUTING_TOOL)
        return self._decide(raw, question, topic, nodes)

    def _lookup_web_context(self, question: str, current: TopicNode | None) -> str | None:
        if not self._web_context or self._web_search is None or not self._web_search.configured:
            return None
        query = f"{question} (in the context of {current.title})" if current else question
        result = self._web_search.search(query, num_results=3)
        if result.get("answer"):
            return result["answer"]
        snippets = [r["snippet"] for r in result.get("results", []) if r.get("snippet")]
        return "\n".join(snippets) or None

    def _decide(
        self,
        raw: dict[str, Any],
        question: str,
        topic: str,
        nodes: list[TopicNode],
    ) -> RoutingDecision:
        try:
            choice = RoutingChoice.model_validate(raw)
        except ValidationError as e:
            raise RoutingDecisionError(f"Invalid routing decision: {e.error_count()} invalid field(s)") from e

        by_id = {n.id: n for n in nodes}

        if choice.action == "create_new" and choice.parent_node_id:
            parent = by_id.get(choice.parent_node_id)
            if parent is None:
                raise NotFoundError("parent node", choice.parent_node_id)
            title = (choice.suggested_title or "").strip() or title_case(topic)
            if not title:
                raise RoutingDecisionError("Invalid routing decision: no title for the new node")
            title = title[:50]
            return RoutingDecision(
                action="create_new",
                reasoning=choice.reasoning,
                question=question,
                extracted_topic=topic,
                parent_id=parent.id,
                suggested_title=title,
                suggested_summary=(choice.suggested_summary or "").strip() or f"Exploring: {title}",
            )

        if choice.action == "use_existing" and choice.existing_node_id:
            existing = by_id.get(choice.existing_node_id)
            if existing is None:
                raise NotFoundError("node", choice.existing_node_id)
            return RoutingDecision(
                action="navigate_to_existing",
                reasoning=choice.reasoning,
                question=question,
                extracted_topic=topic,
                node_id=existing.id,
                node_title=existing.title,
            )

        raise RoutingDecisionError("Invalid routing decision")
