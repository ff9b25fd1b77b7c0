"""Interaction Tracker & Summary Refresher.

Every answered turn is logged against its node. When the node's interaction
count reaches a positive multiple of the cadence, and enough records exist,
the node summary is rewritten from the recent exchanges and pushed to both
the graph store and the semantic index. Nothing here raises to the caller:
tracking must never block the user-visible answer.
"""

from __future__ import annotations

import logging
from uuid import uuid4

from neuralearn.agent.llm import LLMClient
from neuralearn.agent.prompts import REFINE_SYSTEM_PROMPT, build_refine_prompt
from neuralearn.index.embedder import node_document
from neuralearn.index.gateway import SemanticIndexGateway
from neuralearn.models.graph import InteractionSource, NodeInteraction, TopicNode, utc_now
from neuralearn.store.audit_log import AuditLog
from neuralearn.store.graph_store import GraphStore

logger = logging.getLogger(__name__)

MAX_SUMMARY_CHARS = 200


def should_refine(interaction_count: int, records: int, cadence: int = 5, min_records: int = 3) -> bool:
    return interaction_count > 0 and interaction_count % cadence == 0 and records >= min_records


class InteractionTracker:
    def __init__(
        self,
        store: GraphStore,
        gateway: SemanticIndexGateway,
        llm: LLMClient,
        cadence: int = 5,
        min_records: int = 3,
        window: int = 10,
        audit: AuditLog | None = None,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._llm = llm
        self._cadence = cadence
        self._min_records = min_records
        self._window = window
        self._audit = audit

    def record(
        self,
        node_id: str,
        user_message: str,
        ai_response: str,
        sources: list[InteractionSource] | None = None,
    ) -> bool:
        """Log one exchange; returns True when it triggered a summary refresh."""
        count = None
        try:
            count = self._store.increment_interaction_count(node_id)
        except Exception as e:
            logger.warning("Failed to increment interaction count for %s: %s", node_id, e)

        try:
            self._store.append_interaction(NodeInteraction(
                id=uuid4().hex,
                node_id=node_id,
                user_message=user_message,
                ai_response=ai_response,
                sources=list(sources or []),
            ))
        except Exception as e:
            logger.warning("Failed to store interaction for %s: %s", node_id, e)

        if count is None:
            return False
        return self.maybe_refine(node_id, count)

    def maybe_refine(self, node_id: str, interaction_count: int) -> bool:
        if interaction_count <= 0 or interaction_count % self._cadence != 0:
            return False
        try:
            records = self._store.list_recent_interactions(node_id, self._window)
            if not should_refine(interaction_count, len(records), self._cadence, self._min_records):
                return False
            node = self._store.get_node(node_id)
            if node is None:
                return False
            return self.refine(node, records)
        except Exception as e:
            logger.warning("Summary refinement failed for %s: %s", node_id, e)
            return False

    def refine(self, node: TopicNode, records: list[NodeInteraction]) -> bool:
        """Rewrite ``node``'s summary from ``records`` (newest first)."""
        parent = self._store.get_node(node.parent_id) if node.parent_id else None
        prompt = build_refine_prompt(
            title=node.title,
            current_summary=node.summary,
            questions=[r.user_message for r in records],
            responses=[r.ai_response for r in records],
            parent_summary=parent.summary if parent else None,
        )
        summary = self._llm.complete(REFINE_SYSTEM_PROMPT, prompt, max_tokens=300).strip()
        if not summary:
            logger.info("Refinement of %s returned an empty summary; keeping the current one", node.id)
            return False
        summary = summary[:MAX_SUMMARY_CHARS]

        if not self._store.update_summary(node.id, summary, utc_now()):
            return False

        topic = self._store.get_root_topic(node.root_id)
        if topic is not None and node.index_document_id:
            self._gateway.update(
                topic.index_collection_id,
                node.index_document_id,
                node_document(node.title, summary),
            )
        if self._audit:
            self._audit.record("summary_refined", node.root_id, node_id=node.id, summary=summary)
        logger.info("Refined summary of %s (%s)", node.title, node.id)
        return True
