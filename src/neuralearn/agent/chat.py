"""Direct chat: a streamed model answer without the tool-calling loop.

Used for nodes that have no graph context. Canvas edges touching the node
are rendered into the system prompt as relation guidance.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from neuralearn.agent.llm import LLMClient
from neuralearn.agent.prompts import build_direct_system_prompt, build_relation_guidance
from neuralearn.agent.web_search import WebSearch
from neuralearn.models.chat import ChatTurnRequest
from neuralearn.models.graph import TopicNode
from neuralearn.store.graph_store import GraphStore
from neuralearn.tracking import InteractionTracker

logger = logging.getLogger(__name__)


def model_override(requested: str | None) -> str | None:
    """Only Anthropic model ids are honoured; anything else uses the default."""
    if requested and requested.startswith("claude-"):
        return requested
    if requested:
        logger.debug("Ignoring unsupported model %r", requested)
    return None


class DirectChat:
    def __init__(
        self,
        store: GraphStore,
        llm: LLMClient,
        web_search: WebSearch | None = None,
        tracker: InteractionTracker | None = None,
    ) -> None:
        self._store = store
        self._llm = llm
        self._web_search = web_search
        self._tracker = tracker

    def _edge_titles(self, request: ChatTurnRequest) -> dict[str, str]:
        ids = sorted({e.source for e in request.edges} | {e.target for e in request.edges})
        return {n.id: n.title for n in self._store.get_nodes(ids)}

    def _web_context(self, question: str) -> str | None:
        if self._web_search is None:
            return None
        result = self._web_search.search(question, num_results=3)
        if result.get("error"):
            logger.info("Web search unavailable for direct chat: %s", result["error"])
            return None
        lines = [result["answer"]] if result.get("answer") else []
        for r in result.get("results", []):
            lines.append(f"- {r['title']} ({r['url']}): {r['snippet'][:300]}")
        return "\n".join(lines) or None

    def stream(self, node: TopicNode, request: ChatTurnRequest) -> Iterator[dict[str, Any]]:
        """Yield ``text`` events, then a ``done`` event once the answer is tracked."""
        question = request.latest_user_text()
        guidance = build_relation_guidance(node.id, request.edges, self._edge_titles(request))
        web_context = self._web_context(question) if request.web_search and question else None
        system = build_direct_system_prompt(node, guidance, web_context)

        messages = [
            {"role": m.role, "content": m.text()}
            for m in request.messages
            if m.role in ("user", "assistant") and m.text()
        ]

        chunks = []
        for text in self._llm.stream(system, messages, model=model_override(request.model)):
            chunks.append(text)
            yield {"type": "text", "text": text}

        summary_updated = False
        if self._tracker is not None and question:
            summary_updated = self._tracker.record(node.id, question, "".join(chunks))
        yield {"type": "done", "summary_updated": summary_updated}
