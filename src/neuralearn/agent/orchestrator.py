"""Orchestration Agent - a bounded tool-calling loop over the topic graph.

The loop is an explicit state machine::

    AWAITING_MODEL --tool_use--> EXECUTING_TOOLS --> AWAITING_MODEL
    AWAITING_MODEL --final text--> DONE
    any state --iteration or duration ceiling--> ABORTED_BY_LIMIT

The final text is scanned for a JSON decision object. A missing or malformed
object degrades to a plain conversational answer on the active node.
"""

from __future__ import annotations

import json
import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import ValidationError

from neuralearn.agent.llm import LLMClient, text_of
from neuralearn.agent.prompts import ORCHESTRATOR_SYSTEM_PROMPT, build_graph_prompt
from neuralearn.agent.tools import GraphToolbox, ToolContext, tool_definitions
from neuralearn.errors import AgentLimitError, LLMError, NotFoundError
from neuralearn.models.chat import ChatDecision, ChatRequest, NewNodeSpec, SourceLink
from neuralearn.models.graph import TopicNode
from neuralearn.store.graph_store import GraphStore
from neuralearn.tracking import InteractionTracker

logger = logging.getLogger(__name__)

MAX_TOOL_TURNS = 8
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


class AgentState(str, Enum):
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    ABORTED_BY_LIMIT = "aborted_by_limit"


@dataclass
class AgentRun:
    """Mutable record of one loop run."""

    state: AgentState = AgentState.AWAITING_MODEL
    iterations: int = 0
    tool_calls: list[str] = field(default_factory=list)
    final_text: str = ""


def parse_decision(text: str, active_node_id: str | None, root_node_id: str) -> ChatDecision:
    """Extract the decision object from the model's final text; never raises."""
    default_target = active_node_id or root_node_id
    fallback = ChatDecision(
        action="none",
        target_node_id=default_target,
        activation_path=[root_node_id],
        response=text,
    )

    match = _JSON_OBJECT.search(text or "")
    if not match:
        return fallback
    try:
        parsed = json.loads(match.group(0))
    except ValueError:
        return fallback
    if not isinstance(parsed, dict):
        return fallback

    action = parsed.get("action")
    if action not in ("activate", "create", "none"):
        action = "none"

    new_node = None
    if isinstance(parsed.get("new_node"), dict):
        try:
            new_node = NewNodeSpec.model_validate(parsed["new_node"])
        except ValidationError:
            new_node = None

    sources = []
    for item in parsed.get("sources") or []:
        if isinstance(item, dict) and item.get("url"):
            sources.append(SourceLink(url=str(item["url"]), title=str(item.get("title") or "")))

    path = parsed.get("activation_path")
    if not isinstance(path, list) or not all(isinstance(p, str) for p in path) or not path:
        path = [root_node_id]

    target = parsed.get("target_node_id")
    response = parsed.get("response")
    return ChatDecision(
        action=action,
        target_node_id=target if isinstance(target, str) and target else default_target,
        activation_path=path,
        response=response if isinstance(response, str) and response else text,
        new_node=new_node,
        sources=sources,
    )


class OrchestrationAgent:
    def __init__(
        self,
        store: GraphStore,
        llm: LLMClient,
        toolbox: GraphToolbox,
        tracker: InteractionTracker | None = None,
        max_iterations: int = MAX_TOOL_TURNS,
        max_duration: float = 120.0,
    ) -> None:
        self._store = store
        self._llm = llm
        self._toolbox = toolbox
        self._tracker = tracker
        self._max_iterations = max_iterations
        self._max_duration = max_duration

    def run(self, request: ChatRequest) -> ChatDecision:
        root = self._store.get_node(request.root_node_id)
        if root is None:
            raise NotFoundError("node", request.root_node_id)
        active = None
        if request.active_node_id:
            active = self._store.get_node(request.active_node_id)
            if active is None:
                raise NotFoundError("node", request.active_node_id)

        context = ToolContext(root_id=root.root_id)
        prompt = self._build_prompt(request, root, active)
        run = self._loop(prompt, context)

        decision = parse_decision(run.final_text, request.active_node_id, request.root_node_id)
        decision.citations = list(context.citations)
        self._resolve_target(decision, context, active or root)

        if self._tracker is not None:
            decision.summary_updated = self._tracker.record(
                decision.target_node_id,
                request.user_message,
                decision.response,
                decision.citations,
            )
        logger.info(
            "Agent run finished: action=%s target=%s iterations=%d tools=%s",
            decision.action, decision.target_node_id, run.iterations, run.tool_calls,
        )
        return decision

    def _build_prompt(self, request: ChatRequest, root: TopicNode, active: TopicNode | None) -> str:
        root_children = self._store.get_nodes(root.children_ids)
        ancestors = []
        active_children = []
        if active is not None and active.id != root.id:
            ancestors = self._store.get_nodes(active.ancestor_path[:-1])
            active_children = self._store.get_nodes(active.children_ids)
        return build_graph_prompt(
            root=root,
            active=active,
            root_children=root_children,
            ancestors=ancestors,
            active_children=active_children,
            user_message=request.user_message,
            history=request.conversation_history,
        )

    def _loop(self, prompt: str, context: ToolContext) -> AgentRun:
        run = AgentRun()
        messages: list[dict[str, Any]] = [{"role": "user", "content": prompt}]
        tools = tool_definitions()
        deadline = time.monotonic() + self._max_duration

        while run.state not in (AgentState.DONE, AgentState.ABORTED_BY_LIMIT):
            if run.iterations >= self._max_iterations or time.monotonic() > deadline:
                run.state = AgentState.ABORTED_BY_LIMIT
                break

            run.iterations += 1
            response = self._llm.create(
                system=ORCHESTRATOR_SYSTEM_PROMPT,
                messages=messages,
                tools=tools,
            )
            tool_uses = [
                block for block in response.content
                if getattr(block, "type", None) == "tool_use"
            ]
            if response.stop_reason != "tool_use" or not tool_uses:
                run.final_text = text_of(response)
                if not run.final_text:
                    raise LLMError("No text response from the model")
                run.state = AgentState.DONE
                break

            run.state = AgentState.EXECUTING_TOOLS
            results = []
            for block in tool_uses:
                run.tool_calls.append(block.name)
                result = self._toolbox.execute(block.name, block.input, context)
                results.append({
                    "type": "tool_result",
                    "tool_use_id": block.id,
                    "content": json.dumps(result, default=str),
                })
            messages.append({"role": "assistant", "content": response.content})
            messages.append({"role": "user", "content": results})
            run.state = AgentState.AWAITING_MODEL

        if run.state == AgentState.ABORTED_BY_LIMIT:
            logger.warning(
                "Agent loop aborted after %d iterations (tools: %s)", run.iterations, run.tool_calls
            )
            raise AgentLimitError(
                f"Agent stopped after {run.iterations} iterations without a final answer"
            )
        return run

    def _resolve_target(self, decision: ChatDecision, context: ToolContext, current: TopicNode) -> None:
        """Point the decision at a real node and fill the activation path.

        ``new_node`` only ever describes a node created during this run.
        """
        created_here = False
        if decision.action == "create" and context.created_nodes:
            created = context.created_nodes[-1]
            if decision.new_node is None or decision.new_node.id in (None, created.id):
                decision.target_node_id = created.id
                decision.new_node = NewNodeSpec(
                    id=created.id,
                    title=created.title,
                    summary=created.summary,
                    parent_id=created.parent_id,
                    tags=created.tags,
                )
                created_here = True
        if decision.action == "create" and not created_here:
            logger.warning("Decision claims a node that was never created; answering without one")
            decision.action = "none"
        if not created_here:
            decision.new_node = None

        target = self._store.get_node(decision.target_node_id)
        if target is None or target.root_id != current.root_id:
            logger.warning(
                "Decision targets unknown node %s; answering on %s",
                decision.target_node_id, current.id,
            )
            decision.action = "none"
            decision.new_node = None
            target = current
        decision.target_node_id = target.id
        if decision.activation_path[-1:] != [target.id]:
            decision.activation_path = list(target.ancestor_path)
