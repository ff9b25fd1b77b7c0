"""Prompt and structured-output tool for the routing classification call."""

from __future__ import annotations

from typing import Any

from neuralearn.models.graph import TopicNode
from neuralearn.models.routing import RankedNode, RecentMessage, RoutingChoice
from neuralearn.routing.topics import title_case

ROUTING_SYSTEM_PROMPT = """You route a student's question inside a knowledge graph of topic nodes.
Each node covers ONE specific concept. Decide whether the question belongs to an
existing node or needs a new node, and report your decision with the route_question tool.

RULE 1 - create_new: if the specific topic of the question has no dedicated node,
create a new node under the most relevant existing node.
RULE 2 - use_existing: only when a node with the same or nearly identical title
exists, or the question is an explicit follow-up about the current node (a pronoun
such as "it" or "this" referring to it, or a request for a simple attribute of it).
RULE 3 - high similarity to a PARENT topic is not a duplicate. A question about the
power rule scores high against "Derivatives" but belongs in a new "Power Rule" node
under Derivatives. A question about Bronny James belongs in a new node under
"LeBron James", not in the LeBron James node itself.

Node titles are short (at most 50 characters). Summaries are one or two sentences
written for the student."""

ROUTING_TOOL: dict[str, Any] = {
    "name": "route_question",
    "description": "Report the routing decision for the student's question.",
    "input_schema": RoutingChoice.model_json_schema(),
}


def build_routing_prompt(
    question: str,
    topic: str,
    ranked: list[RankedNode],
    nodes: list[TopicNode],
    current: TopicNode | None = None,
    recent_messages: list[RecentMessage] | None = None,
    web_context: str | None = None,
) -> str:
    lines = [f"QUESTION: {question}"]
    lines.append(f"EXTRACTED TOPIC: {topic or '(none)'}")

    if current is not None:
        lines.append("")
        lines.append("CURRENT NODE (the student is here):")
        lines.append(f"- {current.title} (id: {current.id}): {current.summary}")

    if recent_messages:
        lines.append("")
        lines.append("RECENT CONVERSATION:")
        for message in recent_messages[-6:]:
            lines.append(f"{message.role}: {message.content[:300]}")

    lines.append("")
    lines.append("MOST SIMILAR NODES (similarity 0..1):")
    for r in ranked:
        lines.append(f"- {r.title} (id: {r.id}, score: {r.score:.2f}): {r.summary[:160]}")

    lines.append("")
    lines.append("ALL NODES:")
    for node in nodes:
        parent = f", parent: {node.parent_id}" if node.parent_id else ", root"
        lines.append(f"- {node.title} (id: {node.id}{parent})")

    if web_context:
        lines.append("")
        lines.append("WEB CONTEXT:")
        lines.append(web_context[:1500])

    lines.append("")
    if topic:
        lines.append(
            f'Does "{topic}" have its own node in ALL NODES? If not, create_new under the '
            f'best parent with the title "{title_case(topic)}".'
        )
    lines.append(
        "For create_new give parent_node_id, suggested_title and suggested_summary. "
        "For use_existing give existing_node_id. Use ids exactly as listed."
    )
    return "\n".join(lines)
