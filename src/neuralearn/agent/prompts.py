"""Prompts for the orchestration agent, summary refinement and direct chat."""

from __future__ import annotations

from neuralearn.models.chat import CanvasEdge
from neuralearn.models.graph import TopicNode
from neuralearn.models.routing import RecentMessage

ORCHESTRATOR_SYSTEM_PROMPT = """You are the tutor of a visual knowledge graph. Every node is one
concept of a larger topic; the student is working inside the active node.

For every message:
1. Decide whether it belongs to the active node, to another existing node, or to a
   concept that has no node yet. Call search_nodes before creating anything.
2. Follow the score bands of search_nodes: activate an exact match, nest a new node
   under a related match, attach unrelated concepts under the root.
3. Create a node only for a genuinely new concept; keep titles short and summaries
   to one or two student-friendly sentences.
4. Use web_search only for recent or uncertain facts.
5. Answer the student's question clearly and concisely.

End with ONLY a JSON object, no other text after it:
{
  "action": "activate" | "create" | "none",
  "target_node_id": "<node the answer belongs to>",
  "activation_path": ["<root id>", "...", "<target id>"],
  "response": "<your answer to the student, markdown allowed>",
  "new_node": {"id": "...", "title": "...", "summary": "...", "parent_id": "..."} or null,
  "sources": [{"url": "...", "title": "..."}]
}"""


def _node_line(node: TopicNode) -> str:
    return f"- {node.title} (id: {node.id}): {node.summary}"


def build_graph_prompt(
    root: TopicNode,
    active: TopicNode | None,
    root_children: list[TopicNode],
    ancestors: list[TopicNode],
    active_children: list[TopicNode],
    user_message: str,
    history: list[RecentMessage] | None = None,
) -> str:
    """User prompt carrying UI state, a graph snapshot and recent history."""
    lines = ["## UI STATE"]
    lines.append(f"Root node: {root.title} (id: {root.id})")
    if active is not None and active.id != root.id:
        lines.append(f"Active node: {active.title} (id: {active.id})")
        lines.append(f"Active node summary: {active.summary}")
    else:
        lines.append("Active node: the root")

    lines.append("")
    lines.append("## GRAPH SNAPSHOT")
    lines.append("Root children:")
    lines.extend(_node_line(n) for n in root_children)
    if not root_children:
        lines.append("- (none)")
    if ancestors:
        lines.append("Active node ancestors (root first):")
        lines.extend(_node_line(n) for n in ancestors)
    if active is not None and active.id != root.id:
        lines.append("Active node children:")
        lines.extend(_node_line(n) for n in active_children)
        if not active_children:
            lines.append("- (none)")

    if history:
        lines.append("")
        lines.append("## RECENT CONVERSATION")
        for message in history[-10:]:
            lines.append(f"{message.role}: {message.content}")

    lines.append("")
    lines.append("## USER MESSAGE")
    lines.append(user_message)
    return "\n".join(lines)


REFINE_SYSTEM_PROMPT = (
    "You maintain the summaries of a student's knowledge graph. Rewrite a node's "
    "summary so it reflects what the student has actually been exploring. Reply with "
    "the new summary only: one or two sentences, at most 200 characters, no preamble."
)


def build_refine_prompt(
    title: str,
    current_summary: str,
    questions: list[str],
    responses: list[str],
    parent_summary: str | None = None,
) -> str:
    lines = [f"NODE: {title}", f"CURRENT SUMMARY: {current_summary}"]
    if parent_summary:
        lines.append(f"PARENT SUMMARY: {parent_summary}")
    lines.append("")
    lines.append("RECENT EXCHANGES (newest first):")
    for i, (question, answer) in enumerate(zip(questions, responses), start=1):
        lines.append(f"{i}. Q: {question}")
        lines.append(f"   A: {answer[:400]}")
    return "\n".join(lines)


DIRECT_CHAT_SYSTEM_PROMPT = "You are a helpful assistant that can answer questions and help with tasks."

RELATION_GUIDANCE: dict[str, str] = {
    "refines": (
        "{child} is a more specific subtopic of {parent}. Keep the parent's goal in view, "
        "stay inside the child's scope, expand the idea in a focused direction, and warn "
        "the student when they drift off-scope."
    ),
    "background": (
        "{source} holds the prior knowledge needed before reasoning inside {target}. "
        "Draw on it for definitions and context."
    ),
    "challenges": "{source} complicates, contradicts or weakens the claim in {target}.",
    "supports": "{source} contains evidence that makes the claim in {target} more plausible.",
    "synthesizes": (
        "{target} combines {source} with its other inputs into one coherent idea. "
        "Reorganise what exists; do not add new information."
    ),
}


def build_relation_guidance(node_id: str, edges: list[CanvasEdge], titles: dict[str, str]) -> str:
    """Render the canvas edges touching ``node_id`` as system-prompt guidance."""
    lines = []
    for edge in edges:
        if node_id not in (edge.source, edge.target):
            continue
        source = titles.get(edge.source, edge.source)
        target = titles.get(edge.target, edge.target)
        template = RELATION_GUIDANCE[edge.relation_type]
        lines.append("- " + template.format(source=source, target=target, parent=source, child=target))
    if not lines:
        return ""
    return "Relations of the current node:\n" + "\n".join(lines)


def build_direct_system_prompt(
    node: TopicNode | None,
    relation_guidance: str = "",
    web_context: str | None = None,
) -> str:
    parts = [DIRECT_CHAT_SYSTEM_PROMPT]
    if node is not None:
        parts.append(f"The conversation is about: {node.title}. {node.summary}".strip())
    if relation_guidance:
        parts.append(relation_guidance)
    if web_context:
        parts.append(f"Current information from the web:\n{web_context}")
    return "\n\n".join(parts)
