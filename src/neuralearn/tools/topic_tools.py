"""Topic MCP tools: create and list topics, route questions, confirm nodes."""

from __future__ import annotations

from typing import Any

from neuralearn.broker import GraphBroker
from neuralearn.models.routing import RecentMessage, RouteRequest


def register_topic_tools(mcp, broker: GraphBroker) -> None:
    """Register topic and routing tools with the MCP server."""

    @mcp.tool()
    def create_topic(title: str, description: str | None = None) -> dict[str, Any]:
        """Create a root topic (e.g. "Calculus") with its root node.

        Topic titles are unique, case-insensitively. The root node shares the
        topic's id and is where every question of the topic starts.

        Args:
            title: Subject area name
            description: Optional description; defaults to "Learn about <title>"

        Returns:
            The topic and its root node
        """
        topic, root = broker.create_topic(title, description)
        return {"topic": topic.model_dump(), "root_node": root.model_dump()}

    @mcp.tool()
    def list_topics(limit: int = 50) -> list[dict[str, Any]]:
        """List the most recently created topics, newest first.

        Args:
            limit: Maximum number of topics to return

        Returns:
            Topic records with their node counts
        """
        return [t.model_dump() for t in broker.list_topics(limit)]

    @mcp.tool()
    def route_question(
        question: str,
        root_id: str,
        current_node_id: str | None = None,
        recent_messages: list[dict[str, str]] | None = None,
    ) -> dict[str, Any]:
        """Decide where a question belongs in a topic's graph.

        Returns either navigate_to_existing (with nodeId) or create_new (with
        parentId, suggestedTitle, suggestedSummary). create_new is only a
        proposal: call confirm_node to actually create the node.

        Args:
            question: The learner's question
            root_id: Topic id (same as its root node id)
            current_node_id: Node the learner is currently viewing (optional)
            recent_messages: Recent {role, content} messages for pronoun resolution

        Returns:
            The routing decision
        """
        request = RouteRequest(
            question=question,
            root_id=root_id,
            current_node_id=current_node_id,
            recent_messages=[RecentMessage(**m) for m in recent_messages or []],
        )
        return broker.route_question(request).to_wire()

    @mcp.tool()
    def confirm_node(
        parent_id: str,
        title: str,
        summary: str | None = None,
        tags: list[str] | None = None,
        node_id: str | None = None,
    ) -> dict[str, Any]:
        """Create a proposed node under its parent and link it into the tree.

        Pass the same node_id when retrying after a failure; an existing node
        with that id is re-linked instead of duplicated.

        Args:
            parent_id: Parent node id (parentId from route_question)
            title: Node title (suggestedTitle from route_question)
            summary: Node summary; defaults to "Exploring: <title>"
            tags: Keywords for searchability
            node_id: Optional caller-chosen id making the call idempotent

        Returns:
            The created (or re-linked) node
        """
        node = broker.create_node(parent_id, title, summary=summary, tags=tags, node_id=node_id)
        return node.model_dump()
