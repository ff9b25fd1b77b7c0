"""Read-only graph MCP tools: semantic search, node detail, path to root."""

from __future__ import annotations

from typing import Any

from neuralearn.broker import GraphBroker


def register_graph_tools(mcp, broker: GraphBroker) -> None:
    """Register graph read tools with the MCP server."""

    @mcp.tool()
    def search_nodes(topic_id: str, query: str, top_k: int = 5) -> dict[str, Any]:
        """Search a topic's nodes by semantic similarity.

        Each result carries a score in [0, 1] and a match band:
        exact (>= 0.85), related (>= 0.65) or unrelated.

        Args:
            topic_id: Topic to search in
            query: Concept to look for
            top_k: Number of results

        Returns:
            Ranked results, best first
        """
        return broker.search_nodes(topic_id, query, top_k)

    @mcp.tool()
    def get_node(node_id: str) -> dict[str, Any]:
        """Get a node with its summary and its children.

        Args:
            node_id: Node id

        Returns:
            Node detail including children and ancestor_path
        """
        return broker.get_node_detail(node_id)

    @mcp.tool()
    def get_path_to_root(node_id: str) -> list[str]:
        """Ordered node ids from the topic root down to this node."""
        return broker.get_path(node_id)
