"""Kuzu embedded graph store for root topics, topic nodes and interactions."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any

import kuzu

from neuralearn.models.graph import InteractionSource, NodeInteraction, RootTopic, TopicNode

logger = logging.getLogger(__name__)

# Lists are stored as "|"-joined strings so that appends stay single-statement.
# Elements are percent-escaped, so a "|" inside a value never splits it.
_SEP = "|"
_ESCAPED_SEP = "%7C"

_SCHEMA = (
    "CREATE NODE TABLE IF NOT EXISTS RootTopic("
    "id STRING, "
    "title STRING, "
    "description STRING, "
    "index_collection_id STRING, "
    "node_count INT64, "
    "created_at STRING, "
    "PRIMARY KEY (id))",
    "CREATE NODE TABLE IF NOT EXISTS TopicNode("
    "id STRING, "
    "title STRING, "
    "summary STRING, "
    "parent_id STRING, "
    "root_id STRING, "
    "tags STRING, "
    "index_document_id STRING, "
    "index_chunk_ids STRING, "
    "interaction_count INT64, "
    "last_refined_at STRING, "
    "created_at STRING, "
    "children_ids STRING, "
    "ancestor_path STRING, "
    "PRIMARY KEY (id))",
    "CREATE NODE TABLE IF NOT EXISTS NodeInteraction("
    "id STRING, "
    "node_id STRING, "
    "user_message STRING, "
    "ai_response STRING, "
    "sources STRING, "
    "timestamp STRING, "
    "PRIMARY KEY (id))",
)

_TOPIC_FIELDS = (
    "t.id, t.title, t.description, t.index_collection_id, t.node_count, t.created_at"
)
_NODE_FIELDS = (
    "n.id, n.title, n.summary, n.parent_id, n.root_id, n.tags, n.index_document_id, "
    "n.index_chunk_ids, n.interaction_count, n.last_refined_at, n.created_at, "
    "n.children_ids, n.ancestor_path"
)
_INTERACTION_FIELDS = (
    "i.id, i.node_id, i.user_message, i.ai_response, i.sources, i.timestamp"
)


def _escape(value: str) -> str:
    return value.replace("%", "%25").replace(_SEP, _ESCAPED_SEP)


def _unescape(value: str) -> str:
    return value.replace(_ESCAPED_SEP, _SEP).replace("%25", "%")


def _join(values: list[str]) -> str:
    return _SEP.join(_escape(v) for v in values)


def _split(value: str | None) -> list[str]:
    return [_unescape(v) for v in value.split(_SEP)] if value else []


class GraphStore:
    """Kuzu-backed persistence for the topic tree.

    Every mutation is a single-statement update on one record: counters are
    incremented in place and child ids are appended in place, so concurrent
    requests never lose writes to a read-modify-write race.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        # Kuzu manages its own directory - only ensure parent exists
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = kuzu.Database(str(self._db_path))
        self._conn = kuzu.Connection(self._db)
        self._lock = threading.RLock()
        self._init_schema()

    def _init_schema(self) -> None:
        """Create node tables if they don't exist."""
        for statement in _SCHEMA:
            try:
                self._conn.execute(statement)
            except Exception as e:
                logger.debug(f"Schema init note: {e}")

    def _rows(self, query: str, params: dict[str, Any] | None = None) -> list[list[Any]]:
        with self._lock:
            result = self._conn.execute(query, params or {})
            rows = []
            while result.has_next():
                rows.append(result.get_next())
        return rows

    def _count(self, query: str, params: dict[str, Any] | None = None) -> int:
        rows = self._rows(query, params)
        return int(rows[0][0]) if rows else 0

    @staticmethod
    def _topic_from_row(row: list[Any]) -> RootTopic:
        return RootTopic(
            id=row[0],
            title=row[1],
            description=row[2] or "",
            index_collection_id=row[3] or "",
            node_count=int(row[4] or 0),
            created_at=row[5] or "",
        )

    @staticmethod
    def _node_from_row(row: list[Any]) -> TopicNode:
        return TopicNode(
            id=row[0],
            title=row[1],
            summary=row[2] or "",
            parent_id=row[3] or None,
            root_id=row[4],
            tags=_split(row[5]),
            index_document_id=row[6] or "",
            index_chunk_ids=_split(row[7]),
            interaction_count=int(row[8] or 0),
            last_refined_at=row[9] or "",
            created_at=row[10] or "",
            children_ids=_split(row[11]),
            ancestor_path=_split(row[12]),
        )

    @staticmethod
    def _interaction_from_row(row: list[Any]) -> NodeInteraction:
        sources = json.loads(row[4]) if row[4] else []
        return NodeInteraction(
            id=row[0],
            node_id=row[1],
            user_message=row[2] or "",
            ai_response=row[3] or "",
            sources=[InteractionSource(**s) for s in sources],
            timestamp=row[5] or "",
        )

    # ── Root topics ──────────────────────────────────────────────────

    def create_root_topic(self, topic: RootTopic) -> None:
        """Insert a root topic record."""
        self._rows(
            "CREATE (t:RootTopic {id: $id, title: $title, description: $description, "
            "index_collection_id: $collection, node_count: $node_count, created_at: $created_at})",
            {
                "id": topic.id,
                "title": topic.title,
                "description": topic.description,
                "collection": topic.index_collection_id,
                "node_count": topic.node_count,
                "created_at": topic.created_at,
            },
        )

    def get_root_topic(self, topic_id: str) -> RootTopic | None:
        rows = self._rows(
            f"MATCH (t:RootTopic) WHERE t.id = $id RETURN {_TOPIC_FIELDS}",
            {"id": topic_id},
        )
        return self._topic_from_row(rows[0]) if rows else None

    def find_root_topic_by_title(self, title: str) -> RootTopic | None:
        """Case-insensitive exact title lookup."""
        rows = self._rows(
            f"MATCH (t:RootTopic) WHERE lower(t.title) = $title RETURN {_TOPIC_FIELDS} LIMIT 1",
            {"title": title.strip().lower()},
        )
        return self._topic_from_row(rows[0]) if rows else None

    def list_root_topics(self, limit: int = 50) -> list[RootTopic]:
        """Most recent root topics, newest first."""
        rows = self._rows(
            f"MATCH (t:RootTopic) RETURN {_TOPIC_FIELDS} "
            f"ORDER BY t.created_at DESC LIMIT {max(0, int(limit))}"
        )
        return [self._topic_from_row(row) for row in rows]

    def increment_node_count(self, root_id: str) -> int | None:
        """Atomically bump a topic's node count; returns the new value."""
        rows = self._rows(
            "MATCH (t:RootTopic) WHERE t.id = $id "
            "SET t.node_count = t.node_count + 1 RETURN t.node_count",
            {"id": root_id},
        )
        return int(rows[0][0]) if rows else None

    def reconcile_node_count(self, root_id: str) -> int | None:
        """Raise a topic's node count to the number of nodes it owns.

        Never lowers the count. Used when a retried create cannot tell
        whether its earlier increment landed.
        """
        with self._lock:
            total = self.node_count(root_id)
            rows = self._rows(
                "MATCH (t:RootTopic) WHERE t.id = $id "
                "SET t.node_count = CASE WHEN t.node_count < $total THEN $total ELSE t.node_count END "
                "RETURN t.node_count",
                {"id": root_id, "total": total},
            )
        return int(rows[0][0]) if rows else None

    # ── Nodes ────────────────────────────────────────────────────────

    def create_node(self, node: TopicNode) -> None:
        """Insert a node record. Linking into the parent is a separate step."""
        self._rows(
            "CREATE (n:TopicNode {id: $id, title: $title, summary: $summary, "
            "parent_id: $parent_id, root_id: $root_id, tags: $tags, "
            "index_document_id: $document_id, index_chunk_ids: $chunk_ids, "
            "interaction_count: $interaction_count, last_refined_at: $last_refined_at, "
            "created_at: $created_at, children_ids: $children_ids, ancestor_path: $ancestor_path})",
            {
                "id": node.id,
                "title": node.title,
                "summary": node.summary,
                "parent_id": node.parent_id or "",
                "root_id": node.root_id,
                "tags": _join(node.tags),
                "document_id": node.index_document_id,
                "chunk_ids": _join(node.index_chunk_ids),
                "interaction_count": node.interaction_count,
                "last_refined_at": node.last_refined_at,
                "created_at": node.created_at,
                "children_ids": _join(node.children_ids),
                "ancestor_path": _join(node.ancestor_path),
            },
        )

    def get_node(self, node_id: str) -> TopicNode | None:
        rows = self._rows(
            f"MATCH (n:TopicNode) WHERE n.id = $id RETURN {_NODE_FIELDS}",
            {"id": node_id},
        )
        return self._node_from_row(rows[0]) if rows else None

    def get_nodes(self, node_ids: list[str]) -> list[TopicNode]:
        """Fetch several nodes, preserving the order of ``node_ids``."""
        if not node_ids:
            return []
        rows = self._rows(
            f"MATCH (n:TopicNode) WHERE list_contains($ids, n.id) RETURN {_NODE_FIELDS}",
            {"ids": list(node_ids)},
        )
        by_id = {row[0]: self._node_from_row(row) for row in rows}
        return [by_id[i] for i in node_ids if i in by_id]

    def find_nodes_by_root(self, root_id: str) -> list[TopicNode]:
        """All nodes of a topic tree, oldest first."""
        rows = self._rows(
            f"MATCH (n:TopicNode) WHERE n.root_id = $root_id "
            f"RETURN {_NODE_FIELDS} ORDER BY n.created_at",
            {"root_id": root_id},
        )
        return [self._node_from_row(row) for row in rows]

    def find_children(self, parent_id: str) -> list[TopicNode]:
        """Nodes whose parent is ``parent_id``, regardless of child-list linkage."""
        rows = self._rows(
            f"MATCH (n:TopicNode) WHERE n.parent_id = $parent_id "
            f"RETURN {_NODE_FIELDS} ORDER BY n.created_at",
            {"parent_id": parent_id},
        )
        return [self._node_from_row(row) for row in rows]

    def append_child(self, parent_id: str, child_id: str) -> bool:
        """Append ``child_id`` to the parent's children in one statement.

        Idempotent: returns False when the parent is missing or the child is
        already linked.
        """
        escaped = _escape(child_id)
        rows = self._rows(
            "MATCH (n:TopicNode) WHERE n.id = $id "
            "AND NOT contains(concat(concat($sep, n.children_ids), $sep), $needle) "
            "SET n.children_ids = CASE WHEN n.children_ids = '' THEN $child "
            "ELSE concat(n.children_ids, $tail) END "
            "RETURN n.id",
            {
                "id": parent_id,
                "sep": _SEP,
                "needle": f"{_SEP}{escaped}{_SEP}",
                "child": escaped,
                "tail": f"{_SEP}{escaped}",
            },
        )
        return bool(rows)

    def increment_interaction_count(self, node_id: str) -> int | None:
        """Atomically bump a node's interaction count; returns the new value."""
        rows = self._rows(
            "MATCH (n:TopicNode) WHERE n.id = $id "
            "SET n.interaction_count = n.interaction_count + 1 RETURN n.interaction_count",
            {"id": node_id},
        )
        return int(rows[0][0]) if rows else None

    def update_summary(self, node_id: str, summary: str, refined_at: str) -> bool:
        rows = self._rows(
            "MATCH (n:TopicNode) WHERE n.id = $id "
            "SET n.summary = $summary, n.last_refined_at = $refined_at RETURN n.id",
            {"id": node_id, "summary": summary, "refined_at": refined_at},
        )
        return bool(rows)

    # ── Interactions ─────────────────────────────────────────────────

    def append_interaction(self, record: NodeInteraction) -> None:
        self._rows(
            "CREATE (i:NodeInteraction {id: $id, node_id: $node_id, user_message: $user_message, "
            "ai_response: $ai_response, sources: $sources, timestamp: $timestamp})",
            {
                "id": record.id,
                "node_id": record.node_id,
                "user_message": record.user_message,
                "ai_response": record.ai_response,
                "sources": json.dumps([s.model_dump() for s in record.sources]),
                "timestamp": record.timestamp,
            },
        )

    def list_recent_interactions(self, node_id: str, limit: int = 10) -> list[NodeInteraction]:
        """Most recent interactions for a node, newest first."""
        rows = self._rows(
            f"MATCH (i:NodeInteraction) WHERE i.node_id = $node_id "
            f"RETURN {_INTERACTION_FIELDS} ORDER BY i.timestamp DESC LIMIT {max(0, int(limit))}",
            {"node_id": node_id},
        )
        return [self._interaction_from_row(row) for row in rows]

    # ── Stats ────────────────────────────────────────────────────────

    def topic_count(self) -> int:
        return self._count("MATCH (t:RootTopic) RETURN count(t)")

    def node_count(self, root_id: str | None = None) -> int:
        if root_id:
            return self._count(
                "MATCH (n:TopicNode) WHERE n.root_id = $root_id RETURN count(n)",
                {"root_id": root_id},
            )
        return self._count("MATCH (n:TopicNode) RETURN count(n)")

    def interaction_count(self) -> int:
        return self._count("MATCH (i:NodeInteraction) RETURN count(i)")

    def heartbeat(self) -> bool:
        try:
            self.topic_count()
            return True
        except Exception:
            return False
