"""Create-and-link sequences that keep the topic tree's structural invariants.

A node is created in three single-record writes, issued in order: insert the
node, append its id to the parent's ``children_ids``, increment the root
topic's ``node_count``. There is no cross-record transaction. A crash between
the writes leaves a node that resolves by id but is not yet listed by its
parent, or a topic whose ``node_count`` is one short; calling
:func:`create_child_node` again with the same ``node_id`` re-links it and
recounts the topic without inserting a duplicate.
"""

from __future__ import annotations

import logging
from uuid import uuid4

from neuralearn.errors import NotFoundError, TopicConflictError
from neuralearn.index.gateway import SemanticIndexGateway
from neuralearn.models.graph import RootTopic, TopicNode
from neuralearn.store.audit_log import AuditLog
from neuralearn.store.graph_store import GraphStore

logger = logging.getLogger(__name__)


def new_id() -> str:
    return uuid4().hex


def _bump_node_count(store: GraphStore, root_id: str) -> None:
    try:
        store.increment_node_count(root_id)
    except Exception as e:
        logger.warning("Failed to increment node count for topic %s: %s", root_id, e)


def _reconcile_node_count(store: GraphStore, root_id: str) -> None:
    try:
        store.reconcile_node_count(root_id)
    except Exception as e:
        logger.warning("Failed to reconcile node count for topic %s: %s", root_id, e)


def create_root_topic(
    store: GraphStore,
    gateway: SemanticIndexGateway,
    title: str,
    description: str | None = None,
    audit: AuditLog | None = None,
) -> tuple[RootTopic, TopicNode]:
    """Create a root topic, its index collection and its root node.

    The root node shares the topic's id and counts as the topic's first node.
    """
    title = (title or "").strip()
    if not title:
        raise ValueError("Title is required")

    existing = store.find_root_topic_by_title(title)
    if existing:
        raise TopicConflictError(title, existing.id)

    topic_id = new_id()
    description = (description or "").strip() or f"Learn about {title}"
    collection_id = gateway.create_collection(gateway.collection_name_for(topic_id))

    topic = RootTopic(
        id=topic_id,
        title=title,
        description=description,
        index_collection_id=collection_id,
        node_count=1,
    )
    store.create_root_topic(topic)

    indexed = gateway.ingest(collection_id, topic_id, title, description)
    root = TopicNode(
        id=topic_id,
        title=title,
        summary=description,
        parent_id=None,
        root_id=topic_id,
        index_document_id=indexed.document_id,
        index_chunk_ids=indexed.chunk_ids,
        ancestor_path=[topic_id],
    )
    store.create_node(root)

    if audit:
        audit.record("topic_created", topic_id, title=title, collection_id=collection_id)
    logger.info("Created topic %s (%s)", title, topic_id)
    return topic, root


def create_child_node(
    store: GraphStore,
    gateway: SemanticIndexGateway,
    parent_id: str,
    title: str,
    summary: str,
    tags: list[str] | None = None,
    node_id: str | None = None,
    audit: AuditLog | None = None,
) -> TopicNode:
    """Create a node under ``parent_id`` and link it into the tree.

    ``node_id`` is an optional caller-supplied intent id. When a node with
    that id already exists this is a retry of the same logical create: the
    parent link is re-issued and the existing node is returned.
    """
    title = (title or "").strip()
    if not title:
        raise ValueError("Title is required")

    parent = store.get_node(parent_id)
    if parent is None:
        raise NotFoundError("parent node", parent_id)

    if node_id:
        existing = store.get_node(node_id)
        if existing is not None:
            if existing.parent_id != parent_id:
                raise ValueError(f"Node '{node_id}' already exists under a different parent")
            if store.append_child(parent_id, node_id):
                if audit:
                    audit.record("node_relinked", existing.root_id, node_id=node_id, parent_id=parent_id)
                logger.info("Re-linked node %s under %s", node_id, parent_id)
            # The earlier attempt may have stopped after linking but before counting.
            _reconcile_node_count(store, existing.root_id)
            return existing

    topic = store.get_root_topic(parent.root_id)
    if topic is None:
        raise NotFoundError("root topic", parent.root_id)

    node_id = node_id or new_id()
    indexed = gateway.ingest(topic.index_collection_id, node_id, title, summary)
    node = TopicNode(
        id=node_id,
        title=title,
        summary=summary,
        parent_id=parent_id,
        root_id=parent.root_id,
        tags=list(tags or []),
        index_document_id=indexed.document_id,
        index_chunk_ids=indexed.chunk_ids,
        ancestor_path=[*parent.ancestor_path, node_id],
    )
    store.create_node(node)
    store.append_child(parent_id, node_id)
    _bump_node_count(store, parent.root_id)

    if audit:
        audit.record("node_created", parent.root_id, node_id=node_id, parent_id=parent_id, title=title)
    logger.info("Created node %s (%s) under %s", title, node_id, parent_id)
    return node
