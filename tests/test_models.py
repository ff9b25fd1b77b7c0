"""Tests for data models."""

import pytest
from pydantic import ValidationError

from neuralearn.models.chat import ChatDecision, ChatMessage
from neuralearn.models.graph import IndexHit, RootTopic, TopicNode
from neuralearn.models.routing import RoutingChoice, RoutingDecision


def test_topic_node_defaults():
    node = TopicNode(id="n1", title="Derivatives", root_id="t1", parent_id="t1", ancestor_path=["t1", "n1"])

    assert node.summary == ""
    assert node.tags == []
    assert node.children_ids == []
    assert node.interaction_count == 0
    assert node.created_at
    assert not node.is_root
    assert node.depth == 1
    assert node.brief() == {"id": "n1", "title": "Derivatives", "summary": ""}


def test_root_node():
    root = TopicNode(id="t1", title="Calculus", root_id="t1", ancestor_path=["t1"])
    assert root.is_root
    assert root.depth == 0


def test_root_topic_defaults():
    topic = RootTopic(id="t1", title="Calculus", index_collection_id="neuralearn_t1")
    assert topic.node_count == 1
    assert topic.description == ""


@pytest.mark.parametrize("score", [-0.01, 1.01])
def test_index_hit_score_bounds(score):
    with pytest.raises(ValidationError):
        IndexHit(node_id="n1", score=score)


def test_routing_choice_schema_lists_actions():
    schema = RoutingChoice.model_json_schema()
    assert schema["properties"]["action"]["enum"] == ["use_existing", "create_new"]
    assert schema["required"] == ["action"]


def test_routing_decision_wire_format():
    decision = RoutingDecision(
        action="navigate_to_existing",
        reasoning="exact title",
        question="what is the chain rule?",
        extracted_topic="chain rule",
        deterministic=True,
        node_id="n2",
        node_title="Chain Rule",
    )

    assert decision.to_wire() == {
        "action": "navigate_to_existing",
        "reasoning": "exact title",
        "question": "what is the chain rule?",
        "extractedTopic": "chain rule",
        "deterministic": True,
        "nodeId": "n2",
        "nodeTitle": "Chain Rule",
    }


def test_chat_decision_defaults():
    decision = ChatDecision(target_node_id="t1", response="Hi")
    assert decision.action == "none"
    assert decision.activation_path == []
    assert decision.summary_updated is False


def test_chat_message_text_from_parts():
    message = ChatMessage(role="user", parts=[{"type": "text", "text": "a"}, {"type": "text", "text": "b"}])
    assert message.text() == "a b"
    assert ChatMessage(role="user", content="direct").text() == "direct"
