"""Tests for the MCP tool registrations."""

import pytest

from neuralearn.broker import GraphBroker
from neuralearn.errors import NotFoundError
from neuralearn.tools.graph_tools import register_graph_tools
from neuralearn.tools.topic_tools import register_topic_tools


class _FakeMCP:
    """Collects the functions registered through ``@mcp.tool()``."""

    def __init__(self) -> None:
        self.tools = {}

    def tool(self):
        def decorator(fn):
            self.tools[fn.__name__] = fn
            return fn

        return decorator


@pytest.fixture
def tools(test_settings, graph_store, gateway, fake_llm, fake_web_search, audit):
    broker = GraphBroker(
        test_settings,
        store=graph_store,
        gateway=gateway,
        llm=fake_llm,
        web_search=fake_web_search,
        audit=audit,
    )
    mcp = _FakeMCP()
    register_topic_tools(mcp, broker)
    register_graph_tools(mcp, broker)
    return mcp.tools


def test_registered_tools(tools):
    assert set(tools) == {
        "create_topic",
        "list_topics",
        "route_question",
        "confirm_node",
        "search_nodes",
        "get_node",
        "get_path_to_root",
    }


def test_topic_route_and_confirm_flow(tools, fake_llm):
    created = tools["create_topic"]("Calculus")
    root_id = created["root_node"]["id"]
    assert created["topic"]["id"] == root_id
    assert [t["title"] for t in tools["list_topics"]()] == ["Calculus"]

    fake_llm.structured_result = {"action": "create_new", "parent_node_id": root_id}
    decision = tools["route_question"](
        "what is the power rule?",
        root_id,
        recent_messages=[{"role": "user", "content": "derivatives please"}],
    )
    assert decision["action"] == "create_new"
    assert decision["suggestedTitle"] == "Power Rule"
    assert "user: derivatives please" in fake_llm.structured_calls[0]

    node = tools["confirm_node"](decision["parentId"], decision["suggestedTitle"], node_id="intent-1")
    assert node["id"] == "intent-1"
    assert node["summary"] == "Exploring: Power Rule"
    again = tools["confirm_node"](decision["parentId"], decision["suggestedTitle"], node_id="intent-1")
    assert again["id"] == "intent-1"

    detail = tools["get_node"](root_id)
    assert [c["id"] for c in detail["children"]] == ["intent-1"]
    assert tools["get_path_to_root"]("intent-1") == [root_id, "intent-1"]

    results = tools["search_nodes"](root_id, "power rule", 3)
    assert "intent-1" in [r["id"] for r in results["results"]]


def test_unknown_node(tools):
    with pytest.raises(NotFoundError):
        tools["get_node"]("missing")
