"""Tests for interaction tracking and summary refresh."""

import pytest

from neuralearn.errors import LLMError
from neuralearn.models.graph import InteractionSource
from neuralearn.tracking import MAX_SUMMARY_CHARS, InteractionTracker, should_refine


@pytest.fixture
def tracker(graph_store, gateway, fake_llm, audit):
    return InteractionTracker(graph_store, gateway, fake_llm, audit=audit)


@pytest.mark.parametrize("count", range(0, 51))
@pytest.mark.parametrize("records", range(0, 6))
def test_should_refine(count, records):
    expected = count > 0 and count % 5 == 0 and records >= 3
    assert should_refine(count, records) is expected


def test_record_logs_interaction(tracker, graph_store, calculus):
    node_id = calculus["derivatives"].id
    source = InteractionSource(chunk_id=f"{node_id}:0", score=0.8, text="doc")

    assert tracker.record(node_id, "what is a slope?", "Rise over run.", [source]) is False

    assert graph_store.get_node(node_id).interaction_count == 1
    records = graph_store.list_recent_interactions(node_id, 10)
    assert records[0].user_message == "what is a slope?"
    assert records[0].sources[0].chunk_id == f"{node_id}:0"


def test_fifth_interaction_refines_summary(tracker, graph_store, fake_llm, vector_store, calculus, audit):
    derivatives = calculus["derivatives"]
    fake_llm.completion = "Derivatives as slopes of tangent lines, with worked power-rule examples."

    results = [tracker.record(derivatives.id, f"question {i}", f"answer {i}") for i in range(5)]

    assert results == [False, False, False, False, True]
    assert len(fake_llm.complete_calls) == 1
    prompt = fake_llm.complete_calls[0]
    assert "NODE: Derivatives" in prompt
    assert "CURRENT SUMMARY: Rates of change and slopes of curves." in prompt
    assert "PARENT SUMMARY: Learn about Calculus" in prompt
    assert prompt.index("question 4") < prompt.index("question 0")

    node = graph_store.get_node(derivatives.id)
    assert node.summary == fake_llm.completion
    assert node.last_refined_at != derivatives.last_refined_at
    collection = calculus["topic"].index_collection_id
    assert vector_store.collections[collection][f"{derivatives.id}:0"]["document"] == (
        f"# Derivatives\n\n{fake_llm.completion}"
    )
    assert audit.read(calculus["root"].id)[-1]["event"] == "summary_refined"


def test_refined_summary_is_truncated(tracker, graph_store, fake_llm, calculus):
    node_id = calculus["derivatives"].id
    fake_llm.completion = "s" * 500

    for i in range(5):
        tracker.record(node_id, f"q{i}", f"a{i}")

    assert len(graph_store.get_node(node_id).summary) == MAX_SUMMARY_CHARS


def test_empty_refinement_keeps_summary(tracker, graph_store, fake_llm, calculus):
    node_id = calculus["derivatives"].id
    fake_llm.completion = "   "

    for i in range(5):
        tracker.record(node_id, f"q{i}", f"a{i}")

    assert graph_store.get_node(node_id).summary == "Rates of change and slopes of curves."


def test_llm_failure_is_swallowed(tracker, graph_store, fake_llm, calculus):
    node_id = calculus["derivatives"].id
    fake_llm.completion = LLMError("model down")

    results = [tracker.record(node_id, f"q{i}", f"a{i}") for i in range(5)]

    assert results[-1] is False
    assert graph_store.get_node(node_id).interaction_count == 5
    assert graph_store.get_node(node_id).summary == "Rates of change and slopes of curves."


def test_too_few_records_skips_refinement(graph_store, gateway, fake_llm, calculus):
    tracker = InteractionTracker(graph_store, gateway, fake_llm, cadence=2, min_records=3)
    node_id = calculus["derivatives"].id

    assert tracker.record(node_id, "q0", "a0") is False
    assert tracker.record(node_id, "q1", "a1") is False
    assert fake_llm.complete_calls == []


def test_index_failure_does_not_block_refinement(tracker, graph_store, fake_llm, vector_store, calculus):
    node_id = calculus["derivatives"].id
    fake_llm.completion = "A refreshed summary."
    vector_store.fail = True

    results = [tracker.record(node_id, f"q{i}", f"a{i}") for i in range(5)]

    assert results[-1] is True
    assert graph_store.get_node(node_id).summary == "A refreshed summary."


def test_unknown_node(tracker):
    assert tracker.record("missing", "q", "a") is False
