"""Tests for the Anthropic client wrapper."""

from contextlib import contextmanager

import anthropic
import httpx
import pytest

from neuralearn.agent.llm import LLMClient, text_of
from neuralearn.errors import LLMError

from conftest import FakeBlock, FakeMessage


class _Messages:
    def __init__(self, response=None, error=None, chunks=()):
        self.response = response
        self.error = error
        self.chunks = list(chunks)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response

    @contextmanager
    def stream(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        yield type("_Stream", (), {"text_stream": iter(self.chunks)})()


class _Client:
    def __init__(self, messages):
        self.messages = messages


def _llm(**kwargs) -> tuple[LLMClient, _Messages]:
    messages = _Messages(**kwargs)
    return LLMClient(api_key="", model="claude-test", client=_Client(messages)), messages


def test_text_of_joins_text_blocks():
    message = FakeMessage(
        [FakeBlock(type="text", text="Hello"), FakeBlock(type="tool_use", name="x"), FakeBlock(type="text", text="world")],
        "end_turn",
    )
    assert text_of(message) == "Hello\nworld"
    assert text_of(object()) == ""


def test_complete():
    llm, messages = _llm(response=FakeMessage([FakeBlock(type="text", text=" A summary. ")], "end_turn"))

    assert llm.complete("system", "prompt", max_tokens=300) == "A summary."
    call = messages.calls[0]
    assert call["model"] == "claude-test"
    assert call["max_tokens"] == 300
    assert call["system"] == "system"
    assert call["messages"] == [{"role": "user", "content": "prompt"}]
    assert "tools" not in call


def test_structured_forces_tool_choice():
    tool = {"name": "route_question", "description": "d", "input_schema": {"type": "object"}}
    block = FakeBlock(type="tool_use", name="route_question", input={"action": "create_new"})
    llm, messages = _llm(response=FakeMessage([block], "tool_use"))

    assert llm.structured("system", "prompt", tool) == {"action": "create_new"}
    assert messages.calls[0]["tool_choice"] == {"type": "tool", "name": "route_question"}
    assert messages.calls[0]["tools"] == [tool]


def test_structured_without_tool_call():
    tool = {"name": "route_question", "description": "d", "input_schema": {"type": "object"}}
    llm, _ = _llm(response=FakeMessage([FakeBlock(type="text", text="no")], "end_turn"))

    with pytest.raises(LLMError):
        llm.structured("system", "prompt", tool)


def test_timeout_is_translated():
    error = anthropic.APITimeoutError(request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"))
    llm, _ = _llm(error=error)

    with pytest.raises(LLMError, match="timed out"):
        llm.complete("system", "prompt")


def test_api_error_is_translated():
    error = anthropic.APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"))
    llm, _ = _llm(error=error)

    with pytest.raises(LLMError, match="failed"):
        llm.complete("system", "prompt")


def test_stream_yields_chunks_with_model_override():
    llm, messages = _llm(chunks=["Hel", "lo"])

    assert list(llm.stream("system", [{"role": "user", "content": "hi"}], model="claude-other")) == ["Hel", "lo"]
    assert messages.calls[0]["model"] == "claude-other"


def test_unconfigured_client():
    llm = LLMClient(api_key="", model="claude-test")

    assert llm.configured is False
    with pytest.raises(LLMError, match="not configured"):
        llm.complete("system", "prompt")


def test_from_settings(test_settings):
    llm = LLMClient.from_settings(test_settings)
    assert llm.model == test_settings.llm_model
    assert llm.configured is False
