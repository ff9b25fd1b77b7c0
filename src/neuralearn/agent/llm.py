"""Anthropic Messages API client shared by routing, the agent and refinement."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from typing import Any

import anthropic

from neuralearn.config import Settings
from neuralearn.errors import LLMError

logger = logging.getLogger(__name__)


def text_of(message: Any) -> str:
    """Concatenate the text blocks of a Messages API response."""
    parts = [
        block.text
        for block in getattr(message, "content", []) or []
        if getattr(block, "type", None) == "text"
    ]
    return "\n".join(parts).strip()


class LLMClient:
    """Thin wrapper adding timeouts, error translation and structured output.

    The underlying SDK client is created on first use and reused for the
    lifetime of the process.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        max_tokens: int = 4096,
        temperature: float = 0.0,
        timeout: float = 60.0,
        client: Any | None = None,
    ) -> None:
        self._api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._timeout = timeout
        self._client = client
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> LLMClient:
        return cls(
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            max_tokens=settings.llm_max_tokens,
            temperature=settings.llm_temperature,
            timeout=settings.llm_timeout,
        )

    @property
    def configured(self) -> bool:
        return self._client is not None or bool(self._api_key)

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client
        if not self._api_key:
            raise LLMError("LLM is not configured (set NEURALEARN_LLM_API_KEY)")
        with self._lock:
            if self._client is None:
                self._client = anthropic.Anthropic(
                    api_key=self._api_key,
                    timeout=self._timeout,
                    max_retries=2,
                )
        return self._client

    def create(
        self,
        *,
        system: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        tool_choice: dict[str, Any] | None = None,
        max_tokens: int | None = None,
        model: str | None = None,
    ) -> Any:
        """One Messages API call; SDK failures surface as :class:`LLMError`."""
        kwargs: dict[str, Any] = {
            "model": model or self.model,
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": self.temperature,
            "system": system,
            "messages": messages,
        }
        if tools:
            kwargs["tools"] = tools
        if tool_choice:
            kwargs["tool_choice"] = tool_choice
        try:
            return self._get_client().messages.create(**kwargs)
        except anthropic.APITimeoutError as e:
            raise LLMError(f"LLM call timed out after {self._timeout:.0f}s") from e
        except anthropic.APIError as e:
            raise LLMError(f"LLM call failed: {e}") from e

    def complete(self, system: str, prompt: str, max_tokens: int | None = None) -> str:
        message = self.create(
            system=system,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=max_tokens,
        )
        return text_of(message)

    def structured(self, system: str, prompt: str, tool: dict[str, Any]) -> dict[str, Any]:
        """Force a single tool call and return its input as the structured result."""
        message = self.create(
            system=system,
            messages=[{"role": "user", "content": prompt}],
            tools=[tool],
            tool_choice={"type": "tool", "name": tool["name"]},
        )
        for block in getattr(message, "content", []) or []:
            if getattr(block, "type", None) == "tool_use" and block.name == tool["name"]:
                return dict(block.input)
        raise LLMError(f"LLM did not return a '{tool['name']}' result")

    def stream(
        self,
        system: str,
        messages: list[dict[str, Any]],
        model: str | None = None,
    ) -> Iterator[str]:
        """Yield text deltas of a streamed response."""
        try:
            with self._get_client().messages.stream(
                model=model or self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=system,
                messages=messages,
            ) as stream:
                yield from stream.text_stream
        except anthropic.APITimeoutError as e:
            raise LLMError(f"LLM call timed out after {self._timeout:.0f}s") from e
        except anthropic.APIError as e:
            raise LLMError(f"LLM call failed: {e}") from e
