"""Web search collaborator backed by the Tavily search API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from neuralearn.config import Settings

logger = logging.getLogger(__name__)

MAX_RESULTS = 5


class WebSearch:
    """Never raises: missing configuration or failures yield an explicit empty marker."""

    def __init__(
        self,
        api_key: str,
        url: str = "https://api.tavily.com/search",
        timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._url = url
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> WebSearch:
        return cls(
            api_key=settings.web_search_api_key,
            url=settings.web_search_url,
            timeout=settings.web_search_timeout,
        )

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def search(self, query: str, num_results: int = 3) -> dict[str, Any]:
        if not self._api_key:
            return {"error": "Web search not configured", "results": []}

        payload = {
            "api_key": self._api_key,
            "query": query,
            "max_results": max(1, min(num_results, MAX_RESULTS)),
            "search_depth": "basic",
            "include_answer": True,
        }
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(self._url, json=payload)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Web search failed for %r: %s", query, e)
            return {"error": "Web search failed", "results": []}

        return {
            "answer": data.get("answer") or None,
            "results": [
                {
                    "title": r.get("title", ""),
                    "url": r.get("url", ""),
                    "snippet": r.get("content", ""),
                    "score": r.get("score"),
                }
                for r in data.get("results") or []
            ],
        }
