"""
Tavily Web Search
------------------
Asks the Tavily search API for a short answer snippet to supplement the
handbook excerpts.

Search is best-effort: any HTTP, timeout, or payload problem is logged and
reported as "no snippet" (None).  Nothing raised here ever reaches the
chat flow.
"""
from __future__ import annotations

from typing import Optional

import httpx
from loguru import logger

from handbook_rag.config import Settings
from handbook_rag.errors import SearchFailure

TAVILY_URL = "https://api.tavily.com/search"

_HEADERS = {"Content-Type": "application/json"}


class TavilySearch:
    """
    Args:
        api_key:   Tavily API key; None disables search entirely.
        timeout:   Per-request timeout in seconds.
        transport: Optional httpx transport (used by tests).
    """

    def __init__(
        self,
        api_key: Optional[str],
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "TavilySearch":
        key = settings.tavily_api_key.get_secret_value() if settings.tavily_api_key else None
        if key is None:
            logger.warning("[Tavily] TAVILY_API_KEY not set -- web search disabled")
        return cls(api_key=key, timeout=settings.search_timeout)

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def search(self, query: str) -> Optional[str]:
        """Return Tavily's answer snippet for `query`, or None."""
        if not self.enabled:
            return None
        try:
            return self._request(query)
        except SearchFailure as exc:
            logger.warning(f"[Tavily] {exc}")
            return None

    def _request(self, query: str) -> Optional[str]:
        payload = {
            "query": query,
            "api_key": self.api_key,
            "include_answer": True,
            "search_depth": "basic",
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                resp = client.post(TAVILY_URL, json=payload, headers=_HEADERS)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as exc:
            raise SearchFailure(f"Search request failed: {exc}") from exc
        except ValueError as exc:
            raise SearchFailure(f"Search returned invalid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise SearchFailure(f"Unexpected search payload: {type(data).__name__}")

        answer = data.get("answer")
        if answer is not None and not isinstance(answer, str):
            raise SearchFailure(f"Unexpected answer type: {type(answer).__name__}")
        answer = answer or None
        logger.debug(f"[Tavily] query={query[:60]!r} | answer={'yes' if answer else 'no'}")
        return answer
