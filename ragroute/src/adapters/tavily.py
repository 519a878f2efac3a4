"""
ragroute - Tavily Web Search
=============================
``WebSearcher`` over the Tavily search API.

    POST https://api.tavily.com/search
    {"query": ..., "max_results": ...}
    → {"results": [{"title", "url", "content", "score"}, ...]}
"""

from __future__ import annotations

import httpx
from pydantic import SecretStr

from ragroute.config.settings import settings
from ragroute.src.core.collaborators import SearchHit
from ragroute.src.core.errors import InvalidParameterError
from ragroute.src.utils.logger import get_logger
from ragroute.src.utils.text_utils import preview

logger = get_logger(__name__)

TAVILY_SEARCH_URL = "https://api.tavily.com/search"


class TavilySearcher:
    """
    Synchronous Tavily client.

    Parameters
    ----------
    api_key
        Overrides ``settings.TAVILY_API_KEY``.
    max_results, timeout
        ``settings.WEB_SEARCH_*`` when omitted.
    client
        Pre-built ``httpx.Client`` (tests pass one with a mock transport).

    Raises
    ------
    InvalidParameterError
        If no API key is available.
    """

    __slots__ = ("max_results", "_api_key", "_client")

    def __init__(self, api_key: SecretStr | str | None = None, max_results: int | None = None, timeout: float | None = None, client: httpx.Client | None = None) -> None:
        key = api_key if api_key is not None else settings.TAVILY_API_KEY
        if isinstance(key, SecretStr):
            key = key.get_secret_value()
        if not key:
            raise InvalidParameterError("TAVILY_API_KEY is not set; add it to the environment or the .env file.")

        self._api_key = key
        self.max_results = max_results or settings.WEB_SEARCH_MAX_RESULTS
        self._client = client or httpx.Client(timeout=timeout or settings.WEB_SEARCH_TIMEOUT_SECONDS)

    def search(self, query_text: str) -> list[SearchHit]:
        """
        Run one search.  HTTP and transport errors propagate
        (``httpx.HTTPError``); ``ExternalSearchSource`` turns them into
        ``SourceUnavailableError``.
        """
        response = self._client.post(
            TAVILY_SEARCH_URL,
            headers={"Authorization": f"Bearer {self._api_key}"},
            json={"query": query_text, "max_results": self.max_results},
        )
        response.raise_for_status()

        hits = [
            SearchHit(text=item.get("content") or "", score=float(item.get("score") or 0.0), url=item.get("url") or "", title=item.get("title") or "")
            for item in response.json().get("results", [])
        ]
        logger.debug("Tavily: %d result(s) for '%s'.", len(hits), preview(query_text, 40))
        return hits

    def close(self) -> None:
        self._client.close()

    def __repr__(self) -> str:
        return f"TavilySearcher(max_results={self.max_results})"
